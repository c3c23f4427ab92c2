from pydantic import BaseModel, ConfigDict, Field, AliasChoices, field_validator, model_validator
from pydantic.alias_generators import to_camel
from typing import Any, Dict, Optional, Union
from enum import Enum


class PlanType(str, Enum):
    basic = "Basic"
    standard = "Standard"
    premium = "Premium"

    @property
    def coverage_percentage(self) -> int:
        return COVERAGE_PERCENTAGE[self]


# The only coverage table in the code base; every coverage computation reads it.
COVERAGE_PERCENTAGE: Dict[PlanType, int] = {
    PlanType.basic: 60,
    PlanType.standard: 80,
    PlanType.premium: 90,
}


class TransactionType(str, Enum):
    insurance_purchase = "InsurancePurchase"
    medication_purchase = "MedicationPurchase"


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Medication(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: str = Field(..., min_length=1)
    name: str
    generic_name: str = ""
    category: str = ""
    description: str = ""
    original_price: int = Field(
        ...,
        ge=0,
        validation_alias=AliasChoices("originalPrice", "price", "original_price"),
        serialization_alias="originalPrice",
        description="Price in minor units (wei)",
    )
    requires_prescription: bool = False


class InsurancePlan(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    plan_type: PlanType
    coverage_percentage: int = Field(..., ge=0, le=100)
    price: int = Field(..., ge=0, description="Plan price in minor units (wei)")
    duration_days: int = Field(..., gt=0)
    description: str = ""
    is_active: bool = True


class UserInsuranceStatus(CamelModel):
    plan_type: Optional[PlanType] = Field(None, description="None means the user holds no plan")
    start_time: Optional[int] = None
    end_time: Optional[int] = None
    is_active: bool = False
    has_active_insurance: bool = False

    @field_validator("plan_type", mode="before")
    def blank_plan_is_none(cls, v):
        # the ledger reports "no plan" as an empty string or "none"
        if isinstance(v, str) and v.strip().lower() in ("", "none"):
            return None
        return v

    @classmethod
    def no_insurance(cls) -> "UserInsuranceStatus":
        return cls()


class Coverage(CamelModel):
    original_price: int = Field(..., ge=0)
    covered_price: int = Field(..., ge=0)
    co_pay_amount: int = Field(..., ge=0)
    coverage_percentage: int = Field(..., ge=0, le=100)
    has_coverage: bool

    @model_validator(mode="after")
    def parts_add_up(self):
        if self.covered_price + self.co_pay_amount != self.original_price:
            raise ValueError("coveredPrice + coPayAmount must equal originalPrice")
        return self


class TransactionRecord(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    hash: str = Field(..., min_length=1)
    type: TransactionType
    details: Dict[str, Any] = Field(default_factory=dict)
    timestamp: int = Field(..., ge=0, description="Epoch milliseconds")


class PurchaseReceipt(CamelModel):
    hash: str = Field(..., min_length=1)
    status: int = 1


class VerificationRequest(CamelModel):
    medication_id: Optional[str] = None
    user_address: Optional[str] = None


class InsurancePurchaseRequest(CamelModel):
    account: Optional[str] = None
    plan_type: Optional[str] = None
    price: Optional[Union[str, int]] = Field(None, description="Decimal string in whole currency units, e.g. '0.02'; bare numbers are refused")


class MedicationPurchaseRequest(CamelModel):
    account: Optional[str] = None
    amount: Optional[Union[str, int]] = Field(None, description="Decimal string in whole currency units, e.g. '0.001'; bare numbers are refused")


class AccountChange(CamelModel):
    account: Optional[str] = None
    chain_id: Optional[int] = None
