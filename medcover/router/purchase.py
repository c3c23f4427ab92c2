from fastapi import APIRouter, Depends, Query
from typing import Optional

from medcover.dependencies import (
    get_account_events,
    get_api_key,
    get_ledger,
    get_orchestrator,
    get_transaction_log,
)
from medcover.errors import InvalidInput
from medcover.model import (
    AccountChange,
    InsurancePurchaseRequest,
    MedicationPurchaseRequest,
    TransactionType,
)
from medcover.router.presenters import present_record
from medcover.services.units import parse_units

router = APIRouter(tags=["Purchases"])


def _decimal_amount(value, name: str) -> int:
    if value is None:
        raise InvalidInput(f"{name} is required")
    # a bare JSON number is ambiguous between whole units and minor units
    if not isinstance(value, str):
        raise InvalidInput(f"{name} must be a decimal string, e.g. '0.02'")
    return parse_units(value)


@router.post("/insurance/purchase")
async def purchase_insurance(
    body: InsurancePurchaseRequest,
    api_key: str = Depends(get_api_key),
    orchestrator=Depends(get_orchestrator),
) -> dict:
    price = _decimal_amount(body.price, "price")
    record = await orchestrator.purchase_insurance(body.account, body.plan_type, price)
    return {
        "message": f"Successfully purchased {record.details['planType']} insurance plan",
        "hash": record.hash,
        "transaction": present_record(record),
    }


@router.post("/medications/{medication_id}/purchase")
async def purchase_medication(
    medication_id: str,
    body: MedicationPurchaseRequest,
    api_key: str = Depends(get_api_key),
    orchestrator=Depends(get_orchestrator),
) -> dict:
    amount = _decimal_amount(body.amount, "amount")
    record = await orchestrator.purchase_medication(body.account, medication_id, amount)
    return {
        "message": f"Successfully purchased {medication_id}",
        "hash": record.hash,
        "transaction": present_record(record),
    }


@router.get("/transactions")
def list_transactions(
    api_key: str = Depends(get_api_key),
    type: Optional[TransactionType] = Query(None, description="Only this transaction type"),
    transaction_log=Depends(get_transaction_log),
) -> dict:
    records = transaction_log.of_type(type) if type else transaction_log.all()
    return {"count": len(records), "transactions": [present_record(r) for r in records]}


@router.get("/purchases/{address}")
async def purchase_history(
    address: str,
    api_key: str = Depends(get_api_key),
    ledger=Depends(get_ledger),
) -> dict:
    records = await ledger.fetch_purchase_history(address)
    return {"count": len(records), "purchases": [present_record(r) for r in records]}


@router.post("/session/account")
def change_account(
    body: AccountChange,
    api_key: str = Depends(get_api_key),
    account_events=Depends(get_account_events),
) -> dict:
    changed = account_events.publish(account=body.account, chain_id=body.chain_id)
    return {
        "changed": changed,
        "account": account_events.current_account,
        "chainId": account_events.current_chain_id,
    }
