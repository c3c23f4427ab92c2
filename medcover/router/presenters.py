from medcover.model import Coverage, InsurancePlan, Medication, TransactionRecord
from medcover.services.units import format_units


def present_medication(med: Medication) -> dict:
    data = med.model_dump(by_alias=True)
    data["originalPrice"] = format_units(med.original_price)
    return data


def present_plan(plan: InsurancePlan) -> dict:
    data = plan.model_dump(mode="json", by_alias=True)
    data["price"] = format_units(plan.price)
    return data


def present_coverage(coverage: Coverage) -> dict:
    return {
        "originalPrice": format_units(coverage.original_price),
        "coveredPrice": format_units(coverage.covered_price),
        "coPayAmount": format_units(coverage.co_pay_amount),
        "coveragePercentage": coverage.coverage_percentage,
        "hasCoverage": coverage.has_coverage,
    }


def present_record(record: TransactionRecord) -> dict:
    data = record.model_dump(mode="json", by_alias=True)
    for field in ("price", "amount"):
        if isinstance(record.details.get(field), int):
            data["details"][field] = format_units(record.details[field])
    return data
