from medcover.errors import InvalidInput
from medcover.model import Coverage, UserInsuranceStatus


def _require_int(value, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidInput(f"{name} must be an integer, got {value!r}")
    return value


def compute(original_price: int, coverage_percentage: int) -> Coverage:
    """
    Split a price into the insurer's share and the co-pay.

    Integer floor division only, so covered + co-pay always equals the
    original price to the last minor unit.
    """
    original_price = _require_int(original_price, "original_price")
    coverage_percentage = _require_int(coverage_percentage, "coverage_percentage")

    if original_price < 0:
        raise InvalidInput("original_price cannot be negative")
    if not 0 <= coverage_percentage <= 100:
        raise InvalidInput(
            f"coverage_percentage must be between 0 and 100, got {coverage_percentage}"
        )

    covered = original_price * coverage_percentage // 100
    co_pay = original_price - covered

    return Coverage(
        original_price=original_price,
        covered_price=covered,
        co_pay_amount=co_pay,
        coverage_percentage=coverage_percentage,
        has_coverage=coverage_percentage > 0,
    )


def coverage_for_status(original_price: int, status: UserInsuranceStatus) -> Coverage:
    """Coverage for a price under whatever plan the status says is active."""
    if status.has_active_insurance and status.plan_type is not None:
        return compute(original_price, status.plan_type.coverage_percentage)
    return compute(original_price, 0)
