import logging
import time
from typing import Callable, Optional

from medcover import catalog
from medcover.errors import NotFound, RemoteUnavailable
from medcover.model import PlanType, TransactionType, UserInsuranceStatus
from medcover.services.transaction_log import LocalTransactionLog

logger = logging.getLogger(__name__)

MS_PER_DAY = 86_400_000


def now_ms() -> int:
    return int(time.time() * 1000)


class ReconciliationEngine:
    """
    Resolves a user's insurance status from the ledger, falling back to the
    local transaction log only when the ledger cannot be reached.

    The two sources are never blended: a ledger answer is returned untouched,
    and the log is consulted only in its absence.
    """

    def __init__(
        self,
        ledger,
        transaction_log: LocalTransactionLog,
        duration_days: Callable[[PlanType], int] = catalog.duration_days,
    ):
        self.ledger = ledger
        self.transaction_log = transaction_log
        self._duration_days = duration_days

    async def resolve_status(self, address: str, now: Optional[int] = None) -> UserInsuranceStatus:
        try:
            return await self.ledger.fetch_user_insurance(address)
        except RemoteUnavailable as exc:
            logger.warning(
                "Ledger unavailable for insurance of %s, using local log: %s", address, exc
            )

        return self.status_from_log(now_ms() if now is None else now)

    def status_from_log(self, now: int) -> UserInsuranceStatus:
        latest = None
        latest_plan = None
        # of_type() keeps append order, so ">=" lets the later append win a tie
        for record in self.transaction_log.of_type(TransactionType.insurance_purchase):
            try:
                plan_type = PlanType(record.details.get("planType"))
            except ValueError:
                logger.warning("Skipping insurance record %s with unknown plan", record.hash)
                continue
            if latest is None or record.timestamp >= latest.timestamp:
                latest, latest_plan = record, plan_type

        if latest is None:
            return UserInsuranceStatus.no_insurance()

        try:
            days = self._duration_days(latest_plan)
        except NotFound:
            logger.warning("No duration known for plan %s", latest_plan.value)
            return UserInsuranceStatus.no_insurance()

        end_time = latest.timestamp + days * MS_PER_DAY
        return UserInsuranceStatus(
            plan_type=latest_plan,
            start_time=latest.timestamp,
            end_time=end_time,
            is_active=True,
            has_active_insurance=now < end_time,
        )
