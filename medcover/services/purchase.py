"""
Purchase coordination: validate, guard, submit to the ledger, then record.

A purchase either fully succeeds (the ledger confirms and exactly one record
is appended to the local log) or fully fails (nothing is recorded). Once a
request has been handed to the ledger it runs to completion even if the
awaiting task is cancelled.
"""
import asyncio
import logging
from typing import Awaitable, Callable, Dict, Set, Tuple

from medcover import catalog
from medcover.errors import AlreadyInProgress, CoverageError, InvalidInput
from medcover.model import PlanType, PurchaseReceipt, TransactionRecord, TransactionType
from medcover.services.reconciliation import now_ms
from medcover.services.transaction_log import LocalTransactionLog

logger = logging.getLogger(__name__)


def _require_text(value, name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise InvalidInput(f"{name} is required")
    return value.strip()


def _require_amount(value, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidInput(f"{name} must be an integer amount of minor units")
    if value < 0:
        raise InvalidInput(f"{name} cannot be negative")
    return value


class PurchaseOrchestrator:
    def __init__(
        self,
        ledger,
        transaction_log: LocalTransactionLog,
        clock: Callable[[], int] = now_ms,
    ):
        self.ledger = ledger
        self.transaction_log = transaction_log
        self._clock = clock
        self._in_flight: Set[Tuple[str, TransactionType, str]] = set()
        self._caller_locks: Dict[str, asyncio.Lock] = {}
        self._caller_pending: Dict[str, int] = {}

    def is_in_flight(self, caller: str, kind: TransactionType, target: str) -> bool:
        return (caller, kind, target.strip().upper()) in self._in_flight

    def _release_caller(self, caller: str) -> None:
        remaining = self._caller_pending[caller] - 1
        if remaining:
            self._caller_pending[caller] = remaining
        else:
            del self._caller_pending[caller]
            del self._caller_locks[caller]

    async def purchase_insurance(self, caller: str, plan_type, price: int) -> TransactionRecord:
        caller = _require_text(caller, "caller")
        if isinstance(plan_type, str):
            plan_type = _require_text(plan_type, "plan_type")
        elif not isinstance(plan_type, PlanType):
            raise InvalidInput("plan_type is required")
        price = _require_amount(price, "price")
        plan = catalog.get_plan(plan_type)

        async def submit() -> PurchaseReceipt:
            return await self.ledger.submit_insurance_purchase(plan.plan_type, price, sender=caller)

        return await self._run(
            caller,
            TransactionType.insurance_purchase,
            plan.plan_type.value,
            submit,
            {"planType": plan.plan_type.value, "price": price},
        )

    async def purchase_medication(self, caller: str, medication_id: str, amount_due: int) -> TransactionRecord:
        caller = _require_text(caller, "caller")
        medication_id = _require_text(medication_id, "medication_id")
        amount_due = _require_amount(amount_due, "amount_due")

        async def submit() -> PurchaseReceipt:
            return await self.ledger.submit_medication_purchase(medication_id, amount_due, sender=caller)

        return await self._run(
            caller,
            TransactionType.medication_purchase,
            medication_id,
            submit,
            {"medicationId": medication_id, "amount": amount_due},
        )

    async def _run(
        self,
        caller: str,
        kind: TransactionType,
        target: str,
        submit: Callable[[], Awaitable[PurchaseReceipt]],
        details: dict,
    ) -> TransactionRecord:
        # ids match case-insensitively, as in the catalog
        key = (caller, kind, target.upper())
        if key in self._in_flight:
            raise AlreadyInProgress(f"A {kind.value} for {target} is already in progress")
        self._in_flight.add(key)

        # one purchase at a time per caller, in the order they were requested
        lock = self._caller_locks.setdefault(caller, asyncio.Lock())
        self._caller_pending[caller] = self._caller_pending.get(caller, 0) + 1
        try:
            await lock.acquire()
        except BaseException:
            self._in_flight.discard(key)
            self._release_caller(caller)
            raise

        task = asyncio.ensure_future(self._submit_and_record(kind, target, submit, details))

        def _release(done: asyncio.Future) -> None:
            lock.release()
            self._release_caller(caller)
            self._in_flight.discard(key)
            if not done.cancelled() and done.exception() is not None:
                logger.debug("%s for %s finished with %r", kind.value, target, done.exception())

        task.add_done_callback(_release)
        return await asyncio.shield(task)

    async def _submit_and_record(
        self,
        kind: TransactionType,
        target: str,
        submit: Callable[[], Awaitable[PurchaseReceipt]],
        details: dict,
    ) -> TransactionRecord:
        try:
            receipt = await submit()
        except CoverageError as exc:
            logger.error("%s for %s failed: %s", kind.value, target, exc)
            raise

        record = TransactionRecord(
            hash=receipt.hash,
            type=kind,
            details=details,
            timestamp=self._clock(),
        )
        if self.transaction_log.append(record):
            logger.info("%s for %s confirmed as %s", kind.value, target, receipt.hash)
            return record

        logger.info("%s %s was already recorded", kind.value, receipt.hash)
        return self.transaction_log.get(receipt.hash) or record
