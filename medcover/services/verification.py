import logging

from medcover import catalog
from medcover.errors import InvalidInput, NotFound, RemoteUnavailable
from medcover.model import Coverage
from medcover.services.coverage import coverage_for_status
from medcover.services.reconciliation import ReconciliationEngine

logger = logging.getLogger(__name__)


async def verify_medication(
    medication_id: str,
    address: str,
    ledger,
    reconciliation: ReconciliationEngine,
) -> Coverage:
    """
    Coverage of a medication for a user.

    The ledger's own answer is preferred. When the ledger cannot be reached
    the catalog price is split locally under the reconciled insurance status.
    An unknown medication is never computed locally.
    """
    if not isinstance(medication_id, str) or not medication_id.strip():
        raise InvalidInput("medicationId is required")
    if not isinstance(address, str) or not address.strip():
        raise InvalidInput("userAddress is required")
    medication_id = medication_id.strip()
    address = address.strip()

    try:
        return await ledger.fetch_medication_coverage(medication_id, address)
    except RemoteUnavailable as exc:
        logger.warning("Ledger coverage for %s unavailable, computing locally: %s", medication_id, exc)

    medication = catalog.get_medication(medication_id)
    if medication is None:
        raise NotFound(f"Medication '{medication_id}' not found")

    status = await reconciliation.resolve_status(address)
    return coverage_for_status(medication.original_price, status)
