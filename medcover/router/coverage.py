from fastapi import APIRouter, Depends

from medcover.dependencies import get_api_key, get_ledger, get_reconciliation
from medcover.model import VerificationRequest
from medcover.router.presenters import present_coverage
from medcover.services.verification import verify_medication

router = APIRouter(tags=["Coverage"])


@router.post("/verification")
async def verify_medication_coverage(
    body: VerificationRequest,
    api_key: str = Depends(get_api_key),
    ledger=Depends(get_ledger),
    reconciliation=Depends(get_reconciliation),
) -> dict:
    coverage = await verify_medication(body.medication_id, body.user_address, ledger, reconciliation)
    return {"success": True, "coverage": present_coverage(coverage)}


@router.get("/insurance/status/{address}")
async def insurance_status(
    address: str,
    api_key: str = Depends(get_api_key),
    reconciliation=Depends(get_reconciliation),
) -> dict:
    status = await reconciliation.resolve_status(address)
    return {"success": True, "insurance": status.model_dump(mode="json", by_alias=True)}
