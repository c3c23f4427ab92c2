from fastapi import APIRouter, Depends, Query
from typing import Optional

from medcover import catalog
from medcover.dependencies import get_api_key, get_ledger
from medcover.router.presenters import present_medication, present_plan

router = APIRouter(tags=["Catalog"])


@router.get("/medications")
def list_medications(
    api_key: str = Depends(get_api_key),
    id: Optional[str] = Query(None, description="Exact medication id"),
    category: Optional[str] = Query(None, description="Exact category, case-insensitive"),
    search: Optional[str] = Query(None, description="Substring of the name or generic name"),
) -> dict:
    medications = catalog.filter_medications(id=id, category=category, search=search)
    return {
        "success": True,
        "count": len(medications),
        "medications": [present_medication(m) for m in medications],
    }


@router.get("/plans")
def list_plans(api_key: str = Depends(get_api_key)) -> dict:
    plans = catalog.get_all_plans()
    return {"success": True, "plans": [present_plan(p) for p in plans]}


@router.get("/plans/available")
async def list_available_plans(
    api_key: str = Depends(get_api_key),
    ledger=Depends(get_ledger),
) -> dict:
    plans = await catalog.available_plans(ledger)
    return {"success": True, "plans": [present_plan(p) for p in plans]}
