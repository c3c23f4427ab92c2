import json
import logging
from pathlib import Path
from threading import Lock
from typing import List, Optional

from medcover.config import is_dev_mode
from medcover.errors import NotFound, RemoteUnavailable
from medcover.model import InsurancePlan, Medication, PlanType

logger = logging.getLogger(__name__)

# Path to JSON files
DATA_PATH = Path(__file__).resolve().parent / "data"

# Module-level caches
_cached_meds_list: Optional[List[Medication]] = None
_cached_meds_map: Optional[dict] = None
_cached_plans_list: Optional[List[InsurancePlan]] = None
_cached_plans_map: Optional[dict] = None

# Lock to make cache thread-safe
_cache_lock = Lock()


def load_json(file_name: str):
    """Load a JSON file from the data folder."""
    file_path = DATA_PATH / file_name
    with open(file_path, "r", encoding="utf-8") as f:
        return json.load(f)


def reset_cache():
    """Manually reset all caches."""
    global _cached_meds_list, _cached_meds_map
    global _cached_plans_list, _cached_plans_map
    with _cache_lock:
        _cached_meds_list = None
        _cached_meds_map = None
        _cached_plans_list = None
        _cached_plans_map = None


def _load_medications():
    global _cached_meds_list, _cached_meds_map
    _cached_meds_list = [Medication.model_validate(m) for m in load_json("medications.json")]
    _cached_meds_map = {m.id.upper(): m for m in _cached_meds_list}


def _load_plans():
    global _cached_plans_list, _cached_plans_map
    plans = []
    for raw in load_json("plans.json"):
        plan_type = PlanType(raw["planType"])
        # coverage always comes from the enum, never from the data file
        plans.append(InsurancePlan.model_validate(
            {**raw, "coveragePercentage": plan_type.coverage_percentage}
        ))
    _cached_plans_list = plans
    _cached_plans_map = {p.plan_type: p for p in plans}


def _ensure_medications():
    if is_dev_mode() or _cached_meds_list is None:
        _load_medications()


def _ensure_plans():
    if is_dev_mode() or _cached_plans_list is None:
        _load_plans()


# --- Public API ---
def get_all_medications() -> List[Medication]:
    with _cache_lock:
        _ensure_medications()
        return list(_cached_meds_list)


def get_medication(medication_id: str) -> Optional[Medication]:
    with _cache_lock:
        _ensure_medications()
        return _cached_meds_map.get(str(medication_id).strip().upper())


def filter_medications(
    id: Optional[str] = None,
    category: Optional[str] = None,
    search: Optional[str] = None,
) -> List[Medication]:
    """
    Exact id and exact category match (both case-insensitive), substring
    search on name or generic name. Filters combine.
    """
    results = get_all_medications()

    if id:
        wanted = id.strip().lower()
        results = [m for m in results if m.id.lower() == wanted]

    if category:
        wanted = category.strip().lower()
        results = [m for m in results if m.category.lower() == wanted]

    if search:
        query = search.strip().lower()
        results = [
            m for m in results
            if query in m.name.lower() or query in m.generic_name.lower()
        ]

    return results


def get_all_plans() -> List[InsurancePlan]:
    with _cache_lock:
        _ensure_plans()
        return list(_cached_plans_list)


def get_plan(plan_type) -> InsurancePlan:
    try:
        key = PlanType(plan_type)
    except ValueError as exc:
        raise NotFound(f"Unknown insurance plan '{plan_type}'") from exc

    with _cache_lock:
        _ensure_plans()
        plan = _cached_plans_map.get(key)
    if plan is None:
        raise NotFound(f"Insurance plan '{key.value}' is not in the catalog")
    return plan


def duration_days(plan_type) -> int:
    return get_plan(plan_type).duration_days


async def available_plans(ledger) -> List[InsurancePlan]:
    """Plans as the ledger reports them, or the catalog when it cannot be reached."""
    try:
        return await ledger.fetch_plans()
    except RemoteUnavailable as exc:
        logger.warning("Ledger plan list unavailable, serving catalog plans: %s", exc)
        return get_all_plans()
