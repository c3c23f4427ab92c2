# tests/test_ledger_client.py
import json

import httpx
import pytest
import respx
from httpx import Response

from medcover.errors import InvalidInput, NotFound, PurchaseRejected, RemoteUnavailable
from medcover.model import PlanType, TransactionRecord, TransactionType
from medcover.services.ledger_client import RemoteLedgerClient
from medcover.services.reconciliation import ReconciliationEngine

BASE_URL = "http://ledger.test/api"
CONTRACT = "0xC0ffee254729296a45a3885639AC7E10F9d54979"
USER = "0x081C18e85D09645CA64dBD1e4781135F5E54110f"
NOW = 1_700_000_000_000

pytestmark = pytest.mark.anyio


@pytest.fixture
def mocked_ledger():
    with respx.mock(base_url=f"{BASE_URL}/contracts/{CONTRACT}", assert_all_called=False) as mock:
        yield mock


@pytest.fixture
async def ledger_client(anyio_backend):
    client = RemoteLedgerClient(BASE_URL, CONTRACT, timeout=5)
    yield client
    await client.aclose()


def test_contract_address_is_required():
    with pytest.raises(InvalidInput):
        RemoteLedgerClient(BASE_URL, "")


def test_from_config(monkeypatch):
    monkeypatch.setenv("LEDGER_BASE_URL", "http://configured.test/api/")
    monkeypatch.setenv("CONTRACT_ADDRESS", CONTRACT)
    client = RemoteLedgerClient.from_config()
    assert client.base_url == "http://configured.test/api"
    assert client.contract_address == CONTRACT


async def test_fetch_plans(mocked_ledger, ledger_client):
    mocked_ledger.get("/plans").mock(return_value=Response(200, json={"plans": [
        {"planType": "Basic", "coveragePercentage": 60, "price": 10**16, "durationDays": 30, "isActive": True},
        {"planType": "Premium", "coveragePercentage": 90, "price": "30000000000000000", "durationDays": 90},
    ]}))

    plans = await ledger_client.fetch_plans()
    assert [p.plan_type for p in plans] == [PlanType.basic, PlanType.premium]
    assert plans[1].price == 3 * 10**16
    assert plans[1].duration_days == 90


async def test_fetch_user_insurance(mocked_ledger, ledger_client):
    mocked_ledger.get(f"/insurance/{USER}").mock(return_value=Response(200, json={
        "planType": "Standard",
        "startTime": 1_000,
        "endTime": 2_000,
        "isActive": True,
        "hasActiveInsurance": True,
    }))

    status = await ledger_client.fetch_user_insurance(USER)
    assert status.plan_type is PlanType.standard
    assert status.end_time == 2_000
    assert status.has_active_insurance is True


async def test_blank_plan_means_no_insurance(mocked_ledger, ledger_client):
    mocked_ledger.get(f"/insurance/{USER}").mock(return_value=Response(200, json={
        "planType": "", "isActive": False, "hasActiveInsurance": False,
    }))
    status = await ledger_client.fetch_user_insurance(USER)
    assert status.plan_type is None


async def test_fetch_medication_accepts_price_field(mocked_ledger, ledger_client):
    mocked_ledger.get("/medications/MED001").mock(return_value=Response(200, json={
        "id": "MED001", "name": "Aspirin", "price": 5 * 10**15,
    }))
    med = await ledger_client.fetch_medication("MED001")
    assert med.original_price == 5 * 10**15


async def test_fetch_medication_not_found(mocked_ledger, ledger_client):
    mocked_ledger.get("/medications/MED404").mock(return_value=Response(404, json={"error": "unknown"}))
    with pytest.raises(NotFound):
        await ledger_client.fetch_medication("MED404")


async def test_is_medication_available(mocked_ledger, ledger_client):
    mocked_ledger.get("/medications/MED001/available").mock(return_value=Response(200, json={"available": True}))
    mocked_ledger.get("/medications/MED404/available").mock(return_value=Response(404))
    assert await ledger_client.is_medication_available("MED001") is True
    assert await ledger_client.is_medication_available("MED404") is False


async def test_fetch_medication_coverage(mocked_ledger, ledger_client):
    route = mocked_ledger.get("/medications/MED001/coverage", params={"user": USER}).mock(
        return_value=Response(200, json={
            "originalPrice": 5_000_000,
            "coveredPrice": 4_000_000,
            "coPayAmount": 1_000_000,
            "coveragePercentage": 80,
            "hasCoverage": True,
        })
    )
    coverage = await ledger_client.fetch_medication_coverage("MED001", USER)
    assert route.called
    assert coverage.co_pay_amount == 1_000_000


async def test_coverage_that_does_not_add_up_is_a_protocol_failure(mocked_ledger, ledger_client):
    mocked_ledger.get("/medications/MED001/coverage").mock(return_value=Response(200, json={
        "originalPrice": 100, "coveredPrice": 80, "coPayAmount": 30,
        "coveragePercentage": 80, "hasCoverage": True,
    }))
    with pytest.raises(RemoteUnavailable):
        await ledger_client.fetch_medication_coverage("MED001", USER)


async def test_fetch_purchase_history(mocked_ledger, ledger_client):
    mocked_ledger.get(f"/purchases/{USER}").mock(return_value=Response(200, json={"purchases": [
        {"hash": "0x1", "type": "MedicationPurchase", "details": {"medicationId": "MED001", "amount": 1}, "timestamp": 5},
    ]}))
    history = await ledger_client.fetch_purchase_history(USER)
    assert history[0].type is TransactionType.medication_purchase


async def test_submit_insurance_purchase(mocked_ledger, ledger_client):
    route = mocked_ledger.post("/insurance/purchases").mock(
        return_value=Response(201, json={"hash": "0xabc", "status": 1})
    )
    receipt = await ledger_client.submit_insurance_purchase(PlanType.standard, 2 * 10**16, sender=USER)

    assert receipt.hash == "0xabc"
    sent = json.loads(route.calls.last.request.content)
    assert sent == {"planType": "Standard", "value": 2 * 10**16, "from": USER}


async def test_submit_medication_purchase_rejected(mocked_ledger, ledger_client):
    mocked_ledger.post("/medications/MED001/purchases").mock(
        return_value=Response(400, json={"error": "Insufficient payment"})
    )
    with pytest.raises(PurchaseRejected, match="Insufficient payment"):
        await ledger_client.submit_medication_purchase("MED001", 1, sender=USER)


async def test_reverted_receipt_is_rejection(mocked_ledger, ledger_client):
    mocked_ledger.post("/medications/MED001/purchases").mock(
        return_value=Response(200, json={"hash": "0xdead", "status": 0})
    )
    with pytest.raises(PurchaseRejected):
        await ledger_client.submit_medication_purchase("MED001", 1)


async def test_unknown_medication_purchase_not_found(mocked_ledger, ledger_client):
    mocked_ledger.post("/medications/MED404/purchases").mock(return_value=Response(404))
    with pytest.raises(NotFound):
        await ledger_client.submit_medication_purchase("MED404", 1)


@pytest.mark.parametrize("side_effect", [httpx.ConnectError, httpx.ReadTimeout])
async def test_transport_failures_are_unavailable(mocked_ledger, ledger_client, side_effect):
    mocked_ledger.get(f"/insurance/{USER}").mock(side_effect=side_effect)
    with pytest.raises(RemoteUnavailable):
        await ledger_client.fetch_user_insurance(USER)


async def test_server_errors_are_unavailable(mocked_ledger, ledger_client):
    mocked_ledger.post("/insurance/purchases").mock(return_value=Response(502, text="Bad Gateway"))
    with pytest.raises(RemoteUnavailable):
        await ledger_client.submit_insurance_purchase(PlanType.basic, 1)


async def test_non_json_body_is_unavailable(mocked_ledger, ledger_client):
    mocked_ledger.get("/plans").mock(return_value=Response(200, text="<html>maintenance</html>"))
    with pytest.raises(RemoteUnavailable):
        await ledger_client.fetch_plans()


async def test_unknown_user_has_no_insurance(mocked_ledger, ledger_client):
    mocked_ledger.get(f"/insurance/{USER}").mock(return_value=Response(404, json={"error": "no policy"}))
    status = await ledger_client.fetch_user_insurance(USER)
    assert status.plan_type is None
    assert status.has_active_insurance is False


async def test_ledger_no_insurance_answer_beats_local_log(mocked_ledger, ledger_client, transaction_log):
    mocked_ledger.get(f"/insurance/{USER}").mock(return_value=Response(404))
    transaction_log.append(TransactionRecord(
        hash="0xlocal", type=TransactionType.insurance_purchase,
        details={"planType": "Premium", "price": 3 * 10**16}, timestamp=NOW - 1_000,
    ))
    engine = ReconciliationEngine(ledger_client, transaction_log)

    status = await engine.resolve_status(USER, now=NOW)
    assert status.plan_type is None
    assert status.has_active_insurance is False


async def test_missing_plans_is_not_found(mocked_ledger, ledger_client):
    mocked_ledger.get("/plans").mock(return_value=Response(404))
    with pytest.raises(NotFound):
        await ledger_client.fetch_plans()


async def test_refused_lookup_is_invalid_input(mocked_ledger, ledger_client):
    mocked_ledger.get("/purchases/not-an-address").mock(
        return_value=Response(400, json={"error": "bad address"})
    )
    with pytest.raises(InvalidInput, match="bad address"):
        await ledger_client.fetch_purchase_history("not-an-address")


async def test_unknown_user_has_no_purchases(mocked_ledger, ledger_client):
    mocked_ledger.get(f"/purchases/{USER}").mock(return_value=Response(404))
    assert await ledger_client.fetch_purchase_history(USER) == []
