# services/ledger_client.py
import logging
from typing import Any, List, Optional

import httpx
from pydantic import TypeAdapter, ValidationError

from medcover import config
from medcover.errors import InvalidInput, NotFound, PurchaseRejected, RemoteUnavailable
from medcover.model import (
    Coverage,
    InsurancePlan,
    Medication,
    PlanType,
    PurchaseReceipt,
    TransactionRecord,
    UserInsuranceStatus,
)

logger = logging.getLogger(__name__)

_plans_adapter = TypeAdapter(List[InsurancePlan])
_history_adapter = TypeAdapter(List[TransactionRecord])


class RemoteLedgerClient:
    """
    Async client for the ledger that holds insurance and purchase state.

    Holds no state of its own; every call reflects the ledger at call time.
    """

    def __init__(
        self,
        base_url: str,
        contract_address: str,
        timeout: float = 20.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        if not contract_address:
            raise InvalidInput("A contract address is required to reach the ledger")
        self.base_url = base_url.rstrip("/")
        self.contract_address = contract_address
        self._client = httpx.AsyncClient(
            base_url=f"{self.base_url}/contracts/{contract_address}",
            timeout=timeout,
            headers={"Accept": "application/json"},
            transport=transport,
        )

    @classmethod
    def from_config(cls) -> "RemoteLedgerClient":
        return cls(
            base_url=config.get_ledger_base_url(),
            contract_address=config.get_contract_address(),
            timeout=config.get_ledger_timeout(),
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        await self.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            resp = await self._client.request(method, path, **kwargs)
        except httpx.TimeoutException as exc:
            raise RemoteUnavailable(f"Ledger timed out on {method} {path}") from exc
        except httpx.HTTPError as exc:
            raise RemoteUnavailable(f"Ledger unreachable on {method} {path}: {exc}") from exc

        if resp.status_code >= 500:
            logger.error("[LEDGER] %s %s -> %s: %s", method, path, resp.status_code, resp.text)
            raise RemoteUnavailable(f"Ledger returned {resp.status_code} for {method} {path}")
        return resp

    @staticmethod
    def _json(resp: httpx.Response) -> Any:
        try:
            return resp.json()
        except ValueError as exc:
            raise RemoteUnavailable("Ledger returned a body that is not JSON") from exc

    @staticmethod
    def _error_text(resp: httpx.Response) -> str:
        try:
            body = resp.json()
        except ValueError:
            return resp.text or f"status {resp.status_code}"
        if isinstance(body, dict):
            return str(body.get("error") or body.get("reason") or body)
        return str(body)

    def _parse(self, model, payload):
        try:
            if isinstance(model, TypeAdapter):
                return model.validate_python(payload)
            return model.model_validate(payload)
        except ValidationError as exc:
            raise RemoteUnavailable(f"Ledger payload failed validation: {exc}") from exc

    def _expect_ok(self, resp: httpx.Response, what: str) -> Any:
        # a 4xx is a completed answer from the ledger, not an outage
        if resp.status_code == 404:
            raise NotFound(f"No {what} on the ledger")
        if 400 <= resp.status_code < 500:
            raise InvalidInput(f"Ledger refused the request for {what}: {self._error_text(resp)}")
        if resp.status_code != 200:
            raise RemoteUnavailable(f"Unexpected ledger status {resp.status_code} for {what}")
        return self._json(resp)

    async def fetch_plans(self) -> List[InsurancePlan]:
        resp = await self._request("GET", "/plans")
        data = self._expect_ok(resp, "plans")
        plans = data.get("plans") if isinstance(data, dict) else data
        return self._parse(_plans_adapter, plans)

    async def fetch_user_insurance(self, address: str) -> UserInsuranceStatus:
        resp = await self._request("GET", f"/insurance/{address}")
        if resp.status_code == 404:
            logger.info("[LEDGER] no insurance recorded for %s", address)
            return UserInsuranceStatus.no_insurance()
        data = self._expect_ok(resp, f"insurance of {address}")
        return self._parse(UserInsuranceStatus, data)

    async def fetch_medication(self, medication_id: str) -> Medication:
        resp = await self._request("GET", f"/medications/{medication_id}")
        if resp.status_code == 404:
            raise NotFound(f"Medication '{medication_id}' not found on the ledger")
        data = self._expect_ok(resp, f"medication {medication_id}")
        return self._parse(Medication, data)

    async def is_medication_available(self, medication_id: str) -> bool:
        resp = await self._request("GET", f"/medications/{medication_id}/available")
        if resp.status_code == 404:
            return False
        data = self._expect_ok(resp, f"availability of {medication_id}")
        return bool(data.get("available")) if isinstance(data, dict) else bool(data)

    async def fetch_medication_coverage(self, medication_id: str, address: str) -> Coverage:
        resp = await self._request(
            "GET", f"/medications/{medication_id}/coverage", params={"user": address}
        )
        if resp.status_code == 404:
            raise NotFound(f"Medication '{medication_id}' not found on the ledger")
        data = self._expect_ok(resp, f"coverage of {medication_id}")
        return self._parse(Coverage, data)

    async def fetch_purchase_history(self, address: str) -> List[TransactionRecord]:
        resp = await self._request("GET", f"/purchases/{address}")
        if resp.status_code == 404:
            return []
        data = self._expect_ok(resp, f"purchases of {address}")
        purchases = data.get("purchases", []) if isinstance(data, dict) else data
        return self._parse(_history_adapter, purchases)

    async def _submit(self, path: str, payload: dict, what: str) -> PurchaseReceipt:
        resp = await self._request("POST", path, json=payload)
        if resp.status_code == 404:
            raise NotFound(f"{what} not found on the ledger")
        if 400 <= resp.status_code < 500:
            raise PurchaseRejected(f"Ledger declined {what}: {self._error_text(resp)}")
        if resp.status_code not in (200, 201):
            raise RemoteUnavailable(f"Unexpected ledger status {resp.status_code} for {what}")

        receipt = self._parse(PurchaseReceipt, self._json(resp))
        if receipt.status == 0:
            raise PurchaseRejected(f"Transaction {receipt.hash} for {what} was reverted")
        return receipt

    async def submit_insurance_purchase(
        self, plan_type: PlanType, amount: int, sender: Optional[str] = None
    ) -> PurchaseReceipt:
        plan_type = PlanType(plan_type)
        payload = {"planType": plan_type.value, "value": amount, "from": sender}
        return await self._submit("/insurance/purchases", payload, f"{plan_type.value} plan purchase")

    async def submit_medication_purchase(
        self, medication_id: str, amount: int, sender: Optional[str] = None
    ) -> PurchaseReceipt:
        payload = {"value": amount, "from": sender}
        return await self._submit(
            f"/medications/{medication_id}/purchases", payload, f"medication {medication_id}"
        )
