# conftest.py
import pytest
from httpx import AsyncClient
from httpx._transports.asgi import ASGITransport  # required for ASGI testing
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from medcover.errors import NotFound, PurchaseRejected, RemoteUnavailable
from medcover.local_database import Base
from medcover.main import app, install_services
from medcover.model import PurchaseReceipt, UserInsuranceStatus
from medcover.services.transaction_log import LocalTransactionLog
from medcover import catalog

API_KEY = "test-key"
DAY_MS = 86_400_000


class FakeLedger:
    """In-memory stand-in for the remote ledger, scriptable per test."""

    def __init__(self):
        self.status = UserInsuranceStatus.no_insurance()
        self.coverage = {}
        self.plans = catalog.get_all_plans()
        self.history = []
        self.unavailable = False
        self.reject = None
        self.fixed_hash = None
        self.gate = None
        self.submissions = []
        self.calls = []
        self._counter = 0

    def _check(self):
        if self.unavailable:
            raise RemoteUnavailable("ledger is down")

    async def fetch_plans(self):
        self.calls.append("fetch_plans")
        self._check()
        return self.plans

    async def fetch_user_insurance(self, address):
        self.calls.append("fetch_user_insurance")
        self._check()
        return self.status

    async def fetch_medication_coverage(self, medication_id, address):
        self.calls.append("fetch_medication_coverage")
        self._check()
        if medication_id not in self.coverage:
            raise NotFound(f"Medication '{medication_id}' not found on the ledger")
        return self.coverage[medication_id]

    async def fetch_purchase_history(self, address):
        self.calls.append("fetch_purchase_history")
        self._check()
        return self.history

    async def submit_insurance_purchase(self, plan_type, amount, sender=None):
        return await self._submit(("insurance", plan_type.value, amount, sender))

    async def submit_medication_purchase(self, medication_id, amount, sender=None):
        return await self._submit(("medication", medication_id, amount, sender))

    async def _submit(self, entry):
        self.submissions.append(entry)
        if self.gate is not None:
            await self.gate.wait()
        self._check()
        if self.reject:
            raise PurchaseRejected(self.reject)
        self._counter += 1
        return PurchaseReceipt(hash=self.fixed_hash or f"0xhash{self._counter}")


@pytest.fixture(autouse=True)
def api_keys(monkeypatch):
    monkeypatch.setenv("MY_API_KEYS", f"{API_KEY},other-key")


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


@pytest.fixture
def transaction_log(session_factory):
    log = LocalTransactionLog(session_factory)
    log.load()
    return log


@pytest.fixture
def ledger():
    return FakeLedger()


@pytest.fixture(scope="module")
def anyio_backend():
    return "asyncio"


@pytest.fixture
async def client(anyio_backend, ledger, transaction_log):
    install_services(app, ledger, transaction_log)
    transport = ASGITransport(app=app)
    async with AsyncClient(
        transport=transport,
        base_url="http://test",
        headers={"X-API-Key": API_KEY},
    ) as ac:
        yield ac
