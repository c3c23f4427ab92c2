import contextlib
import logging
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from medcover import config
from medcover.errors import (
    AlreadyInProgress,
    CoverageError,
    InvalidInput,
    NotFound,
    PurchaseRejected,
    RemoteUnavailable,
)
from medcover.local_database import SessionLocal, init_db
from medcover.router.catalog import router as catalog_router
from medcover.router.coverage import router as coverage_router
from medcover.router.purchase import router as purchase_router
from medcover.services.account_events import AccountEvents
from medcover.services.ledger_client import RemoteLedgerClient
from medcover.services.purchase import PurchaseOrchestrator
from medcover.services.reconciliation import ReconciliationEngine
from medcover.services.transaction_log import LocalTransactionLog

logger = logging.getLogger(__name__)

ERROR_STATUS = {
    InvalidInput: 400,
    PurchaseRejected: 402,
    NotFound: 404,
    AlreadyInProgress: 409,
    RemoteUnavailable: 503,
}


def log_account_change(account, chain_id):
    logger.info("Active account is now %s on chain %s", account, chain_id)
    expected = config.get_chain_id()
    if chain_id is not None and chain_id != expected:
        logger.warning("Wallet switched to chain %s, ledger lives on chain %s", chain_id, expected)


def install_services(app: FastAPI, ledger, transaction_log: LocalTransactionLog) -> None:
    """Wire the core components onto app.state for the request dependencies."""
    app.state.ledger = ledger
    app.state.transaction_log = transaction_log
    app.state.reconciliation = ReconciliationEngine(ledger, transaction_log)
    app.state.orchestrator = PurchaseOrchestrator(ledger, transaction_log)
    app.state.account_events = AccountEvents()
    app.state.account_events.subscribe(log_account_change)


@contextlib.asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Loads the local transaction log and opens the ledger client on startup,
    closes the client on shutdown.
    """
    init_db()
    transaction_log = LocalTransactionLog(SessionLocal)
    transaction_log.load()
    if transaction_log.load_error is not None:
        logger.warning("Started with an empty transaction log: %s", transaction_log.load_error)

    ledger = RemoteLedgerClient.from_config()
    install_services(app, ledger, transaction_log)
    try:
        yield
    finally:
        await ledger.aclose()


app = FastAPI(
    title="Medication Coverage API",
    lifespan=lifespan,
)


app.include_router(catalog_router, prefix="/api")
app.include_router(coverage_router, prefix="/api")
app.include_router(purchase_router, prefix="/api")


@app.exception_handler(CoverageError)
async def coverage_error_handler(request: Request, exc: CoverageError):
    status_code = ERROR_STATUS.get(type(exc), 500)
    return JSONResponse(
        {"success": False, "error": str(exc), "kind": exc.kind},
        status_code=status_code,
    )
