"""
Ledger API Application Factory
"""

from contextlib import asynccontextmanager
from typing import Dict, Optional, Type

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
import uvicorn

from .accounts import router as accounts_router
from .admin import router as admin_router
from .. import __version__
from ..config import LedgerConfig, get_config
from ..exceptions import (
    LedgerError, AccountNotFound, TransactionNotFound, InvalidCredentials,
    AccountFrozen, InsufficientFunds, BelowMinimumBalance, DailyLimitExceeded,
    NotReversible, InsufficientFundsForReversal, PersistenceError
)
from ..ledger import Ledger, build_credentials, build_ledger
from ..logging_config import get_logger, setup_logging
from ..storage import StateStore, create_store

logger = get_logger("core_ledger.api")

ERROR_STATUS: Dict[Type[LedgerError], int] = {
    AccountNotFound: status.HTTP_404_NOT_FOUND,
    TransactionNotFound: status.HTTP_404_NOT_FOUND,
    InvalidCredentials: status.HTTP_401_UNAUTHORIZED,
    AccountFrozen: status.HTTP_409_CONFLICT,
    InsufficientFunds: 422,
    BelowMinimumBalance: 422,
    DailyLimitExceeded: 422,
    NotReversible: 422,
    InsufficientFundsForReversal: 422,
}


def status_for(error: LedgerError) -> int:
    """HTTP status for a domain error; anything unlisted is a bad request"""
    for error_type, code in ERROR_STATUS.items():
        if isinstance(error, error_type):
            return code
    return status.HTTP_400_BAD_REQUEST


def create_app(
    ledger: Ledger,
    store: Optional[StateStore] = None,
    destination: Optional[str] = None
) -> FastAPI:
    """
    Create and configure the FastAPI application

    When a store is given the ledger is saved to it on shutdown.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        if store is not None:
            ledger.save_to(store, destination)

    app = FastAPI(
        title="Core Ledger API",
        description="Concurrency-safe account ledger",
        version=__version__,
        lifespan=lifespan
    )
    app.state.ledger = ledger

    @app.exception_handler(LedgerError)
    async def ledger_error_handler(request: Request, exc: LedgerError):
        return JSONResponse(
            status_code=status_for(exc),
            content={"detail": {"error": exc.code, "message": str(exc)}}
        )

    @app.exception_handler(PersistenceError)
    async def persistence_error_handler(request: Request, exc: PersistenceError):
        logger.error(f"Persistence failure: {exc}")
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"detail": {"error": "persistence_error", "message": str(exc)}}
        )

    app.include_router(accounts_router, prefix="/accounts", tags=["Accounts"])
    app.include_router(admin_router, prefix="/admin", tags=["Admin"])

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {
            "status": "healthy",
            "service": "core_ledger_api",
            "version": __version__
        }

    return app


def run_server(config: Optional[LedgerConfig] = None) -> None:
    """Load (or create) the ledger, serve it, and save it on shutdown"""
    config = config or get_config()
    setup_logging(config.log_level, log_format=config.log_format, log_file=config.log_file)

    store = create_store(config.state_backend, config.state_file)
    ledger = Ledger.load_from(store, build_credentials(config), config=config)
    if ledger is None:
        logger.info("No saved state found, starting with an empty ledger")
        ledger = build_ledger(config)

    app = create_app(ledger, store)
    try:
        uvicorn.run(app, host=config.api_host, port=config.api_port, log_level="info")
    finally:
        store.close()
