# main.py
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from .cache_store import CacheStore
from .config import Settings
from .database.connection import create_client, get_database
from .errors import RelayError, status_code_for
from .ledger import LedgerClient
from .query_service import QueryService
from .reconciliation import ReconciliationEngine
from .relay import Relay
from .routes.query_routes import router as query_router
from .routes.relay_routes import router as relay_router

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def wire(app: FastAPI, settings: Settings, ledger, cache: CacheStore) -> None:
    """Construct the relay, query service and reconciliation engine around one ledger client and cache."""
    app.state.settings = settings
    app.state.ledger = ledger
    app.state.cache = cache
    app.state.relay = Relay(
        ledger,
        cache,
        verify_signatures=settings.relay_verify_signatures,
        inclusion_timeout=settings.tx_inclusion_timeout,
    )
    app.state.queries = QueryService(ledger, cache)
    app.state.engine = ReconciliationEngine(
        ledger,
        cache,
        interval=settings.reconcile_interval_seconds,
        page_size=settings.reconcile_page_size,
        start_offset=settings.reconcile_start_offset,
        max_pages=settings.reconcile_max_pages,
    )


def create_app(
    settings: Optional[Settings] = None,
    ledger=None,
    cache: Optional[CacheStore] = None,
    run_reconciliation: bool = True,
) -> FastAPI:
    settings = settings or Settings.from_env()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        mongo_client = None
        if getattr(app.state, "relay", None) is None:
            active_cache = cache
            if active_cache is None:
                mongo_client = create_client(settings)
                active_cache = CacheStore(get_database(mongo_client, settings))
            active_ledger = ledger if ledger is not None else LedgerClient.from_settings(settings)
            wire(app, settings, active_ledger, active_cache)

        handle = app.state.engine.start() if run_reconciliation else None
        yield
        if handle is not None:
            app.state.engine.stop(handle)
        if mongo_client is not None:
            mongo_client.close()
            logger.info("MongoDB connection closed")

    app = FastAPI(title="ETH-Elections Relay API", lifespan=lifespan)
    app.state.relay = None

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Collaborators supplied up front are usable without running the lifespan
    if ledger is not None and cache is not None:
        wire(app, settings, ledger, cache)

    @app.exception_handler(RelayError)
    async def relay_error_handler(request: Request, exc: RelayError):
        status = status_code_for(exc)
        logger.warning(f"{request.method} {request.url.path} failed with {exc.kind}: {exc.message}")
        return JSONResponse(status_code=status, content={"error": exc.to_payload()})

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        details = [{"loc": list(e["loc"]), "msg": e["msg"], "type": e["type"]} for e in exc.errors()]
        return JSONResponse(
            status_code=422,
            content={"error": {"kind": "ValidationFailure", "message": "Malformed request", "details": details}},
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        return JSONResponse(status_code=500, content={"error": {"kind": "InternalError", "message": str(exc)}})

    app.include_router(query_router)
    app.include_router(relay_router)

    @app.get("/health", tags=["Operations"])
    def health_check(request: Request):
        engine = request.app.state.engine
        last = engine.last_result
        return {
            "status": "healthy",
            "cache": "ok" if request.app.state.cache.ping() else "unavailable",
            "reconciliation": engine.state.value,
            "lastReconciliation": last.finished_at if last else None,
            "lastError": engine.last_error,
        }

    @app.get("/favicon.ico", include_in_schema=False)
    async def favicon():
        return Response(status_code=204)

    return app


app = create_app()
