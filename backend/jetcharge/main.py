"""
JetCharge Estimator API
FastAPI backend for the EV-charging price calculator: coefficient table,
estimates, printable quotes and lead capture.
"""
import logging
import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from jetcharge import config
from jetcharge.models.quote_models import QuoteCoefficients
from jetcharge.services.assumptions_store import AssumptionsStore
from jetcharge.services.contact_service import ContactService, IntakeCallable
from jetcharge.services.logging_config import setup_logging
from jetcharge.services.middleware import RequestTimingMiddleware
from jetcharge.services.storage import KeyValueStorage, SqlKeyValueStorage

setup_logging(level=config.LOG_LEVEL, json_output=config.LOG_JSON)
logger = logging.getLogger("jetcharge-api")

_PROCESS_START = time.monotonic()


def _default_storage() -> KeyValueStorage:
    from jetcharge.db import SessionLocal, init_db

    init_db()
    return SqlKeyValueStorage(SessionLocal)


def create_app(
    storage: Optional[KeyValueStorage] = None,
    lead_delay_s: float = config.LEAD_SUBMIT_DELAY_S,
    intake: Optional[IntakeCallable] = None,
    quote_coefficients: Optional[QuoteCoefficients] = None,
) -> FastAPI:
    """
    Build the API. Services are constructed once per app in the lifespan
    hook; pass ``storage`` to run against something other than the database.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        backend = storage if storage is not None else _default_storage()
        app.state.storage = backend
        app.state.assumptions_store = AssumptionsStore(backend)
        app.state.contact_service = ContactService(backend, delay_s=lead_delay_s, intake=intake)
        app.state.quote_coefficients = quote_coefficients or QuoteCoefficients()
        logger.info("Services initialised")
        yield

    app = FastAPI(
        title="JetCharge Estimator API",
        version=config.APP_VERSION,
        description="Installed-price estimates and quotes for EV charging sites",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "OPTIONS"],
        allow_headers=["Content-Type", "Accept", "X-Request-ID"],
    )
    # Request timing + X-Request-ID must be outermost so it wraps all other middleware
    app.add_middleware(RequestTimingMiddleware)

    from jetcharge.api.assumptions_routes import router as assumptions_router
    from jetcharge.api.estimate_routes import router as estimate_router
    from jetcharge.api.quote_routes import router as quote_router
    from jetcharge.api.contact_routes import router as contact_router

    app.include_router(assumptions_router)
    app.include_router(estimate_router)
    app.include_router(quote_router)
    app.include_router(contact_router)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        # Rejected input is left out: it may hold NaN / Infinity, which JSON cannot carry
        errors = [{k: v for k, v in err.items() if k != "input"} for err in exc.errors()]
        return JSONResponse(status_code=422, content={"detail": jsonable_encoder(errors)})

    @app.get("/health")
    async def health_check():
        store = getattr(app.state, "assumptions_store", None)
        return {
            "status": "active",
            "version": config.APP_VERSION,
            "uptime_seconds": round(time.monotonic() - _PROCESS_START, 1),
            "assumptions_persisted": store.persisted if store is not None else None,
        }

    return app


app = create_app()
