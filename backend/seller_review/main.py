from contextlib import asynccontextmanager
import logging

import sentry_sdk
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from seller_review.core.config import settings
from seller_review.core.exceptions import (
    PersistenceError,
    UnknownSectionError,
    InvalidStateError,
    UnknownVendorError,
)
from seller_review.core.limiter import limiter
from seller_review.core.logging import setup_logging

setup_logging()

logger = logging.getLogger(__name__)

# Initialize Sentry error monitoring
if settings.SENTRY_DSN:
    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        traces_sample_rate=settings.SENTRY_TRACES_SAMPLE_RATE,
        environment=getattr(settings, 'APP_ENV', 'development'),
        send_default_pii=False,
    )
    logger.info("Sentry initialized")


def build_workflow():
    """Create the registry and workflow, replaying stored records into it."""
    from seller_review.db.session import get_sessionmaker, init_db
    from seller_review.services.registry import ApprovalRegistry
    from seller_review.services.store import SqlApprovalStore
    from seller_review.services.workflow import ApprovalWorkflow

    init_db()
    store = SqlApprovalStore(get_sessionmaker())
    registry = ApprovalRegistry()
    store.load_into(registry)
    return ApprovalWorkflow(registry, store=store)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Tests install their own workflow before the app starts
    if getattr(app.state, "workflow", None) is None:
        app.state.workflow = build_workflow()
    yield
    # Shutdown


app = FastAPI(
    title="Seller Onboarding Review",
    version="0.1.0",
    docs_url="/api/docs" if settings.APP_ENV != "production" else None,
    redoc_url="/api/redoc" if settings.APP_ENV != "production" else None,
    lifespan=lifespan,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ─── Workflow error mapping ───

@app.exception_handler(UnknownVendorError)
async def unknown_vendor_handler(request: Request, exc: UnknownVendorError):
    return JSONResponse(
        status_code=404,
        content={"detail": str(exc), "error": "unknown_vendor"},
    )


@app.exception_handler(UnknownSectionError)
async def unknown_section_handler(request: Request, exc: UnknownSectionError):
    return JSONResponse(
        status_code=422,
        content={"detail": str(exc), "error": "unknown_section"},
    )


@app.exception_handler(InvalidStateError)
async def invalid_state_handler(request: Request, exc: InvalidStateError):
    return JSONResponse(
        status_code=422,
        content={"detail": str(exc), "error": "invalid_state"},
    )


@app.exception_handler(PersistenceError)
async def persistence_error_handler(request: Request, exc: PersistenceError):
    logger.error("Persistence failure: %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=503,
        content={
            "detail": "The change was applied but could not be stored. Re-fetch the record and retry.",
            "error": "persistence_failure",
        },
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error("Unhandled exception: %s %s: %s", request.method, request.url.path, exc, exc_info=True)
    return JSONResponse(status_code=500, content={"detail": "Internal server error."})


# ─── Routers ───
from seller_review.api.v1.router import api_router  # noqa: E402

app.include_router(api_router, prefix="/api/v1")


@app.get("/health")
async def health():
    return {"status": "ok", "env": settings.APP_ENV}
