"""Stakeholder Discovery backend: FastAPI application entry point.

Run locally with ``uvicorn discovery.main:app --reload`` from ``backend/``.
"""

import signal
import uuid
from contextlib import asynccontextmanager

# Logging is configured before the remaining imports create their loggers
from discovery.core.config import get_settings
from discovery.core.logging import configure_structlog

configure_structlog(
    log_level="DEBUG" if get_settings().debug else "INFO",
    json_logs=not get_settings().debug,
)

import structlog
from asgi_correlation_id import CorrelationIdMiddleware
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from discovery.api.dependencies import build_gateway
from discovery.api.routes import api_router
from discovery.core.exceptions import DiscoveryError
from discovery.core.logging import current_correlation_id
from discovery.core.tasks import AsyncioTaskSpawner
from discovery.db.base import close_db, init_db
from discovery.db.redis import close_redis, init_redis
from discovery.storage.blob import BlobStorage, InMemoryBlobStorage, S3BlobStorage

logger = structlog.get_logger(__name__)


def build_blob_storage() -> BlobStorage:
    """S3 when DOCUMENTS_BUCKET is set, otherwise process memory."""
    settings = get_settings()
    if settings.documents_bucket:
        return S3BlobStorage(settings.documents_bucket, settings.aws_region)
    logger.warning("blob_storage_in_memory", reason="DOCUMENTS_BUCKET not set")
    return InMemoryBlobStorage()


def _install_sigterm_drain(app: FastAPI) -> None:
    def on_sigterm(signum, frame):
        app.state.shutting_down = True
        logger.info("sigterm_received", action="health_returns_503")

    signal.signal(signal.SIGTERM, on_sigterm)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    _install_sigterm_drain(app)
    logger.info("startup_begin", app_name=settings.app_name, debug=settings.debug)

    await init_db()
    await init_redis()
    logger.info("stores_initialized")

    if not settings.anthropic_api_key:
        logger.warning("gateway_fake_enabled", reason="ANTHROPIC_API_KEY not set")
    if not settings.admin_password:
        logger.warning("admin_login_disabled", reason="ADMIN_PASSWORD not set")

    yield

    logger.info("shutdown_begin", pending_tasks=app.state.task_spawner.pending)
    await app.state.task_spawner.drain()
    await app.state.gateway.aclose()
    await close_redis()
    await close_db()
    logger.info("shutdown_complete")


def _error_response(request: Request, status_code: int, detail: str, event: str, **fields) -> JSONResponse:
    """Log the failure with request context and return ``{detail, debug_id}``."""
    debug_id = str(uuid.uuid4())
    log = logger.error if status_code >= 500 else logger.warning
    log(
        event,
        status_code=status_code,
        debug_id=debug_id,
        correlation_id=current_correlation_id(),
        path=request.url.path,
        method=request.method,
        **fields,
    )
    return JSONResponse(status_code=status_code, content={"detail": detail, "debug_id": debug_id})


async def discovery_exception_handler(request: Request, exc: DiscoveryError) -> JSONResponse:
    return _error_response(
        request, exc.status_code, exc.message, "discovery_error", error_type=type(exc).__name__, detail=exc.message
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Sanitized 500; the traceback only goes to the log."""
    return _error_response(
        request,
        500,
        "Internal server error",
        "unhandled_exception",
        error=str(exc),
        error_type=type(exc).__name__,
        exc_info=exc,
    )


def create_app() -> FastAPI:
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        description="Stakeholder discovery interviews with AI-generated question batches",
        version="0.1.0",
        docs_url="/docs" if settings.debug else None,
        redoc_url=None,
        lifespan=lifespan,
    )

    app.state.shutting_down = False
    app.state.task_spawner = AsyncioTaskSpawner()
    app.state.blob_storage = build_blob_storage()
    app.state.gateway = build_gateway()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )
    # Added last so it wraps CORS and every log line in the request carries the id
    app.add_middleware(
        CorrelationIdMiddleware,
        header_name="X-Request-ID",
        generator=lambda: uuid.uuid4().hex,
        validator=None,
    )

    app.add_exception_handler(DiscoveryError, discovery_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    app.include_router(api_router, prefix="/api")
    return app


app = create_app()
