"""DentalDesk - Dental Clinic Management API

Main FastAPI application entry point.
"""

import time
import uuid
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from prometheus_client import Counter, Histogram, make_asgi_app
from sqlalchemy import text
from sqlalchemy.ext.asyncio import async_sessionmaker

from app.api.v1.endpoints.attachments import UPLOADS_URL_PREFIX
from app.api.v1.router import api_router
from app.core.config import settings
from app.core.logging import (
    bind_request_context,
    clear_request_context,
    get_logger,
    setup_logging,
)
from app.models.attachment import StorageMode
from app.services.attachments import AttachmentStore, AttachmentStoreConfig

setup_logging(
    log_level="DEBUG" if settings.debug else "INFO",
    json_logs=settings.is_production,
)

logger = get_logger(__name__)

REQUEST_COUNT = Counter(
    "dentaldesk_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status"],
)
REQUEST_LATENCY = Histogram(
    "dentaldesk_request_latency_seconds",
    "HTTP request latency",
    ["method", "endpoint"],
)


def _safe_request_path(request: Request) -> str:
    """Route template (``/api/v1/patients/{patient_id}``) rather than the raw path."""
    route = request.scope.get("route")
    if route and hasattr(route, "path"):
        return route.path
    return request.url.path


async def _create_default_users(session_maker: async_sessionmaker) -> None:
    from app.api.v1.endpoints.auth import init_default_users

    if settings.is_production and not settings.init_default_users:
        logger.info("Skipping default user initialization in production")
        return
    try:
        async with session_maker() as session:
            await init_default_users(session)
        logger.info("Default users initialized (or already exist)")
    except Exception as e:
        # Staff accounts can still be created with `dentaldesk create-admin`
        logger.warning("Could not initialize default users", error=str(e))


async def _seed_demo_data(session_maker: async_sessionmaker) -> None:
    from app.services.demo_data import seed_demo_patients

    try:
        async with session_maker() as session:
            inserted = await seed_demo_patients(session)
        logger.warning("Demo data enabled", patients_seeded=inserted)
    except Exception as e:
        logger.warning("Could not seed demo data", error=str(e))


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Open the database pool, prepare attachment storage, dispose on shutdown."""
    logger.info(
        "Starting DentalDesk",
        version=settings.app_version,
        environment=settings.environment,
        attachment_mode=settings.attachments.storage_mode,
    )

    from app.models.base import async_session_maker, engine

    app.state.db_engine = engine
    app.state.db_session_maker = async_session_maker

    await _create_default_users(async_session_maker)
    if settings.enable_demo_data:
        await _seed_demo_data(async_session_maker)

    store = AttachmentStore(AttachmentStoreConfig.from_settings(settings.attachments))
    await store.initialize()
    app.state.attachment_store = store

    logger.info("DentalDesk started successfully")

    yield

    await app.state.db_engine.dispose()
    logger.info("DentalDesk shutdown complete")


def _add_request_logging(app: FastAPI) -> None:
    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Time each request, tag its log entries and record metrics."""
        request_id = uuid.uuid4().hex[:8]
        clear_request_context()
        bind_request_context(request_id=request_id)
        start_time = time.perf_counter()

        response = await call_next(request)

        elapsed = time.perf_counter() - start_time
        path = _safe_request_path(request)
        REQUEST_COUNT.labels(
            method=request.method, endpoint=path, status=response.status_code
        ).inc()
        REQUEST_LATENCY.labels(method=request.method, endpoint=path).observe(elapsed)

        response.headers["X-Request-ID"] = request_id
        response.headers["X-Process-Time"] = f"{elapsed:.4f}"
        logger.info(
            "request_completed",
            method=request.method,
            path=path,
            status_code=response.status_code,
            process_time=f"{elapsed:.4f}s",
        )
        return response


def _mount_uploads(app: FastAPI) -> None:
    """Serve reference-mode attachment files read-only."""
    attachment_settings = settings.attachments
    if attachment_settings.storage_mode != StorageMode.REFERENCE.value:
        return
    if not attachment_settings.serve_static:
        return
    # The directory is created by the attachment store at startup
    app.mount(
        UPLOADS_URL_PREFIX,
        StaticFiles(directory=attachment_settings.storage_dir, check_dir=False),
        name="uploads",
    )


def _add_operational_routes(app: FastAPI) -> None:
    @app.get("/health", tags=["Health"])
    async def health_check():
        """Liveness probe."""
        return {
            "status": "healthy",
            "version": settings.app_version,
            "environment": settings.environment,
        }

    @app.get("/ready", tags=["Health"])
    async def readiness_check(request: Request):
        """Readiness probe: database reachable and attachment storage prepared."""
        state = request.app.state
        checks = {"database": False, "attachment_storage": False}

        session_maker = getattr(state, "db_session_maker", None)
        if session_maker is not None:
            try:
                async with session_maker() as session:
                    await session.execute(text("SELECT 1"))
                checks["database"] = True
            except Exception as e:
                logger.warning("readiness_database_failed", error=str(e))

        store = getattr(state, "attachment_store", None)
        checks["attachment_storage"] = store is not None and store.is_ready()

        ready = all(checks.values())
        return JSONResponse(
            status_code=200 if ready else 503,
            content={"ready": ready, "checks": checks},
        )


def create_application() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title=settings.app_name,
        description=(
            "Backend of the DentalDesk clinic dashboard: patient records, "
            "X-ray and report attachments, appointments, and role-based "
            "access for admins, dentists and receptionists."
        ),
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        openapi_url="/openapi.json" if settings.debug else None,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "X-Process-Time"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=1000)
    _add_request_logging(app)

    app.mount("/metrics", make_asgi_app())
    _mount_uploads(app)
    app.include_router(api_router, prefix="/api/v1")
    _add_operational_routes(app)

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error(
            "unhandled_exception",
            path=_safe_request_path(request),
            method=request.method,
            error=str(exc),
            exc_info=exc,
        )
        return JSONResponse(
            status_code=500,
            content={
                "detail": "Internal server error",
                "message": str(exc) if settings.debug else "An unexpected error occurred",
            },
        )

    return app


app = create_application()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        workers=1 if settings.debug else settings.workers,
        log_level="debug" if settings.debug else "info",
    )
