"""
Jotter Backend — FastAPI Application Factory
============================================

What:  Builds the FastAPI app: middleware, exception handlers, routes and the
       lifespan that connects / disconnects the entry store.
How:   create_app(settings) wires one Settings object, one EntryStore and one
       EntryService onto `app.state`. uvicorn imports `app.main:app`, built
       from environment settings.

Application Architecture:
    ┌─────────────────────────────────────────────────────┐
    │  Middleware: RequestID → Logging → BodyLimit → CORS │
    │                                                     │
    │  Routes:  GET/POST /api/entries                     │
    │           DELETE /api/entries/{id}                  │
    │           GET /api/health                           │
    │           (optional) static frontend at /           │
    │                                                     │
    │  Exception Handlers:                                │
    │   Validation→400 │ NotFound→404 │ Storage→500       │
    └─────────────────────────────────────────────────────┘

Lifecycle:
    Startup:  logging → validate settings → store.connect() → stale-key check.
              Any failure propagates and the server does not start.
    Shutdown: store.close()
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from app import __version__
from app.config import Settings, get_settings
from app.dependencies import build_entry_service, build_store
from app.exceptions import (
    ConfigurationError,
    JotterError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from app.logging_config import setup_logging
from app.middleware.body_limit import BodySizeLimitMiddleware
from app.middleware.logging import RequestLoggingMiddleware
from app.middleware.request_id import RequestIDMiddleware, request_id_var
from app.routes import entries, health

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    settings: Settings = app.state.settings
    store = app.state.store
    service = app.state.entry_service

    setup_logging(settings.log_level)
    logger.info("Jotter Backend starting (storage=%s, policy=%s)",
                settings.storage_backend, service.policy.version)

    try:
        await store.connect()
    except StorageError as e:
        logger.error("Startup aborted: %s | Context: %s", e.message, e.context)
        raise ConfigurationError(message=e.message, context=e.context) from e

    stale = await service.count_stale()
    if stale:
        logger.warning(
            "%d entries have keys from another normalization policy than %s; "
            "run `python -m app.backfill` to recompute them",
            stale, service.policy.version,
        )

    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)

    yield

    logger.info("Jotter Backend shutting down...")
    await store.close()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def _error(status_code: int, error: str, message: str, details: Optional[dict] = None) -> JSONResponse:
    content = {"error": error, "message": message, "request_id": request_id_var.get("")}
    if details:
        content["details"] = details
    return JSONResponse(status_code=status_code, content=content)


def register_exception_handlers(app: FastAPI) -> None:
    """
    Handler hierarchy:
        ValidationError / RequestValidationError → 400
        NotFoundError                            → 404
        StorageError, JotterError                → 500 (generic message)
        Exception                                → 500 (stack trace logged)

    Internal details (paths, SQL errors) are logged, never returned.
    """

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError):
        logger.warning("[%s] Validation error: %s", request_id_var.get(""), exc.message)
        return _error(400, "validation_error", exc.message, exc.context)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation_error(request: Request, exc: RequestValidationError):
        # Malformed JSON or wrong field types; reported as 400 like empty text
        fields = [".".join(str(p) for p in err.get("loc", ())) for err in exc.errors()]
        return _error(400, "validation_error", "Invalid request body", {"fields": fields})

    @app.exception_handler(NotFoundError)
    async def handle_not_found(request: Request, exc: NotFoundError):
        return _error(404, "not_found", exc.message)

    @app.exception_handler(StorageError)
    async def handle_storage_error(request: Request, exc: StorageError):
        logger.error("[%s] Storage error: %s | Context: %s", request_id_var.get(""), exc.message, exc.context)
        return _error(500, "server_error", "An internal error occurred. Please try again later.")

    @app.exception_handler(JotterError)
    async def handle_jotter_error(request: Request, exc: JotterError):
        logger.error("[%s] %s: %s", request_id_var.get(""), type(exc).__name__, exc.message)
        return _error(500, "server_error", "An internal error occurred. Please try again later.")

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.error("[%s] Unexpected error: %s", request_id_var.get(""), str(exc), exc_info=True)
        return _error(500, "internal_server_error", "An unexpected error occurred.")


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Raises:
        ConfigurationError: settings are inconsistent (e.g. database backend
            without DATABASE_URL)
    """
    settings = settings or get_settings()
    settings.validate_required()

    app = FastAPI(
        title="Jotter API",
        description="Short text entries with duplicate detection.",
        version=__version__,
        lifespan=lifespan,
    )

    store = build_store(settings)
    app.state.settings = settings
    app.state.store = store
    app.state.entry_service = build_entry_service(settings, store)

    # Last added runs first: RequestID → Logging → BodyLimit → CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_methods=["GET", "POST", "DELETE"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )
    app.add_middleware(BodySizeLimitMiddleware, max_body_bytes=settings.max_body_bytes)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    register_exception_handlers(app)

    app.include_router(entries.router)
    app.include_router(health.router)

    # Mounted last so /api routes take precedence over files with the same path
    if settings.static_dir:
        app.mount("/", StaticFiles(directory=settings.static_dir, html=True), name="static")

    return app


def get_application() -> FastAPI:
    """uvicorn factory entry point: `uvicorn app.main:get_application --factory`."""
    return create_app(get_settings())


app = get_application()
