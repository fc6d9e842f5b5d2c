"""
NoteSync Backend — FastAPI Application Factory
================================================

What:  Creates and configures the FastAPI application instance.
Why:   Centralizes wiring (gateways, session registry), middleware, routes,
       exception handlers and lifecycle management in one place.
How:   Factory pattern: create_app() returns a configured FastAPI instance.
Who:   Called by uvicorn to start the server (uvicorn notesync.main:app).

Application Architecture:
    ┌────────────────────────────────────────────────────────┐
    │                      FastAPI App                       │
    │  Middleware:  Request ID → Logging → GZip → CORS       │
    │                                                        │
    │  Routes:  /api/notes  /api/files  /api/session  /health│
    │                │                                       │
    │        SynchronizerRegistry (one per identity)         │
    │                │                                       │
    │   SqlRecordGateway          LocalStorageGateway        │
    └────────────────────────────────────────────────────────┘

Lifecycle:
    Startup:  configure logging, validate configuration, create the SQLite
              schema when running on SQLite.
    Shutdown: dispose the database engine.
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from notesync import __version__
from notesync.config import settings
from notesync.database import async_session_factory, create_schema, dispose_engine
from notesync.exceptions import (
    AccessDeniedError,
    AuthenticationError,
    NoteSyncError,
    NotFoundError,
    PreconditionError,
    RemoteReadError,
    RemoteWriteError,
    UploadError,
    ValidationError,
)
from notesync.middleware.logging import RequestLoggingMiddleware
from notesync.middleware.request_id import RequestIDMiddleware, request_id_var
from notesync.routes import files, health, notes, session
from notesync.services.record_gateway import SqlRecordGateway
from notesync.services.sessions import SynchronizerRegistry
from notesync.services.storage_gateway import LocalStorageGateway

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging() -> None:
    """
    Configure logging for the entire application. Called once at startup.

    Format: %(asctime)s [%(levelname)s] %(name)s: %(message)s
    """
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan (Startup & Shutdown)
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    setup_logging()
    logger.info("=" * 60)
    logger.info("NoteSync Backend %s starting up...", __version__)

    try:
        settings.validate_required_for_production()
    except ValueError as e:
        # Keep serving: local development runs on the defaults
        logger.error("Configuration error: %s", str(e))

    if settings.is_sqlite:
        await create_schema()
        logger.info("SQLite schema ready")

    logger.info("Object storage root: %s", app.state.storage.root)
    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)
    logger.info("=" * 60)

    yield

    logger.info("NoteSync Backend shutting down...")
    await dispose_engine()
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
    Map the exception hierarchy to HTTP responses.

        ValidationError      → 400
        AuthenticationError  → 401
        AccessDeniedError    → 403
        NotFoundError        → 404
        PreconditionError    → 409
        UploadError          → 502 (note_id, record_rolled_back)
        RemoteRead/WriteError→ 502
        NoteSyncError        → 500
        Exception            → 500

    Remote error context (SQL error types, paths, OS errors) is logged
    server-side only.
    """

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError):
        logger.warning("[%s] Validation error: %s", request_id_var.get(""), exc.message)
        return _error(400, "validation_error", exc.message, exc.context)

    @app.exception_handler(AuthenticationError)
    async def handle_authentication_error(request: Request, exc: AuthenticationError):
        return _error(401, "unauthenticated", exc.message)

    @app.exception_handler(AccessDeniedError)
    async def handle_access_denied(request: Request, exc: AccessDeniedError):
        return _error(403, "access_denied", exc.message, {"reason": exc.context.get("reason")})

    @app.exception_handler(NotFoundError)
    async def handle_not_found(request: Request, exc: NotFoundError):
        return _error(404, "not_found", exc.message)

    @app.exception_handler(PreconditionError)
    async def handle_precondition(request: Request, exc: PreconditionError):
        return _error(409, "precondition_failed", exc.message)

    @app.exception_handler(UploadError)
    async def handle_upload_error(request: Request, exc: UploadError):
        logger.error("[%s] Upload error: %s | Context: %s", request_id_var.get(""), exc.message, exc.context)
        return _error(
            502,
            "upload_failed",
            exc.message,
            {"note_id": exc.note_id, "record_rolled_back": exc.record_rolled_back},
        )

    @app.exception_handler(RemoteWriteError)
    async def handle_remote_write(request: Request, exc: RemoteWriteError):
        logger.error("[%s] Remote write error: %s | Context: %s", request_id_var.get(""), exc.message, exc.context)
        return _error(502, "remote_write_error", exc.message)

    @app.exception_handler(RemoteReadError)
    async def handle_remote_read(request: Request, exc: RemoteReadError):
        logger.error("[%s] Remote read error: %s | Context: %s", request_id_var.get(""), exc.message, exc.context)
        return _error(502, "remote_read_error", exc.message)

    @app.exception_handler(NoteSyncError)
    async def handle_app_error(request: Request, exc: NoteSyncError):
        logger.error("[%s] Application error: %s | Context: %s", request_id_var.get(""), exc.message, exc.context)
        return _error(500, "server_error", "An internal error occurred. Please try again later.")

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.error("[%s] Unexpected error: %s", request_id_var.get(""), str(exc), exc_info=True)
        return _error(
            500,
            "internal_server_error",
            "An unexpected error occurred. Please try again or contact support.",
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app(
    registry: Optional[SynchronizerRegistry] = None,
    storage: Optional[LocalStorageGateway] = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        registry: Session registry to serve (tests pass one built on fakes).
                  Defaults to one over the SQL record gateway and `storage`.
        storage:  Object store behind /api/files. Defaults to a
                  LocalStorageGateway configured from settings.
    """
    if storage is None:
        storage = LocalStorageGateway(
            root=settings.storage_root,
            signing_secret=settings.url_signing_secret,
            ttl_seconds=settings.url_ttl_seconds,
            public_base_url=settings.public_base_url,
        )
    if registry is None:
        registry = SynchronizerRegistry(
            records=SqlRecordGateway(async_session_factory),
            storage=storage,
            call_timeout=settings.remote_call_timeout,
            namespace=settings.media_namespace,
            idle_timeout=settings.session_idle_timeout,
        )

    app = FastAPI(
        title="NoteSync API",
        description=(
            "Notes with optional images. Note records and image objects are kept "
            "consistent across create, list and delete; images are served through "
            "temporary signed URLs."
        ),
        version=__version__,
        lifespan=lifespan,
    )
    app.state.storage = storage
    app.state.registry = registry

    # Middleware executes in REVERSE order of addition
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    register_exception_handlers(app)

    app.include_router(notes.router)
    app.include_router(files.router)
    app.include_router(session.router)
    app.include_router(health.router)

    return app


app = create_app()
