"""
MakerBench Backend — FastAPI Application Factory
===================================================

What:  Creates and configures the FastAPI application instance.
How:   Factory pattern: create_app() returns a configured FastAPI instance.
Who:   Called by uvicorn to start the server (uvicorn makerbench.main:app).
When:  Once at server startup; the returned app handles all subsequent requests.

Application Architecture:
    ┌───────────────────────────────────────────────────────────┐
    │                      FastAPI App                          │
    │                                                           │
    │  Middleware Chain:                                        │
    │  ┌────────────┐ ┌──────────┐ ┌─────────┐ ┌──────┐ ┌─────┐ │
    │  │ Rate Limit │→│ Req ID   │→│ Logging │→│ GZip │→│CORS │ │
    │  └────────────┘ └──────────┘ └─────────┘ └──────┘ └─────┘ │
    │                                                           │
    │  Routes:                                                  │
    │  /api/bookmarks[/search]  /api/tags[/popular]             │
    │  /api/admin/bookmarks     /api/files/{path}   /health     │
    │                                                           │
    │  Exception Handlers → {"success": false, "error": ...}    │
    │  400 validation │ 403 auth │ 404 │ 405 │ 409 │ 422 │ 500  │
    └───────────────────────────────────────────────────────────┘

Lifecycle:
    Startup:
    1. Initialize logging
    2. Report unconfigured optional integrations
    3. Create the storage directory
    Shutdown:
    1. Dispose database engine (close all connections)
"""

import logging
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncGenerator, Dict, List, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from makerbench import __version__
from makerbench.config import settings
from makerbench.database import dispose_engine
from makerbench.exceptions import (
    AuthorizationError,
    ConflictError,
    DatabaseError,
    FileStorageError,
    MakerBenchError,
    NotFoundError,
    RateLimitExceededError,
    ValidationError,
)
from makerbench.middleware.logging import RequestLoggingMiddleware
from makerbench.middleware.rate_limit import RateLimitMiddleware
from makerbench.middleware.request_id import (
    RequestIDMiddleware,
    RequestIdLogFilter,
    request_id_var,
)
from makerbench.routes import admin, bookmarks, files, health, tags

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging() -> None:
    """
    Configure logging for the entire application.

    Format: %(asctime)s [%(levelname)s] %(name)s [%(request_id)s]: %(message)s

    The request ID comes from RequestIdLogFilter; records emitted outside a
    request show "-".
    """
    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(RequestIdLogFilter())

    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s [%(request_id)s]: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[handler],
        force=True,
    )

    # Third-party libraries log every connection and query at INFO/DEBUG
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan (Startup & Shutdown)
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # ── Startup ───────────────────────────────────────────────────────────
    setup_logging()
    logger.info("=" * 60)
    logger.info("MakerBench Backend %s starting up...", __version__)

    # Missing optional integrations degrade features; the server still starts.
    for warning in settings.validate_integrations():
        logger.warning("Configuration: %s", warning)

    storage = Path(settings.storage_root)
    storage.mkdir(parents=True, exist_ok=True)
    logger.info("Storage directory: %s", storage.resolve())

    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)
    logger.info("=" * 60)

    yield

    # ── Shutdown ──────────────────────────────────────────────────────────
    logger.info("MakerBench Backend shutting down...")
    await dispose_engine()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def _request_id(request: Request) -> str:
    # The catch-all handler runs outside the request-ID middleware, where the
    # ContextVar has already been reset; request.state still carries the ID.
    return request_id_var.get("") or getattr(request.state, "request_id", "")


def error_response(
    request: Request,
    status_code: int,
    message: str,
    details: Optional[Dict[str, Any]] = None,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    """Renders the standard error envelope."""
    content: Dict[str, Any] = {"success": False, "error": message}
    if details:
        content["details"] = details
    content["request_id"] = _request_id(request)
    return JSONResponse(status_code=status_code, content=content, headers=headers)


def validation_details(exc: RequestValidationError) -> Dict[str, List[str]]:
    """
    Groups request-body errors by top-level field.

        [{"loc": ("body", "tags", 0), "msg": "Value error, Tag cannot be empty"}]
        → {"tags": ["Tag cannot be empty"]}

    Malformed JSON and a missing body are reported under "body".
    """
    details: Dict[str, List[str]] = {}
    for error in exc.errors():
        loc = error.get("loc", ())
        if error.get("type") == "json_invalid" or len(loc) < 2:
            field = "body"
        else:
            field = str(loc[1])
        message = str(error.get("msg", "Invalid value"))
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        details.setdefault(field, [])
        if message not in details[field]:
            details[field].append(message)
    return details


def register_exception_handlers(app: FastAPI) -> None:
    """
    Register global exception handlers for consistent error responses.

    Handler hierarchy:
        ValidationError            → 400 Bad Request
        AuthorizationError         → 403 Forbidden
        NotFoundError              → 404 Not Found
        ConflictError              → 409 Conflict
        RequestValidationError     → 422 Unprocessable Entity (body schema)
        RateLimitExceededError     → 429 Too Many Requests
        DatabaseError              → 500 (generic message, details logged)
        FileStorageError           → 500
        MakerBenchError (base)     → 500
        StarletteHTTPException     → its own status (404 unknown route, 405 + Allow)
        Exception (fallback)       → 500

    Responses never contain stack traces, SQL or file system paths.
    """

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError):
        logger.warning("Validation error: %s", exc.message)
        return error_response(request, 400, exc.message, details=exc.context)

    @app.exception_handler(AuthorizationError)
    async def handle_authorization_error(request: Request, exc: AuthorizationError):
        return error_response(request, 403, exc.message)

    @app.exception_handler(NotFoundError)
    async def handle_not_found(request: Request, exc: NotFoundError):
        return error_response(request, 404, exc.message)

    @app.exception_handler(ConflictError)
    async def handle_conflict(request: Request, exc: ConflictError):
        return error_response(request, 409, exc.message)

    @app.exception_handler(RateLimitExceededError)
    async def handle_rate_limit(request: Request, exc: RateLimitExceededError):
        return error_response(
            request,
            429,
            exc.message,
            details=exc.context,
            headers={"Retry-After": str(exc.retry_after)},
        )

    @app.exception_handler(DatabaseError)
    async def handle_database_error(request: Request, exc: DatabaseError):
        logger.error("Database error: %s | Context: %s", exc.message, exc.context)
        return error_response(
            request, 500, "An internal error occurred. Please try again later."
        )

    @app.exception_handler(FileStorageError)
    async def handle_file_storage_error(request: Request, exc: FileStorageError):
        logger.error("File storage error: %s | Context: %s", exc.message, exc.context)
        return error_response(request, 500, exc.message)

    @app.exception_handler(MakerBenchError)
    async def handle_application_error(request: Request, exc: MakerBenchError):
        logger.error("%s: %s | Context: %s", type(exc).__name__, exc.message, exc.context)
        return error_response(request, 500, exc.message)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        details = validation_details(exc)
        logger.warning("Request body validation failed: %s", details)
        return error_response(request, 422, "Invalid request body", details=details)

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException):
        return error_response(
            request,
            exc.status_code,
            str(exc.detail),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.error("Unexpected error: %s", str(exc), exc_info=True)
        return error_response(
            request,
            500,
            "An unexpected error occurred. Please try again or contact support.",
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns: Fully configured FastAPI instance ready to receive requests.
    """
    app = FastAPI(
        title="MakerBench API",
        description=(
            "Curated directory of web tools for makers. Browse and search approved "
            "bookmarks by text and tags, submit new tools for review, and moderate "
            "the submission queue."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # ── Register Middleware ───────────────────────────────────────────────
    # Middleware executes in REVERSE order of addition:
    # RateLimit → RequestID → Logging → GZip → CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=[
            "X-Request-ID",
            "X-Total-Count",
            "Retry-After",
            "Server-Timing",
        ],
    )
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(RateLimitMiddleware)

    # ── Register Exception Handlers ───────────────────────────────────────
    register_exception_handlers(app)

    # ── Register Routes ───────────────────────────────────────────────────
    app.include_router(bookmarks.router)
    app.include_router(tags.router)
    app.include_router(admin.router)
    app.include_router(files.router)
    app.include_router(health.router)

    return app


# uvicorn imports `makerbench.main:app`
app = create_app()
