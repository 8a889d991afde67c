"""
Cook Journal Backend — FastAPI Application Factory
====================================================

What:  Creates and configures the FastAPI application instance.
Why:   Centralizes middleware registration, error shaping, route mounting and
       lifecycle management in one place.
How:   Factory pattern: create_app() returns a configured FastAPI instance.
Who:   Called by uvicorn (uvicorn cookjournal.main:app) and by the tests.

Application Architecture:
    ┌────────────────────────────────────────────────────────┐
    │                      FastAPI App                       │
    │                                                        │
    │  Middleware: RateLimit → RequestID → Logging → GZip →  │
    │              CORS                                      │
    │                                                        │
    │  Routes: /api/auth/*  /api/recipes/*  /api/uploads     │
    │          /uploads/{filename}  /api/health              │
    │                                                        │
    │  Errors: every failure → {"errors": [{field, message}]}│
    └────────────────────────────────────────────────────────┘

Lifecycle:
    Startup:  logging, upload directory, tables (SQLite only; PostgreSQL
              schemas are managed by Alembic)
    Shutdown: dispose the database engine
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict, List, Optional, Sequence, Union

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from cookjournal import __version__
from cookjournal.config import settings
from cookjournal.database import create_all, dispose_engine
from cookjournal.exceptions import CookJournalError, RateLimitError, error_response
from cookjournal.middleware.logging import RequestLoggingMiddleware
from cookjournal.middleware.rate_limit import RateLimitMiddleware
from cookjournal.middleware.request_id import RequestIDMiddleware, request_id_var
from cookjournal.routes import auth, health, recipes, uploads
from cookjournal.services.upload_service import upload_service

logger = logging.getLogger(__name__)

GENERIC_SERVER_ERROR = "An unexpected error occurred. Please try again later."


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging() -> None:
    """Configure the root logger once, before anything else logs."""
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # Third-party loggers that are chatty at INFO
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("PIL").setLevel(logging.WARNING)
    logging.getLogger("passlib").setLevel(logging.ERROR)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan (Startup & Shutdown)
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    setup_logging()
    logger.info("=" * 60)
    logger.info("Cook Journal Backend %s starting up...", __version__)

    upload_service.ensure_upload_dir()
    logger.info("Upload directory: %s", upload_service.upload_dir)

    if settings.is_sqlite:
        await create_all()
        logger.info("SQLite schema ensured")

    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)
    logger.info("=" * 60)

    yield

    logger.info("Cook Journal Backend shutting down...")
    await dispose_engine()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

LOCATION_ROOTS = {"body", "query", "path", "header", "cookie"}

TYPE_MESSAGES = {
    "string_type": "{field} must be a string",
    "list_type": "{field} must be an array",
    "dict_type": "{field} must be an object",
    "model_type": "{field} must be an object",
    "model_attributes_type": "{field} must be an object",
    "bool_type": "{field} must be a boolean",
}


def field_from_loc(loc: Sequence[Union[str, int]]) -> Optional[str]:
    """("body", "images", 0) → "images[0]"; ("body",) → None."""
    parts = list(loc)
    if parts and parts[0] in LOCATION_ROOTS:
        parts = parts[1:]

    field = ""
    for part in parts:
        if isinstance(part, int):
            field += f"[{part}]"
        else:
            field = f"{field}.{part}" if field else str(part)
    return field or None


def translate_validation_error(err: Dict[str, Any]) -> Dict[str, Optional[str]]:
    field = field_from_loc(err.get("loc", ()))
    err_type = err.get("type", "")

    if err_type == "value_error":
        ctx = err.get("ctx") or {}
        message = str(ctx.get("error", err.get("msg", "Invalid value")))
    elif err_type == "json_invalid":
        field, message = None, "Request body is not valid JSON"
    elif err_type == "missing":
        message = f"{field} is required" if field else "Request body is required"
    elif err_type in TYPE_MESSAGES:
        message = TYPE_MESSAGES[err_type].format(field=field or "Request body")
    else:
        message = err.get("msg", "Invalid value")

    return {"field": field, "message": message}


def register_exception_handlers(app: FastAPI) -> None:
    """
    Shape every failure as {"errors": [{"field", "message"}]}.

    Security: 5xx responses never carry exception text, SQL or paths; those
    are logged server-side with the request id.
    """

    @app.exception_handler(CookJournalError)
    async def handle_app_error(request: Request, exc: CookJournalError):
        rid = request_id_var.get("")
        if exc.status_code >= 500:
            logger.error("[%s] %s: %s | Context: %s", rid, type(exc).__name__, exc.message, exc.context)
        else:
            logger.info("[%s] %s: %s", rid, type(exc).__name__, exc.message)

        headers = None
        if isinstance(exc, RateLimitError):
            headers = {"Retry-After": str(exc.retry_after)}
        return error_response(exc.status_code, exc.to_errors(), headers=headers)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        errors: List[Dict[str, Optional[str]]] = [
            translate_validation_error(err) for err in exc.errors()
        ]
        logger.info("[%s] Request validation failed: %s", request_id_var.get(""), errors)
        return error_response(400, errors)

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_exception(request: Request, exc: StarletteHTTPException):
        message = exc.detail if isinstance(exc.detail, str) else "Request failed"
        return error_response(
            exc.status_code,
            [{"field": None, "message": message}],
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(SQLAlchemyError)
    async def handle_database_error(request: Request, exc: SQLAlchemyError):
        logger.error("[%s] Database error: %s", request_id_var.get(""), exc, exc_info=True)
        return error_response(500, [{"field": None, "message": GENERIC_SERVER_ERROR}])

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        # Runs outside the request-id middleware, so read the id from state
        rid = getattr(request.state, "request_id", "")
        logger.error("[%s] Unexpected error: %s", rid, exc, exc_info=True)
        return error_response(500, [{"field": None, "message": GENERIC_SERVER_ERROR}])


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app() -> FastAPI:
    app = FastAPI(
        title="Cook Journal API",
        description=(
            "Recipes, the attempts cooked against them, pictures, and the best "
            "attempt of each recipe."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # Middleware executes in REVERSE order of addition:
    # RateLimit → RequestID → Logging → GZip → CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,  # session cookie
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "Retry-After"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(RateLimitMiddleware)

    register_exception_handlers(app)

    app.include_router(auth.router)
    app.include_router(recipes.router)
    app.include_router(uploads.router)
    app.include_router(health.router)

    return app


app = create_app()
