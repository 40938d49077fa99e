"""Raid Signup API - FastAPI Application Entry Point."""

import logging
import time
import uuid
from pathlib import Path
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from raid_api import __version__
from raid_api.auth.gate import AuthenticationGate
from raid_api.auth.tokens import TokenService
from raid_api.config.env import (
    get_cors_origins,
    get_log_level,
    is_production_env,
    json_logs_enabled,
)
from raid_api.config.settings import get_auth_settings
from raid_api.context import identity_id_var, request_id_var
from raid_api.errors import AuthError, RaidSystemError
from raid_api.notifications import LoggingNotifier
from raid_api.routers import auth, characters, health, raids
from raid_api.schemas import ProblemDetail
from raid_api.utils import configure_json_logging

PROBLEM_TYPE_BASE = "https://api.raid-signup.dev/problems"

app = FastAPI(
    title="Raid Signup API",
    description="Raid scheduling with capacity-checked character signups and stateless bearer-token auth.",
    version=__version__,
    docs_url="/api-docs",
    redoc_url="/redoc",
)

# Set RAID_JSON_LOGS=false to disable (defaults to true)
if json_logs_enabled():
    configure_json_logging(log_level=get_log_level())

logger = logging.getLogger(__name__)

# Signing secret is resolved once here and never mutated afterwards
app.state.token_service = TokenService(get_auth_settings())
app.state.notifier = LoggingNotifier()

# MDN: credentials mode CANNOT use wildcard origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=get_cors_origins(),
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "X-Request-ID"],
    expose_headers=["X-Request-ID"],
)


# ============================================================================
# Problem Details helpers
# ============================================================================


def _instance() -> str:
    """Opaque instance identifier (urn:raidsignup:trace:{request_id})."""
    request_id = request_id_var.get()
    return f"urn:raidsignup:trace:{request_id}" if request_id else f"urn:raidsignup:trace:{uuid.uuid4()}"


def _problem_response(
    status_code: int,
    title: str,
    detail: str,
    code: Optional[str],
    type_slug: str,
    headers: Optional[dict[str, str]] = None,
    errors: Optional[list[dict]] = None,
) -> JSONResponse:
    problem = ProblemDetail(
        type=f"{PROBLEM_TYPE_BASE}/{type_slug}",
        title=title,
        status=status_code,
        detail=detail,
        instance=_instance(),
        code=code,
        errors=errors,
    )
    return JSONResponse(
        status_code=status_code,
        content=problem.model_dump(exclude_none=True),
        media_type="application/problem+json",
        headers=headers,
    )


def _error_response(exc: RaidSystemError) -> JSONResponse:
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return _problem_response(
        status_code=exc.status_code,
        title=exc.title,
        detail=exc.message,
        code=exc.code,
        type_slug=exc.code.replace("_", "-"),
        headers=headers,
    )


# ============================================================================
# Middlewares (registration order: innermost first, outermost last)
# ============================================================================


@app.middleware("http")
async def authentication_gate_middleware(request: Request, call_next):
    """Resolve the caller identity before any route code runs.

    - No token / no "Bearer " prefix: request continues unauthenticated
    - Valid token: identity attached to request.state for this request only
    - Invalid token: 401 problem+json, route never executes
    """
    request.state.identity = None
    gate = AuthenticationGate(request.app.state.token_service)

    try:
        identity = gate.resolve(request.headers.get("Authorization"))
    except AuthError as exc:
        logger.info(
            f"Token rejected: {exc.code}",
            extra={"event": "auth.token.rejected", "code": exc.code, "path": request.url.path},
        )
        return _error_response(exc)

    if identity is not None:
        request.state.identity = identity
        identity_id_var.set(str(identity.identity_id))

    return await call_next(request)


@app.middleware("http")
async def http_completion_logging_middleware(request: Request, call_next):
    """Log every HTTP request completion with observability fields.

    - Every HTTP request emits "http.request.completed"
    - Fields: request_id, identity_id, method, path, status_code, duration_ms
    - Logs even on exceptions (status_code=500)
    - Clears per-request contextvars at start and end
    """
    identity_id_var.set("")

    start_time = time.perf_counter()
    status_code = 500

    try:
        response = await call_next(request)
        status_code = response.status_code
        return response
    finally:
        duration_ms = (time.perf_counter() - start_time) * 1000
        extra = {
            "method": request.method,
            "path": request.url.path,
            "status_code": status_code,
            "duration_ms": round(duration_ms, 2),
        }
        # The gate runs in a child task, so its contextvar is not visible here; request.state is shared
        identity = getattr(request.state, "identity", None)
        if identity is not None:
            extra["identity_id"] = str(identity.identity_id)
        logger.info("http.request.completed", extra=extra)
        identity_id_var.set("")


@app.middleware("http")
async def request_id_middleware(request: Request, call_next):
    """Generate and propagate request_id for observability.

    - Accepts X-Request-ID header from client (optional)
    - Generates new UUID if not provided
    - Returns X-Request-ID in response headers

    Registered last so it is the outermost middleware and the contextvar is
    visible to every inner middleware.
    """
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    request_id_var.set(request_id)

    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


# ============================================================================
# RFC 9457 Global Exception Handlers
# ============================================================================


@app.exception_handler(RaidSystemError)
async def raid_error_handler(request: Request, exc: RaidSystemError) -> JSONResponse:
    """Render domain failures as Problem Details with a stable ``code``."""
    if exc.status_code >= 500:
        logger.error(
            f"Request failed: {exc.code}",
            extra={"event": "request.failed", "code": exc.code, "path": request.url.path},
        )
    else:
        logger.info(
            f"Request rejected: {exc.code}",
            extra={"event": "request.rejected", "code": exc.code, "path": request.url.path},
        )
    return _error_response(exc)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Handle routing-level HTTP exceptions (404 unknown path, 405 method)."""
    detail_value = exc.detail if isinstance(exc.detail, str) else _get_title_for_status(exc.status_code)
    return _problem_response(
        status_code=exc.status_code,
        title=_get_title_for_status(exc.status_code),
        detail=detail_value,
        code=None,
        type_slug=f"http-{exc.status_code}",
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handle request validation errors (422, application/problem+json)."""
    errors = exc.errors()
    first_error = errors[0] if errors else {}
    field = ".".join(str(loc) for loc in first_error.get("loc", []))
    msg = first_error.get("msg", "Validation error")

    return _problem_response(
        status_code=422,
        title="Request Validation Failed",
        detail=f"Invalid field '{field}': {msg}",
        code="request_validation_failed",
        type_slug="validation-error",
        errors=[
            {"loc": [str(part) for part in err.get("loc", [])], "msg": err.get("msg", "")}
            for err in errors
        ],
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle uncaught exceptions. Detail is logged, never returned."""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return _problem_response(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        title="Internal Server Error",
        detail="An unexpected error occurred. Please try again later.",
        code="internal_error",
        type_slug="internal-error",
    )


def _get_title_for_status(status_code: int) -> str:
    """Get human-readable title for HTTP status code."""
    titles = {
        400: "Bad Request",
        401: "Unauthorized",
        403: "Forbidden",
        404: "Not Found",
        405: "Method Not Allowed",
        409: "Conflict",
        500: "Internal Server Error",
        503: "Service Unavailable",
    }
    return titles.get(status_code, f"HTTP {status_code}")


# Include routers
app.include_router(health.router, tags=["health"])
app.include_router(auth.router)
app.include_router(characters.router)
app.include_router(raids.router)


@app.on_event("startup")
async def startup_event():
    """Local SQLite bootstrap.

    Outside production, a SQLite database gets its directory and tables
    created on startup. Every other database is migrated with alembic.
    """
    if is_production_env():
        return

    from raid_api.db.models import Base
    from raid_api.db.session import DATABASE_URL, engine

    if not DATABASE_URL.startswith("sqlite"):
        return

    db_path = DATABASE_URL.split("///", 1)[-1]
    if db_path and db_path != ":memory:":
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    Base.metadata.create_all(engine)
    logger.info("SQLite schema ensured", extra={"event": "db.bootstrap"})
