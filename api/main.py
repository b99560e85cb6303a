"""
api/main.py -- FastAPI application entry point for RailAuth.

Run with:  uvicorn asgi:app --reload

Middleware stack (outermost to innermost):
  1. TrustedHostMiddleware -- rejects requests with unexpected Host headers
  2. CORSMiddleware        -- adds CORS headers for allowed browser origins
  3. log_requests          -- one log line per request with latency
  4. enforce_access_policy -- resolves the session cookie and applies auth/policy.py

Lifespan builds the long-lived components once (store, hasher, registry,
lifecycle), starts the session purge task, and tears everything down on
shutdown.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.auth import router as auth_router
from auth.errors import (
    AccountInactiveError,
    AuthError,
    ConflictError,
    ForbiddenError,
    InvalidCredentialsError,
    NotFoundError,
    PasswordTooLongError,
    SelfDeleteForbiddenError,
)
from auth.lifecycle import AccountLifecycle
from auth.passwords import PasswordHasher
from auth.policy import Decision, decide
from auth.sessions import SessionRegistry
from auth.store import AccountStore
from core.config import get_settings

VERSION = "0.1.0"

settings = get_settings()

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("railauth.api")

# ---------------------------------------------------------------------------
# Background purge task
# ---------------------------------------------------------------------------

_PURGE_INTERVAL_SECONDS = 10 * 60


async def _purge_loop(app: FastAPI) -> None:
    """Evict expired sessions every 10 minutes.

    lookup() already ignores expired sessions; this only bounds memory for
    sessions that are never presented again. CancelledError from
    task.cancel() during shutdown unwinds the coroutine at asyncio.sleep.
    """
    while True:
        await asyncio.sleep(_PURGE_INTERVAL_SECONDS)
        app.state.sessions.purge_expired()


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build the long-lived components on startup and release them on shutdown.

    The PasswordHasher is constructed here exactly once and injected into the
    lifecycle, so there is no lazily created global to race on.
    """
    logger.info("RailAuth API starting up")
    app.state.store = AccountStore(settings.database_url)
    app.state.hasher = PasswordHasher(rounds=settings.bcrypt_rounds)
    app.state.sessions = SessionRegistry(max_age_seconds=settings.session_expire_seconds)
    app.state.lifecycle = AccountLifecycle(app.state.store, app.state.hasher)
    logger.info(
        "Auth initialized (accounts=%d, bcrypt_rounds=%d, session_expire_seconds=%d)",
        app.state.store.count(),
        settings.bcrypt_rounds,
        settings.session_expire_seconds,
    )
    app.state.purge_task = asyncio.create_task(_purge_loop(app))

    yield

    app.state.purge_task.cancel()
    app.state.store.close()
    logger.info("RailAuth API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="RailAuth API",
    description="Account registration, session login and role-based administration for the reservation platform.",
    version=VERSION,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Access policy middleware
#
# Registered first so it sits innermost: logging and CORS wrap its 401/403
# responses like any other.
# ---------------------------------------------------------------------------


def _policy_path(path: str) -> str:
    """Strip API_PREFIX so the policy table can be written without it."""
    prefix = settings.api_prefix
    if prefix and (path == prefix or path.startswith(prefix + "/")):
        return path[len(prefix) :] or "/"
    return path


@app.middleware("http")
async def enforce_access_policy(request: Request, call_next):
    """Classify the route and reject the request before any handler runs.

    The resolved session (or None) is stored on request.state.session so
    route dependencies do not look it up a second time.
    """
    session_id = request.cookies.get(settings.session_cookie_name)
    session = request.app.state.sessions.lookup(session_id)
    request.state.session = session

    decision = decide(_policy_path(request.url.path), session)
    if decision is Decision.DENY_UNAUTHENTICATED:
        return _error_response(401, "unauthorized", "Authentication required.")
    if decision is Decision.DENY_FORBIDDEN:
        logger.info("Denied account %d (role=%s) on %s", session.account_id, session.role.value, request.url.path)
        return _error_response(403, "forbidden", "Admin access required.")
    return await call_next(request)


# ---------------------------------------------------------------------------
# Request logging middleware
# ---------------------------------------------------------------------------


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    ms = (time.perf_counter() - start) * 1000
    logger.info(
        "%s %s %d %.1fms %s",
        request.method,
        request.url.path,
        response.status_code,
        ms,
        request.client.host if request.client else "unknown",
    )
    return response


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["Content-Type"],
    max_age=3600,
)

app.add_middleware(TrustedHostMiddleware, allowed_hosts=settings.allowed_hosts)

# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(auth_router, prefix=settings.api_prefix, tags=["Auth"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so API clients can parse
# errors uniformly without inspecting status codes to choose a schema.
# ---------------------------------------------------------------------------

_AUTH_ERROR_STATUS: dict[type[AuthError], int] = {
    ConflictError: 409,
    NotFoundError: 404,
    InvalidCredentialsError: 401,
    AccountInactiveError: 401,
    ForbiddenError: 403,
    SelfDeleteForbiddenError: 400,
    PasswordTooLongError: 422,
}


def _error_response(status_code: int, code: str, message: str, detail: str | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=ErrorDetail(code=code, message=message, detail=detail)).model_dump(
            exclude_none=True
        ),
    )


@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    """Map a domain failure to its HTTP status. Unlisted subclasses fall back to 400."""
    status_code = _AUTH_ERROR_STATUS.get(type(exc), 400)
    return _error_response(status_code, exc.code, exc.message)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 422 with structured error when request body or query params fail validation."""
    return _error_response(422, "validation_error", "Request validation failed.", str(exc.errors()))


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Return a structured error for all FastAPI/Starlette HTTP exceptions.

    Registered on the Starlette base class so router-level 404 and 405
    responses use the same envelope as dependency failures.

    Dependencies raise HTTPException with a {"code", "message"} dict as
    detail. When detail is already structured, use it directly as the error
    field rather than stringifying it.
    """
    if isinstance(exc.detail, dict):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})
    return _error_response(exc.status_code, f"http_{exc.status_code}", str(exc.detail))


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The raw exception goes to the log only, never to the response body.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _error_response(500, "internal_error", "An unexpected error occurred.")


# ---------------------------------------------------------------------------
# Health endpoint
#
# Defined directly in main.py (not in a router) so it is always reachable
# regardless of router registration state. Public in the policy table.
# ---------------------------------------------------------------------------


@app.get(f"{settings.api_prefix}/health", tags=["Health"])
def health(request: Request) -> HealthResponse:
    """Return liveness, version and database reachability."""
    db_ok = request.app.state.store.ping()
    return HealthResponse(
        status="healthy" if db_ok else "degraded",
        version=VERSION,
        components={"app": "ok", "database": "ok" if db_ok else "error"},
    )
