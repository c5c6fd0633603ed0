"""
api/main.py -- FastAPI application entry point for authcore.

Run with:      uvicorn asgi:app --reload
               python main.py serve

Middleware stack (outermost to innermost):
  1. log_requests          -- one access log line per request, rejected ones included
  2. TrustedHostMiddleware -- rejects requests with unexpected Host headers
  3. CORSMiddleware        -- adds CORS headers for allowed browser origins

Lifespan builds the AuthService (store, hasher, issuer, session cache) and
starts the cache purge task on startup, and tears them down on shutdown.

Error mapping:
  The core raises typed errors (core/errors.py) and never picks HTTP
  statuses. _ERROR_STATUS below is the single table from error kind to
  status and public message. 401 responses all share one message so a
  client cannot tell an unknown email from a wrong password, or a forged
  token from an expired one. The log line keeps the real reason.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse

from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.v1.users import router as users_router
from auth.service import AuthService
from core.config import get_settings
from core.errors import (
    AuthError,
    DuplicateEntityError,
    InvalidValueError,
    NotFoundError,
    TransientIOError,
    UnauthorizedError,
)

VERSION = "0.1.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=get_settings().log_level.upper(),
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("authcore.api")

# ---------------------------------------------------------------------------
# Error kind -> (status, code, public message). None keeps str(exc).
# ---------------------------------------------------------------------------

_UNAUTHORIZED_MESSAGE = "Invalid credentials or token."

_ERROR_STATUS: dict[type[AuthError], tuple[int, str, Optional[str]]] = {
    InvalidValueError: (400, "invalid_value", None),
    DuplicateEntityError: (409, "conflict", None),
    NotFoundError: (401, "unauthorized", _UNAUTHORIZED_MESSAGE),
    UnauthorizedError: (401, "unauthorized", _UNAUTHORIZED_MESSAGE),
    TransientIOError: (503, "unavailable", "Service temporarily unavailable. Retry shortly."),
}

_RETRY_AFTER_SECONDS = 5


def _lookup_status(exc: AuthError) -> tuple[int, str, Optional[str]]:
    for kind in type(exc).__mro__:
        if kind in _ERROR_STATUS:
            return _ERROR_STATUS[kind]
    return 500, "internal_error", "An unexpected error occurred."


# ---------------------------------------------------------------------------
# Background purge task
# ---------------------------------------------------------------------------


async def _purge_loop(app: FastAPI, interval: int) -> None:
    """Purge expired session cache entries every `interval` seconds.

    CancelledError from task.cancel() during shutdown propagates out of
    asyncio.sleep and unwinds the coroutine cleanly.
    """
    while True:
        await asyncio.sleep(interval)
        cache = app.state.auth_service.cache
        if cache is None:
            continue
        try:
            await asyncio.to_thread(cache.purge_expired)
        except TransientIOError as exc:
            logger.warning("Session cache purge failed: %s", exc)


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application-level resources across the full server lifetime."""
    settings = get_settings()
    logger.info("authcore API starting up")
    app.state.auth_service = AuthService.from_settings(settings)
    logger.info(
        "Auth initialized (token_lifetime=%ss, session_cache=%s)",
        settings.access_token_ttl_seconds,
        "on" if app.state.auth_service.cache is not None else "off",
    )
    app.state.purge_task = asyncio.create_task(_purge_loop(app, settings.cache_purge_interval_seconds))

    yield

    app.state.purge_task.cancel()
    service: AuthService = app.state.auth_service
    if service.cache is not None:
        service.cache.close()
    service.store.close()
    logger.info("authcore API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="authcore API",
    description="Account registration, password login and bearer-token sessions.",
    version=VERSION,
    lifespan=lifespan,
)

# add_middleware() wraps what was added before it, so the last call is the
# outermost layer.
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost", "http://localhost:3000", "http://127.0.0.1"],
    allow_methods=["GET", "POST"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)

app.add_middleware(
    TrustedHostMiddleware,
    allowed_hosts=get_settings().allowed_hosts,
)

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


# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(users_router, tags=["Users"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so API clients can parse
# errors uniformly without inspecting status codes to choose a schema.
# ---------------------------------------------------------------------------


@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    """Translate a core error through _ERROR_STATUS."""
    status, code, public_message = _lookup_status(exc)
    logger.info("%s %s -> %d (%s: %s)", request.method, request.url.path, status, type(exc).__name__, exc)
    response = JSONResponse(
        status_code=status,
        content=ErrorResponse(error=ErrorDetail(code=code, message=public_message or str(exc))).model_dump(),
    )
    if status == 401:
        response.headers["WWW-Authenticate"] = "Bearer"
    elif status == 503:
        response.headers["Retry-After"] = str(_RETRY_AFTER_SECONDS)
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 422 with structured error when the request body has the wrong shape."""
    return JSONResponse(
        status_code=422,
        content=ErrorResponse(
            error=ErrorDetail(
                code="validation_error",
                message="Request validation failed.",
                detail=str(exc.errors()),
            )
        ).model_dump(),
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Return a structured error for all FastAPI/Starlette HTTP exceptions."""
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=ErrorDetail(
                code=f"http_{exc.status_code}",
                message=str(exc.detail),
            )
        ).model_dump(),
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The raw exception goes to the log only, never to the response body.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(
            error=ErrorDetail(
                code="internal_error",
                message="An unexpected error occurred.",
            )
        ).model_dump(),
    )


# ---------------------------------------------------------------------------
# Health endpoint
#
# Defined directly in main.py so it is always reachable regardless of router
# registration state.
# ---------------------------------------------------------------------------


@app.get("/health", tags=["Health"])
def health(request: Request) -> HealthResponse:
    """Return API liveness, version and database reachability."""
    service: AuthService = request.app.state.auth_service
    database = "ok" if service.store.ping() else "error"
    return HealthResponse(version=VERSION, components={"app": "ok", "database": database})
