"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

get_auth_service() returns the AuthService built in the lifespan.
bearer_token() pulls the token out of "Authorization: Bearer <token>".
get_current_user() resolves that token to the account's public fields.

Failures raise the core's own errors (UnauthorizedError, NotFoundError);
api/main.py maps them to HTTP statuses in one place.

Layer rule: no imports from api/ or cache/.
  auth/dependencies.py may import from fastapi (for Request) because this
  module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import Depends, Request

from auth.models import PublicUser
from auth.service import AuthService
from core.errors import UnauthorizedError

_BEARER_PREFIX = "Bearer "


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth_service


def bearer_token(request: Request) -> str:
    """Return the bearer token from the Authorization header.

    Raises UnauthorizedError if the header is missing, uses another scheme,
    or carries an empty token.
    """
    header = request.headers.get("Authorization", "")
    if not header.startswith(_BEARER_PREFIX):
        raise UnauthorizedError("missing or malformed authorization header")
    token = header[len(_BEARER_PREFIX) :].strip()
    if not token or " " in token:
        raise UnauthorizedError("missing or malformed authorization header")
    return token


def get_current_user(
    token: str = Depends(bearer_token),
    service: AuthService = Depends(get_auth_service),
) -> PublicUser:
    """Require a valid bearer token.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(user: PublicUser = Depends(get_current_user)): ...
    """
    return service.resolve_session(token)
