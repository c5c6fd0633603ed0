"""
api/routes/v1/users.py -- Account registration, login and identity endpoints.

Routes:
  POST /users/register  -- create an account; 201, no auto-login
  POST /users/login     -- password login; returns {"token": ...}
  GET  /users/getInfo   -- identity of the bearer token's owner

Handlers are plain `def` so FastAPI runs them in its thread pool: bcrypt and
the store calls block the worker thread, never the event loop.

Errors raised by the service propagate to the exception handlers in
api/main.py, which own the error -> status mapping. Handlers here never
build error responses themselves.

Security:
  Cache-Control: no-store on login responses.
  Unknown email and wrong password produce identical 401 bodies.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from api.models import LoginRequest, LoginResponse, MessageResponse, RegisterRequest, UserInfoResponse
from auth.dependencies import get_auth_service, get_current_user
from auth.models import PublicUser
from auth.service import AuthService

# Auth policy:
# - POST /users/register: public
# - POST /users/login:    public
# - GET  /users/getInfo:  requires Bearer token (get_current_user)
router = APIRouter()


@router.post("/users/register", response_model=MessageResponse, status_code=201)
def register(body: RegisterRequest, service: AuthService = Depends(get_auth_service)) -> MessageResponse:
    """Register a new account. Does not log the user in."""
    service.register(body.email, body.password, body.username, body.name)
    return MessageResponse(message="User registered.")


@router.post("/users/login", response_model=LoginResponse)
def login(body: LoginRequest, service: AuthService = Depends(get_auth_service)) -> JSONResponse:
    """Authenticate with email and password; return a bearer token."""
    token = service.login(body.email, body.password)
    resp = JSONResponse(status_code=200, content=LoginResponse(token=token).model_dump())
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.get("/users/getInfo", response_model=UserInfoResponse)
def get_info(current_user: PublicUser = Depends(get_current_user)) -> UserInfoResponse:
    """Return identity information for the bearer of the token."""
    return UserInfoResponse.from_public(current_user)
