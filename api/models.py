"""
API request and response models for authcore REST endpoints.

These Pydantic v2 models define the HTTP transport contract only: field
presence, types and an upper bound on size. Semantic rules (email syntax,
password strength, length limits) belong to the domain values in
auth/values.py, so a well-formed body with a bad email reaches the service
and fails there with InvalidValueError -> 400.

Separation of concerns: auth/ models = domain truth; api/ models = API contract.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from auth.models import PublicUser

# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    """Request body for POST /users/register."""

    email: str = Field(max_length=255, examples=["user@example.com"])
    password: str = Field(max_length=255, examples=["Password123!"])
    username: str = Field(max_length=255, examples=["john1337"])
    name: str = Field(max_length=255, examples=["John Doe"])


class LoginRequest(BaseModel):
    """Request body for POST /users/login."""

    email: str = Field(max_length=255, examples=["user@example.com"])
    password: str = Field(min_length=1, max_length=255)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class MessageResponse(BaseModel):
    message: str


class LoginResponse(BaseModel):
    token: str


class UserInfoResponse(BaseModel):
    """Identity of the bearer of a valid token. Never includes the password hash."""

    model_config = ConfigDict(frozen=True)

    id: str
    email: str
    username: str
    name: str

    @classmethod
    def from_public(cls, user: PublicUser) -> "UserInfoResponse":
        return cls(**user.to_dict())


class HealthResponse(BaseModel):
    status: str = "healthy"
    version: str
    components: dict[str, str] = Field(default_factory=dict)


class ErrorDetail(BaseModel):
    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Uniform error envelope returned by every exception handler."""

    error: ErrorDetail
