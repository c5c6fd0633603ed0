"""
auth/models.py -- User aggregate and the session data derived from it.

Pattern: frozen dataclasses. A User is built once (User.create on
registration, or the store's row mapper on lookup) and never mutated; an
update would be a new construction plus a repository write.

  User          aggregate root; password_hash is always hasher output
  SessionClaims identity facts carried inside a signed token
  PublicUser    what resolve_session hands back -- no password hash

Layer rule: no imports from api/ or cache/.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, replace
from typing import Optional

from auth.values import USER_KIND, DisplayName, Email, EntityId, Username
from core.errors import InvalidValueError


@dataclass(frozen=True)
class User:
    id: EntityId
    email: Email
    username: Username
    name: DisplayName
    password_hash: str = field(repr=False)

    def __post_init__(self) -> None:
        if self.id.kind != USER_KIND:
            raise InvalidValueError("id", "malformed", f"expected a {USER_KIND} id, got {self.id.kind}")
        if not isinstance(self.password_hash, str) or not self.password_hash:
            raise InvalidValueError("password_hash", "empty", "password hash cannot be empty")

    @classmethod
    def create(cls, email: Email, password_hash: str, username: Username, name: DisplayName) -> User:
        """Assemble a new User with a freshly generated id. No I/O."""
        return cls(
            id=EntityId.generate(USER_KIND),
            email=email,
            username=username,
            name=name,
            password_hash=password_hash,
        )

    def to_public(self) -> PublicUser:
        return PublicUser(
            id=self.id.value,
            email=self.email.value,
            username=self.username.value,
            name=self.name.value,
        )


@dataclass(frozen=True)
class SessionClaims:
    """Claims embedded in an access token.

    expires_at is epoch seconds. It is None until the token issuer stamps it;
    claims returned by verification always carry it.
    """

    subject_id: str
    email: str
    username: str
    name: str
    expires_at: Optional[int] = None

    @classmethod
    def from_user(cls, user: User) -> SessionClaims:
        return cls(
            subject_id=user.id.value,
            email=user.email.value,
            username=user.username.value,
            name=user.name.value,
        )

    def with_expiry(self, expires_at: int) -> SessionClaims:
        return replace(self, expires_at=expires_at)

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> SessionClaims:
        return cls(
            subject_id=data["subject_id"],
            email=data["email"],
            username=data["username"],
            name=data["name"],
            expires_at=data.get("expires_at"),
        )


@dataclass(frozen=True)
class PublicUser:
    id: str
    email: str
    username: str
    name: str

    def to_dict(self) -> dict:
        return asdict(self)
