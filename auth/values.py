"""
auth/values.py -- Self-validating domain values.

Every raw string that enters the auth core passes through one of these
constructors first. Construction either returns a frozen value or raises
InvalidValueError naming the violated rule. Nothing downstream re-validates
or touches the raw strings again.

Length limits mirror the users table (VARCHAR(50)).

Layer rule: no imports from api/ or cache/.
"""

from __future__ import annotations

import re
import uuid
from dataclasses import dataclass, field

from core.errors import InvalidValueError

MAX_FIELD_LENGTH = 50

MIN_PASSWORD_LENGTH = 8
# bcrypt ignores everything past 72 bytes; newer bcrypt releases raise instead.
MAX_PASSWORD_BYTES = 72
PASSWORD_SYMBOLS = '!@#$%^&*(),.?":{}|<>_'

EMAIL_PATTERN = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")

_PASSWORD_ALLOWED = re.compile(r"[A-Za-z0-9" + re.escape(PASSWORD_SYMBOLS) + r"]+")

USER_KIND = "user"


def _require_text(field_name: str, value: str, max_length: int = MAX_FIELD_LENGTH) -> str:
    if not isinstance(value, str) or not value.strip():
        raise InvalidValueError(field_name, "empty", f"{field_name} cannot be empty")
    stripped = value.strip()
    if len(stripped) > max_length:
        raise InvalidValueError(
            field_name,
            "too_long",
            f"{field_name} must be at most {max_length} characters",
        )
    return stripped


@dataclass(frozen=True)
class EntityId:
    """Identifier tagged with the kind of entity it names.

    kind takes part in equality and hashing, so EntityId("user", x) and
    EntityId("account", x) are different identifiers.
    """

    kind: str
    value: str

    def __post_init__(self) -> None:
        if not self.kind or not self.kind.strip():
            raise InvalidValueError("id", "empty", "EntityId kind cannot be empty")
        if not isinstance(self.value, str) or not self.value.strip():
            raise InvalidValueError("id", "empty", f"{self.kind} id cannot be empty")

    @classmethod
    def generate(cls, kind: str) -> EntityId:
        return cls(kind, str(uuid.uuid4()))

    def __str__(self) -> str:
        return self.value


def user_id(value: str) -> EntityId:
    return EntityId(USER_KIND, value)


@dataclass(frozen=True)
class Email:
    """Validated, normalized (stripped, lower-cased) email address."""

    value: str

    def __post_init__(self) -> None:
        normalized = _require_text("email", self.value).lower()
        if not EMAIL_PATTERN.fullmatch(normalized):
            raise InvalidValueError("email", "malformed", "email is not a valid address")
        object.__setattr__(self, "value", normalized)

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class Username:
    value: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "value", _require_text("username", self.value))

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class DisplayName:
    value: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "value", _require_text("name", self.value))

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class Password:
    """A plaintext password on its way to the hasher.

    Never persisted. repr=False keeps it out of logs and tracebacks; the
    plaintext is only reachable through .value.

    Rules: at least 8 characters, at most 72 UTF-8 bytes, one lowercase,
    one uppercase, one digit and one symbol from PASSWORD_SYMBOLS, and no
    characters outside letters, digits and that symbol set.
    """

    value: str = field(repr=False)

    def __post_init__(self) -> None:
        value = self.value
        if not isinstance(value, str) or not value:
            raise InvalidValueError("password", "empty", "password cannot be empty")
        if len(value.encode("utf-8")) > MAX_PASSWORD_BYTES:
            raise InvalidValueError(
                "password", "too_long", f"password must be at most {MAX_PASSWORD_BYTES} bytes"
            )
        weak = (
            len(value) < MIN_PASSWORD_LENGTH
            or not _PASSWORD_ALLOWED.fullmatch(value)
            or not any(c.islower() for c in value)
            or not any(c.isupper() for c in value)
            or not any(c.isdigit() for c in value)
            or not any(c in PASSWORD_SYMBOLS for c in value)
        )
        if weak:
            raise InvalidValueError(
                "password",
                "weak",
                f"password must be at least {MIN_PASSWORD_LENGTH} characters long and include at least "
                "one uppercase letter, one lowercase letter, one number, and one special character",
            )

    def __str__(self) -> str:
        return "********"
