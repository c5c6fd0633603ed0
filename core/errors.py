"""
core/errors.py -- Error taxonomy shared by auth/, cache/ and api/.

The core raises these; it never decides HTTP status codes. api/main.py owns
the mapping table from error kind to status.

  InvalidValueError     bad input; the caller can fix it
  DuplicateEntityError  identity conflict (e.g. email already registered)
  NotFoundError         missing entity
  UnauthorizedError     credential or token failure
  TransientIOError      store or cache unreachable / timed out; safe to retry
  VerificationError     token rejected by the verifier; subtypes keep the
                        reason for logs, the service surfaces all of them as
                        UnauthorizedError

Layer rule: core/ is the kernel. No imports from api/, auth/ or cache/.
"""

from __future__ import annotations


class AuthError(Exception):
    """Base class for every error the authcore core raises on purpose."""


class InvalidValueError(AuthError, ValueError):
    """A domain value failed construction.

    rule is one of "empty", "too_long", "malformed", "weak".
    """

    def __init__(self, field: str, rule: str, message: str) -> None:
        self.field = field
        self.rule = rule
        super().__init__(message)


class DuplicateEntityError(AuthError):
    def __init__(self, entity: str, field: str) -> None:
        self.entity = entity
        self.field = field
        super().__init__(f"{entity} with this {field} already exists")


class NotFoundError(AuthError):
    def __init__(self, entity: str) -> None:
        self.entity = entity
        super().__init__(f"{entity} not found")


class UnauthorizedError(AuthError):
    def __init__(self, reason: str = "unauthorized") -> None:
        self.reason = reason
        super().__init__(reason)


class TransientIOError(AuthError):
    """The repository or cache could not be reached in time."""


class VerificationError(AuthError):
    """A presented token did not pass verification."""


class MalformedTokenError(VerificationError):
    pass


class TamperedTokenError(VerificationError):
    pass


class ExpiredTokenError(VerificationError):
    pass
