"""
auth/tokens.py -- Signed access tokens (JWT via python-jose).

Tokens carry the SessionClaims of one user plus iat/exp:

    {"sub": <user id>, "email": ..., "username": ..., "name": ..., "iat": ..., "exp": ...}

Verification order is fixed: structure, then signature, then expiry. Each
stage raises its own VerificationError subtype so logs can tell a garbled
header from a forged signature from an old token. The service layer turns
all three into the same UnauthorizedError.

Expiry is checked here against the injected clock rather than inside
jwt.decode so tests can move time without sleeping, and so the session cache
and the verifier agree on the exact second a token dies: a token is expired
once clock() >= exp.

The secret and algorithm come from core.config.Settings; nothing here is
hardcoded beyond the claim names.

Layer rule: no imports from api/ or cache/.
"""

from __future__ import annotations

import time
from typing import Callable

from jose import JWTError, jwt
from jose.exceptions import JWTClaimsError

from auth.models import SessionClaims
from core.errors import ExpiredTokenError, MalformedTokenError, TamperedTokenError

_REQUIRED_CLAIMS = ("sub", "email", "username", "name")


class TokenIssuer:
    """Issues and verifies access tokens for a fixed lifetime.

    Usage:
        issuer = TokenIssuer(secret, lifetime_seconds=900)
        token = issuer.issue(SessionClaims.from_user(user))
        claims = issuer.verify(token)   # raises VerificationError subtypes
    """

    def __init__(
        self,
        secret: str,
        lifetime_seconds: int,
        algorithm: str = "HS256",
        clock: Callable[[], float] = time.time,
    ) -> None:
        if lifetime_seconds <= 0:
            raise ValueError("Token lifetime must be positive.")
        self._secret = secret
        self.algorithm = algorithm
        self.lifetime_seconds = lifetime_seconds
        self._clock = clock

    def stamp(self, claims: SessionClaims) -> SessionClaims:
        """Return claims with expires_at set to now + lifetime."""
        return claims.with_expiry(int(self._clock()) + self.lifetime_seconds)

    def issue(self, claims: SessionClaims) -> str:
        """Sign claims into a token. Unstamped claims are stamped first."""
        if claims.expires_at is None:
            claims = self.stamp(claims)
        payload = {
            "sub": claims.subject_id,
            "email": claims.email,
            "username": claims.username,
            "name": claims.name,
            "iat": claims.expires_at - self.lifetime_seconds,
            "exp": claims.expires_at,
        }
        return jwt.encode(payload, self._secret, algorithm=self.algorithm)

    def verify(self, token: str) -> SessionClaims:
        """Return the claims of a valid token.

        Raises MalformedTokenError, TamperedTokenError or ExpiredTokenError.
        """
        try:
            jwt.get_unverified_header(token)
            jwt.get_unverified_claims(token)
        except JWTError as exc:
            raise MalformedTokenError("token is not a decodable JWT") from exc

        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self.algorithm],
                options={"verify_exp": False},
            )
        except JWTClaimsError as exc:
            raise MalformedTokenError(f"token claims are invalid: {exc}") from exc
        except JWTError as exc:
            raise TamperedTokenError("token signature verification failed") from exc

        exp = payload.get("exp")
        if not isinstance(exp, int) or isinstance(exp, bool):
            raise MalformedTokenError("token has no integer exp claim")
        missing = [name for name in _REQUIRED_CLAIMS if not isinstance(payload.get(name), str)]
        if missing:
            raise MalformedTokenError(f"token is missing claims: {', '.join(missing)}")

        if self._clock() >= exp:
            raise ExpiredTokenError("token has expired")

        return SessionClaims(
            subject_id=payload["sub"],
            email=payload["email"],
            username=payload["username"],
            name=payload["name"],
            expires_at=exp,
        )
