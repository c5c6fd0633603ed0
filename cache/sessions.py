"""
cache/sessions.py -- Session cache: access token -> verified SessionClaims.

An optimization, never an authority. An entry means "this token passed
verification and had not expired when it was stored". Nothing here checks
signatures, and the service stays correct with no SessionCache at all.

TTL rules:
  ttl_seconds is fixed at construction from the same JWT_ACCESS_EXPIRATION
  the issuer uses. put() additionally clamps the TTL to the time left until
  the claims' expires_at, so an entry written late in a token's life (a cache
  miss on resolve) still dies no later than the token. get() re-checks
  expires_at against the clock before returning anything.

Keys are "<namespace>:<sha256(token)>". The raw token is never written to
the cache database.

Layer rule: cache/ may import auth.models and core/; never api/.
"""

from __future__ import annotations

import hashlib
import json
import logging
import time
from typing import Callable, Optional

from auth.models import SessionClaims
from cache.store import ExpiringCache

logger = logging.getLogger("authcore.cache")


class SessionCache:
    def __init__(
        self,
        backend: ExpiringCache,
        ttl_seconds: int,
        namespace: str = "session",
        clock: Callable[[], float] = time.time,
    ) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self._backend = backend
        self.ttl_seconds = ttl_seconds
        self.namespace = namespace
        self._clock = clock

    def _key(self, token: str) -> str:
        return f"{self.namespace}:{hashlib.sha256(token.encode('utf-8')).hexdigest()}"

    def put(self, token: str, claims: SessionClaims, ttl: int) -> None:
        """Write-through store of claims for token, overwriting any entry.

        Raises TransientIOError if the backend is unreachable.
        """
        ttl = min(ttl, self.ttl_seconds)
        if claims.expires_at is not None:
            ttl = min(ttl, int(claims.expires_at - self._clock()))
        if ttl <= 0:
            return
        payload = json.dumps(claims.to_dict()).encode("utf-8")
        self._backend.put(self._key(token), payload, ttl)

    def get(self, token: str) -> Optional[SessionClaims]:
        """Return cached claims for token, or None.

        Raises TransientIOError if the backend is unreachable.
        """
        raw = self._backend.get(self._key(token))
        if raw is None:
            return None
        try:
            claims = SessionClaims.from_dict(json.loads(raw))
        except (ValueError, KeyError, TypeError):
            logger.warning("Discarding unreadable session cache entry")
            self._backend.delete(self._key(token))
            return None
        if claims.expires_at is not None and self._clock() >= claims.expires_at:
            return None
        return claims

    def purge_expired(self) -> int:
        return self._backend.purge_expired()

    def close(self) -> None:
        self._backend.close()
