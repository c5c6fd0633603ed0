"""
auth/service.py -- Register, login and session resolution.

AuthService holds no per-request state. Each call is a short sequential
flow over the store, hasher, issuer and (optional) session cache:

  register(email, password, username, name)
      values -> find_by_email -> hash -> User.create -> insert
      The existence check runs before hashing so rejected requests cost no
      bcrypt work. It is not a lock: the store's unique index still decides
      races, and insert() reports the loser as DuplicateEntityError.

  login(email, password) -> token
      Email value -> find_by_email -> verify -> stamp claims -> issue ->
      cache put (best effort). Unknown email and wrong password are distinct
      errors here (NotFoundError / UnauthorizedError) but the HTTP layer gives
      both the same body.

  resolve_session(token) -> PublicUser
      cache get (hit skips verification) -> verify on miss -> cache put (best
      effort) -> find_by_email -> public fields.

Error policy:
  Value errors propagate before any I/O. Store failures propagate unchanged.
  Cache failures are logged and ignored: the cache only saves verification
  work, so losing it costs latency, never correctness.

Layer rule: no imports from api/. cache/ is imported only for wiring in
from_settings(); the service itself only calls put()/get() on whatever
session cache it is given.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional

from auth.models import PublicUser, SessionClaims, User
from auth.passwords import PasswordHasher
from auth.store import UserStore
from auth.tokens import TokenIssuer
from auth.values import DisplayName, Email, Password, Username
from cache.sessions import SessionCache
from cache.store import ExpiringCache
from core.errors import (
    DuplicateEntityError,
    NotFoundError,
    TransientIOError,
    UnauthorizedError,
    VerificationError,
)

if TYPE_CHECKING:
    from core.config import Settings

logger = logging.getLogger("authcore.auth")


class AuthService:
    """Orchestrates the credential and session core.

    Usage:
        service = AuthService(store, PasswordHasher(), TokenIssuer(secret, 900), session_cache)
        service.register("a@b.com", "Passw0rd!", "abc", "A B")
        token = service.login("a@b.com", "Passw0rd!")
        me = service.resolve_session(token)
    """

    def __init__(
        self,
        store: UserStore,
        hasher: PasswordHasher,
        issuer: TokenIssuer,
        cache: Optional[SessionCache] = None,
    ) -> None:
        if cache is not None and cache.ttl_seconds != issuer.lifetime_seconds:
            raise ValueError(
                f"Session cache TTL ({cache.ttl_seconds}s) must equal the token lifetime "
                f"({issuer.lifetime_seconds}s)."
            )
        self.store = store
        self.hasher = hasher
        self.issuer = issuer
        self.cache = cache

    @classmethod
    def from_settings(cls, settings: Settings) -> AuthService:
        """Build a service from configuration.

        The cache TTL is taken from the issuer's lifetime, so both always
        come from JWT_ACCESS_EXPIRATION.
        """
        store = UserStore(settings.database_url, timeout=settings.store_timeout_seconds)
        issuer = TokenIssuer(
            settings.jwt_secret,
            lifetime_seconds=settings.access_token_ttl_seconds,
            algorithm=settings.jwt_algorithm,
        )
        cache: Optional[SessionCache] = None
        if settings.cache_enabled:
            try:
                backend = ExpiringCache(settings.cache_db_path, timeout=settings.cache_timeout_seconds)
            except TransientIOError:
                logger.warning("Session cache unavailable at startup -- continuing without it")
            else:
                cache = SessionCache(backend, ttl_seconds=issuer.lifetime_seconds, namespace=settings.cache_namespace)
        return cls(store, PasswordHasher(rounds=settings.bcrypt_rounds), issuer, cache)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def register(self, email: str, password: str, username: str, name: str) -> None:
        """Create an account. Raises InvalidValueError or DuplicateEntityError."""
        email_value = Email(email)
        password_value = Password(password)
        username_value = Username(username)
        name_value = DisplayName(name)

        if self.store.find_by_email(email_value) is not None:
            logger.info("Registration rejected: email already registered")
            raise DuplicateEntityError("User", "email")

        password_hash = self.hasher.hash(password_value.value)
        user = User.create(email_value, password_hash, username_value, name_value)
        self.store.insert(user)
        logger.info("User registered id=%s", user.id)

    def login(self, email: str, password: str) -> str:
        """Return an access token. Raises NotFoundError or UnauthorizedError."""
        email_value = Email(email)

        user = self.store.find_by_email(email_value)
        if user is None:
            self.hasher.burn(password)
            logger.info("Login failed: unknown email")
            raise NotFoundError("User")

        if not self.hasher.verify(password, user.password_hash):
            logger.info("Login failed: wrong password for id=%s", user.id)
            raise UnauthorizedError("invalid credentials")

        claims = self.issuer.stamp(SessionClaims.from_user(user))
        token = self.issuer.issue(claims)
        self._remember(token, claims)
        logger.info("Login succeeded id=%s", user.id)
        return token

    def resolve_session(self, token: str) -> PublicUser:
        """Return the public fields of the token's owner.

        Raises UnauthorizedError for any rejected token and NotFoundError if
        the account no longer exists.
        """
        claims = self._recall(token)
        if claims is None:
            try:
                claims = self.issuer.verify(token)
            except VerificationError as exc:
                logger.info("Token rejected: %s", type(exc).__name__)
                raise UnauthorizedError("invalid token") from exc
            self._remember(token, claims)

        user = self.store.find_by_email(Email(claims.email))
        if user is None or user.id.value != claims.subject_id:
            logger.info("Token valid but user id=%s no longer exists", claims.subject_id)
            raise NotFoundError("User")
        return user.to_public()

    # ------------------------------------------------------------------
    # Best-effort cache access
    # ------------------------------------------------------------------

    def _remember(self, token: str, claims: SessionClaims) -> None:
        if self.cache is None:
            return
        try:
            self.cache.put(token, claims, self.issuer.lifetime_seconds)
        except TransientIOError as exc:
            logger.warning("Session cache write failed, continuing: %s", exc)

    def _recall(self, token: str) -> Optional[SessionClaims]:
        if self.cache is None:
            return None
        try:
            return self.cache.get(token)
        except TransientIOError as exc:
            logger.warning("Session cache read failed, verifying token instead: %s", exc)
            return None
