"""
tests/conftest.py -- Shared test fixtures for authcore.

This module provides:
  - clock: a settable FakeClock injected into the issuer and caches
  - jwt_secret / token_lifetime: the signing secret and lifetime the core uses
  - make_store(): isolated named shared-memory UserStore per test
  - service / issuer / session_cache: the core wired with fast bcrypt rounds
  - api_client: TestClient against the real FastAPI app with a patched lifespan

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs sync route handlers in a thread pool. Plain :memory:
DBs are per-connection and would present a blank schema to each worker
thread. Each store gets a uuid-suffixed name so tests never share rows.

DEBUG and ALLOWED_HOSTS must be set before any authcore import so
get_settings() auto-generates JWT_SECRET and TrustedHostMiddleware accepts
the TestClient host.
"""

from __future__ import annotations

import asyncio
import os
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager

# CRITICAL: set before any auth/core/api import.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("ALLOWED_HOSTS", '["testserver", "localhost"]')

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.passwords import PasswordHasher
from auth.service import AuthService
from auth.store import UserStore
from auth.tokens import TokenIssuer
from cache.sessions import SessionCache
from cache.store import ExpiringCache

_TEST_SECRET = "test-secret-key-that-is-at-least-32-chars"
_TOKEN_LIFETIME = 900
_START_TIME = 1_700_000_000.0


class FakeClock:
    """Callable clock returning a settable epoch time."""

    def __init__(self, now: float = _START_TIME) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_store(prefix: str = "users") -> UserStore:
    return UserStore(db_url=f"sqlite:///file:{prefix}_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true")


# ---------------------------------------------------------------------------
# Core fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session")
def jwt_secret() -> str:
    return _TEST_SECRET


@pytest.fixture(scope="session")
def token_lifetime() -> int:
    return _TOKEN_LIFETIME


@pytest.fixture(scope="session")
def hasher() -> PasswordHasher:
    """bcrypt at the minimum cost factor; the algorithm is the same, just faster."""
    return PasswordHasher(rounds=4)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> Generator[UserStore, None, None]:
    s = make_store()
    yield s
    s.close()


@pytest.fixture
def issuer(clock: FakeClock) -> TokenIssuer:
    return TokenIssuer(_TEST_SECRET, lifetime_seconds=_TOKEN_LIFETIME, clock=clock)


@pytest.fixture
def cache_backend(clock: FakeClock) -> Generator[ExpiringCache, None, None]:
    backend = ExpiringCache(":memory:", clock=clock)
    yield backend
    backend.close()


@pytest.fixture
def session_cache(cache_backend: ExpiringCache, clock: FakeClock) -> SessionCache:
    return SessionCache(cache_backend, ttl_seconds=_TOKEN_LIFETIME, clock=clock)


@pytest.fixture
def service(
    store: UserStore, hasher: PasswordHasher, issuer: TokenIssuer, session_cache: SessionCache
) -> AuthService:
    return AuthService(store, hasher, issuer, session_cache)


# ---------------------------------------------------------------------------
# API fixture
# ---------------------------------------------------------------------------


def _patch_lifespan(service: AuthService):
    """Return an async context manager that replaces the real lifespan.

    Wires the test AuthService into app.state so routes see isolated stores
    instead of the configured databases. The purge_task is a long-sleeping
    coroutine so shutdown can cancel a real asyncio.Task.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.auth_service = service
        app.state.purge_task = asyncio.create_task(asyncio.sleep(99999))
        yield
        app.state.purge_task.cancel()

    return test_lifespan


@pytest.fixture
def api_client(hasher: PasswordHasher) -> Generator[tuple[TestClient, AuthService], None, None]:
    """Yield (client, service) backed by fresh in-memory stores.

    Uses the real clock: routes are exercised end to end, time travel is
    covered by the unit tests.
    """
    store = make_store("api")
    backend = ExpiringCache(":memory:")
    issuer = TokenIssuer(_TEST_SECRET, lifetime_seconds=_TOKEN_LIFETIME)
    service = AuthService(store, hasher, issuer, SessionCache(backend, ttl_seconds=_TOKEN_LIFETIME))

    app.router.lifespan_context = _patch_lifespan(service)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, service

    backend.close()
    store.close()
