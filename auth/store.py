"""
auth/store.py -- SQLAlchemy Core persistence layer for users.

Pattern: Repository + Data Mapper.
UserStore is the repository; _row_to_user is the mapper. The service never
touches SQL directly.

Uniqueness:
  The UNIQUE index on users.email is the source of truth for "one account
  per email". AuthService.register checks for an existing row first, but two
  concurrent registrations can both pass that check. The second INSERT then
  fails with IntegrityError, which insert() reports as DuplicateEntityError.

Timeouts:
  Every connection is opened with a bounded wait (SQLite busy timeout, pool
  checkout timeout elsewhere). Running out of time, losing the connection or
  a locked database surface as TransientIOError, never as "not found".

Security:
  All queries use bound parameters. No f-strings in SQL.

Layer rule: no imports from api/ or cache/.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from sqlalchemy import Column, MetaData, String, Table, create_engine, event, select, text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError

from auth.models import User
from auth.values import DisplayName, Email, Username, user_id
from core.errors import DuplicateEntityError, TransientIOError

logger = logging.getLogger("authcore.auth")

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).parent / 'authcore.db'}"
_DEFAULT_TIMEOUT = 5.0

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", String(36), primary_key=True),  # UUID4 string
    Column("email", String(50), nullable=False, unique=True),
    Column("username", String(50), nullable=False),
    Column("name", String(50), nullable=False),
    Column("password_hash", String(255), nullable=False),
)


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode so readers do not block behind a writer.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User entities.

    Usage:
        store = UserStore("sqlite:///authcore.db")
        store.insert(User.create(email, hasher.hash(password.value), username, name))
        user = store.find_by_email(Email("a@b.com"))
        store.close()
    """

    def __init__(self, db_url: str = _DEFAULT_DB_URL, timeout: float = _DEFAULT_TIMEOUT) -> None:
        connect_args: dict = {}
        engine_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
            connect_args["timeout"] = timeout
        else:
            engine_args["pool_timeout"] = timeout
            engine_args["pool_pre_ping"] = True
        self.engine: Engine = create_engine(db_url, connect_args=connect_args, **engine_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        try:
            _metadata.create_all(self.engine)
        except OperationalError as exc:
            raise TransientIOError(f"user store unavailable: {exc}") from exc

    @contextmanager
    def _connect(self) -> Iterator[Connection]:
        """Yield a connection, translating I/O failures into TransientIOError."""
        try:
            with self.engine.connect() as conn:
                yield conn
        except IntegrityError:
            raise
        except (OperationalError, PoolTimeoutError) as exc:
            raise TransientIOError(f"user store unavailable: {exc}") from exc
        except DBAPIError as exc:
            if exc.connection_invalidated:
                raise TransientIOError(f"user store connection lost: {exc}") from exc
            raise

    # ------------------------------------------------------------------
    # User queries
    # ------------------------------------------------------------------

    def find_by_email(self, email: Email) -> User | None:
        """Look up a user by normalized email. Returns None if not found."""
        with self._connect() as conn:
            row = conn.execute(select(_users).where(_users.c.email == email.value)).fetchone()
        return _row_to_user(row) if row is not None else None

    def insert(self, user: User) -> None:
        """Persist a new user.

        Raises DuplicateEntityError("User", "email") if the email is already
        taken, including when a concurrent request won the race.
        """
        try:
            with self._connect() as conn:
                conn.execute(
                    _users.insert().values(
                        id=user.id.value,
                        email=user.email.value,
                        username=user.username.value,
                        name=user.name.value,
                        password_hash=user.password_hash,
                    )
                )
                conn.commit()
        except IntegrityError as exc:
            logger.info("Insert rejected by unique constraint on users.email")
            raise DuplicateEntityError("User", "email") from exc

    def ping(self) -> bool:
        """Return True if the database answers a trivial query."""
        try:
            with self._connect() as conn:
                conn.execute(text("SELECT 1"))
        except (TransientIOError, DBAPIError) as exc:
            logger.warning("User store ping failed: %s", exc)
            return False
        return True

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=user_id(row.id),
        email=Email(row.email),
        username=Username(row.username),
        name=DisplayName(row.name),
        password_hash=row.password_hash,
    )
