"""
cache/store.py -- SQLite-backed expiring key/value cache.

A small shared cache of opaque byte values with a per-entry TTL. Several
consumers can share one database: every caller prefixes its keys with its
own namespace ("session:...") so entries never collide.

Usage:
    cache = ExpiringCache("authcore_cache.db")
    cache.put("session:abc", b"...", ttl_seconds=900)
    data = cache.get("session:abc")   # returns bytes or None
    cache.purge_expired()             # call periodically to trim old entries

sqlite3 errors (locked database past the busy timeout, unreadable file) are
raised as TransientIOError. Callers on a non-critical path catch it.

One connection is shared by the API worker threads; _lock serializes its use.
"""

import logging
import sqlite3
import threading
import time
from pathlib import Path
from typing import Callable, Optional, Union

from core.errors import TransientIOError

logger = logging.getLogger("authcore.cache")

_DEFAULT_DB = Path(__file__).parent / "authcore_cache.db"
_DEFAULT_TIMEOUT = 1.0

_DDL = """
CREATE TABLE IF NOT EXISTS cache_entries (
    key         TEXT PRIMARY KEY,
    value       BLOB NOT NULL,
    expires_at  REAL NOT NULL
);
"""


class ExpiringCache:
    def __init__(
        self,
        db_path: Union[str, Path] = _DEFAULT_DB,
        timeout: float = _DEFAULT_TIMEOUT,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._clock = clock
        self._lock = threading.Lock()
        uri = str(db_path).startswith("file:")
        try:
            self._conn = sqlite3.connect(db_path, timeout=timeout, check_same_thread=False, uri=uri)
            self._conn.execute("PRAGMA journal_mode=WAL")
            self._conn.execute(_DDL)
            self._conn.commit()
        except sqlite3.Error as exc:
            raise TransientIOError(f"cache unavailable: {exc}") from exc

    def get(self, key: str) -> Optional[bytes]:
        """Return the value for key if it exists and hasn't expired."""
        try:
            with self._lock:
                row = self._conn.execute(
                    "SELECT value, expires_at FROM cache_entries WHERE key = ?",
                    (key,),
                ).fetchone()
        except sqlite3.Error as exc:
            raise TransientIOError(f"cache read failed: {exc}") from exc
        if row is None:
            return None
        value, expires_at = row
        if self._clock() >= expires_at:
            self.delete(key)
            return None
        return bytes(value)

    def put(self, key: str, value: bytes, ttl_seconds: int) -> None:
        """Store value for key, replacing any existing entry."""
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        try:
            with self._lock:
                self._conn.execute(
                    "INSERT OR REPLACE INTO cache_entries (key, value, expires_at) VALUES (?, ?, ?)",
                    (key, sqlite3.Binary(value), self._clock() + ttl_seconds),
                )
                self._conn.commit()
        except sqlite3.Error as exc:
            raise TransientIOError(f"cache write failed: {exc}") from exc

    def delete(self, key: str) -> None:
        try:
            with self._lock:
                self._conn.execute("DELETE FROM cache_entries WHERE key = ?", (key,))
                self._conn.commit()
        except sqlite3.Error as exc:
            raise TransientIOError(f"cache delete failed: {exc}") from exc

    def purge_expired(self) -> int:
        """Delete all expired entries. Returns number of rows removed."""
        try:
            with self._lock:
                cursor = self._conn.execute("DELETE FROM cache_entries WHERE expires_at <= ?", (self._clock(),))
                self._conn.commit()
        except sqlite3.Error as exc:
            raise TransientIOError(f"cache purge failed: {exc}") from exc
        if cursor.rowcount:
            logger.info("Purged %d expired cache entries", cursor.rowcount)
        return cursor.rowcount

    def close(self) -> None:
        with self._lock:
            self._conn.close()
