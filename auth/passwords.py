"""
auth/passwords.py -- Password hashing with bcrypt.

Using bcrypt directly rather than passlib[bcrypt]: passlib's wrap-bug
detection builds a password longer than 72 bytes, which bcrypt 4.x rejects.

  hash()   bcrypt.hashpw with a fresh salt. The output embeds the cost factor
           and salt ($2b$<rounds>$<salt+digest>), so verify() needs nothing
           else.
  verify() bcrypt.checkpw, which compares digests in constant time.
           A stored hash bcrypt cannot parse is a corrupted record, not a
           wrong password. It is logged as such, but the caller still only
           sees False so the response never reveals which case occurred.
  burn()   Runs a full verify against a dummy hash. Login calls it when the
           email is unknown so response time does not reveal whether an
           account exists.

Layer rule: no imports from api/ or cache/.
"""

from __future__ import annotations

import logging

import bcrypt

from auth.values import MAX_PASSWORD_BYTES

logger = logging.getLogger("authcore.auth")

DEFAULT_ROUNDS = 10


class PasswordHasher:
    def __init__(self, rounds: int = DEFAULT_ROUNDS) -> None:
        self.rounds = rounds
        # Computed once so the first unknown-email login is not measurably
        # slower than later ones.
        self._dummy_hash = self.hash("authcore_timing_dummy")

    def hash(self, plain: str) -> str:
        """Return a salted bcrypt hash of plain."""
        return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt(rounds=self.rounds)).decode("utf-8")

    def verify(self, plain: str, hashed: str) -> bool:
        """Return True if plain matches hashed."""
        candidate = plain.encode("utf-8")
        if len(candidate) > MAX_PASSWORD_BYTES:
            # Could never have been hashed; registration rejects it.
            return False
        try:
            return bcrypt.checkpw(candidate, hashed.encode("utf-8"))
        except ValueError:
            logger.error("Corrupted password hash record; treating as a failed match")
            return False

    def burn(self, plain: str) -> None:
        """Spend one verify's worth of work against the dummy hash."""
        self.verify(plain, self._dummy_hash)
