"""
auth/passwords.py -- bcrypt password hashing and verification.

Security design decisions:
  bcrypt is the right choice for low-entropy secrets (passwords) because its
  cost factor makes offline brute force expensive. Each hash embeds its own
  random salt, so hashing the same password twice yields two different
  strings that both verify.

  Work factor: Settings.bcrypt_rounds (default 10, roughly tens of
  milliseconds per call on current hardware). Tests drop it to 4.

  Constant time: bcrypt.checkpw compares digests with hmac.compare_digest,
  so verification time does not depend on where a mismatch occurs.

  Errors are not passwords: a malformed stored hash raises HashingError.
  verify() returns False only for a genuine mismatch -- treating a corrupt
  hash as "wrong password" would hide data corruption behind a 401.

Using bcrypt directly rather than passlib[bcrypt] because passlib's internal
wrap-bug detection trips over bcrypt 4.x.

Layer rule: no imports from api/ or admission/.
"""

from __future__ import annotations

import logging

import bcrypt

from auth.errors import HashingError
from core.config import Settings

logger = logging.getLogger("authgate.auth")

# bcrypt only reads the first 72 bytes. Newer bcrypt releases raise instead of
# truncating, so both hash() and verify() cut the input at the same place.
_BCRYPT_MAX_BYTES = 72


def _encode(plain: str) -> bytes:
    return plain.encode("utf-8")[:_BCRYPT_MAX_BYTES]


class PasswordHasher:
    """Hash and verify passwords with a configurable bcrypt work factor.

    Usage:
        hasher = PasswordHasher(settings)
        stored = hasher.hash("secret1")
        hasher.verify("secret1", stored)   # True
    """

    def __init__(self, settings: Settings) -> None:
        self.rounds = settings.bcrypt_rounds
        # Timing equalization hash [C1]. Computed once so the first login
        # against an unknown email costs the same as any other.
        self._dummy_hash = self.hash("authgate_timing_dummy")

    def hash(self, plain: str) -> str:
        """Return a salted bcrypt hash of plain."""
        try:
            return bcrypt.hashpw(_encode(plain), bcrypt.gensalt(rounds=self.rounds)).decode("utf-8")
        except (ValueError, TypeError) as exc:
            logger.error("Password hashing failed: %s", type(exc).__name__)
            raise HashingError("Error hashing password") from exc

    def verify(self, plain: str, hashed: str) -> bool:
        """Return True if plain matches hashed, False on a genuine mismatch.

        Raises HashingError if hashed is not a usable bcrypt hash.
        """
        try:
            return bcrypt.checkpw(_encode(plain), hashed.encode("utf-8"))
        except (ValueError, TypeError) as exc:
            logger.error("Password verification failed: %s", type(exc).__name__)
            raise HashingError("Error verifying password") from exc

    def burn(self, plain: str) -> None:
        """Spend one verify's worth of time without a real hash.

        Called when the email is unknown so the response time matches the
        wrong-password path [C1].
        """
        self.verify(plain, self._dummy_hash)
