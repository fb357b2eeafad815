"""
auth/passwords.py -- bcrypt password hashing.

Using bcrypt directly rather than passlib[bcrypt]: passlib's wrap-bug detection
feeds bcrypt a password longer than 72 bytes, which current bcrypt releases
reject outright.

bcrypt only looks at the first 72 bytes of its input. Newer releases raise on
longer input instead of truncating, so both hash() and verify() truncate the
UTF-8 encoding to 72 bytes themselves. The API caps passwords at 72 characters,
but multi-byte characters can still exceed 72 bytes.

Timing equalization [C1]: verify_dummy() runs a full bcrypt check against a
hash computed at construction, so a login for an unknown principal costs the
same as a login with a wrong password.
"""

from __future__ import annotations

import logging

import bcrypt

logger = logging.getLogger("authgate.auth")

_BCRYPT_MAX_BYTES = 72


def _encode(plain: str) -> bytes:
    return plain.encode("utf-8")[:_BCRYPT_MAX_BYTES]


class BcryptHasher:
    """One-way password hashing. rounds=4 is the bcrypt minimum -- tests only."""

    def __init__(self, rounds: int = 12) -> None:
        self.rounds = rounds
        self._dummy_hash = self.hash("authgate_timing_dummy")

    def hash(self, plain: str) -> str:
        return bcrypt.hashpw(_encode(plain), bcrypt.gensalt(rounds=self.rounds)).decode("utf-8")

    def verify(self, plain: str, hashed: str) -> bool:
        """Return True if the plaintext matches the hash. A corrupt hash is a mismatch."""
        try:
            return bcrypt.checkpw(_encode(plain), hashed.encode("utf-8"))
        except ValueError:
            logger.error("Stored password hash is not a valid bcrypt hash")
            return False

    def verify_dummy(self, plain: str) -> None:
        """Burn one bcrypt check. Always call when the user does not exist [C1]."""
        bcrypt.checkpw(_encode(plain), self._dummy_hash.encode("utf-8"))
