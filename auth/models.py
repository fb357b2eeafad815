"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). The store and service
do the work; these own the domain shape.

Layer rule: no imports from api/.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class TokenType(str, Enum):
    """Token class. Each class is signed with its own secret."""

    ACCESS = "access"
    REFRESH = "refresh"


@dataclass
class User:
    """A registered account.

    username and email are unique case-insensitively; the store enforces this
    with unique indexes on lower(username) / lower(email).

    hashed_password is the bcrypt hash -- the plaintext is never stored.
    enabled=False blocks login and refresh; toggling it is an admin concern
    (see main.py enable-user / disable-user).
    """

    username: str
    email: str
    hashed_password: str
    phone: str = ""
    id: int | None = None
    enabled: bool = True
    created_at: str | None = None


@dataclass(frozen=True)
class TokenClaims:
    """Verified contents of a signed token. Immutable once signed."""

    subject: str
    token_type: TokenType
    issued_at: datetime
    expires_at: datetime


@dataclass(frozen=True)
class TokenPair:
    """Access + refresh tokens issued together for one user.

    expires_in is the access token lifetime in seconds.
    """

    user_id: int
    access_token: str
    refresh_token: str
    expires_in: int
