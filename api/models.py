"""
API request and response models for the authgate REST endpoints.

These Pydantic v2 models define the HTTP transport contract. They are
intentionally separate from the dataclasses in auth/models.py, which own the
internal domain representation. Route handlers map between the two.

Wire format is camelCase (accessToken, refreshToken, errorCode, ...). Python
attribute names stay snake_case; the alias generator does the mapping and
populate_by_name lets tests and internal callers use either form.
"""

import re
from typing import Literal

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel

from auth.models import TokenPair

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

USERNAME_PATTERN = r"^[a-zA-Z0-9_]{3,20}$"
PHONE_PATTERN = r"^\+?[0-9]{11}$"

# Allowed password alphabet and the required character classes. Checked in a
# validator rather than one lookahead regex: pydantic's pattern engine has no
# look-around support.
_PASSWORD_ALPHABET = re.compile(r"^[A-Za-z\d@$!%*?&]+$")
_PASSWORD_CLASSES = (
    (re.compile(r"[a-z]"), "one lowercase letter"),
    (re.compile(r"[A-Z]"), "one uppercase letter"),
    (re.compile(r"\d"), "one digit"),
    (re.compile(r"[@$!%*?&]"), "one special character (@$!%*?&)"),
)


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class RegisterRequest(_CamelModel):
    """Request body for POST /auth/register."""

    username: str = Field(pattern=USERNAME_PATTERN, description="3-20 letters, digits or underscores.")
    # 72 is bcrypt's input limit.
    password: str = Field(min_length=8, max_length=72)
    email: EmailStr
    phone: str = Field(pattern=PHONE_PATTERN, description="11 digits, optional leading +.")

    @field_validator("password")
    @classmethod
    def password_strength(cls, value: str) -> str:
        """Require lower, upper, digit and special character from a fixed alphabet."""
        if not _PASSWORD_ALPHABET.match(value):
            raise ValueError("password may only contain letters, digits and @$!%*?&")
        missing = [label for pattern, label in _PASSWORD_CLASSES if not pattern.search(value)]
        if missing:
            raise ValueError("password must contain at least " + ", ".join(missing))
        return value


class LoginRequest(_CamelModel):
    """Request body for POST /auth/login. principal is an email or a username."""

    principal: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=1, max_length=255)

    @field_validator("principal")
    @classmethod
    def principal_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("principal must not be blank")
        return value


class RefreshRequest(_CamelModel):
    """Request body for POST /auth/refresh."""

    refresh_token: str = Field(min_length=1)

    @field_validator("refresh_token")
    @classmethod
    def token_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("refreshToken must not be blank")
        return value


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class TokenResponse(_CamelModel):
    """Token pair returned by register, login and refresh."""

    model_config = ConfigDict(frozen=True)

    id: int
    access_token: str
    refresh_token: str
    token_type: Literal["Bearer"] = "Bearer"
    expires_in: int = Field(description="Access token lifetime in seconds.")

    @classmethod
    def from_pair(cls, pair: TokenPair) -> "TokenResponse":
        return cls(
            id=pair.user_id,
            access_token=pair.access_token,
            refresh_token=pair.refresh_token,
            expires_in=pair.expires_in,
        )


class ErrorResponse(_CamelModel):
    """Error envelope returned on every 4xx/5xx response.

    timestamp is epoch milliseconds; status repeats the HTTP status code.
    """

    model_config = ConfigDict(frozen=True)

    error_code: str
    message: str
    timestamp: int
    status: int


class HealthResponse(BaseModel):
    """Response for GET /health."""

    model_config = ConfigDict(frozen=True)

    status: str = "ok"
    version: str
