"""
auth/errors.py -- Domain failures raised by AuthService.

Each failure carries a stable ErrorCode and the HTTP status it maps to. The
api/ layer renders every AuthError into the same error envelope, so adding a
code here is the only change needed to expose a new failure.

Anti-enumeration: INVALID_CREDENTIALS and INVALID_REFRESH_TOKEN deliberately
cover several internal reasons (unknown user, wrong password, bad signature,
expired token, ...). The reason is logged, never returned.
"""

from __future__ import annotations

from enum import Enum


class ErrorCode(str, Enum):
    USER_ALREADY_EXISTS = "USER_ALREADY_EXISTS"
    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"
    INVALID_REFRESH_TOKEN = "INVALID_REFRESH_TOKEN"
    USER_DISABLED = "USER_DISABLED"
    INVALID_INPUT = "INVALID_INPUT"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    INTERNAL_ERROR = "INTERNAL_ERROR"


_STATUS: dict[ErrorCode, int] = {
    ErrorCode.USER_ALREADY_EXISTS: 409,
    ErrorCode.INVALID_CREDENTIALS: 401,
    ErrorCode.INVALID_REFRESH_TOKEN: 401,
    ErrorCode.USER_DISABLED: 403,
    ErrorCode.INVALID_INPUT: 400,
    ErrorCode.RATE_LIMIT_EXCEEDED: 429,
    ErrorCode.INTERNAL_ERROR: 500,
}


class AuthError(Exception):
    """A terminal, client-facing authentication failure."""

    def __init__(self, code: ErrorCode, message: str, retry_after: int | None = None) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        # Seconds; rendered as a Retry-After header on 429 responses.
        self.retry_after = retry_after

    @property
    def status_code(self) -> int:
        return _STATUS[self.code]

    def __repr__(self) -> str:
        return f"AuthError({self.code.value}, {self.message!r})"

    # ------------------------------------------------------------------
    # Factories
    # ------------------------------------------------------------------

    @classmethod
    def user_already_exists(cls, field: str) -> "AuthError":
        return cls(ErrorCode.USER_ALREADY_EXISTS, f"A user with this {field} already exists.")

    @classmethod
    def invalid_credentials(cls) -> "AuthError":
        return cls(ErrorCode.INVALID_CREDENTIALS, "Invalid credentials.")

    @classmethod
    def invalid_refresh_token(cls) -> "AuthError":
        return cls(ErrorCode.INVALID_REFRESH_TOKEN, "Invalid refresh token.")

    @classmethod
    def user_disabled(cls) -> "AuthError":
        return cls(ErrorCode.USER_DISABLED, "User account is disabled.")

    @classmethod
    def too_many_requests(cls, retry_after: int | None = None) -> "AuthError":
        return cls(ErrorCode.RATE_LIMIT_EXCEEDED, "Too many requests. Try again later.", retry_after)
