"""
auth/service.py -- Registration, login, refresh and token validation.

AuthService coordinates three collaborators:
  UserStore    -- persistence and the atomic uniqueness guarantee.
  BcryptHasher -- one-way password hashing.
  TokenCodec   -- signing and verifying access/refresh tokens.

Every call is a complete transaction; failures raise AuthError and are
terminal for the request (no internal retries).

Security:
  [C1] login() runs bcrypt whether or not the principal exists, so response
       time does not reveal which usernames/emails are registered.
  Anti-enumeration: unknown principal and wrong password raise the same
       INVALID_CREDENTIALS; every refresh-token failure (bad signature,
       expiry, wrong type, unknown subject) raises the same
       INVALID_REFRESH_TOKEN. The specific reason goes to the log only.
  Subject: tokens always carry the user's numeric id as their subject. The id
       never changes, unlike the email or username.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import logging

from sqlalchemy.exc import IntegrityError

from auth.errors import AuthError
from auth.models import TokenPair, TokenType, User
from auth.passwords import BcryptHasher
from auth.store import UserStore
from auth.tokens import TokenCodec, TokenError

logger = logging.getLogger("authgate.auth")

_BEARER_PREFIX = "bearer "


def strip_bearer(value: str | None) -> str:
    """Return the token from an Authorization header value ("" if absent)."""
    if not value:
        return ""
    value = value.strip()
    if value.lower().startswith(_BEARER_PREFIX):
        value = value[len(_BEARER_PREFIX) :].strip()
    return value


class AuthService:
    def __init__(self, store: UserStore, hasher: BcryptHasher, codec: TokenCodec) -> None:
        self.store = store
        self.hasher = hasher
        self.codec = codec

    # ------------------------------------------------------------------
    # Register
    # ------------------------------------------------------------------

    def register(self, username: str, password: str, email: str, phone: str) -> TokenPair:
        """Create an enabled account and return its first token pair.

        The exists_by_* checks produce the common-case 409; the unique indexes
        behind create_user() catch the concurrent-duplicate case the checks
        cannot see.
        """
        if self.store.exists_by_email(email):
            logger.warning("Registration rejected: email already registered")
            raise AuthError.user_already_exists("email")
        if self.store.exists_by_username(username):
            logger.warning("Registration rejected: username %r already taken", username)
            raise AuthError.user_already_exists("username")

        user = User(
            username=username,
            email=email,
            phone=phone,
            hashed_password=self.hasher.hash(password),
            enabled=True,
        )
        try:
            user_id = self.store.create_user(user)
        except IntegrityError as exc:
            logger.warning("Registration lost a uniqueness race for username %r", username)
            raise AuthError.user_already_exists("username or email") from exc

        logger.info("User registered: id=%d", user_id)
        return self.codec.issue_pair(user_id)

    # ------------------------------------------------------------------
    # Login
    # ------------------------------------------------------------------

    def login(self, principal: str, password: str) -> TokenPair:
        """Authenticate by email or username (case-insensitive) and password."""
        user = self.store.find_by_principal(principal)
        if user is None:
            # Equalize timing -- do NOT return before running bcrypt [C1]
            self.hasher.verify_dummy(password)
            logger.warning("Login failed: unknown principal %r", principal)
            raise AuthError.invalid_credentials()
        if not self.hasher.verify(password, user.hashed_password):
            logger.warning("Login failed: wrong password for user id=%d", user.id)
            raise AuthError.invalid_credentials()
        if not user.enabled:
            logger.warning("Login refused: user id=%d is disabled", user.id)
            raise AuthError.user_disabled()

        logger.info("User logged in: id=%d", user.id)
        return self.codec.issue_pair(user.id)

    # ------------------------------------------------------------------
    # Refresh
    # ------------------------------------------------------------------

    def refresh(self, refresh_token: str) -> TokenPair:
        """Exchange a valid refresh token for a new pair.

        The presented refresh token stays valid until it expires; there is no
        revocation list.
        """
        result = self.codec.verify(refresh_token, TokenType.REFRESH)
        if isinstance(result, TokenError):
            logger.warning("Refresh rejected: %s (%s)", result.kind.value, result.detail)
            raise AuthError.invalid_refresh_token()

        user = self._user_for_subject(result.subject)
        if user is None:
            logger.warning("Refresh rejected: subject %r does not match a user", result.subject)
            raise AuthError.invalid_refresh_token()
        if not user.enabled:
            logger.warning("Refresh refused: user id=%d is disabled", user.id)
            raise AuthError.user_disabled()

        return self.codec.issue_pair(user.id)

    def _user_for_subject(self, subject: str) -> User | None:
        try:
            user_id = int(subject)
        except ValueError:
            return None
        return self.store.get_by_id(user_id)

    # ------------------------------------------------------------------
    # Validate
    # ------------------------------------------------------------------

    def validate_token(self, token: str | None) -> bool:
        """Return True for a valid access token, optionally "Bearer "-prefixed.

        Never raises: every failure, including unexpected ones, is False.
        """
        try:
            return self.codec.is_valid(strip_bearer(token))
        except Exception:
            logger.exception("Unexpected error while validating a token")
            return False
