"""
auth/tokens.py -- Access/refresh token issuing and verification.

Security design decisions:
  JWT: python-jose with HS512. Access and refresh tokens are signed with two
       independent secrets (SigningKeySet), so a refresh token can never pass
       as an access token: verifying it with the access key fails the
       signature check before the type claim is even read.

  Claims: sub (user id as a string), type ("access" | "refresh"), iat, exp as
       integer epoch seconds. Tokens are stateless -- nothing is stored per
       token and there is no revocation.

  Typed result: verify() never raises. It returns TokenClaims on success or a
       TokenError whose kind says which check failed (MALFORMED, BAD_SIGNATURE,
       EXPIRED, WRONG_TYPE). The service logs the kind; the client only ever
       sees a generic code. is_valid() is the boolean projection used by the
       public validate endpoint.

  Expiry is evaluated against the injected Clock rather than jose's own
       utcnow() check, so tests can move time forward deterministically.

  Secrets: validated when the key set is built -- non-empty, >= 32 chars, not
       the documented placeholder, access != refresh. A weak secret is a
       ConfigurationError at startup, never a per-request failure.

Layer rule: no imports from api/. Import from core/ is allowed.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum

from jose import JWTError, jws, jwt
from jose.exceptions import JWSError

from auth.models import TokenClaims, TokenPair, TokenType
from core.clock import Clock, SystemClock
from core.config import Settings
from core.errors import ConfigurationError

logger = logging.getLogger("authgate.auth")

_ALGORITHM = "HS512"
_MIN_SECRET_LENGTH = 32
_PLACEHOLDER_MARKER = "your-super-secret"
_DEVELOPMENT_MARKER = "development-only"


# ---------------------------------------------------------------------------
# Keys
# ---------------------------------------------------------------------------


def validate_secret(secret: str, name: str, allow_placeholder: bool = False) -> None:
    """Raise ConfigurationError if a signing secret is unusable."""
    if not secret or not secret.strip():
        raise ConfigurationError(f"{name} cannot be empty.")
    if len(secret) < _MIN_SECRET_LENGTH:
        raise ConfigurationError(f"{name} must be at least {_MIN_SECRET_LENGTH} characters long.")
    if _PLACEHOLDER_MARKER in secret and not (allow_placeholder or _DEVELOPMENT_MARKER in secret):
        raise ConfigurationError(f"{name} contains the placeholder value -- change it before deploying.")


@dataclass(frozen=True)
class SigningKeySet:
    """Independent HMAC secrets for access and refresh tokens."""

    access_secret: str
    refresh_secret: str
    allow_placeholder: bool = False

    def __post_init__(self) -> None:
        validate_secret(self.access_secret, "Access token secret", self.allow_placeholder)
        validate_secret(self.refresh_secret, "Refresh token secret", self.allow_placeholder)
        if self.access_secret == self.refresh_secret:
            raise ConfigurationError("Access and refresh token secrets must differ.")

    def key_for(self, token_type: TokenType) -> str:
        return self.access_secret if token_type is TokenType.ACCESS else self.refresh_secret

    def __repr__(self) -> str:
        return "SigningKeySet(access_secret=***, refresh_secret=***)"


# ---------------------------------------------------------------------------
# Verification result
# ---------------------------------------------------------------------------


class TokenErrorKind(str, Enum):
    MALFORMED = "malformed"
    BAD_SIGNATURE = "bad_signature"
    EXPIRED = "expired"
    WRONG_TYPE = "wrong_type"


@dataclass(frozen=True)
class TokenError:
    """Why a token was rejected. detail is for logs only."""

    kind: TokenErrorKind
    detail: str = ""


# ---------------------------------------------------------------------------
# Codec
# ---------------------------------------------------------------------------


class TokenCodec:
    """Signs and verifies access/refresh JWTs.

    Usage:
        codec = TokenCodec.from_settings(get_settings())
        token = codec.issue("42", TokenType.ACCESS)
        result = codec.verify(token, TokenType.ACCESS)
        if isinstance(result, TokenError):
            ...
    """

    def __init__(
        self,
        keys: SigningKeySet,
        access_ttl: int = 900,
        refresh_ttl: int = 7 * 24 * 3600,
        clock: Clock | None = None,
    ) -> None:
        if access_ttl <= 0 or refresh_ttl <= 0:
            raise ConfigurationError("Token TTLs must be positive.")
        self._keys = keys
        self._ttl = {TokenType.ACCESS: access_ttl, TokenType.REFRESH: refresh_ttl}
        self._clock = clock or SystemClock()
        logger.info("Token codec ready: access ttl %ds, refresh ttl %ds", access_ttl, refresh_ttl)

    @classmethod
    def from_settings(cls, settings: Settings, clock: Clock | None = None) -> "TokenCodec":
        keys = SigningKeySet(
            access_secret=settings.access_token_secret,
            refresh_secret=settings.refresh_token_secret,
            allow_placeholder=settings.allow_placeholder_secrets,
        )
        return cls(keys, settings.access_token_ttl, settings.refresh_token_ttl, clock)

    @property
    def access_ttl(self) -> int:
        return self._ttl[TokenType.ACCESS]

    # ------------------------------------------------------------------
    # Issue
    # ------------------------------------------------------------------

    def issue(self, subject: str, token_type: TokenType) -> str:
        """Return a signed token of the given type bound to subject."""
        issued_at = int(self._clock.now().timestamp())
        payload = {
            "sub": subject,
            "type": token_type.value,
            "iat": issued_at,
            "exp": issued_at + self._ttl[token_type],
        }
        return jwt.encode(payload, self._keys.key_for(token_type), algorithm=_ALGORITHM)

    def issue_pair(self, user_id: int) -> TokenPair:
        subject = str(user_id)
        return TokenPair(
            user_id=user_id,
            access_token=self.issue(subject, TokenType.ACCESS),
            refresh_token=self.issue(subject, TokenType.REFRESH),
            expires_in=self.access_ttl,
        )

    # ------------------------------------------------------------------
    # Verify
    # ------------------------------------------------------------------

    def verify(self, token: str, expected_type: TokenType) -> TokenClaims | TokenError:
        """Check structure, signature, expiry and type, in that order."""
        if not isinstance(token, str) or not token.strip():
            return TokenError(TokenErrorKind.MALFORMED, "empty token")
        try:
            header = jwt.get_unverified_header(token)
        except JWTError as exc:
            return TokenError(TokenErrorKind.MALFORMED, str(exc))
        if header.get("alg") != _ALGORITHM:
            # Covers alg=none and algorithm-confusion attempts.
            return TokenError(TokenErrorKind.MALFORMED, f"unsupported algorithm {header.get('alg')!r}")

        try:
            raw_payload = jws.verify(token, self._keys.key_for(expected_type), algorithms=[_ALGORITHM])
        except JWSError as exc:
            # Structure and algorithm were checked above, so this is the signature.
            return TokenError(TokenErrorKind.BAD_SIGNATURE, str(exc))

        claims = _parse_claims(raw_payload)
        if isinstance(claims, TokenError):
            return claims
        subject, declared_type, issued_at, expires_at = claims

        if self._clock.now() >= expires_at:
            return TokenError(TokenErrorKind.EXPIRED, f"expired at {expires_at.isoformat()}")
        if declared_type != expected_type.value:
            return TokenError(TokenErrorKind.WRONG_TYPE, f"expected {expected_type.value}, got {declared_type!r}")
        return TokenClaims(
            subject=subject,
            token_type=expected_type,
            issued_at=issued_at,
            expires_at=expires_at,
        )

    def is_valid(self, token: str) -> bool:
        """True only for a well-formed, correctly signed, unexpired access token."""
        result = self.verify(token, TokenType.ACCESS)
        if isinstance(result, TokenError):
            logger.debug("Access token rejected: %s", result.kind.value)
            return False
        return True


def _parse_claims(raw_payload: bytes) -> tuple[str, str, datetime, datetime] | TokenError:
    try:
        payload = json.loads(raw_payload)
    except (ValueError, UnicodeDecodeError):
        return TokenError(TokenErrorKind.MALFORMED, "payload is not JSON")
    if not isinstance(payload, dict):
        return TokenError(TokenErrorKind.MALFORMED, "payload is not an object")

    subject = payload.get("sub")
    declared_type = payload.get("type")
    iat = payload.get("iat")
    exp = payload.get("exp")
    if not isinstance(subject, str) or not subject:
        return TokenError(TokenErrorKind.MALFORMED, "missing sub claim")
    if not isinstance(declared_type, str):
        return TokenError(TokenErrorKind.MALFORMED, "missing type claim")
    # bool is an int subclass; a boolean timestamp is never legitimate.
    if not all(isinstance(v, int) and not isinstance(v, bool) for v in (iat, exp)):
        return TokenError(TokenErrorKind.MALFORMED, "iat/exp must be integer timestamps")
    if exp <= iat:
        return TokenError(TokenErrorKind.MALFORMED, "exp must be after iat")

    epoch = datetime(1970, 1, 1, tzinfo=timezone.utc)
    return subject, declared_type, epoch + timedelta(seconds=iat), epoch + timedelta(seconds=exp)
