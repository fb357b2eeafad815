"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for authgate happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. access_token_secret -> ACCESS_TOKEN_SECRET).

  @model_validator(mode="after"): Runs cross-field validation after all fields
      are resolved. Dev mode (DEBUG=true) generates missing signing secrets with
      a warning; production mode refuses to start without them.

Secret strength (length, placeholder values, access != refresh) is enforced by
auth.tokens.SigningKeySet, so a codec built outside Settings gets the same
checks.

Layer rule: core/ is the kernel. This module may not import from api/ or auth/.
"""

import logging
import secrets
from functools import lru_cache

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("authgate.config")

# Routes protected by a per-route token bucket. The order is the order buckets
# are logged at startup.
RATE_LIMITED_ROUTES: tuple[str, ...] = ("login", "register", "refresh")


class DatabaseSettings(BaseSettings):
    """Just the user database location.

    The admin commands in main.py (enable-user / disable-user) only touch the
    database, so they load this instead of Settings and do not need the
    signing secrets.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    database_url: str = "sqlite:///authgate.db"


class Settings(DatabaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments with DEBUG=true and no real .env file.
    """

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    debug: bool = False
    log_level: str = "INFO"

    # ------------------------------------------------------------------
    # Tokens
    # ------------------------------------------------------------------

    # Empty string is the sentinel for "not configured".
    access_token_secret: str = ""
    refresh_token_secret: str = ""
    # Secrets containing the documented placeholder are rejected unless this
    # is set (local development against the sample .env only).
    allow_placeholder_secrets: bool = False
    access_token_ttl: int = 900  # 15 minutes
    refresh_token_ttl: int = 7 * 24 * 3600  # 7 days

    # ------------------------------------------------------------------
    # Password hashing
    # ------------------------------------------------------------------

    bcrypt_rounds: int = 12

    # ------------------------------------------------------------------
    # Rate limiting -- one shared bucket per route
    # ------------------------------------------------------------------

    rate_limit_login_requests: int = 5
    rate_limit_login_period_minutes: int = 1
    rate_limit_register_requests: int = 3
    rate_limit_register_period_minutes: int = 60
    rate_limit_refresh_requests: int = 10
    rate_limit_refresh_period_minutes: int = 1

    # Optional per-client ceiling enforced by slowapi, e.g. "30/minute".
    # Empty disables it.
    client_rate_limit: str = ""

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_secrets(self) -> "Settings":
        """Fill or reject missing signing secrets.

        Dev mode (DEBUG=true): generate random secrets with a warning. Issued
            tokens will not survive a restart -- acceptable for local dev.

        Production mode: refuse to start if either secret is missing.
        """
        for field_name in ("access_token_secret", "refresh_token_secret"):
            if getattr(self, field_name):
                continue
            env_name = field_name.upper()
            if self.debug:
                setattr(self, field_name, secrets.token_hex(32))
                logger.warning("Using auto-generated %s. Tokens will not persist across restarts.", env_name)
            else:
                raise ValueError(
                    f"{env_name} is required in production mode. "
                    "Set it in your environment or .env file. "
                    "To run in development mode, set DEBUG=true."
                )
        return self

    @model_validator(mode="after")
    def validate_limits(self) -> "Settings":
        """Reject non-positive TTLs and rate-limit values at startup."""
        positive = ["access_token_ttl", "refresh_token_ttl", "bcrypt_rounds"]
        for route in RATE_LIMITED_ROUTES:
            positive.append(f"rate_limit_{route}_requests")
            positive.append(f"rate_limit_{route}_period_minutes")
        for field_name in positive:
            if getattr(self, field_name) <= 0:
                raise ValueError(f"{field_name.upper()} must be a positive integer.")
        return self

    def rate_limit_for(self, route: str) -> tuple[int, int]:
        """Return (requests, period_minutes) for a protected route."""
        return (
            getattr(self, f"rate_limit_{route}_requests"),
            getattr(self, f"rate_limit_{route}_period_minutes"),
        )


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables, or pass Settings(...) directly
    to api.main.create_app().
    """
    return Settings()
