"""
api/limiter.py -- Rate limiting at the HTTP boundary.

Two layers:

  1. Per-route token buckets (core.ratelimit.RateLimiter), one shared bucket
     each for login, register and refresh. enforce_rate_limit(route) is the
     FastAPI dependency that consumes from the bucket before the handler runs;
     when the bucket is empty it raises a 429 AuthError and AuthService is
     never invoked. All clients compete for the same per-route budget.

  2. Optional per-client ceiling via slowapi (CLIENT_RATE_LIMIT, e.g.
     "30/minute"), keyed by remote address. Each handler in api/routes/auth.py
     carries @limiter.limit(client_limit); the decorator checks the limit
     inside the handler wrapper, so it must sit BELOW @router.post (the router
     has to register the wrapper, not the bare function). Disabled when the
     setting is empty.

The slowapi limiter is one shared instance, as slowapi's decorators need it at
import time. configure_client_limiter() points it at the current Settings and
clears its counters; create_app() calls it once per app.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from fastapi import Request, Response
from slowapi import Limiter
from slowapi.util import get_remote_address

from auth.errors import AuthError
from core.config import Settings
from core.ratelimit import RateLimiter

logger = logging.getLogger("authgate.ratelimit")

limiter = Limiter(key_func=get_remote_address, storage_uri="memory://", enabled=False)

# Limit string read by slowapi on every decorated request. Only consulted
# while limiter.enabled is True, i.e. when it is non-empty.
_client_limit = ""


def client_limit() -> str:
    """Return the configured per-client ceiling, e.g. "30/minute"."""
    return _client_limit


def configure_client_limiter(settings: Settings) -> Limiter:
    """Apply settings.client_rate_limit to the shared limiter and reset its counters."""
    global _client_limit
    _client_limit = settings.client_rate_limit
    limiter.enabled = bool(_client_limit)
    limiter.reset()
    if limiter.enabled:
        logger.info("Per-client rate limit configured: %s", _client_limit)
    return limiter


def client_ip(request: Request) -> str:
    """Best-effort client address for logs: X-Forwarded-For, X-Real-IP, then the socket peer."""
    forwarded = request.headers.get("X-Forwarded-For", "")
    if forwarded:
        return forwarded.split(",")[0].strip()
    real_ip = request.headers.get("X-Real-IP", "")
    if real_ip:
        return real_ip
    return request.client.host if request.client else "unknown"


def enforce_rate_limit(route: str) -> Callable[[Request, Response], None]:
    """Build a dependency that spends one token from the route's bucket.

    Usage:
        @router.post("/auth/login", dependencies=[Depends(enforce_rate_limit("login"))])
    """

    def dependency(request: Request, response: Response) -> None:
        rate_limiter: RateLimiter = request.app.state.rate_limiter
        probe = rate_limiter.probe(route)
        if not probe.consumed:
            logger.warning("Rate limit exceeded for %s from %s", route, client_ip(request))
            raise AuthError.too_many_requests(retry_after=probe.retry_after_seconds)
        response.headers["X-RateLimit-Remaining"] = str(probe.remaining)

    dependency.__name__ = f"enforce_{route}_rate_limit"
    return dependency
