"""
core/ratelimit.py -- Per-route token buckets for the authentication endpoints.

Implements the token bucket algorithm:
  - A bucket starts full at `capacity` tokens.
  - Tokens accrue continuously at `refill_rate` per `period`, capped at capacity
    ("greedy" refill: a 5-per-minute bucket regains one token every 12 seconds
    rather than all five at the end of the minute).
  - Each allowed request consumes tokens; a request that cannot be covered
    consumes nothing and is rejected.

One bucket exists per protected route (login, register, refresh) and is shared
by every caller of that route regardless of source address. Per-client limits,
when wanted, are layered on top by api/limiter.py.

Thread safety: FastAPI runs sync handlers in a threadpool, so refill and
consume happen under one lock. With a frozen clock, exactly `capacity`
consumptions succeed no matter how many threads race for them.

State is process-local. Running several service instances multiplies the
effective budget by the instance count.
"""

from __future__ import annotations

import logging
import math
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta

from core.clock import Clock, SystemClock
from core.config import RATE_LIMITED_ROUTES, Settings

logger = logging.getLogger("authgate.ratelimit")


@dataclass(frozen=True)
class ConsumptionProbe:
    """Outcome of a consumption attempt.

    remaining:           whole tokens left after the attempt.
    retry_after_seconds: 0 when consumed; otherwise seconds until enough
                         tokens will have accrued for the same request.
    """

    consumed: bool
    remaining: int
    retry_after_seconds: int


class TokenBucket:
    """Fixed-capacity bucket refilled continuously from an injected clock."""

    def __init__(self, capacity: int, refill_rate: int, period: timedelta, clock: Clock | None = None) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        if refill_rate <= 0:
            raise ValueError("refill_rate must be positive")
        if period.total_seconds() <= 0:
            raise ValueError("period must be positive")
        self.capacity = capacity
        self.refill_rate = refill_rate
        self.period = period
        self._clock = clock or SystemClock()
        self._period_seconds = period.total_seconds()
        self._available = float(capacity)
        self._last_refill = self._clock.now()
        self._lock = threading.Lock()

    def _refill(self) -> None:
        # Caller holds self._lock.
        now = self._clock.now()
        elapsed = (now - self._last_refill).total_seconds()
        if elapsed > 0:
            accrued = elapsed * self.refill_rate / self._period_seconds
            self._available = min(float(self.capacity), self._available + accrued)
            self._last_refill = now

    def try_consume_and_return_remaining(self, n: int = 1) -> ConsumptionProbe:
        """Atomically refill, then consume n tokens if available."""
        if n <= 0:
            raise ValueError("n must be positive")
        with self._lock:
            self._refill()
            if self._available >= n:
                self._available -= n
                return ConsumptionProbe(True, int(self._available), 0)
            if n > self.capacity:
                # Can never be satisfied; report a full period as the wait.
                wait = self.period.total_seconds()
            else:
                wait = (n - self._available) * self._period_seconds / self.refill_rate
            return ConsumptionProbe(False, int(self._available), max(1, math.ceil(wait)))

    def try_consume(self, n: int = 1) -> bool:
        return self.try_consume_and_return_remaining(n).consumed

    @property
    def available(self) -> int:
        """Whole tokens currently available (after applying pending refill)."""
        with self._lock:
            self._refill()
            return int(self._available)

    @property
    def last_refill(self) -> datetime:
        with self._lock:
            return self._last_refill


class RateLimiter:
    """Registry of named token buckets, one per protected route.

    Usage:
        limiter = RateLimiter.from_settings(get_settings())
        if not limiter.try_consume("login"):
            ...  # answer 429 without touching AuthService
    """

    def __init__(self, buckets: dict[str, TokenBucket]) -> None:
        self._buckets = dict(buckets)

    @classmethod
    def from_settings(cls, settings: Settings, clock: Clock | None = None) -> "RateLimiter":
        clock = clock or SystemClock()
        buckets: dict[str, TokenBucket] = {}
        for route in RATE_LIMITED_ROUTES:
            requests, period_minutes = settings.rate_limit_for(route)
            buckets[route] = TokenBucket(
                capacity=requests,
                refill_rate=requests,
                period=timedelta(minutes=period_minutes),
                clock=clock,
            )
            logger.info("%s rate limit configured: %d requests per %d minutes", route, requests, period_minutes)
        return cls(buckets)

    def bucket(self, route: str) -> TokenBucket:
        """Return the bucket for a route. Raises KeyError for unprotected routes."""
        try:
            return self._buckets[route]
        except KeyError:
            raise KeyError(f"No rate limit bucket configured for route {route!r}") from None

    def probe(self, route: str, n: int = 1) -> ConsumptionProbe:
        return self.bucket(route).try_consume_and_return_remaining(n)

    def try_consume(self, route: str, n: int = 1) -> bool:
        return self.bucket(route).try_consume(n)

    @property
    def routes(self) -> list[str]:
        return list(self._buckets)
