"""
core/clock.py -- Time source injected into the token codec and rate limiter.

Production code uses SystemClock. Anything with a now() returning an aware UTC
datetime satisfies Clock, so tests can drive token expiry and bucket refill
deterministically without sleeping.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Protocol


class Clock(Protocol):
    def now(self) -> datetime:
        """Return the current time as a timezone-aware UTC datetime."""
        ...


class SystemClock:
    """Wall-clock time in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)
