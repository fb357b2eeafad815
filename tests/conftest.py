"""
tests/conftest.py -- Shared test fixtures for authgate.

This module provides:
  - make_settings():  Settings with fixed test secrets and cheap bcrypt rounds,
                      ignoring the developer's .env file
  - ManualClock:      a Clock that only moves when told to
  - clock:            ManualClock shared by codec, buckets and error timestamps
  - store / service:  unit-test collaborators on a private in-memory DB
  - client:           TestClient over create_app() with an isolated store

Design: The API fixture uses named shared-memory SQLite URIs (not plain
:memory:) because TestClient runs sync route handlers in a thread pool. Plain
:memory: DBs are per-connection and would present a blank schema to each
worker thread. The named URI format (file:name?mode=memory&cache=shared&uri=true)
shares one in-memory instance across all connections in the same process; a
uuid in the name keeps tests from seeing each other's users.
"""

from __future__ import annotations

import threading
import uuid
from collections.abc import Callable, Generator
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from api.main import create_app
from auth.passwords import BcryptHasher
from auth.service import AuthService
from auth.store import UserStore
from auth.tokens import TokenCodec
from core.config import Settings

ACCESS_SECRET = "test-access-secret-0123456789abcdefghij"
REFRESH_SECRET = "test-refresh-secret-9876543210zyxwvutsrq"
STRONG_PASSWORD = "Str0ng!Pass"


class ManualClock:
    """A clock that only moves when told to.

    Usage:
        clock = ManualClock()
        clock.advance(seconds=61)
    """

    def __init__(self, start: datetime | None = None) -> None:
        self._now = start or datetime(2024, 1, 1, tzinfo=timezone.utc)
        self._lock = threading.Lock()

    def now(self) -> datetime:
        with self._lock:
            return self._now

    def advance(self, seconds: float = 0, **kwargs: float) -> datetime:
        """Move the clock forward. Accepts timedelta keyword arguments."""
        with self._lock:
            self._now += timedelta(seconds=seconds, **kwargs)
            return self._now


def make_settings(**overrides) -> Settings:
    """Build Settings for tests. Keyword overrides win over the defaults below."""
    values = {
        "debug": False,
        "access_token_secret": ACCESS_SECRET,
        "refresh_token_secret": REFRESH_SECRET,
        "bcrypt_rounds": 4,
        "database_url": "sqlite:///:memory:",
        "client_rate_limit": "",
        "log_level": "WARNING",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


def register_body(**overrides) -> dict:
    """A valid POST /auth/register body."""
    body = {
        "username": "alice_01",
        "password": STRONG_PASSWORD,
        "email": "alice@example.com",
        "phone": "+12345678901",
    }
    body.update(overrides)
    return body


# ---------------------------------------------------------------------------
# Unit-level fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def clock() -> ManualClock:
    """Frozen at 2024-01-01T00:00:00Z until a test advances it."""
    return ManualClock()


@pytest.fixture
def settings() -> Settings:
    """Settings with the fixed test secrets."""
    return make_settings()


@pytest.fixture
def codec(settings: Settings, clock: ManualClock) -> TokenCodec:
    """TokenCodec on the test clock: access ttl 900s, refresh ttl 7 days."""
    return TokenCodec.from_settings(settings, clock)


@pytest.fixture
def hasher() -> BcryptHasher:
    """bcrypt at the minimum cost so tests stay fast."""
    return BcryptHasher(rounds=4)


@pytest.fixture
def store() -> Generator[UserStore, None, None]:
    """Private in-memory UserStore, closed after the test."""
    s = UserStore("sqlite:///:memory:")
    yield s
    s.close()


@pytest.fixture
def service(store: UserStore, hasher: BcryptHasher, codec: TokenCodec) -> AuthService:
    """AuthService wired to the store, hasher and codec fixtures."""
    return AuthService(store, hasher, codec)


# ---------------------------------------------------------------------------
# API fixtures
# ---------------------------------------------------------------------------


def _shared_memory_store() -> UserStore:
    return UserStore(f"sqlite:///file:authgate_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true")


@pytest.fixture
def app_factory(clock: ManualClock) -> Generator[Callable[..., TestClient], None, None]:
    """Return a builder: app_factory(**settings_overrides) -> running TestClient.

    Each call gets a fresh store and fresh rate-limit buckets. The ManualClock
    is the test's `clock` fixture, so tests can advance time for the app.
    """
    opened: list[tuple[TestClient, UserStore]] = []

    def build(**overrides) -> TestClient:
        store = _shared_memory_store()
        app = create_app(make_settings(**overrides), store=store, clock=clock)
        client = TestClient(app, raise_server_exceptions=True)
        client.__enter__()
        opened.append((client, store))
        return client

    yield build

    for client, store in opened:
        client.__exit__(None, None, None)
        store.close()


@pytest.fixture
def client(app_factory: Callable[..., TestClient]) -> TestClient:
    """TestClient with generous rate limits so functional tests never hit 429."""
    return app_factory(
        rate_limit_login_requests=100,
        rate_limit_register_requests=100,
        rate_limit_refresh_requests=100,
    )
