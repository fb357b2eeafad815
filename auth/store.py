"""
auth/store.py -- SQLAlchemy Core persistence layer for user accounts.

Pattern: Repository + Data Mapper.
UserStore is the repository; _row_to_user is the mapper. Service and route
code never touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

  Uniqueness of username and email is case-insensitive and enforced by unique
  indexes on lower(username) / lower(email). The service's exists_by_* checks
  give a friendly error in the common case, but only the index makes
  check-then-insert safe under concurrent registrations: the loser of the race
  gets IntegrityError from create_user().

Layer rule: no imports from api/.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Column, Index, Integer, MetaData, String, Table, Text, create_engine, event, func, or_, select
from sqlalchemy.engine import Engine

from auth.models import User

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("username", String(20), nullable=False),
    Column("email", String(255), nullable=False),
    Column("phone", String(16), nullable=False, server_default=""),
    Column("hashed_password", Text, nullable=False),
    Column("enabled", Integer, nullable=False, server_default="1"),
    Column("created_at", String(32), nullable=False),
)

Index("ux_users_username_lower", func.lower(_users.c.username), unique=True)
Index("ux_users_email_lower", func.lower(_users.c.email), unique=True)


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode so readers do not block on writes.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User entities.

    Usage:
        store = UserStore("sqlite:///authgate.db")
        user_id = store.create_user(User(username="alice", email="a@example.com", hashed_password=h))
        user = store.find_by_principal("ALICE")
        store.close()
    """

    def __init__(self, db_url: str = "sqlite:///authgate.db") -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite") and ":memory:" not in db_url and "mode=memory" not in db_url:
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def exists_by_email(self, email: str) -> bool:
        with self.engine.connect() as conn:
            row = conn.execute(select(_users.c.id).where(func.lower(_users.c.email) == email.lower())).first()
        return row is not None

    def exists_by_username(self, username: str) -> bool:
        with self.engine.connect() as conn:
            row = conn.execute(select(_users.c.id).where(func.lower(_users.c.username) == username.lower())).first()
        return row is not None

    def find_by_principal(self, principal: str) -> User | None:
        """Look up a user whose email OR username equals principal, ignoring case."""
        needle = principal.lower()
        with self.engine.connect() as conn:
            row = conn.execute(
                _users.select().where(
                    or_(func.lower(_users.c.email) == needle, func.lower(_users.c.username) == needle)
                )
            ).first()
        return _row_to_user(row) if row is not None else None

    def get_by_id(self, user_id: int) -> User | None:
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).first()
        return _row_to_user(row) if row is not None else None

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_user(self, user: User) -> int:
        """Insert a new user and return its assigned database ID.

        Raises sqlalchemy.exc.IntegrityError if the username or email already
        exists (case-insensitively). AuthService turns that into a 409.
        """
        with self.engine.connect() as conn:
            result = conn.execute(
                _users.insert().values(
                    username=user.username,
                    email=user.email,
                    phone=user.phone,
                    hashed_password=user.hashed_password,
                    enabled=1 if user.enabled else 0,
                    created_at=_now_iso(),
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def set_enabled(self, user_id: int, enabled: bool) -> bool:
        """Enable or disable an account. Returns False if user_id was not found."""
        with self.engine.connect() as conn:
            result = conn.execute(_users.update().where(_users.c.id == user_id).values(enabled=1 if enabled else 0))
            conn.commit()
        return result.rowcount > 0

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        username=row.username,
        email=row.email,
        phone=row.phone,
        hashed_password=row.hashed_password,
        enabled=bool(row.enabled),
        created_at=row.created_at,
    )
