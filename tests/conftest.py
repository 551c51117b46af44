"""
tests/conftest.py — Shared Test Fixtures
=========================================
"""

from __future__ import annotations

import os

# ---------------------------------------------------------------------------
# A valid JWT_SECRET for every test run; load_jwt_secret() reads it.
# ---------------------------------------------------------------------------
_TEST_JWT_SECRET = "test-secret-for-pytest-only-" + "x" * 40  # > 32 chars
os.environ.setdefault("JWT_SECRET", _TEST_JWT_SECRET)

import pytest  # noqa: E402
from sqlalchemy import Engine, create_engine, event  # noqa: E402

# ---------------------------------------------------------------------------
# Make JSONB columns work in SQLite for testing.
# SQLite doesn't support JSONB natively, but SQLAlchemy's JSON type works.
# We register a custom type compiler so SQLite renders JSONB as TEXT.
# ---------------------------------------------------------------------------
from sqlalchemy.dialects.postgresql import JSONB as PG_JSONB  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from warden.database.models import Account, Base, StaffMember  # noqa: E402
from warden.engine.tokens import StaffPrincipal, TokenIssuer  # noqa: E402

_jsonb_sqlite_registered = False


def _register_jsonb_sqlite_compat():
    """Register SQLite compilation for PG JSONB type (idempotent).

    Also maps BigInteger → INTEGER so autoincrement works on SQLite.
    """
    global _jsonb_sqlite_registered
    if _jsonb_sqlite_registered:
        return
    from sqlalchemy import BigInteger
    from sqlalchemy.ext.compiler import compiles

    @compiles(PG_JSONB, "sqlite")
    def _compile_jsonb_as_text(type_, compiler, **kw):
        return "TEXT"

    @compiles(BigInteger, "sqlite")
    def _compile_bigint_as_integer(type_, compiler, **kw):
        return "INTEGER"

    _jsonb_sqlite_registered = True


_register_jsonb_sqlite_compat()


def _explicit_transactions(engine: Engine, begin: str = "BEGIN") -> Engine:
    """Take transaction control away from pysqlite.

    pysqlite defers BEGIN and mishandles SAVEPOINT; with these hooks every
    SQLAlchemy transaction starts with an explicit *begin* statement.
    """

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql(begin)

    return engine


@pytest.fixture
def db_engine() -> Engine:
    """In-memory SQLite engine with all Warden tables.

    StaticPool keeps one shared connection so worker threads started by
    ``run_db`` see the same database.
    """
    engine = create_engine(
        "sqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    _explicit_transactions(engine)
    Base.metadata.create_all(engine)
    return engine


@pytest.fixture
def file_engine(tmp_path) -> Engine:
    """File-backed SQLite engine whose transactions take the write lock up front.

    ``BEGIN IMMEDIATE`` serializes concurrent writers, which makes race
    tests deterministic: the second transaction waits, then sees the
    first one's commit.
    """
    engine = create_engine(
        f"sqlite:///{tmp_path / 'warden.db'}",
        echo=False,
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    _explicit_transactions(engine, "BEGIN IMMEDIATE")
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def issuer() -> TokenIssuer:
    return TokenIssuer(_TEST_JWT_SECRET, player_ttl_seconds=3600, staff_ttl_seconds=1800)


@pytest.fixture
def make_account():
    """Factory: ``make_account(engine, "name")`` → persisted :class:`Account`."""

    def _make(engine: Engine, username: str = "player1", **overrides) -> Account:
        from sqlalchemy.orm import Session

        with Session(engine, expire_on_commit=False) as session:
            account = Account(
                email=overrides.pop("email", f"{username}@example.com"),
                username=username,
                **overrides,
            )
            session.add(account)
            session.commit()
            return account

    return _make


@pytest.fixture
def make_staff(make_account):
    """Factory: persisted account + staff row; returns ``(StaffMember, StaffPrincipal)``."""

    def _make(engine: Engine, role: str, name: str = "Staffer", **overrides):
        from sqlalchemy.orm import Session

        account = make_account(engine, f"staff_{name.lower()}")
        with Session(engine, expire_on_commit=False) as session:
            staff = StaffMember(
                account_id=account.id, staff_name=name, role=role, **overrides
            )
            session.add(staff)
            session.commit()
        return staff, StaffPrincipal.for_role(staff.id, role)

    return _make


# ---------------------------------------------------------------------------
# Principals that need no staff row (sanctions and tickets keep staff ids
# as plain integers).
# ---------------------------------------------------------------------------
@pytest.fixture
def helper() -> StaffPrincipal:
    return StaffPrincipal.for_role(101, "helper")


@pytest.fixture
def moderator() -> StaffPrincipal:
    return StaffPrincipal.for_role(102, "moderator")


@pytest.fixture
def game_master() -> StaffPrincipal:
    return StaffPrincipal.for_role(103, "game_master")


@pytest.fixture
def admin() -> StaffPrincipal:
    return StaffPrincipal.for_role(104, "admin")
