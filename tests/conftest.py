"""
tests/conftest.py — Shared Test Fixtures
=========================================
"""

from __future__ import annotations

import os

# ---------------------------------------------------------------------------
# Ensure a valid JWT_SECRET is always set for test runs.
# This must happen before any import of wellspring.api.deps which validates
# the secret at module-load time.
# ---------------------------------------------------------------------------
_TEST_JWT_SECRET = "test-secret-for-pytest-only-" + "x" * 40  # > 32 chars
os.environ.setdefault("JWT_SECRET", _TEST_JWT_SECRET)

from datetime import UTC, datetime  # noqa: E402
from unittest.mock import MagicMock  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy import Engine, create_engine, event  # noqa: E402

# ---------------------------------------------------------------------------
# Make JSONB columns work in SQLite for testing.
# SQLite doesn't support JSONB natively, but SQLAlchemy's JSON type works.
# We register a custom type compiler so SQLite renders JSONB as TEXT.
# ---------------------------------------------------------------------------
from sqlalchemy.dialects.postgresql import JSONB as PG_JSONB  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402

from wellspring.database.models import Badge, Base, PatientProfile  # noqa: E402
from wellspring.database.seed import seed_default_settings  # noqa: E402
from wellspring.engine.cache import ConfigCache  # noqa: E402

_jsonb_sqlite_registered = False


def _register_jsonb_sqlite_compat():
    """Register SQLite compilation for PG JSONB type (idempotent)."""
    global _jsonb_sqlite_registered
    if _jsonb_sqlite_registered:
        return
    from sqlalchemy.ext.compiler import compiles

    @compiles(PG_JSONB, "sqlite")
    def _compile_jsonb_as_text(type_, compiler, **kw):
        return "TEXT"

    _jsonb_sqlite_registered = True


_register_jsonb_sqlite_compat()


def _enable_sqlite_savepoints(engine: Engine) -> None:
    """Let SQLAlchemy own BEGIN so SAVEPOINT / ROLLBACK TO behave.

    pysqlite's implicit transaction handling otherwise breaks the
    ``begin_nested()`` conflict detection the services rely on.
    """

    @event.listens_for(engine, "connect")
    def _do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _do_begin(conn):
        conn.exec_driver_sql("BEGIN")


@pytest.fixture
def db_engine() -> Engine:
    """Create an in-memory SQLite engine with all Wellspring tables.

    JSONB columns are transparently mapped to TEXT for SQLite compatibility.
    Uses StaticPool so every session shares the same in-memory database.
    """
    from sqlalchemy.pool import StaticPool

    engine = create_engine(
        "sqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    _enable_sqlite_savepoints(engine)
    Base.metadata.create_all(engine)
    return engine


@pytest.fixture
def engine(db_engine: Engine) -> Engine:
    """SQLite engine with default settings seeded and an empty badge catalog."""
    seed_default_settings(db_engine)
    return db_engine


@pytest.fixture
def cache(engine: Engine) -> ConfigCache:
    """A real ConfigCache loaded from the seeded test database."""
    c = ConfigCache(engine)
    c.load_all()
    return c


@pytest.fixture
def mock_cache():
    """A mock ConfigCache that answers every setting with its default."""
    mock = MagicMock(spec=ConfigCache)
    mock.get_int.side_effect = lambda key, default=0: default
    mock.get_float.side_effect = lambda key, default=0.0: default
    mock.get_setting.side_effect = lambda key, default=None: default
    mock.get_active_badges.return_value = []
    return mock


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------
def make_patient(engine: Engine, patient_id: str = "alice", timezone: str = "UTC") -> str:
    now = datetime(2026, 1, 1, tzinfo=UTC)
    with Session(engine) as session:
        session.add(PatientProfile(
            id=patient_id,
            timezone=timezone,
            points_total=0,
            level=1,
            created_at=now,
            updated_at=now,
        ))
        session.commit()
    return patient_id


def make_badge(
    engine: Engine,
    name: str,
    criteria_kind: str,
    threshold: int,
    points_reward: int = 0,
    *,
    cache: ConfigCache | None = None,
) -> int:
    """Insert a catalog badge and reload *cache* so it sees it."""
    with Session(engine) as session:
        badge = Badge(
            name=name,
            criteria_kind=criteria_kind,
            threshold=threshold,
            points_reward=points_reward,
            active=True,
            created_at=datetime(2026, 1, 1, tzinfo=UTC),
        )
        session.add(badge)
        session.commit()
        badge_id = badge.id
    if cache is not None:
        cache.reload()
    return badge_id


@pytest.fixture
def patient(engine: Engine) -> str:
    return make_patient(engine)


def make_token(sub: str = "alice", *, is_admin: bool = False) -> str:
    """Create a JWT.  Usable from fixtures and directly from tests."""
    import jwt

    from wellspring.api.deps import JWT_ALGORITHM, JWT_SECRET

    return jwt.encode(
        {"sub": sub, "is_admin": is_admin},
        JWT_SECRET,
        algorithm=JWT_ALGORITHM,
    )


@pytest.fixture
def admin_token():
    """Generate a valid admin JWT for use in API integration tests."""
    return make_token("admin-1", is_admin=True)


@pytest.fixture
def client(engine, cache):
    """FastAPI TestClient wired to the SQLite engine and its cache."""
    from fastapi.testclient import TestClient

    from wellspring.api.deps import get_cache, get_config, get_engine
    from wellspring.api.main import app
    from wellspring.config import WellspringConfig

    app.dependency_overrides[get_engine] = lambda: engine
    app.dependency_overrides[get_cache] = lambda: cache
    app.dependency_overrides[get_config] = lambda: WellspringConfig(
        platform_name="Wellspring Test",
        default_timezone="UTC",
        api_port=8000,
        leaderboard_max_limit=50,
    )
    yield TestClient(app, raise_server_exceptions=False)
    app.dependency_overrides.clear()
