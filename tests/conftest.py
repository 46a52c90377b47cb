"""
Pytest fixtures for the test suite.

Data-layer tests use an in-memory SQLite engine and a session that rolls back
after each test, so tests do not affect each other. API tests run the real
app (lifespan included) against its own in-memory database with the role
matrix and demo users seeded.
"""
from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from issuetracker.db.base import Base
from issuetracker.db.init_db import DEMO_USERS, init_db, seed_roles
from issuetracker.db.session import Database
from issuetracker.identity import normalize_role_codes
from issuetracker.main import create_app
from issuetracker.models import security as _security_models  # noqa: F401  (register tables)
from issuetracker.models import tracker as _tracker_models  # noqa: F401  (register tables)
from issuetracker.models.tracker import Bug
from issuetracker.settings import Settings

TEST_DB_URL = "sqlite:///:memory:"

SECURITY_CONFIG = Path(__file__).resolve().parents[1] / "config" / "security_config.yaml"

# Demo users keyed by their primary role code (DEV, QA, BA, PM, TM).
DEMO_BY_ROLE = {normalize_role_codes(u["role"])[0]: u for u in DEMO_USERS}


@pytest.fixture
def engine():
    """Create a fresh in-memory SQLite engine for each test."""
    return create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        echo=False,
    )


@pytest.fixture
def tables(engine):
    """Create all ORM tables on the test engine."""
    Base.metadata.create_all(bind=engine)
    return engine


@pytest.fixture
def db_session(tables):
    """
    Provide a Session bound to the test DB; roll back after each test.

    The role matrix is seeded so permission lookups have data to work with.
    """
    connection = tables.connect()
    transaction = connection.begin()
    TestSession = sessionmaker(
        bind=connection,
        autocommit=False,
        autoflush=False,
        class_=Session,
    )
    session = TestSession()
    seed_roles(session)
    yield session
    session.close()
    transaction.rollback()
    connection.close()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        db_url="sqlite://",
        security_config_path=str(SECURITY_CONFIG),
        seed_demo_data=True,
        log_level="DEBUG",
    )


@pytest.fixture
def app(settings):
    return create_app(settings)


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def app_db(client) -> Callable[[], Session]:
    """Session factory for the running app's database (for arranging and asserting)."""
    return client.app.state.database.session


@pytest.fixture
def make_bug(app_db) -> Callable[..., str]:
    def _make(**overrides) -> str:
        fields = {
            "title": "Crash on save",
            "description": "The editor crashes when saving.",
            "steps_to_reproduce": "Open a file, press save.",
            "created_by": DEMO_BY_ROLE["DEV"]["email"],
            "author_of_bug": DEMO_BY_ROLE["DEV"]["email"],
        }
        fields.update(overrides)
        with app_db() as db:
            bug = Bug(**fields)
            db.add(bug)
            db.commit()
            return bug.id

    return _make


@pytest.fixture
def users() -> dict[str, dict]:
    """Seeded demo users by role code; each has `id` and `email`."""
    return DEMO_BY_ROLE


@pytest.fixture
def auth() -> Callable[[str], dict[str, str]]:
    """auth("DEV") -> headers that authenticate as the seeded DEV user (header provider)."""

    def _headers(role_or_id: str) -> dict[str, str]:
        user = DEMO_BY_ROLE.get(role_or_id)
        token = user["id"] if user else role_or_id
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture
def database():
    """A started in-memory Database with the role matrix seeded (no demo data)."""
    db = Database("sqlite://")
    db.start()
    init_db(db)
    yield db
    db.dispose()
