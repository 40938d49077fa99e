"""Pytest configuration and fixtures."""

import sys
from pathlib import Path
# Inject sys.path for reliable pytest imports
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))  # => .../apps/api

import os
import tempfile

# The module-level engine in raid_api.db.session is built at import time;
# point it at a throwaway SQLite file before anything imports raid_api.
_TEST_DB_DIR = tempfile.mkdtemp(prefix="raid-api-tests-")
os.environ.setdefault("DATABASE_URL", f"sqlite:///{_TEST_DB_DIR}/app.db")

from datetime import datetime, timedelta, timezone
from typing import Callable

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session, sessionmaker

from raid_api.auth.tokens import TokenService
from raid_api.db.engine import build_engine, build_sessionmaker
from raid_api.db.models import Base, Character, Raid, User
from raid_api.db.session import get_db
from raid_api.main import app


class RecordingNotifier:
    """Collects notifications for assertions."""

    def __init__(self) -> None:
        self.events: list[tuple[str, object]] = []

    def raid_created(self, event) -> None:
        self.events.append(("raid_created", event))

    def raid_created_with_signup(self, event) -> None:
        self.events.append(("raid_created_with_signup", event))

    def signup_created(self, event) -> None:
        self.events.append(("signup_created", event))

    def signup_cancelled(self, event) -> None:
        self.events.append(("signup_cancelled", event))

    def names(self) -> list[str]:
        return [name for name, _ in self.events]


@pytest.fixture(scope="function")
def session_factory(tmp_path) -> sessionmaker[Session]:
    """Fresh file-backed SQLite database per test.

    File-backed (not :memory:) so worker threads in concurrency tests each
    get their own connection to the same data.
    """
    engine = build_engine(f"sqlite:///{tmp_path / 'test.db'}")
    Base.metadata.create_all(engine)
    try:
        yield build_sessionmaker(engine)
    finally:
        engine.dispose()


@pytest.fixture(scope="function")
def db_session(session_factory) -> Session:
    """Create a fresh database session for each test."""
    session = session_factory()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def notifier() -> RecordingNotifier:
    """Swap the app notifier for a recorder."""
    original = app.state.notifier
    recorder = RecordingNotifier()
    app.state.notifier = recorder
    yield recorder
    app.state.notifier = original


@pytest.fixture
def test_client(session_factory, notifier) -> TestClient:
    """TestClient with a per-request session from the test database."""

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()


@pytest.fixture
def token_service() -> TokenService:
    return app.state.token_service


@pytest.fixture
def login(test_client) -> Callable[..., tuple[int, dict[str, str]]]:
    """Log in through the API and return (identity_id, auth headers)."""

    def _login(external_id: str, display_name: str | None = None) -> tuple[int, dict[str, str]]:
        resp = test_client.post(
            "/auth/login",
            json={"externalId": external_id, "displayName": display_name or external_id},
        )
        assert resp.status_code == 200, resp.text
        body = resp.json()
        return body["identityId"], {"Authorization": f"Bearer {body['token']}"}

    return _login


# ============================================================================
# Direct-to-database builders (domain-level tests)
# ============================================================================


@pytest.fixture
def make_user(db_session) -> Callable[..., User]:
    counter = {"n": 0}

    def _make(display_name: str | None = None) -> User:
        counter["n"] += 1
        user = User(
            external_id=f"ext-{counter['n']}",
            display_name=display_name or f"Player {counter['n']}",
        )
        db_session.add(user)
        db_session.commit()
        return user

    return _make


@pytest.fixture
def make_character(db_session) -> Callable[..., Character]:
    def _make(user: User, name: str = "Hero", is_default: bool = False, **fields) -> Character:
        character = Character(user_id=user.id, name=name, is_default=is_default, **fields)
        db_session.add(character)
        db_session.commit()
        return character

    return _make


@pytest.fixture
def make_raid(db_session) -> Callable[..., Raid]:
    def _make(creator: User, title: str = "Dragon Raid", start_in: timedelta = timedelta(days=1)) -> Raid:
        raid = Raid(
            title=title,
            start_time=datetime.now(timezone.utc) + start_in,
            created_by=creator.id,
        )
        db_session.add(raid)
        db_session.commit()
        return raid

    return _make
