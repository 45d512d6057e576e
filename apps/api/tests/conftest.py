"""
Pytest configuration and fixtures

Tests run against an in-memory SQLite database. The schema is created fresh
for every test and dropped afterwards, so nothing leaks between tests.
"""
import os
import sys
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from uuid import uuid4

# Must be set before anything imports core.config
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["LOG_FORMAT"] = "text"
os.environ["REDIS_URL"] = "redis://localhost:6379/15"
os.environ.pop("LLM_API_KEY", None)
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-testing-at-least-32-chars")

# Add the parent directory to the path so we can import from services
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest
from fastapi.testclient import TestClient

from core.database import Base, SessionLocal, engine, get_db
from core.security import create_access_token, get_password_hash
from main import app
from models import CrisisProtocol, OperatingMode, User
from services.llm_client import get_llm_client


@pytest.fixture(autouse=True)
def _schema():
    """Fresh schema per test."""
    Base.metadata.create_all(engine)
    yield
    Base.metadata.drop_all(engine)


@pytest.fixture(autouse=True)
def _no_redis(monkeypatch):
    """Rate limiting sees Redis as unavailable unless a test installs a fake."""
    monkeypatch.setattr("core.rate_limit.get_redis_client", lambda: None)
    monkeypatch.setattr("main.get_redis_client", lambda: None)


@pytest.fixture
def db_session(_schema):
    """DB session shared between test fixtures and the app via dependency override."""
    session = SessionLocal()

    def _override_get_db():
        try:
            yield session
        finally:
            pass

    app.dependency_overrides[get_db] = _override_get_db
    yield session
    app.dependency_overrides.pop(get_db, None)
    session.close()


class FakeCompletions:
    """Stands in for client.chat.completions; records every request."""

    def __init__(self, content=None, error=None):
        self.content = content
        self.error = error
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


class FakeLLMClient:
    def __init__(self, content=None, error=None):
        self.completions = FakeCompletions(content=content, error=error)
        self.chat = SimpleNamespace(completions=self.completions)


GOOD_FEEDBACK = (
    '{"triageAssessment": "You cut the meeting. Oxygen is rising.", '
    '"immediateDirective": "Call your sister before Friday."}'
)


@pytest.fixture
def llm_client():
    """Fake LLM returning a well-formed Crisis Surgeon response."""
    fake = FakeLLMClient(content=GOOD_FEEDBACK)
    app.dependency_overrides[get_llm_client] = lambda: fake
    yield fake
    app.dependency_overrides.pop(get_llm_client, None)


@pytest.fixture
def failing_llm_client():
    fake = FakeLLMClient(error=RuntimeError("connection reset"))
    app.dependency_overrides[get_llm_client] = lambda: fake
    yield fake
    app.dependency_overrides.pop(get_llm_client, None)


@pytest.fixture
def client(db_session):
    return TestClient(app)


def make_user(db, mode=OperatingMode.ASCENT, recovery_start_date=None, **kwargs) -> User:
    user = User(
        email=kwargs.pop("email", f"user_{uuid4().hex[:10]}@example.com"),
        password_hash=kwargs.pop("password_hash", get_password_hash("correct-horse-battery")),
        display_name=kwargs.pop("display_name", "Test User"),
        operating_mode=mode.value,
        recovery_start_date=recovery_start_date,
        **kwargs,
    )
    db.add(user)
    db.commit()
    return user


def make_protocol(db, user, created_at=None, **kwargs) -> CrisisProtocol:
    protocol = CrisisProtocol(
        user_id=user.id,
        crisis_type=kwargs.pop("crisis_type", "BURNOUT"),
        burden_to_cut=kwargs.pop("burden_to_cut", "Tuesday status meetings"),
        oxygen_source=kwargs.pop("oxygen_source", "Weekly call with my sister"),
        created_at=created_at or datetime.now(timezone.utc),
        **kwargs,
    )
    db.add(protocol)
    db.commit()
    return protocol


def auth_headers(user) -> dict:
    token = create_access_token(data={"sub": str(user.id)})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def test_user(db_session):
    return make_user(db_session)


@pytest.fixture
def recovery_user(db_session):
    """User 20 days into RECOVERY mode."""
    return make_user(
        db_session,
        mode=OperatingMode.RECOVERY,
        recovery_start_date=datetime.now(timezone.utc) - timedelta(days=20),
    )


@pytest.fixture
def active_protocol(db_session, recovery_user):
    return make_protocol(
        db_session,
        recovery_user,
        created_at=datetime.now(timezone.utc) - timedelta(days=20),
    )


class FakeRedis:
    """In-memory subset of the redis client used by rate limiting."""

    def __init__(self):
        self.store = {}
        self.ttls = {}

    def get(self, key):
        return self.store.get(key)

    def incr(self, key):
        self.store[key] = int(self.store.get(key, 0)) + 1
        return self.store[key]

    def expire(self, key, seconds):
        self.ttls[key] = seconds
        return True

    def ttl(self, key):
        return self.ttls.get(key, -1)
