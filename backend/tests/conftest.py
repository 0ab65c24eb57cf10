import json

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

import aimednet.models  # noqa: F401
from aimednet.core import sessions
from aimednet.core.config import settings
from aimednet.core.db import get_db_session
from aimednet.main import app

# Fast KDF for tests; production keeps the configured iteration count
TEST_PBKDF2_ITERATIONS = 1000


class FakeRedis:
    """Dict-backed stand-in for the handful of Redis commands the server uses."""

    def __init__(self):
        self.store = {}
        self.ttls = {}
        self.published = []
        self.lists = {}

    def ping(self):
        return True

    def get(self, key):
        return self.store.get(key)

    def setex(self, key, seconds, value):
        self.store[key] = value
        self.ttls[key] = seconds
        return True

    def delete(self, key):
        self.ttls.pop(key, None)
        return 1 if self.store.pop(key, None) is not None else 0

    def incr(self, key):
        value = int(self.store.get(key, 0)) + 1
        self.store[key] = str(value)
        return value

    def ttl(self, key):
        if key not in self.store:
            return -2
        return self.ttls.get(key, -1)

    def expire(self, key, seconds):
        self.ttls[key] = seconds
        return True

    def publish(self, channel, message):
        self.published.append((channel, message))
        return 0

    def rpush(self, key, value):
        self.lists.setdefault(key, []).append(value)
        return len(self.lists[key])

    def events(self, table=None):
        """Published ChangeEvents as dicts (one per event, not per channel)."""
        messages = list(dict.fromkeys(message for _, message in self.published))
        decoded = [json.loads(message) for message in messages]
        if table is None:
            return decoded
        return [event for event in decoded if event["table"] == table]


@pytest.fixture(autouse=True)
def fast_kdf(monkeypatch):
    monkeypatch.setattr(settings, "PBKDF2_ITERATIONS", TEST_PBKDF2_ITERATIONS)


@pytest.fixture
def fake_redis(monkeypatch):
    fake = FakeRedis()
    monkeypatch.setattr(sessions, "redis_client", fake)
    return fake


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)


@pytest.fixture
def make_client(engine, fake_redis):
    def override_get_db_session():
        with Session(engine) as session:
            yield session

    app.dependency_overrides[get_db_session] = override_get_db_session

    # No context manager: the lifespan (real database and Redis) is not run
    def _make_client():
        return TestClient(app, base_url="https://testserver")

    yield _make_client
    app.dependency_overrides.clear()


@pytest.fixture
def client(make_client):
    return make_client()


def signup(client, email, full_name="Test User", password="Password1!"):
    response = client.post(
        f"{settings.API_V1_STR}/auth/signup",
        json={"email": email, "full_name": full_name, "password": password},
    )
    assert response.status_code == 201, response.text
    return response.json()


def login(client, email, password="Password1!"):
    response = client.post(
        f"{settings.API_V1_STR}/auth/login",
        json={"email": email, "password": password},
    )
    assert response.status_code == 200, response.text
    body = response.json()
    client.headers["X-CSRF-Token"] = body["csrf_token"]
    return body


@pytest.fixture
def signed_in(make_client):
    """Factory: a fresh client signed in as a newly registered user."""

    def _signed_in(email, full_name="Test User", password="Password1!"):
        user_client = make_client()
        signup(user_client, email, full_name, password)
        return user_client, login(user_client, email, password)

    return _signed_in
