"""
Shared pytest fixtures.

Uses a file-backed SQLite database so no Postgres is required for tests.
The oracle dependency is replaced by FakeOracle, which answers from a
script instead of calling the network.
"""
import os
import uuid

os.environ["DATABASE_URL"] = "sqlite:///./test_aletheia.db"
os.environ["AI_API_KEY"] = ""

import pytest
from fastapi.testclient import TestClient

from app.core.errors import UpstreamAIError
from app.db.base import Base, SessionLocal, engine, get_db
from app.main import app
from app.services.oracle import get_oracle


class FakeOracle:
    """
    Returns queued answers in order, then `default`. With `fail=True` every
    call raises UpstreamAIError, like a timeout or a 5xx would.
    """

    def __init__(self, default: str = "", fail: bool = False):
        self.default = default
        self.fail = fail
        self.queue: list[str] = []
        self.prompts: list[str] = []

    def push(self, *answers: str) -> "FakeOracle":
        self.queue.extend(answers)
        return self

    def complete(self, prompt: str, system: str = "", json_mode: bool = False) -> str:
        self.prompts.append(prompt)
        if self.fail:
            raise UpstreamAIError("Oracle timed out.")
        if self.queue:
            return self.queue.pop(0)
        return self.default


def override_get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(scope="session", autouse=True)
def create_tables():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def oracle():
    return FakeOracle()


@pytest.fixture()
def make_oracle():
    """For service-level tests that call the oracle outside a request."""
    return FakeOracle


@pytest.fixture()
def client(db, oracle):
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_oracle] = lambda: oracle
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def unique_name(prefix: str = "seeker") -> str:
    return f"{prefix}_{uuid.uuid4().hex[:10]}"


@pytest.fixture()
def make_user(client):
    """Register a profile through the API and return its id."""

    def _make(username: str | None = None, password: str = "secret123", stats: dict | None = None) -> str:
        r = client.post("/api/auth/register", json={
            "username": username or unique_name(),
            "password": password,
            "manifesto": "I seek the truth.",
            "stats": stats or {"intelligence": 3, "physical": 2, "class": "Seeker"},
        })
        assert r.status_code == 201, r.text
        return r.json()["id"]

    return _make
