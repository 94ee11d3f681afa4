"""
Shared fixtures: every test gets a fresh app over empty in-memory stores.
"""
from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from todo_api.main import create_app
from todo_api.repositories import InMemoryTodoRepository, InMemoryUserRepository
from todo_api.settings import Settings

TEST_SECRET = "test-secret-for-signing-tokens-0123456789"


@pytest.fixture
def settings() -> Settings:
    return Settings(
        env="test",
        log_level="WARNING",
        persistence_backend="memory",
        sqlite_db_path=":memory:",
        cors_allow_origins=["*"],
        jwt_secret=TEST_SECRET,
        jwt_expires_in=timedelta(hours=24),
        jwt_issuer="todo-api-tests",
        bcrypt_rounds=4,
        port=4000,
    )


@pytest.fixture
def user_repo() -> InMemoryUserRepository:
    return InMemoryUserRepository()


@pytest.fixture
def todo_repo() -> InMemoryTodoRepository:
    return InMemoryTodoRepository()


@pytest.fixture
def app(settings, user_repo, todo_repo):
    return create_app(settings=settings, users=user_repo, todos=todo_repo)


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app)


def register(client: TestClient, name="Ann", email="ann@x.com", password="secret1", username=None) -> dict:
    payload = {"name": name, "email": email, "password": password}
    if username is not None:
        payload["username"] = username
    res = client.post("/api/auth/register", json=payload)
    assert res.status_code == 201, res.text
    return res.json()


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def ann(client) -> dict:
    """Registered user 'Ann': {"token": ..., "user": {...}}."""
    return register(client, name="Ann", email="ann@x.com")


@pytest.fixture
def bob(client) -> dict:
    return register(client, name="Bob", email="bob@x.com")
