"""Pytest fixtures for the task manager API and client."""

import os

# Set env vars before importing anything from the app
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("ALGORITHM", "HS256")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest
from fastapi.testclient import TestClient

from auth import AccountService
from database import Database, get_db
from tasks import TaskService


@pytest.fixture
def db():
    # A fresh store per test
    return Database()


@pytest.fixture
def client(db):
    from main import app

    app.dependency_overrides[get_db] = lambda: db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def accounts(db):
    return AccountService(db)


@pytest.fixture
def task_service(db):
    return TaskService(db)


@pytest.fixture
def user(accounts):
    return accounts.signup({"email": "test@example.com", "password": "secret1", "name": "Tester"})


@pytest.fixture
def other_user(accounts):
    return accounts.signup({"email": "other@example.com", "password": "secret2"})


@pytest.fixture
def auth_headers(user):
    return {"Authorization": f"Bearer {user.token}"}


@pytest.fixture
def other_headers(other_user):
    return {"Authorization": f"Bearer {other_user.token}"}


@pytest.fixture
def make_task(client, auth_headers):
    def _make_task(title="Task", deadline="2099-01-01T00:00:00Z", headers=None, **fields):
        response = client.post(
            "/tasks",
            json={"title": title, "deadline": deadline, **fields},
            headers=headers or auth_headers,
        )
        assert response.status_code == 201, response.text
        return response.json()["task"]

    return _make_task
