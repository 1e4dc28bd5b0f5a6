"""Fixtures for task manager API tests.

The service runs in-process behind FastAPI's TestClient with MongoDB replaced by mongomock-motor, so these tests
need no external services. Every test gets a fresh in-memory database seeded with two users and three tasks.
"""

import uuid
from dataclasses import dataclass
from io import BytesIO
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient
from mongomock_motor import AsyncMongoMockClient
from PIL import Image

from taskmanager import TaskManagerService


class InMemoryMotorClient(AsyncMongoMockClient):
    """mongomock-motor client that tolerates the service closing it on shutdown."""

    def close(self):
        pass


@dataclass
class SeededUser:
    id: str
    name: str
    email: str
    password: str
    token: str

    @property
    def headers(self):
        return {"Authorization": f"Bearer {self.token}"}


@pytest.fixture
def service():
    overrides = {
        "TASKMANAGER": {
            "MONGO_DB": f"task-manager-api-test-{uuid.uuid4().hex[:8]}",
            "JWT_SECRET": "integration-secret-0123456789abcdef",
            "PASSWORD_HASH_ROUNDS": 4,
            "MAIL_ENABLED": False,
        }
    }
    with patch("taskmanager.db.AsyncIOMotorClient", InMemoryMotorClient):
        yield TaskManagerService(config_overrides=overrides, add_file_handler=False)


@pytest.fixture
def client(service):
    with TestClient(service.app) as test_client:
        yield test_client


def _register(client, name, email, password) -> SeededUser:
    response = client.post("/users", json={"name": name, "email": email, "password": password})
    assert response.status_code == 201, response.text
    body = response.json()
    return SeededUser(id=body["user"]["_id"], name=name, email=email, password=password, token=body["token"])


def _create_task(client, user: SeededUser, description: str, completed: bool) -> dict:
    response = client.post("/tasks", json={"description": description, "completed": completed}, headers=user.headers)
    assert response.status_code == 201, response.text
    return response.json()


@pytest.fixture
def user_one(client) -> SeededUser:
    return _register(client, "testuser1", "testemail@gmail.com", "pass1234")


@pytest.fixture
def user_two(client) -> SeededUser:
    return _register(client, "testuser2", "test2email@gmail.com", "book0000")


@pytest.fixture
def task_one(client, user_one):
    return _create_task(client, user_one, "First task", completed=False)


@pytest.fixture
def task_two(client, user_one):
    return _create_task(client, user_one, "Second task", completed=True)


@pytest.fixture
def task_three(client, user_two):
    return _create_task(client, user_two, "Third task", completed=True)


@pytest.fixture
def seeded(user_one, user_two, task_one, task_two, task_three):
    """userOne owns tasks one and two; userTwo owns task three."""
    return {"user_one": user_one, "user_two": user_two, "tasks": [task_one, task_two, task_three]}


@pytest.fixture
def stored_user(client, service):
    """Read a user straight from the store, bypassing the HTTP layer."""

    def _get(user_id):
        return client.portal.call(service.users.get_by_id, user_id)

    return _get


@pytest.fixture
def jpg_bytes():
    buffer = BytesIO()
    Image.new("RGB", (640, 480), color=(10, 200, 30)).save(buffer, format="JPEG")
    return buffer.getvalue()
