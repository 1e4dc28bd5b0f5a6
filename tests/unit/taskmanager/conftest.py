"""Pytest fixtures for task manager unit tests."""

import os
from io import BytesIO
from unittest.mock import AsyncMock, MagicMock

import pytest
from bson import ObjectId
from PIL import Image

from taskmanager.config import reset_taskmanager_config
from taskmanager.types import TaskRecord, UserRecord


@pytest.fixture(autouse=True)
def reset_config():
    """Reset task manager config before each test to ensure clean state."""
    reset_taskmanager_config()
    yield
    reset_taskmanager_config()


@pytest.fixture
def user_id():
    return str(ObjectId())


@pytest.fixture
def sample_user(user_id):
    """A stored user with one active token."""
    return UserRecord(
        id=user_id,
        name="testuser1",
        age=0,
        email="testemail@gmail.com",
        password="$2b$08$abcdefghijklmnopqrstuuS1pM2x7uZ8iWbY4m1kq7Jf0nq9eHrGm",
        tokens=["token-one"],
    )


@pytest.fixture
def sample_task(user_id):
    return TaskRecord(id=str(ObjectId()), description="First task", completed=False, owner=user_id)


@pytest.fixture
def mock_db():
    """A TaskManagerDB stand-in whose CRUD methods are AsyncMocks."""
    db = MagicMock()
    for method in (
        "insert_one",
        "find_one",
        "find_many",
        "find_one_and_update",
        "find_one_and_delete",
        "delete_many",
        "connect",
        "disconnect",
        "ensure_indexes",
    ):
        setattr(db, method, AsyncMock())
    return db


@pytest.fixture
def sample_image_bytes():
    """A 100x50 red PNG."""
    buffer = BytesIO()
    Image.new("RGB", (100, 50), color=(255, 0, 0)).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def env_override():
    """Context manager fixture for temporarily overriding environment variables."""

    class EnvOverride:
        def __init__(self):
            self._original = {}

        def set(self, **kwargs):
            """Set environment variables, storing originals for restoration."""
            for key, value in kwargs.items():
                if key not in self._original:
                    self._original[key] = os.environ.get(key)
                os.environ[key] = str(value)

        def restore(self):
            """Restore original environment variables."""
            for key, original_value in self._original.items():
                if original_value is None:
                    os.environ.pop(key, None)
                else:
                    os.environ[key] = original_value
            self._original.clear()

    override = EnvOverride()
    yield override
    override.restore()
