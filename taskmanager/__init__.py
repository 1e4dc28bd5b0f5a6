"""Task manager - a REST service for users and their tasks.

This package provides TaskManagerService, built from:

- Configuration via taskmanager.core.Config (TASKMANAGER__* environment overrides)
- Async MongoDB access through motor
- Bearer token authentication against persisted per-user token lists
- Owner-scoped task queries with filtering, sorting and pagination
- Avatar upload and PNG transcoding
- Fire-and-forget account email

Example:
    Launch the service:
    ```python
    from taskmanager import TaskManagerService

    TaskManagerService.launch(block=True)
    ```

    Via command line:
    ```bash
    python -m taskmanager
    ```
"""

from . import image_ops
from .auth_middleware import AuthMiddleware
from .config import TaskManagerSettings, get_taskmanager_config, reset_taskmanager_config
from .credentials import CredentialService
from .db import TaskManagerDB
from .mailer import AccountMailer
from .repositories import TaskRepository, UserRepository
from .taskmanager import TaskManagerService

__all__ = [
    "AccountMailer",
    "AuthMiddleware",
    "CredentialService",
    "TaskManagerDB",
    "TaskManagerService",
    "TaskManagerSettings",
    "TaskRepository",
    "UserRepository",
    "get_taskmanager_config",
    "image_ops",
    "reset_taskmanager_config",
]
