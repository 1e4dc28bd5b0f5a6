from taskmanager.repositories.tasks import TaskRepository
from taskmanager.repositories.users import UserRepository

__all__ = ["TaskRepository", "UserRepository"]
