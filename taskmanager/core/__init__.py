from taskmanager.core.config import Config, SettingsLike, as_bool
from taskmanager.core.exceptions import (
    AuthenticationError,
    DuplicateInsertError,
    InvalidCredentialsError,
    NotFoundError,
    TaskManagerError,
    UpstreamError,
    ValidationError,
)
from taskmanager.core.logger import get_logger, setup_logger

__all__ = [
    "AuthenticationError",
    "Config",
    "DuplicateInsertError",
    "InvalidCredentialsError",
    "NotFoundError",
    "SettingsLike",
    "TaskManagerError",
    "UpstreamError",
    "ValidationError",
    "as_bool",
    "get_logger",
    "setup_logger",
]
