"""Configuration for the task manager service.

Uses taskmanager.core.Config for environment variable override support.
Environment variables use the TASKMANAGER__ prefix (e.g., TASKMANAGER__URL=http://0.0.0.0:3000).
"""

from typing import Optional

from pydantic import BaseModel, Field, SecretStr

from taskmanager.core import Config, SettingsLike


class TaskManagerSettings(BaseModel):
    """Task manager service configuration settings."""

    # Service URL (e.g., http://localhost:3000)
    URL: str = "http://localhost:3000"

    # MongoDB connection
    MONGO_URI: str = "mongodb://localhost:27017"
    MONGO_DB: str = "task-manager-api"

    # Authentication
    JWT_SECRET: SecretStr = SecretStr("dev-jwt-secret-change-me-in-production")
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRES_IN: int = 2 * 24 * 60 * 60
    PASSWORD_HASH_ROUNDS: int = 8

    # Avatars
    AVATAR_MAX_BYTES: int = 1_000_000
    AVATAR_WIDTH: int = 320
    AVATAR_HEIGHT: int = 240

    # Account email
    MAIL_ENABLED: bool = False
    MAIL_API_URL: Optional[str] = None
    MAIL_API_KEY: Optional[SecretStr] = None
    MAIL_SENDER: str = "taskApp@allmight.today"

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "~/.cache/taskmanager/logs"
    DEBUG: bool = False


class TaskManagerConfig(BaseModel):
    """Top-level config layout. Settings live under the TASKMANAGER section."""

    TASKMANAGER: TaskManagerSettings = Field(default_factory=TaskManagerSettings)


# Module-level config cache
_config: Optional[Config] = None


def load_taskmanager_config(overrides: SettingsLike = None) -> Config:
    """Load a fresh task manager Config.

    Only the fields explicitly set on a `TaskManagerSettings` override are applied, under the TASKMANAGER section,
    so unset fields keep their environment values. Any other override must already be keyed by section, e.g.
    ``{"TASKMANAGER": {"MONGO_DB": "test"}}``.
    """
    if isinstance(overrides, TaskManagerSettings):
        overrides = {"TASKMANAGER": overrides.model_dump(exclude_unset=True)}
    return Config.load(defaults=TaskManagerConfig(), overrides=overrides)


def get_taskmanager_config() -> Config:
    """Get the task manager configuration singleton.

    Configuration is loaded once and cached. Supports environment variable overrides using the TASKMANAGER__
    prefix.

    Examples:
        ```bash
        export TASKMANAGER__URL=http://0.0.0.0:3000
        export TASKMANAGER__MONGO_URI=mongodb://mongo:27017
        export TASKMANAGER__JWT_SECRET=change-me
        ```

        ```python
        config = get_taskmanager_config()
        print(config.TASKMANAGER.URL)  # http://localhost:3000
        print(config.get_secret("TASKMANAGER", "JWT_SECRET"))
        ```

    Returns:
        Config instance with a TASKMANAGER section containing all settings.
    """
    global _config
    if _config is None:
        _config = load_taskmanager_config()
    return _config


def reset_taskmanager_config() -> None:
    """Reset the config cache. Useful for testing."""
    global _config
    _config = None
