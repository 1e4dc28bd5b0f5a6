import logging
import os
from collections import OrderedDict
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

import structlog

DEFAULT_LOG_DIR = os.path.join("~", ".cache", "taskmanager", "logs")

_KEY_ORDER = [
    "timestamp",
    "event",
    "service",
    "request_id",
    "method",
    "path",
    "status_code",
    "duration_ms",
    "level",
    "logger",
]


def _enforce_key_order_processor(key_order: list[str]):
    def _processor(_logger, _method_name, event_dict):
        ordered = OrderedDict()
        for key in key_order:
            if key in event_dict:
                ordered[key] = event_dict.pop(key)
        for k in sorted(event_dict.keys()):
            ordered[k] = event_dict[k]
        return ordered

    return _processor


def setup_logger(
    name: str = "taskmanager",
    *,
    log_dir: Optional[str | Path] = None,
    logger_level: int = logging.DEBUG,
    stream_level: int = logging.INFO,
    add_stream_handler: bool = True,
    file_level: int = logging.DEBUG,
    add_file_handler: bool = True,
    propagate: bool = False,
    max_bytes: int = 10 * 1024 * 1024,  # 10 MB
    backup_count: int = 5,
    structlog_json: bool = True,
    structlog_bind: Optional[dict] = None,
) -> structlog.stdlib.BoundLogger:
    """Configure a named logger and return a structlog BoundLogger over it.

    Sets up a rotating file handler and a console handler on the stdlib logger, and configures structlog to render
    each event through them. The log file defaults to ~/.cache/taskmanager/logs/{name}.log.

    Args:
        name: Logger name, defaults to "taskmanager".
        log_dir: Custom directory for the log file.
        logger_level: Overall logger level.
        stream_level: StreamHandler level.
        add_stream_handler: Whether to add a stream handler.
        file_level: FileHandler level.
        add_file_handler: Whether to add a rotating file handler.
        propagate: Whether the logger should propagate messages to ancestor loggers.
        max_bytes: Maximum size in bytes before rotating the log file.
        backup_count: Number of backup files to retain.
        structlog_json: Render JSON if True, otherwise use the console renderer.
        structlog_bind: Fields bound to every event emitted by the returned logger.

    Returns:
        structlog.stdlib.BoundLogger: Configured logger instance.
    """
    renderer = structlog.processors.JSONRenderer() if structlog_json else structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="ISO"),
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            _enforce_key_order_processor(_KEY_ORDER),
            renderer,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )

    stdlib_logger = logging.getLogger(name)
    stdlib_logger.handlers.clear()
    stdlib_logger.setLevel(logger_level)
    stdlib_logger.propagate = propagate

    if add_stream_handler:
        stream_handler = logging.StreamHandler()
        stream_handler.setLevel(stream_level)
        stream_handler.setFormatter(logging.Formatter("%(message)s"))
        stdlib_logger.addHandler(stream_handler)

    if add_file_handler:
        log_file_path = Path(os.path.expanduser(str(log_dir or DEFAULT_LOG_DIR))) / f"{name}.log"
        os.makedirs(log_file_path.parent, exist_ok=True)
        file_handler = RotatingFileHandler(filename=str(log_file_path), maxBytes=max_bytes, backupCount=backup_count)
        file_handler.setLevel(file_level)
        file_handler.setFormatter(logging.Formatter("%(message)s"))
        stdlib_logger.addHandler(file_handler)

    bound_logger = structlog.get_logger(name)
    if structlog_bind:
        bound_logger = bound_logger.bind(**structlog_bind)
    return bound_logger


def get_logger(name: str | None = "taskmanager", **kwargs) -> structlog.stdlib.BoundLogger:
    """
    Create or retrieve a named structured logger.

    Names are placed under the "taskmanager" hierarchy. A logger that already has handlers is returned as-is;
    otherwise it is configured through `setup_logger` with any keyword overrides.

    Example:
        .. code-block:: python

            from taskmanager.core.logger import get_logger

            logger = get_logger("repositories.users")
            logger.info("User created", user_id="64f0c...")
    """
    if not name:
        name = "taskmanager"
    full_name = name if name.startswith("taskmanager") else f"taskmanager.{name}"

    if logging.getLogger(full_name).handlers and not kwargs:
        return structlog.get_logger(full_name)

    kwargs.setdefault("propagate", True)
    if full_name != "taskmanager":
        # Child loggers hand records to the root "taskmanager" handlers
        kwargs.setdefault("add_stream_handler", False)
        kwargs.setdefault("add_file_handler", False)
    return setup_logger(full_name, **kwargs)


def parse_level(level: str | int | None, default: int = logging.INFO) -> int:
    """Translate a level name such as "DEBUG" into its numeric value."""
    if level is None:
        return default
    if isinstance(level, int):
        return level
    value = logging.getLevelName(str(level).upper())
    return value if isinstance(value, int) else default
