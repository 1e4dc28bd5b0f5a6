import logging

import pytest


def by_integration_marker(item):
    # Unit tests first, then integration tests
    return 1 if item.get_closest_marker("integration") or "integration" in str(item.fspath) else 0


def pytest_addoption(parser):
    parser.addoption("--integration-last", action="store_true", default=False)


def pytest_collection_modifyitems(items, config):
    if config.getoption("--integration-last"):
        items.sort(key=by_integration_marker)


@pytest.fixture(autouse=True)
def configure_logging_for_tests(caplog):
    """Let caplog see records from the task manager loggers.

    The service configures its "taskmanager" logger not to propagate; tests flip that so caplog can capture them.
    """
    caplog.set_level(logging.DEBUG)

    taskmanager_logger = logging.getLogger("taskmanager")
    original_propagate = taskmanager_logger.propagate
    taskmanager_logger.propagate = True

    yield

    taskmanager_logger.propagate = original_propagate
