"""Entry point for running the task manager via `python -m taskmanager`."""

from taskmanager import TaskManagerService
from taskmanager.config import get_taskmanager_config


def main() -> None:
    config = get_taskmanager_config()
    url = config.TASKMANAGER.URL

    print(f"Starting task manager service at {url}...")
    print("Press Ctrl+C to stop.")

    TaskManagerService.launch(url=url, block=True)


if __name__ == "__main__":
    main()
