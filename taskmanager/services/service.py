"""Service base class. Wraps a FastAPI app with config, logging, lifecycle hooks and error mapping."""

import inspect
import logging
import threading
import time
from contextlib import asynccontextmanager
from functools import wraps
from typing import Any, Callable, Dict, List, Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from urllib3.util.url import Url, parse_url

from taskmanager.core.config import Config
from taskmanager.core.exceptions import TaskManagerError
from taskmanager.core.logger import get_logger, parse_level, setup_logger
from taskmanager.types import StatusOutput


def ifnone(val, default):
    """Return the given value if it is not None, else return the default."""
    return val if val is not None else default


class Service:
    """Base class for HTTP services.

    Subclasses register handlers with `add_endpoint`, override `startup` and `shutdown_cleanup` for resource
    lifecycle, and are run with `launch`. Every `TaskManagerError` raised from a handler becomes a JSON response
    `{"detail": <message>}` with the error's status code; request-body schema failures become 400.

    Example:
        ```python
        class EchoService(Service):
            def __init__(self, **kwargs):
                super().__init__(**kwargs)
                self.add_endpoint("/echo", self.echo, methods=["POST"])

            async def echo(self, payload: dict) -> dict:
                return payload

        EchoService.launch(url="http://localhost:8080", block=True)
        ```
    """

    DEFAULT_URL = "http://localhost:8000"

    def __init__(
        self,
        *,
        url: str | Url | None = None,
        summary: str | None = None,
        description: str | None = None,
        config: Config | None = None,
        log_dir: str | None = None,
        log_level: str | int | None = None,
        add_file_handler: bool = True,
    ):
        self.config = ifnone(config, Config())
        self._url = self.build_url(url)
        self._endpoints: List[str] = []

        setup_logger(
            "taskmanager",
            log_dir=log_dir,
            stream_level=parse_level(log_level),
            add_file_handler=add_file_handler,
        )
        self.logger = get_logger(self.unique_name).bind(service=self.name)

        self.app = FastAPI(
            title=self.name,
            summary=summary,
            description=description or "",
            lifespan=self._lifespan,
        )
        self.app.add_exception_handler(TaskManagerError, self._handle_service_error)
        self.app.add_exception_handler(RequestValidationError, self._handle_request_validation_error)

        self.add_endpoint("/status", self.status, methods=["GET"], autolog_kwargs={"log_level": logging.NOTSET})

    @property
    def name(self) -> str:
        return type(self).__name__

    @property
    def unique_name(self) -> str:
        return type(self).__module__ + "." + type(self).__name__

    @property
    def url(self) -> Url:
        return self._url

    @property
    def endpoints(self) -> List[str]:
        return list(self._endpoints)

    @classmethod
    def default_url(cls) -> Url:
        return parse_url(cls.DEFAULT_URL)

    @classmethod
    def build_url(cls, url: str | Url | None = None) -> Url:
        if url is None:
            return cls.default_url()
        return url if isinstance(url, Url) else parse_url(url)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    @asynccontextmanager
    async def _lifespan(self, app: FastAPI):
        await self.startup()
        try:
            yield
        finally:
            await self.shutdown_cleanup()

    async def startup(self) -> None:
        """Acquire resources before the first request is served."""
        self.logger.info("Service starting", url=str(self.url))

    async def shutdown_cleanup(self) -> None:
        """Release resources after the last request is served."""
        self.logger.info("Service shutting down")

    def status(self) -> StatusOutput:
        """Report that the service is up."""
        return StatusOutput(status="Available")

    # -------------------------------------------------------------------------
    # Endpoints
    # -------------------------------------------------------------------------

    def add_endpoint(
        self,
        path: str,
        func: Callable,
        *,
        methods: Optional[List[str]] = None,
        status_code: Optional[int] = None,
        api_route_kwargs: Optional[Dict[str, Any]] = None,
        autolog_kwargs: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Register `func` as the handler for `path`, wrapped with `autolog`."""
        path = path.removeprefix("/")
        api_route_kwargs = dict(ifnone(api_route_kwargs, default={}))
        autolog_kwargs = ifnone(autolog_kwargs, default={})
        if status_code is not None:
            api_route_kwargs["status_code"] = status_code
        self._endpoints.append(path)
        self.app.add_api_route(
            "/" + path,
            endpoint=self.autolog(**autolog_kwargs)(func),
            methods=ifnone(methods, default=["POST"]),
            **api_route_kwargs,
        )

    def autolog(self, log_level: int = logging.DEBUG):
        """Decorator that logs when the wrapped handler starts, finishes, or fails.

        Client errors (4xx) are logged at the decorator's level; anything else that escapes the handler is logged
        at ERROR with its traceback. Exceptions are always re-raised. Handler arguments are never logged, since
        they can carry passwords and tokens.
        """

        def decorator(function):
            operation = function.__name__

            def _started():
                if log_level:
                    self.logger.log(log_level, f"Operation {operation} started", function_name=operation)
                return time.perf_counter()

            def _completed(started_at: float):
                if log_level:
                    self.logger.log(
                        log_level,
                        f"Operation {operation} completed",
                        function_name=operation,
                        status="completed",
                        duration_ms=round((time.perf_counter() - started_at) * 1000, 3),
                    )

            def _failed(started_at: float, e: Exception):
                duration_ms = round((time.perf_counter() - started_at) * 1000, 3)
                if isinstance(e, TaskManagerError) and e.status_code < 500:
                    if log_level:
                        self.logger.log(
                            log_level,
                            f"Operation {operation} rejected",
                            function_name=operation,
                            status="rejected",
                            status_code=e.status_code,
                            error=e.message,
                            duration_ms=duration_ms,
                        )
                else:
                    self.logger.exception(
                        f"Operation {operation} failed",
                        function_name=operation,
                        status="failed",
                        duration_ms=duration_ms,
                    )

            if inspect.iscoroutinefunction(function):

                @wraps(function)
                async def async_wrapper(*args, **kwargs):
                    started_at = _started()
                    try:
                        result = await function(*args, **kwargs)
                    except Exception as e:
                        _failed(started_at, e)
                        raise
                    _completed(started_at)
                    return result

                return async_wrapper

            @wraps(function)
            def wrapper(*args, **kwargs):
                started_at = _started()
                try:
                    result = function(*args, **kwargs)
                except Exception as e:
                    _failed(started_at, e)
                    raise
                _completed(started_at)
                return result

            return wrapper

        return decorator

    # -------------------------------------------------------------------------
    # Error mapping
    # -------------------------------------------------------------------------

    async def _handle_service_error(self, request: Request, exc: TaskManagerError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})

    async def _handle_request_validation_error(self, request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"detail": format_validation_errors(exc.errors())})

    # -------------------------------------------------------------------------
    # Launching
    # -------------------------------------------------------------------------

    @classmethod
    def launch(cls, *, url: str | None = None, block: bool = True, **kwargs) -> Optional[uvicorn.Server]:
        """Instantiate the service and serve it with uvicorn.

        Args:
            url: Address to bind. Defaults to `default_url()`.
            block: Serve in the calling thread until interrupted. When False the server runs in a daemon thread and
                the `uvicorn.Server` is returned so the caller can stop it by setting `should_exit`.
            **kwargs: Passed to the service constructor.
        """
        service = cls(url=url, **kwargs)
        parsed = service.url
        server = uvicorn.Server(
            uvicorn.Config(service.app, host=parsed.host or "localhost", port=parsed.port or 80, log_level="warning")
        )
        if block:
            server.run()
            return None
        thread = threading.Thread(target=server.run, name=f"{cls.__name__}-server", daemon=True)
        thread.start()
        return server


def format_validation_errors(errors) -> str:
    """Flatten pydantic/FastAPI validation errors into one readable message."""
    messages = []
    for error in errors:
        loc = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
        msg = error.get("msg", "Invalid value")
        messages.append(f"{'.'.join(loc)}: {msg}" if loc else msg)
    return "; ".join(messages) or "Invalid request"
