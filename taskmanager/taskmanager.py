"""Task manager service: users, bearer-token sessions, avatars and per-user tasks."""

from typing import Any, Dict, List, Optional

from fastapi import Body, File, Query, Request, UploadFile, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from pydantic import ValidationError as PydanticValidationError
from urllib3.util.url import Url, parse_url

from taskmanager import image_ops
from taskmanager.auth_middleware import AuthMiddleware
from taskmanager.config import TaskManagerSettings, load_taskmanager_config
from taskmanager.core import SettingsLike, as_bool
from taskmanager.core.exceptions import (
    InvalidCredentialsError,
    NotFoundError,
    UpstreamError,
    ValidationError,
)
from taskmanager.credentials import CredentialService
from taskmanager.db import TaskManagerDB
from taskmanager.mailer import AccountMailer
from taskmanager.policy import TASK_UPDATE_FIELDS, USER_UPDATE_FIELDS, TaskListQuery, ensure_allowed_updates
from taskmanager.repositories import TaskRepository, UserRepository
from taskmanager.services import RequestLoggingMiddleware, Service
from taskmanager.services.service import format_validation_errors
from taskmanager.types import (
    AuthResponse,
    TaskCreateInput,
    TaskResponse,
    TaskUpdateInput,
    UserCreateInput,
    UserLoginInput,
    UserRecord,
    UserResponse,
    UserUpdateInput,
)


class TaskManagerService(Service):
    """REST service for users and their tasks.

    Registration and login return a bearer token; every other user and task route requires one. Tasks are only
    ever visible to their owner, and deleting an account deletes its tasks.

    Configuration is accessed via self.config.TASKMANAGER (see `taskmanager.config`).

    Example:
        ```python
        # Default settings (reads TASKMANAGER__* env vars)
        TaskManagerService.launch(block=True)

        # With config overrides
        TaskManagerService.launch(config_overrides=TaskManagerSettings(MONGO_DB="scratch"), block=True)
        ```
    """

    def __init__(
        self,
        *,
        url: str | Url | None = None,
        config_overrides: SettingsLike = None,
        db: Optional[TaskManagerDB] = None,
        mailer: Optional[AccountMailer] = None,
        **kwargs,
    ):
        """Initialize TaskManagerService.

        Args:
            url: Service URL override. Defaults to config.TASKMANAGER.URL.
            config_overrides: Config overrides applied over defaults and environment variables.
            db: Database wrapper. Defaults to one built from MONGO_URI / MONGO_DB.
            mailer: Account mailer. Defaults to one built from the MAIL_* settings.
            **kwargs: Passed to the Service base class.
        """
        config = load_taskmanager_config(config_overrides)
        cfg = config.TASKMANAGER
        kwargs.setdefault("log_dir", cfg.LOG_DIR)
        kwargs.setdefault("log_level", cfg.LOG_LEVEL)

        super().__init__(
            url=url if url is not None else cfg.URL,
            summary="Task Manager API",
            description="Users, bearer-token sessions, avatars and per-user tasks.",
            config=config,
            **kwargs,
        )

        self.avatar_max_bytes = int(cfg.AVATAR_MAX_BYTES)
        self.avatar_size = (int(cfg.AVATAR_WIDTH), int(cfg.AVATAR_HEIGHT))

        # Collaborators
        self.db = db or TaskManagerDB(uri=cfg.MONGO_URI, db_name=cfg.MONGO_DB)
        self.tasks = TaskRepository(self.db)
        self.users = UserRepository(self.db, self.tasks, hash_rounds=int(cfg.PASSWORD_HASH_ROUNDS))
        self.credentials = CredentialService(
            self.users,
            secret=self.config.get_secret("TASKMANAGER", "JWT_SECRET"),
            algorithm=cfg.JWT_ALGORITHM,
            expires_in=int(cfg.JWT_EXPIRES_IN),
        )
        self.mailer = mailer or AccountMailer(
            api_url=cfg.MAIL_API_URL,
            api_key=self.config.get_secret("TASKMANAGER", "MAIL_API_KEY"),
            sender=cfg.MAIL_SENDER,
            enabled=as_bool(cfg.MAIL_ENABLED),
            logger=self.logger,
        )

        # CORS - allow browser clients
        self.app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_methods=["*"],
            allow_headers=["*"],
        )

        # Auth middleware
        self.app.add_middleware(AuthMiddleware, credentials=self.credentials, logger=self.logger)

        # Request logging
        self.app.add_middleware(
            RequestLoggingMiddleware,
            service_name=self.name,
            log_metrics=True,
            add_request_id_header=True,
            logger=self.logger,
        )

        # Users
        self.add_endpoint("/users", self.register, methods=["POST"], status_code=status.HTTP_201_CREATED)
        self.add_endpoint("/users/login", self.login, methods=["POST"])
        self.add_endpoint("/users/logout", self.logout, methods=["POST"])
        self.add_endpoint("/users/logoutAll", self.logout_all, methods=["POST"])
        self.add_endpoint("/users/me", self.read_profile, methods=["GET"])
        self.add_endpoint("/users/me", self.update_profile, methods=["PATCH"])
        self.add_endpoint("/users/me", self.delete_account, methods=["DELETE"])
        self.add_endpoint("/users/me/avatar", self.upload_avatar, methods=["POST"])
        self.add_endpoint("/users/me/avatar", self.delete_avatar, methods=["DELETE"])
        self.add_endpoint("/users/{user_id}/avatar", self.read_avatar, methods=["GET"])

        # Tasks
        self.add_endpoint("/tasks", self.create_task, methods=["POST"], status_code=status.HTTP_201_CREATED)
        self.add_endpoint("/tasks", self.list_tasks, methods=["GET"])
        self.add_endpoint("/task/{task_id}", self.read_task, methods=["GET"])
        self.add_endpoint("/task/{task_id}", self.update_task, methods=["PATCH"])
        self.add_endpoint("/task/{task_id}", self.delete_task, methods=["DELETE"])

    @classmethod
    def default_url(cls) -> Url:
        """Return default URL from config (respects TASKMANAGER__URL env var)."""
        return parse_url(load_taskmanager_config().TASKMANAGER.URL)

    async def startup(self) -> None:
        """Connect to MongoDB and make sure the indexes exist."""
        await super().startup()
        await self.db.connect()
        await self.db.ensure_indexes()

    async def shutdown_cleanup(self) -> None:
        """Flush pending mail and close the database connection on shutdown."""
        await super().shutdown_cleanup()
        await self.mailer.drain()
        await self.db.disconnect()

    # =========================================================================
    # Users
    # =========================================================================

    async def register(self, payload: UserCreateInput) -> AuthResponse:
        """Create an account and sign the new user in."""
        user = await self.users.create(payload)
        self.mailer.send_welcome(user.email, user.name)
        token = await self.credentials.issue_token(user)
        return AuthResponse(user=UserResponse.from_record(user), token=token)

    async def login(self, payload: UserLoginInput) -> AuthResponse:
        """Exchange an email and password for a new token. Failures are indistinguishable to the caller."""
        try:
            user = await self.credentials.verify_credentials(payload.email, payload.password)
        except (NotFoundError, InvalidCredentialsError) as e:
            raise InvalidCredentialsError() from e
        token = await self.credentials.issue_token(user)
        return AuthResponse(user=UserResponse.from_record(user), token=token)

    async def logout(self, request: Request) -> Response:
        """Revoke the token used for this request only."""
        await self.credentials.revoke_token(_current_user(request), request.state.token)
        return Response(status_code=status.HTTP_200_OK)

    async def logout_all(self, request: Request) -> Response:
        """Revoke every token of the current user."""
        await self.credentials.revoke_all_tokens(_current_user(request))
        return Response(status_code=status.HTTP_200_OK)

    async def read_profile(self, request: Request) -> UserResponse:
        return UserResponse.from_record(_current_user(request))

    async def update_profile(self, request: Request, payload: Dict[str, Any] = Body(...)) -> UserResponse:
        """Update name, age or password. Any other key rejects the whole request."""
        ensure_allowed_updates(payload, USER_UPDATE_FIELDS)
        changes = _validate(UserUpdateInput, payload).changes()
        user = await self.users.update(_current_user(request).id, changes)
        return UserResponse.from_record(user)

    async def delete_account(self, request: Request) -> UserResponse:
        """Delete the current user and every task they own."""
        current = _current_user(request)
        try:
            user = await self.users.delete(current.id)
        except (NotFoundError, UpstreamError) as e:
            raise ValidationError(e.message) from e
        self.mailer.send_cancellation(user.email, user.name)
        return UserResponse.from_record(user)

    async def upload_avatar(self, request: Request, avatar: UploadFile = File(...)) -> Response:
        """Store a 320x240 PNG rendition of an uploaded jpg/jpeg/png no larger than the configured limit."""
        if not image_ops.is_allowed_avatar_filename(avatar.filename):
            raise ValidationError("Please upload an image")
        data = await avatar.read(self.avatar_max_bytes + 1)
        if len(data) > self.avatar_max_bytes:
            raise ValidationError("File too large")
        png = image_ops.to_avatar_png(data, *self.avatar_size)
        await self.users.set_avatar(_current_user(request).id, png)
        return Response(status_code=status.HTTP_200_OK)

    async def delete_avatar(self, request: Request) -> Response:
        await self.users.set_avatar(_current_user(request).id, None)
        return Response(status_code=status.HTTP_200_OK)

    async def read_avatar(self, user_id: str) -> Response:
        """Serve a user's avatar as PNG. Public."""
        data = await self.users.get_avatar(user_id)
        if data is None:
            raise NotFoundError("Avatar not found")
        return Response(content=data, media_type="image/png")

    # =========================================================================
    # Tasks
    # =========================================================================

    async def create_task(self, request: Request, payload: TaskCreateInput) -> TaskResponse:
        task = await self.tasks.create(_current_user(request).id, payload)
        return TaskResponse.from_record(task)

    async def list_tasks(
        self,
        request: Request,
        completed: Optional[str] = Query(default=None),
        sortedBy: Optional[str] = Query(default=None),
        limit: Optional[str] = Query(default=None),
        skip: Optional[str] = Query(default=None),
    ) -> List[TaskResponse]:
        """List the caller's tasks, optionally filtered by `completed`, sorted by `sortedBy=field:asc|desc`, and
        paginated with `limit`/`skip`."""
        query = TaskListQuery.from_params(completed=completed, sorted_by=sortedBy, limit=limit, skip=skip)
        tasks = await self.tasks.list_for_owner(_current_user(request).id, query)
        return [TaskResponse.from_record(task) for task in tasks]

    async def read_task(self, request: Request, task_id: str) -> TaskResponse:
        task = await self.tasks.get_owned(task_id, _current_user(request).id)
        return TaskResponse.from_record(task)

    async def update_task(self, request: Request, task_id: str, payload: Dict[str, Any] = Body(...)) -> TaskResponse:
        """Update description or completed. Any other key rejects the whole request."""
        ensure_allowed_updates(payload, TASK_UPDATE_FIELDS)
        changes = _validate(TaskUpdateInput, payload).changes()
        task = await self.tasks.update_owned(task_id, _current_user(request).id, changes)
        return TaskResponse.from_record(task)

    async def delete_task(self, request: Request, task_id: str) -> TaskResponse:
        task = await self.tasks.delete_owned(task_id, _current_user(request).id)
        return TaskResponse.from_record(task)


def _current_user(request: Request) -> UserRecord:
    return request.state.user


def _validate(model, payload: Dict[str, Any]):
    try:
        return model.model_validate(payload)
    except PydanticValidationError as e:
        raise ValidationError(format_validation_errors(e.errors())) from e


__all__ = ["TaskManagerService", "TaskManagerSettings"]
