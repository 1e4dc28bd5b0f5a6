"""Error taxonomy for the task manager service.

Each error carries the HTTP status code it maps to, so the service layer can translate any of them into a JSON
response without inspecting the concrete type.
"""

from fastapi import status


class TaskManagerError(Exception):
    """Base class for all task manager errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(TaskManagerError):
    """Raised when a request is well-formed but violates a business rule."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid request"


class InvalidCredentialsError(ValidationError):
    """Raised when an email/password pair does not verify."""

    default_message = "Login failed."


class DuplicateInsertError(ValidationError):
    """Raised when a document violates a unique index."""

    default_message = "Duplicate key"


class AuthenticationError(TaskManagerError):
    """Raised when a bearer token is missing, invalid, or no longer active."""

    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Token is not correct."


class NotFoundError(TaskManagerError):
    """Raised when a record does not exist or is not visible to the caller."""

    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


class UpstreamError(TaskManagerError):
    """Raised when the document store or another collaborator fails."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Upstream failure"


__all__ = [
    "AuthenticationError",
    "DuplicateInsertError",
    "InvalidCredentialsError",
    "NotFoundError",
    "TaskManagerError",
    "UpstreamError",
    "ValidationError",
]
