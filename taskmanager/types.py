"""Request, response and record types for the task manager service."""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator

FORBIDDEN_PASSWORD_SUBSTRING = "password"
MIN_PASSWORD_LENGTH = 6


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _clean_name(value: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError("Name is required")
    return value


def _clean_password(value: str) -> str:
    value = value.strip()
    if len(value) < MIN_PASSWORD_LENGTH:
        raise ValueError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    if FORBIDDEN_PASSWORD_SUBSTRING in value.lower():
        raise ValueError('Password cannot contain "password"')
    return value


def _clean_description(value: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError("Description is required")
    return value


def _reject_nulls(data: Any) -> Any:
    """Partial updates may omit a field but never set it to null."""
    if isinstance(data, dict):
        nulls = sorted(key for key, value in data.items() if value is None)
        if nulls:
            raise ValueError(f"Fields cannot be null: {', '.join(nulls)}")
    return data


# =============================================================================
# User Inputs
# =============================================================================


class UserCreateInput(BaseModel):
    """Registration payload. Unknown keys are ignored."""

    name: str = Field(..., description="Display name")
    age: int = Field(default=0, ge=0, description="Age in years")
    email: EmailStr = Field(..., description="Unique login email")
    password: str = Field(..., description="Plain-text password, hashed before storage")

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: str) -> str:
        return _clean_name(value)

    @field_validator("password")
    @classmethod
    def validate_password(cls, value: str) -> str:
        return _clean_password(value)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return value.strip().lower()


class UserLoginInput(BaseModel):
    """Login payload."""

    email: str
    password: str

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return value.strip().lower()


class UserUpdateInput(BaseModel):
    """Profile update payload. Only the whitelisted fields are accepted."""

    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = None
    age: Optional[int] = Field(default=None, ge=0)
    password: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def reject_nulls(cls, data: Any) -> Any:
        return _reject_nulls(data)

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: Optional[str]) -> Optional[str]:
        return value if value is None else _clean_name(value)

    @field_validator("password")
    @classmethod
    def validate_password(cls, value: Optional[str]) -> Optional[str]:
        return value if value is None else _clean_password(value)

    def changes(self) -> Dict[str, Any]:
        """Fields explicitly provided by the caller."""
        return self.model_dump(exclude_unset=True)


# =============================================================================
# Task Inputs
# =============================================================================


class TaskCreateInput(BaseModel):
    """Task creation payload. Unknown keys are ignored."""

    description: str = Field(..., description="What needs doing")
    completed: bool = Field(default=False)

    @field_validator("description")
    @classmethod
    def validate_description(cls, value: str) -> str:
        return _clean_description(value)


class TaskUpdateInput(BaseModel):
    """Task update payload. Only the whitelisted fields are accepted."""

    model_config = ConfigDict(extra="forbid")

    description: Optional[str] = None
    completed: Optional[bool] = None

    @model_validator(mode="before")
    @classmethod
    def reject_nulls(cls, data: Any) -> Any:
        return _reject_nulls(data)

    @field_validator("description")
    @classmethod
    def validate_description(cls, value: Optional[str]) -> Optional[str]:
        return value if value is None else _clean_description(value)

    def changes(self) -> Dict[str, Any]:
        """Fields explicitly provided by the caller."""
        return self.model_dump(exclude_unset=True)


# =============================================================================
# Database Records
# =============================================================================


class UserRecord(BaseModel):
    """A user document as stored in MongoDB.

    `password` is always the bcrypt hash. `tokens` holds every bearer token currently active for the user, oldest
    first.
    """

    id: Optional[str] = Field(default=None, description="MongoDB document ID")
    name: str
    age: int = 0
    email: str
    password: str
    tokens: List[str] = Field(default_factory=list)
    avatar: Optional[bytes] = None
    createdAt: datetime = Field(default_factory=utcnow)
    updatedAt: datetime = Field(default_factory=utcnow)

    def to_mongo_dict(self) -> dict:
        """Convert to dictionary for MongoDB insertion (excludes None id)."""
        data = self.model_dump()
        data.pop("id")
        return data

    @classmethod
    def from_mongo_dict(cls, data: dict) -> "UserRecord":
        """Create instance from MongoDB document."""
        data = dict(data)
        if "_id" in data:
            data["id"] = str(data.pop("_id"))
        return cls(**data)


class TaskRecord(BaseModel):
    """A task document as stored in MongoDB. `owner` is the owning user's id."""

    id: Optional[str] = Field(default=None, description="MongoDB document ID")
    description: str
    completed: bool = False
    owner: str
    createdAt: datetime = Field(default_factory=utcnow)
    updatedAt: datetime = Field(default_factory=utcnow)

    def to_mongo_dict(self) -> dict:
        """Convert to dictionary for MongoDB insertion. The owner is stored as an ObjectId."""
        data = self.model_dump()
        data.pop("id")
        data["owner"] = ObjectId(self.owner)
        return data

    @classmethod
    def from_mongo_dict(cls, data: dict) -> "TaskRecord":
        data = dict(data)
        if "_id" in data:
            data["id"] = str(data.pop("_id"))
        data["owner"] = str(data["owner"])
        return cls(**data)


# =============================================================================
# Responses
# =============================================================================


class UserResponse(BaseModel):
    """Public view of a user. Never carries the password hash, tokens or avatar."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., alias="_id")
    name: str
    age: int
    email: str
    createdAt: datetime
    updatedAt: datetime

    @classmethod
    def from_record(cls, record: UserRecord) -> "UserResponse":
        return cls(
            id=record.id,
            name=record.name,
            age=record.age,
            email=record.email,
            createdAt=record.createdAt,
            updatedAt=record.updatedAt,
        )


class AuthResponse(BaseModel):
    """Returned by registration and login."""

    user: UserResponse
    token: str


class TaskResponse(BaseModel):
    """Public view of a task."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., alias="_id")
    description: str
    completed: bool
    owner: str
    createdAt: datetime
    updatedAt: datetime

    @classmethod
    def from_record(cls, record: TaskRecord) -> "TaskResponse":
        return cls(
            id=record.id,
            description=record.description,
            completed=record.completed,
            owner=record.owner,
            createdAt=record.createdAt,
            updatedAt=record.updatedAt,
        )


class StatusOutput(BaseModel):
    status: str = "Available"
