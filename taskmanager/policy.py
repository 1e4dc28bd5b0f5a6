"""Ownership and field-whitelist rules.

Every task query the service issues is built here, so a task is only ever addressed together with its owner.
A task that does not exist, belongs to someone else, or has a malformed id is reported the same way.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from bson import ObjectId

from taskmanager.core.exceptions import ValidationError

USER_UPDATE_FIELDS = frozenset({"name", "age", "password"})
TASK_UPDATE_FIELDS = frozenset({"description", "completed"})
TASK_SORT_FIELDS = frozenset({"_id", "createdAt", "updatedAt", "description", "completed"})

INVALID_UPDATES_MESSAGE = "Invalid updates!"


def ensure_allowed_updates(payload: Mapping[str, Any], allowed: Iterable[str]) -> None:
    """Reject the whole update if any key falls outside the allow-list.

    Raises:
        ValidationError: If `payload` is not an object or names a field outside `allowed`.
    """
    if not isinstance(payload, Mapping):
        raise ValidationError(INVALID_UPDATES_MESSAGE)
    disallowed = set(payload) - set(allowed)
    if disallowed:
        raise ValidationError(f"{INVALID_UPDATES_MESSAGE} Unknown fields: {', '.join(sorted(disallowed))}")


def parse_object_id(value: str) -> Optional[ObjectId]:
    """Return the ObjectId for `value`, or None if it is not a valid id."""
    if isinstance(value, ObjectId):
        return value
    if not isinstance(value, str) or not ObjectId.is_valid(value):
        return None
    return ObjectId(value)


def owned_filter(task_id: str, owner_id: str) -> Optional[Dict[str, Any]]:
    """Build the `{_id, owner}` filter for a single owned task.

    Returns None when either id is malformed, which callers treat as not found.
    """
    oid = parse_object_id(task_id)
    owner = parse_object_id(owner_id)
    if oid is None or owner is None:
        return None
    return {"_id": oid, "owner": owner}


def _parse_non_negative_int(value: Optional[str]) -> Optional[int]:
    if value is None:
        return None
    try:
        parsed = int(str(value).strip())
    except ValueError:
        return None
    return parsed if parsed >= 0 else None


def _parse_sort(value: Optional[str]) -> List[Tuple[str, int]]:
    if not value:
        return []
    name, _, direction = value.partition(":")
    name = name.strip()
    if name not in TASK_SORT_FIELDS:
        return []
    return [(name, 1 if direction == "asc" else -1)]


@dataclass
class TaskListQuery:
    """Filter, sort and pagination for listing a caller's tasks.

    Attributes:
        completed: Equality filter on `completed`, or None for no filter.
        sort: Sort keys as (field, direction) pairs.
        skip: Number of matches to skip.
        limit: Maximum number of matches, 0 for no limit.
    """

    completed: Optional[bool] = None
    sort: List[Tuple[str, int]] = field(default_factory=list)
    skip: int = 0
    limit: int = 0

    @classmethod
    def from_params(
        cls,
        completed: Optional[str] = None,
        sorted_by: Optional[str] = None,
        limit: Optional[str] = None,
        skip: Optional[str] = None,
    ) -> "TaskListQuery":
        """Parse raw query-string values.

        `completed` is true only for the literal "true"; any other non-empty value filters for incomplete tasks.
        `sorted_by` takes the form `field:asc|desc` and sorts descending unless the direction is exactly "asc";
        unknown fields are ignored. Non-numeric or negative `limit`/`skip` values are treated as absent.
        """
        return cls(
            completed=(completed == "true") if completed else None,
            sort=_parse_sort(sorted_by),
            skip=_parse_non_negative_int(skip) or 0,
            limit=_parse_non_negative_int(limit) or 0,
        )

    def to_filter(self, owner_id: str) -> Dict[str, Any]:
        """Mongo filter scoped to `owner_id`."""
        owner = parse_object_id(owner_id)
        if owner is None:
            raise ValidationError("Invalid owner id")
        query: Dict[str, Any] = {"owner": owner}
        if self.completed is not None:
            query["completed"] = self.completed
        return query
