"""Unit tests for ownership filters, update whitelists and list query parsing."""

import pytest
from bson import ObjectId

from taskmanager.core.exceptions import ValidationError
from taskmanager.policy import (
    TASK_UPDATE_FIELDS,
    USER_UPDATE_FIELDS,
    TaskListQuery,
    ensure_allowed_updates,
    owned_filter,
    parse_object_id,
)


class TestEnsureAllowedUpdates:
    """Tests for the field whitelist."""

    def test_allowed_user_fields_pass(self):
        ensure_allowed_updates({"name": "Mike", "age": 30, "password": "secret99"}, USER_UPDATE_FIELDS)

    def test_empty_update_passes(self):
        ensure_allowed_updates({}, TASK_UPDATE_FIELDS)

    def test_unknown_field_rejects_whole_update(self):
        """Test that one bad key rejects the update and the message names it."""
        with pytest.raises(ValidationError) as exc_info:
            ensure_allowed_updates({"name": "Mike", "location": "Philadelphia"}, USER_UPDATE_FIELDS)

        assert exc_info.value.status_code == 400
        assert "Invalid updates!" in exc_info.value.message
        assert "location" in exc_info.value.message

    @pytest.mark.parametrize("field", ["email", "tokens", "_id", "avatar"])
    def test_protected_user_fields_rejected(self, field):
        with pytest.raises(ValidationError):
            ensure_allowed_updates({field: "x"}, USER_UPDATE_FIELDS)

    def test_owner_cannot_be_reassigned(self):
        with pytest.raises(ValidationError):
            ensure_allowed_updates({"owner": str(ObjectId())}, TASK_UPDATE_FIELDS)

    def test_non_mapping_rejected(self):
        with pytest.raises(ValidationError):
            ensure_allowed_updates(["description"], TASK_UPDATE_FIELDS)


class TestOwnedFilter:
    """Tests for owner-scoped task filters."""

    def test_builds_id_and_owner(self):
        task_id, owner_id = str(ObjectId()), str(ObjectId())

        query = owned_filter(task_id, owner_id)

        assert query == {"_id": ObjectId(task_id), "owner": ObjectId(owner_id)}

    def test_malformed_task_id_returns_none(self):
        assert owned_filter("not-an-id", str(ObjectId())) is None

    def test_malformed_owner_returns_none(self):
        assert owned_filter(str(ObjectId()), "nope") is None

    def test_parse_object_id_passes_through_objectids(self):
        oid = ObjectId()
        assert parse_object_id(oid) is oid
        assert parse_object_id(None) is None


class TestTaskListQuery:
    """Tests for TaskListQuery.from_params."""

    def test_defaults(self):
        """Test that no parameters means no filter, no sort and no pagination."""
        query = TaskListQuery.from_params()

        assert query.completed is None
        assert query.sort == []
        assert (query.skip, query.limit) == (0, 0)

    @pytest.mark.parametrize(
        "raw, expected",
        [("true", True), ("false", False), ("yes", False), ("", None), (None, None)],
    )
    def test_completed_parsing(self, raw, expected):
        """Test that only the literal "true" selects completed tasks."""
        assert TaskListQuery.from_params(completed=raw).completed is expected

    def test_sort_desc(self):
        assert TaskListQuery.from_params(sorted_by="createdAt:desc").sort == [("createdAt", -1)]

    def test_sort_asc(self):
        assert TaskListQuery.from_params(sorted_by="description:asc").sort == [("description", 1)]

    @pytest.mark.parametrize("raw", ["description", "description:", "description:ASC", "description:up"])
    def test_sort_defaults_to_descending(self, raw):
        """Test that only the exact direction "asc" sorts ascending."""
        assert TaskListQuery.from_params(sorted_by=raw).sort == [("description", -1)]

    def test_sort_by_id(self):
        assert TaskListQuery.from_params(sorted_by="_id:asc").sort == [("_id", 1)]

    def test_unknown_sort_field_ignored(self):
        assert TaskListQuery.from_params(sorted_by="owner:desc").sort == []

    def test_pagination(self):
        query = TaskListQuery.from_params(limit="2", skip="4")

        assert (query.limit, query.skip) == (2, 4)

    @pytest.mark.parametrize("raw", ["abc", "-3", "1.5"])
    def test_invalid_pagination_treated_as_absent(self, raw):
        query = TaskListQuery.from_params(limit=raw, skip=raw)

        assert (query.limit, query.skip) == (0, 0)

    def test_to_filter_scopes_to_owner(self):
        """Test that the filter always carries the owner and the completed flag when given."""
        owner_id = str(ObjectId())

        assert TaskListQuery().to_filter(owner_id) == {"owner": ObjectId(owner_id)}
        assert TaskListQuery(completed=True).to_filter(owner_id) == {"owner": ObjectId(owner_id), "completed": True}

    def test_to_filter_rejects_bad_owner(self):
        with pytest.raises(ValidationError):
            TaskListQuery().to_filter("bad-owner")
