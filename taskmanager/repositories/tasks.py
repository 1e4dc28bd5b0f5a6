from typing import Any, Dict, List

from taskmanager.core.exceptions import NotFoundError
from taskmanager.db import TaskManagerDB
from taskmanager.policy import TaskListQuery, owned_filter, parse_object_id
from taskmanager.types import TaskCreateInput, TaskRecord, utcnow

TASK_NOT_FOUND = "Task not found"


class TaskRepository:
    """Persistence for tasks. Every read and write is scoped to the owning user."""

    COLLECTION = "tasks"

    def __init__(self, db: TaskManagerDB, collection: str = COLLECTION) -> None:
        self._db = db
        self._collection = collection

    async def create(self, owner_id: str, payload: TaskCreateInput) -> TaskRecord:
        task = TaskRecord(description=payload.description, completed=payload.completed, owner=owner_id)
        inserted_id = await self._db.insert_one(self._collection, task.to_mongo_dict())
        task.id = str(inserted_id)
        return task

    async def list_for_owner(self, owner_id: str, query: TaskListQuery) -> List[TaskRecord]:
        docs = await self._db.find_many(
            self._collection,
            query=query.to_filter(owner_id),
            sort=query.sort,
            skip=query.skip,
            limit=query.limit,
        )
        return [TaskRecord.from_mongo_dict(doc) for doc in docs]

    async def get_owned(self, task_id: str, owner_id: str) -> TaskRecord:
        query = owned_filter(task_id, owner_id)
        doc = await self._db.find_one(self._collection, query) if query else None
        if not doc:
            raise NotFoundError(TASK_NOT_FOUND)
        return TaskRecord.from_mongo_dict(doc)

    async def update_owned(self, task_id: str, owner_id: str, changes: Dict[str, Any]) -> TaskRecord:
        """Apply already-whitelisted `changes` to an owned task in a single store operation."""
        if not changes:
            return await self.get_owned(task_id, owner_id)
        query = owned_filter(task_id, owner_id)
        doc = None
        if query:
            doc = await self._db.find_one_and_update(
                self._collection, query, {"$set": {**changes, "updatedAt": utcnow()}}
            )
        if not doc:
            raise NotFoundError(TASK_NOT_FOUND)
        return TaskRecord.from_mongo_dict(doc)

    async def delete_owned(self, task_id: str, owner_id: str) -> TaskRecord:
        query = owned_filter(task_id, owner_id)
        doc = await self._db.find_one_and_delete(self._collection, query) if query else None
        if not doc:
            raise NotFoundError(TASK_NOT_FOUND)
        return TaskRecord.from_mongo_dict(doc)

    async def delete_all_for_owner(self, owner_id: str) -> int:
        """Delete every task owned by `owner_id`. Returns count deleted."""
        owner = parse_object_id(owner_id)
        if owner is None:
            return 0
        return await self._db.delete_many(self._collection, {"owner": owner})
