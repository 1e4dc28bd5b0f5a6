from typing import Any, Dict, Optional

from taskmanager.core.exceptions import DuplicateInsertError, NotFoundError, ValidationError
from taskmanager.core.security import DEFAULT_HASH_ROUNDS, hash_password
from taskmanager.db import TaskManagerDB
from taskmanager.policy import parse_object_id
from taskmanager.repositories.tasks import TaskRepository
from taskmanager.types import UserCreateInput, UserRecord, utcnow

USER_NOT_FOUND = "User not found"
EMAIL_TAKEN = "Email is already registered"


class UserRepository:
    """Persistence for users.

    Two steps run explicitly around writes:

    - before persisting, any plaintext password is replaced by its bcrypt hash;
    - before deleting a user, every task the user owns is deleted.

    The cascade is sequential and not transactional. If the user delete fails after the tasks are gone, the
    tasks are not restored.
    """

    COLLECTION = "users"

    def __init__(
        self,
        db: TaskManagerDB,
        tasks: TaskRepository,
        *,
        hash_rounds: int = DEFAULT_HASH_ROUNDS,
        collection: str = COLLECTION,
    ) -> None:
        self._db = db
        self._tasks = tasks
        self._hash_rounds = hash_rounds
        self._collection = collection

    def _prepare_changes(self, changes: Dict[str, Any]) -> Dict[str, Any]:
        prepared = dict(changes)
        if "password" in prepared:
            prepared["password"] = hash_password(prepared["password"], rounds=self._hash_rounds)
        return prepared

    async def create(self, payload: UserCreateInput) -> UserRecord:
        """Persist a new user with a hashed password and an empty token list.

        Raises:
            ValidationError: If the email is already registered.
        """
        prepared = self._prepare_changes(payload.model_dump())
        user = UserRecord(**prepared)
        try:
            inserted_id = await self._db.insert_one(self._collection, user.to_mongo_dict())
        except DuplicateInsertError as e:
            raise ValidationError(EMAIL_TAKEN) from e
        user.id = str(inserted_id)
        return user

    async def get_by_id(self, user_id: str) -> Optional[UserRecord]:
        oid = parse_object_id(user_id)
        if oid is None:
            return None
        doc = await self._db.find_one(self._collection, {"_id": oid})
        return UserRecord.from_mongo_dict(doc) if doc else None

    async def get_by_email(self, email: str) -> Optional[UserRecord]:
        doc = await self._db.find_one(self._collection, {"email": email.strip().lower()})
        return UserRecord.from_mongo_dict(doc) if doc else None

    async def get_by_id_and_token(self, user_id: str, token: str) -> Optional[UserRecord]:
        """Return the user only while `token` is still in its active token list."""
        oid = parse_object_id(user_id)
        if oid is None:
            return None
        doc = await self._db.find_one(self._collection, {"_id": oid, "tokens": token})
        return UserRecord.from_mongo_dict(doc) if doc else None

    async def update(self, user_id: str, changes: Dict[str, Any]) -> UserRecord:
        """Apply already-whitelisted `changes`, re-hashing the password when one is supplied."""
        if not changes:
            return await self._require(user_id)
        return await self._update_raw(user_id, {"$set": {**self._prepare_changes(changes), "updatedAt": utcnow()}})

    async def add_token(self, user_id: str, token: str) -> UserRecord:
        return await self._update_raw(user_id, {"$push": {"tokens": token}})

    async def remove_token(self, user_id: str, token: str) -> UserRecord:
        return await self._update_raw(user_id, {"$pull": {"tokens": token}})

    async def clear_tokens(self, user_id: str) -> UserRecord:
        return await self._update_raw(user_id, {"$set": {"tokens": []}})

    async def set_avatar(self, user_id: str, avatar: Optional[bytes]) -> UserRecord:
        """Store the avatar bytes, or remove the avatar when `avatar` is None."""
        return await self._update_raw(user_id, {"$set": {"avatar": avatar, "updatedAt": utcnow()}})

    async def get_avatar(self, user_id: str) -> Optional[bytes]:
        oid = parse_object_id(user_id)
        if oid is None:
            return None
        doc = await self._db.find_one(self._collection, {"_id": oid}, {"avatar": 1})
        return bytes(doc["avatar"]) if doc and doc.get("avatar") else None

    async def delete(self, user_id: str) -> UserRecord:
        """Delete the user's tasks, then the user. Returns the deleted user."""
        oid = parse_object_id(user_id)
        if oid is None:
            raise NotFoundError(USER_NOT_FOUND)
        await self._tasks.delete_all_for_owner(user_id)
        doc = await self._db.find_one_and_delete(self._collection, {"_id": oid})
        if not doc:
            raise NotFoundError(USER_NOT_FOUND)
        return UserRecord.from_mongo_dict(doc)

    async def _require(self, user_id: str) -> UserRecord:
        user = await self.get_by_id(user_id)
        if user is None:
            raise NotFoundError(USER_NOT_FOUND)
        return user

    async def _update_raw(self, user_id: str, update: Dict[str, Any]) -> UserRecord:
        oid = parse_object_id(user_id)
        doc = await self._db.find_one_and_update(self._collection, {"_id": oid}, update) if oid else None
        if not doc:
            raise NotFoundError(USER_NOT_FOUND)
        return UserRecord.from_mongo_dict(doc)
