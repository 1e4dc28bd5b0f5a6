"""Async MongoDB wrapper for the task manager service.

Provides a thin interface over motor with connection lifecycle management and translation of driver errors into
the service's error taxonomy.
"""

from functools import wraps
from typing import Any, Dict, List, Optional, Sequence, Tuple

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorCollection, AsyncIOMotorDatabase
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError, PyMongoError

from taskmanager.core.exceptions import DuplicateInsertError, UpstreamError

SortSpec = Sequence[Tuple[str, int]]

# (collection, keys, options)
INDEXES: List[Tuple[str, List[Tuple[str, int]], Dict[str, Any]]] = [
    ("users", [("email", 1)], {"unique": True, "name": "email_unique"}),
    ("users", [("tokens", 1)], {"name": "tokens"}),
    ("tasks", [("owner", 1)], {"name": "owner"}),
    ("tasks", [("owner", 1), ("completed", 1)], {"name": "owner_completed"}),
]


def _translate_errors(func):
    """Re-raise driver errors as DuplicateInsertError or UpstreamError."""

    @wraps(func)
    async def wrapper(self, *args, **kwargs):
        try:
            return await func(self, *args, **kwargs)
        except DuplicateKeyError as e:
            raise DuplicateInsertError(f"Duplicate key error: {e}") from e
        except PyMongoError as e:
            raise UpstreamError(f"Database operation {func.__name__} failed: {e}") from e

    return wrapper


class TaskManagerDB:
    """Async MongoDB wrapper with proper resource management.

    A thin wrapper around motor that handles connection lifecycle. No application-specific logic beyond index
    definitions; repositories own the document shapes.

    Example:
        ```python
        async with TaskManagerDB(uri="mongodb://localhost:27017", db_name="task-manager-api") as db:
            user_id = await db.insert_one("users", {"name": "Alice"})
            user = await db.find_one("users", {"name": "Alice"})
        ```
    """

    def __init__(
        self,
        uri: str = "mongodb://localhost:27017",
        db_name: str = "task-manager-api",
    ):
        """Initialize with connection parameters. No connection made until connect()."""
        self._uri = uri
        self._db_name = db_name
        self._client: Optional[AsyncIOMotorClient] = None
        self._db: Optional[AsyncIOMotorDatabase] = None

    @property
    def client(self) -> Optional[AsyncIOMotorClient]:
        """The MongoDB client (None if not connected)."""
        return self._client

    @property
    def db(self) -> Optional[AsyncIOMotorDatabase]:
        """The database instance (None if not connected)."""
        return self._db

    @property
    def is_connected(self) -> bool:
        return self._client is not None

    def collection(self, name: str) -> AsyncIOMotorCollection:
        """Get a collection by name."""
        if self._db is None:
            raise RuntimeError("Database not connected. Call connect() first.")
        return self._db[name]

    async def connect(self) -> "TaskManagerDB":
        """Connect to MongoDB. Returns self for chaining."""
        if self._client is not None:
            return self
        self._client = AsyncIOMotorClient(self._uri)
        self._db = self._client[self._db_name]
        return self

    async def disconnect(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None
            self._db = None

    async def close(self) -> None:
        """Alias for disconnect()."""
        await self.disconnect()

    async def __aenter__(self) -> "TaskManagerDB":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.disconnect()

    async def _ensure_connected(self) -> None:
        if not self.is_connected:
            await self.connect()

    @_translate_errors
    async def ensure_indexes(self) -> None:
        """Create the indexes the service relies on. Safe to call repeatedly."""
        await self._ensure_connected()
        for collection, keys, options in INDEXES:
            await self._db[collection].create_index(keys, **options)

    # -------------------------------------------------------------------------
    # Generic CRUD
    # -------------------------------------------------------------------------

    @_translate_errors
    async def insert_one(self, collection: str, document: Dict[str, Any]) -> Any:
        """Insert a document. Returns the inserted _id."""
        await self._ensure_connected()
        result = await self._db[collection].insert_one(document)
        return result.inserted_id

    @_translate_errors
    async def find_one(
        self,
        collection: str,
        query: Dict[str, Any],
        projection: Optional[Dict[str, Any]] = None,
    ) -> Optional[Dict[str, Any]]:
        await self._ensure_connected()
        return await self._db[collection].find_one(query, projection)

    @_translate_errors
    async def find_many(
        self,
        collection: str,
        query: Optional[Dict[str, Any]] = None,
        sort: Optional[SortSpec] = None,
        skip: int = 0,
        limit: int = 0,
    ) -> List[Dict[str, Any]]:
        """Find multiple documents. A limit of 0 means no limit."""
        await self._ensure_connected()
        options: Dict[str, Any] = {}
        if sort:
            options["sort"] = list(sort)
        if skip > 0:
            options["skip"] = skip
        if limit > 0:
            options["limit"] = limit
        cursor = self._db[collection].find(query or {}, **options)
        return await cursor.to_list(length=None)

    @_translate_errors
    async def find_one_and_update(
        self,
        collection: str,
        query: Dict[str, Any],
        update: Dict[str, Any],
    ) -> Optional[Dict[str, Any]]:
        """Apply an update document and return the document as it is after the update."""
        await self._ensure_connected()
        return await self._db[collection].find_one_and_update(
            query, update, return_document=ReturnDocument.AFTER
        )

    @_translate_errors
    async def find_one_and_delete(self, collection: str, query: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Delete the first match and return it."""
        await self._ensure_connected()
        return await self._db[collection].find_one_and_delete(query)

    @_translate_errors
    async def delete_many(self, collection: str, query: Optional[Dict[str, Any]] = None) -> int:
        """Delete documents. Returns count deleted."""
        await self._ensure_connected()
        result = await self._db[collection].delete_many(query or {})
        return result.deleted_count
