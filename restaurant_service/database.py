"""
MongoDB database operations using Motor (async driver).
Supports MongoDB Atlas (cloud) connections.

Database is the process-wide holder of the client, database and GridFS
bucket handles. Handlers call its classmethods; nothing touches the
driver directly.
"""
import logging
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence, Tuple

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorGridFSBucket
from pymongo import ASCENDING, DESCENDING
from pymongo.errors import DuplicateKeyError, OperationFailure

from restaurant_service.config import config

logger = logging.getLogger(__name__)

SortSpec = Sequence[Tuple[str, int]]


class DatabaseNotConnectedError(RuntimeError):
    """Raised when a handle is requested before connect() completed."""


class Database:
    """Async MongoDB database handler for Atlas (cloud) or local."""

    _client: Optional[AsyncIOMotorClient] = None
    _bucket: Optional[AsyncIOMotorGridFSBucket] = None

    @classmethod
    async def connect(cls) -> None:
        """Connect to MongoDB, open the picture bucket and setup indexes."""
        try:
            cls._client = AsyncIOMotorClient(
                config.MONGODB_URI,
                serverSelectionTimeoutMS=5000,
                connectTimeoutMS=10000,
            )

            # Verify connection
            await cls._client.admin.command("ping")

            # Mask password in log
            safe_uri = config.MONGODB_URI
            if "@" in safe_uri:
                safe_uri = safe_uri.split("@")[1]
            logger.info(f"Connected to MongoDB: ...@{safe_uri}")

            cls._bucket = AsyncIOMotorGridFSBucket(
                cls._get_db(), bucket_name=config.PICTURES_BUCKET
            )
            await cls.ensure_indexes()

        except Exception as e:
            logger.error(f"MongoDB connection failed: {e}")
            cls._client = None
            cls._bucket = None
            raise

    @classmethod
    async def ensure_indexes(cls) -> None:
        """
        Unique owner/uid indexes close the check-then-insert race.
        An existing collection with duplicates keeps working without them.
        """
        index_specs = [
            (
                cls._restaurants(),
                [("ownerId", ASCENDING)],
                {
                    "unique": True,
                    "name": "unique_owner",
                    "partialFilterExpression": {"ownerId": {"$type": "string"}},
                },
            ),
            (cls._restaurants(), [("searchScore", DESCENDING)], {"name": "search_score"}),
            (cls._users(), [("uid", ASCENDING)], {"unique": True, "name": "unique_uid"}),
        ]
        for collection, keys, options in index_specs:
            try:
                await collection.create_index(keys, **options)
            except OperationFailure as e:
                logger.warning(f"Could not ensure index {options['name']}: {e}")
        logger.info("Database indexes ensured")

    @classmethod
    async def disconnect(cls) -> None:
        """Close MongoDB connection."""
        if cls._client:
            cls._client.close()
            cls._client = None
            cls._bucket = None
            logger.info("Disconnected from MongoDB")

    @classmethod
    def is_connected(cls) -> bool:
        return cls._client is not None

    @classmethod
    def _get_db(cls):
        if not cls._client:
            raise DatabaseNotConnectedError("Database not connected. Call Database.connect() first.")
        return cls._client[config.DATABASE_NAME]

    @classmethod
    def _restaurants(cls):
        return cls._get_db()[config.RESTAURANTS_COLLECTION]

    @classmethod
    def _users(cls):
        return cls._get_db()[config.USERS_COLLECTION]

    @classmethod
    def _get_bucket(cls) -> AsyncIOMotorGridFSBucket:
        if cls._bucket is None:
            raise DatabaseNotConnectedError("Picture bucket not initialized. Call Database.connect() first.")
        return cls._bucket

    # ------------------------------------------------------------------
    # Restaurants
    # ------------------------------------------------------------------

    @classmethod
    async def count_restaurants(cls, query: Optional[Dict[str, Any]] = None) -> int:
        return await cls._restaurants().count_documents(query or {})

    @classmethod
    async def find_restaurants(
        cls,
        query: Dict[str, Any],
        sort: Optional[SortSpec] = None,
        skip: int = 0,
        limit: int = 0,
    ) -> List[Dict[str, Any]]:
        """Find one page of restaurants. limit=0 means no limit."""
        cursor = cls._restaurants().find(query)
        if sort:
            cursor = cursor.sort(list(sort))
        if skip:
            cursor = cursor.skip(skip)
        if limit:
            cursor = cursor.limit(limit)
        return await cursor.to_list(length=limit or None)

    @classmethod
    async def find_restaurant(cls, restaurant_id: ObjectId) -> Optional[Dict[str, Any]]:
        return await cls._restaurants().find_one({"_id": restaurant_id})

    @classmethod
    async def find_restaurant_by_owner(cls, owner_id: str) -> Optional[Dict[str, Any]]:
        return await cls._restaurants().find_one({"ownerId": owner_id})

    @classmethod
    async def insert_restaurant(cls, restaurant: Dict[str, Any]) -> Optional[ObjectId]:
        """
        Insert restaurant.
        Returns the new id, or None if the owner already has one.
        """
        try:
            result = await cls._restaurants().insert_one(restaurant)
            return result.inserted_id
        except DuplicateKeyError:
            return None

    @classmethod
    async def update_restaurant(
        cls, restaurant_id: ObjectId, fields: Dict[str, Any]
    ) -> Tuple[int, int]:
        """Partial $set update. Returns (matched, modified)."""
        result = await cls._restaurants().update_one({"_id": restaurant_id}, {"$set": fields})
        return result.matched_count, result.modified_count

    @classmethod
    async def delete_restaurant(cls, restaurant_id: ObjectId) -> int:
        result = await cls._restaurants().delete_one({"_id": restaurant_id})
        return result.deleted_count

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    @classmethod
    async def count_users(cls) -> int:
        return await cls._users().count_documents({})

    @classmethod
    async def find_users(cls, skip: int = 0, limit: int = 0) -> List[Dict[str, Any]]:
        cursor = cls._users().find({})
        if skip:
            cursor = cursor.skip(skip)
        if limit:
            cursor = cursor.limit(limit)
        return await cursor.to_list(length=limit or None)

    @classmethod
    async def find_user(cls, uid: str) -> Optional[Dict[str, Any]]:
        return await cls._users().find_one({"uid": uid})

    @classmethod
    async def insert_user(cls, user: Dict[str, Any]) -> Optional[ObjectId]:
        """Insert user. Returns the new id, or None if the uid is taken."""
        try:
            result = await cls._users().insert_one(user)
            return result.inserted_id
        except DuplicateKeyError:
            return None

    @classmethod
    async def update_user(cls, uid: str, fields: Dict[str, Any]) -> Tuple[int, int]:
        result = await cls._users().update_one({"uid": uid}, {"$set": fields})
        return result.matched_count, result.modified_count

    @classmethod
    async def delete_user(cls, uid: str) -> int:
        result = await cls._users().delete_one({"uid": uid})
        return result.deleted_count

    # ------------------------------------------------------------------
    # Pictures (GridFS)
    # ------------------------------------------------------------------

    @classmethod
    async def upload_picture(
        cls,
        filename: str,
        data: bytes,
        content_type: str,
        restaurant_id: ObjectId,
    ) -> ObjectId:
        """Stream bytes into GridFS. Returns the new file id."""
        metadata = {
            "contentType": content_type,
            "restaurantId": str(restaurant_id),
            "uploadDate": datetime.now(timezone.utc),
        }
        return await cls._get_bucket().upload_from_stream(filename, data, metadata=metadata)

    @classmethod
    async def open_picture(cls, file_id: ObjectId) -> Tuple[Optional[str], AsyncIterator[bytes]]:
        """
        Open a stored picture for reading.
        Returns (content_type, chunk iterator). Raises NoFile if missing.
        """
        grid_out = await cls._get_bucket().open_download_stream(file_id)
        metadata = grid_out.metadata or {}
        return metadata.get("contentType"), _iter_chunks(grid_out)

    @classmethod
    async def delete_picture(cls, file_id: ObjectId) -> None:
        """Delete a stored picture. Raises NoFile if it is already gone."""
        await cls._get_bucket().delete(file_id)


async def _iter_chunks(grid_out) -> AsyncIterator[bytes]:
    while True:
        chunk = await grid_out.readchunk()
        if not chunk:
            break
        yield chunk

