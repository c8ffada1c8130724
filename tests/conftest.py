"""
Shared fixtures.

The `store` fixture swaps every Database operation for an in-memory
implementation, so endpoint tests run without MongoDB. It records the
name of each operation called and can be told to fail specific ones.
"""
import copy
import re
from typing import Any, Dict, List, Optional

import pytest
from bson import ObjectId
from gridfs.errors import NoFile

from restaurant_service.database import Database


def _matches(doc: Dict[str, Any], query: Dict[str, Any]) -> bool:
    for key, cond in query.items():
        value = doc.get(key)
        if isinstance(cond, dict) and "$regex" in cond:
            flags = re.IGNORECASE if "i" in cond.get("$options", "") else 0
            if value is None or not re.search(cond["$regex"], str(value), flags):
                return False
        elif value != cond:
            return False
    return True


class FakeStore:
    """Dict-backed stand-in for the Database classmethods."""

    OPERATIONS = (
        "count_restaurants", "find_restaurants", "find_restaurant",
        "find_restaurant_by_owner", "insert_restaurant", "update_restaurant",
        "delete_restaurant", "count_users", "find_users", "find_user",
        "insert_user", "update_user", "delete_user", "upload_picture",
        "open_picture", "delete_picture",
    )

    def __init__(self):
        self.restaurants: Dict[ObjectId, Dict[str, Any]] = {}
        self.users: Dict[ObjectId, Dict[str, Any]] = {}
        self.pictures: Dict[ObjectId, Dict[str, Any]] = {}
        self.calls: List[str] = []
        self.failures: Dict[str, Exception] = {}

    def install(self, monkeypatch) -> None:
        for name in self.OPERATIONS:
            monkeypatch.setattr(Database, name, staticmethod(self._wrap(name)))

    def _wrap(self, name):
        impl = getattr(self, name)

        async def operation(*args, **kwargs):
            self.calls.append(name)
            if name in self.failures:
                raise self.failures[name]
            return await impl(*args, **kwargs)

        return operation

    # restaurants

    async def count_restaurants(self, query: Optional[Dict[str, Any]] = None) -> int:
        return sum(1 for d in self.restaurants.values() if _matches(d, query or {}))

    async def find_restaurants(self, query, sort=None, skip=0, limit=0):
        docs = [copy.deepcopy(d) for d in self.restaurants.values() if _matches(d, query)]
        for key, direction in reversed(list(sort or [])):
            docs.sort(key=lambda d: d.get(key), reverse=direction < 0)
        docs = docs[skip:]
        return docs[:limit] if limit else docs

    async def find_restaurant(self, restaurant_id):
        doc = self.restaurants.get(restaurant_id)
        return copy.deepcopy(doc) if doc else None

    async def find_restaurant_by_owner(self, owner_id):
        for doc in self.restaurants.values():
            if doc.get("ownerId") == owner_id:
                return copy.deepcopy(doc)
        return None

    async def insert_restaurant(self, restaurant):
        if any(d.get("ownerId") == restaurant.get("ownerId") for d in self.restaurants.values()):
            return None
        oid = ObjectId()
        self.restaurants[oid] = dict(copy.deepcopy(restaurant), _id=oid)
        return oid

    async def update_restaurant(self, restaurant_id, fields):
        doc = self.restaurants.get(restaurant_id)
        if doc is None:
            return 0, 0
        modified = int(any(doc.get(k) != v for k, v in fields.items()))
        doc.update(copy.deepcopy(fields))
        return 1, modified

    async def delete_restaurant(self, restaurant_id):
        return 1 if self.restaurants.pop(restaurant_id, None) else 0

    # users

    async def count_users(self):
        return len(self.users)

    async def find_users(self, skip=0, limit=0):
        docs = [copy.deepcopy(d) for d in self.users.values()][skip:]
        return docs[:limit] if limit else docs

    async def find_user(self, uid):
        for doc in self.users.values():
            if doc["uid"] == uid:
                return copy.deepcopy(doc)
        return None

    async def insert_user(self, user):
        if any(d["uid"] == user["uid"] for d in self.users.values()):
            return None
        oid = ObjectId()
        self.users[oid] = dict(copy.deepcopy(user), _id=oid)
        return oid

    async def update_user(self, uid, fields):
        for doc in self.users.values():
            if doc["uid"] == uid:
                modified = int(any(doc.get(k) != v for k, v in fields.items()))
                doc.update(copy.deepcopy(fields))
                return 1, modified
        return 0, 0

    async def delete_user(self, uid):
        for oid, doc in list(self.users.items()):
            if doc["uid"] == uid:
                del self.users[oid]
                return 1
        return 0

    # pictures

    async def upload_picture(self, filename, data, content_type, restaurant_id):
        oid = ObjectId()
        self.pictures[oid] = {
            "filename": filename,
            "data": data,
            "metadata": {"contentType": content_type, "restaurantId": str(restaurant_id)},
        }
        return oid

    async def open_picture(self, file_id):
        if file_id not in self.pictures:
            raise NoFile(f"no file {file_id}")
        picture = self.pictures[file_id]

        async def chunks():
            yield picture["data"]

        return picture["metadata"].get("contentType"), chunks()

    async def delete_picture(self, file_id):
        if self.pictures.pop(file_id, None) is None:
            raise NoFile(f"no file {file_id}")

    # helpers for tests

    def add_restaurant(self, **fields) -> ObjectId:
        oid = ObjectId()
        doc = {"searchScore": 10, **fields, "_id": oid}
        self.restaurants[oid] = doc
        return oid


@pytest.fixture
def store(monkeypatch):
    fake = FakeStore()
    fake.install(monkeypatch)
    return fake
