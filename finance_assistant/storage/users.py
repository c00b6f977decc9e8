"""MongoDB-backed user store."""

from __future__ import annotations

import uuid
from typing import Any, Callable, Dict, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import DESCENDING

from finance_assistant.core.database import USERS_COLLECTION, next_sequence
from finance_assistant.models import User
from finance_assistant.storage.base import UserRepository


def _to_record(user: User) -> Dict[str, Any]:
    record = user.model_dump(mode="python", exclude={"id"})
    record["_id"] = user.id
    record["external_id"] = str(user.external_id)
    return record


def _from_record(record: Dict[str, Any]) -> User:
    data = dict(record)
    data["id"] = data.pop("_id")
    return User.model_validate(data)


class MongoUserRepository(UserRepository):
    def __init__(self, db_provider: Callable[[], AsyncIOMotorDatabase]) -> None:
        self._db_provider = db_provider

    @property
    def _collection(self):
        return self._db_provider()[USERS_COLLECTION]

    async def create(self, user: User) -> User:
        user.id = await next_sequence(self._db_provider(), USERS_COLLECTION)
        await self._collection.insert_one(_to_record(user))
        return user

    async def find_by_id(self, user_id: int) -> Optional[User]:
        record = await self._collection.find_one({"_id": user_id})
        return _from_record(record) if record else None

    async def find_by_external_id(self, external_id: uuid.UUID) -> Optional[User]:
        record = await self._collection.find_one({"external_id": str(external_id)})
        return _from_record(record) if record else None

    async def find_by_email(self, email: str) -> Optional[User]:
        record = await self._collection.find_one({"email": email})
        return _from_record(record) if record else None

    async def update(self, user: User) -> None:
        await self._collection.update_one(
            {"_id": user.id},
            {"$set": {"name": user.name, "email": user.email, "phone": user.phone, "updated_at": user.updated_at}},
        )

    async def delete(self, user_id: int) -> None:
        await self._collection.delete_one({"_id": user_id})

    async def list(self, limit: int, offset: int) -> List[User]:
        cursor = self._collection.find({}).sort("created_at", DESCENDING).skip(offset).limit(limit)
        return [_from_record(record) async for record in cursor]

    async def count(self) -> int:
        return await self._collection.count_documents({})


__all__ = ["MongoUserRepository"]
