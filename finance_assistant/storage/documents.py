"""MongoDB-backed document store."""

from __future__ import annotations

import logging
import uuid
from typing import Any, Callable, Dict, List, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import DESCENDING

from finance_assistant.core.database import DOCUMENTS_COLLECTION, next_sequence
from finance_assistant.models import Document, DocumentStatus
from finance_assistant.models.document import utcnow
from finance_assistant.storage.base import DocumentRepository

logger = logging.getLogger(__name__)


def _to_record(document: Document) -> Dict[str, Any]:
    record = document.model_dump(mode="python", exclude={"id"})
    record["_id"] = document.id
    record["external_id"] = str(document.external_id)
    record["status"] = document.status.value
    return record


def _from_record(record: Dict[str, Any]) -> Document:
    data = dict(record)
    data["id"] = data.pop("_id")
    return Document.model_validate(data)


class MongoDocumentRepository(DocumentRepository):
    """Persist documents in the `documents` collection keyed by a sequential id."""

    def __init__(self, db_provider: Callable[[], AsyncIOMotorDatabase]) -> None:
        self._db_provider = db_provider

    @property
    def _collection(self):
        return self._db_provider()[DOCUMENTS_COLLECTION]

    async def create(self, document: Document) -> Document:
        document.validate_fields()
        document.id = await next_sequence(self._db_provider(), DOCUMENTS_COLLECTION)
        await self._collection.insert_one(_to_record(document))
        logger.debug("Stored document %s with id %s", document.external_id, document.id)
        return document

    async def find_by_id(self, document_id: int) -> Optional[Document]:
        record = await self._collection.find_one({"_id": document_id})
        return _from_record(record) if record else None

    async def find_by_external_id(self, external_id: uuid.UUID) -> Optional[Document]:
        record = await self._collection.find_one({"external_id": str(external_id)})
        return _from_record(record) if record else None

    async def find_by_owner(self, user_id: int, limit: int, offset: int) -> List[Document]:
        cursor = self._collection.find({"user_id": user_id}).sort("created_at", DESCENDING).skip(offset).limit(limit)
        return [_from_record(record) async for record in cursor]

    async def update(self, document: Document) -> None:
        await self._collection.update_one(
            {"_id": document.id},
            {
                "$set": {
                    "categories": list(document.categories),
                    "status": document.status.value,
                    "updated_at": document.updated_at,
                }
            },
        )

    async def update_status(self, document_id: int, status: DocumentStatus) -> None:
        await self._collection.update_one(
            {"_id": document_id},
            {"$set": {"status": status.value, "updated_at": utcnow()}},
        )

    async def delete(self, document_id: int) -> None:
        await self._collection.delete_one({"_id": document_id})

    async def list(self, limit: int, offset: int) -> List[Document]:
        cursor = self._collection.find({}).sort("created_at", DESCENDING).skip(offset).limit(limit)
        return [_from_record(record) async for record in cursor]

    async def count_by_owner(self, user_id: int) -> int:
        return await self._collection.count_documents({"user_id": user_id})

    async def count(self) -> int:
        return await self._collection.count_documents({})


__all__ = ["MongoDocumentRepository"]
