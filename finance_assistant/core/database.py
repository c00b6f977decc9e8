"""Database connectivity layer for the Finance Assistant service."""

from __future__ import annotations

import logging
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING, ReturnDocument

from finance_assistant.core.config import settings

logger = logging.getLogger(__name__)

DOCUMENTS_COLLECTION = "documents"
USERS_COLLECTION = "users"
COUNTERS_COLLECTION = "counters"


class DatabaseManager:
    """Owns the shared MongoDB client and its connection pool."""

    def __init__(self) -> None:
        self.mongodb: Optional[AsyncIOMotorClient] = None

    @property
    def database(self) -> AsyncIOMotorDatabase:
        if self.mongodb is None:
            raise RuntimeError("Database manager is not initialized")
        return self.mongodb[settings.MONGODB_DATABASE]

    async def initialize(self) -> None:
        """Connect to MongoDB and make sure the indexes exist."""

        if self.mongodb is not None:
            return

        logger.info("Initializing database manager")
        self.mongodb = AsyncIOMotorClient(str(settings.MONGODB_URL), tz_aware=True)
        await self.ensure_indexes()
        logger.info("Database manager initialized")

    async def ensure_indexes(self) -> None:
        db = self.database
        await db[DOCUMENTS_COLLECTION].create_index("external_id", unique=True)
        await db[DOCUMENTS_COLLECTION].create_index([("user_id", ASCENDING), ("created_at", DESCENDING)])
        await db[DOCUMENTS_COLLECTION].create_index([("created_at", DESCENDING)])
        await db[USERS_COLLECTION].create_index("external_id", unique=True)
        await db[USERS_COLLECTION].create_index("email", unique=True)

    async def close(self) -> None:
        """Tear down connections gracefully."""

        logger.info("Closing database connections")
        if self.mongodb is not None:
            self.mongodb.close()
            self.mongodb = None


async def next_sequence(db: AsyncIOMotorDatabase, name: str) -> int:
    """Atomically allocate the next sequential id for `name`."""

    counter = await db[COUNTERS_COLLECTION].find_one_and_update(
        {"_id": name},
        {"$inc": {"seq": 1}},
        upsert=True,
        return_document=ReturnDocument.AFTER,
    )
    return int(counter["seq"])


# Singleton instance used by the API dependencies
database_manager = DatabaseManager()
