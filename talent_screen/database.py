"""MongoDB connection for assessment sessions, section results and typing passages."""
import logging
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING
from pymongo.errors import PyMongoError
from typing import Optional
from talent_screen.config import settings

logger = logging.getLogger(__name__)

# Collection -> indexes, as (keys, options)
INDEXES = {
    "assessment_sessions": [
        ([("session.created_at", DESCENDING)], {}),
        ([("session.candidate.email", ASCENDING)], {}),
    ],
    "section_results": [
        ([("session_id", ASCENDING), ("created_at", DESCENDING)], {}),
        ([("section", ASCENDING)], {}),
    ],
    "typing_texts": [
        ([("difficulty", ASCENDING)], {}),
    ],
}


async def ensure_indexes(db: AsyncIOMotorDatabase) -> int:
    """Create the lookup indexes the services query by. Returns how many were requested."""
    created = 0
    for collection, indexes in INDEXES.items():
        for keys, options in indexes:
            await db[collection].create_index(keys, **options)
            created += 1
    return created


class Database:
    """Process-wide MongoDB client shared by the stores and services."""

    client: Optional[AsyncIOMotorClient] = None
    db: Optional[AsyncIOMotorDatabase] = None

    @classmethod
    async def connect(cls):
        cls.client = AsyncIOMotorClient(settings.mongodb_url)
        cls.db = cls.client[settings.mongodb_db_name]
        logger.info(f"Connected to MongoDB: {settings.mongodb_db_name}")
        try:
            count = await ensure_indexes(cls.db)
            logger.info(f"Ensured {count} indexes on {settings.mongodb_db_name}")
        except PyMongoError as e:
            # The server may come up after the API; queries still work unindexed
            logger.warning(f"Could not create indexes: {e}")

    @classmethod
    async def disconnect(cls):
        if cls.client:
            cls.client.close()
            cls.client = None
            cls.db = None
            logger.info("Disconnected from MongoDB")

    @classmethod
    def get_database(cls) -> AsyncIOMotorDatabase:
        if cls.db is None:
            raise RuntimeError("Database not connected. Call connect() first.")
        return cls.db

    @classmethod
    async def ping(cls) -> bool:
        """True when the server answers; used by the health check."""
        if cls.client is None:
            return False
        try:
            await cls.client.admin.command("ping")
        except PyMongoError as e:
            logger.error(f"MongoDB ping failed: {e}")
            return False
        return True
