"""Session storage."""
import copy
import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Dict, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase

from talent_screen.models.session import SessionRecord

logger = logging.getLogger(__name__)


class SessionStore(ABC):
    """Typed get/set/clear storage for session records."""

    @abstractmethod
    async def get(self, session_id: str) -> Optional[SessionRecord]:
        pass

    @abstractmethod
    async def set(self, record: SessionRecord) -> None:
        pass

    @abstractmethod
    async def clear(self, session_id: str) -> None:
        pass


class InMemorySessionStore(SessionStore):
    """Process-local store; records are copied in and out."""

    def __init__(self):
        self._records: Dict[str, SessionRecord] = {}

    async def get(self, session_id: str) -> Optional[SessionRecord]:
        record = self._records.get(session_id)
        return record.model_copy(deep=True) if record else None

    async def set(self, record: SessionRecord) -> None:
        record.updated_at = datetime.utcnow()
        self._records[record.session_id] = copy.deepcopy(record)

    async def clear(self, session_id: str) -> None:
        self._records.pop(session_id, None)


class MongoSessionStore(SessionStore):
    """Session records in the ``assessment_sessions`` collection."""

    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db

    async def get(self, session_id: str) -> Optional[SessionRecord]:
        data = await self.db.assessment_sessions.find_one({"_id": session_id})
        if not data:
            return None
        data.pop("_id", None)
        return SessionRecord(**data)

    async def set(self, record: SessionRecord) -> None:
        record.updated_at = datetime.utcnow()
        await self.db.assessment_sessions.replace_one(
            {"_id": record.session_id},
            record.model_dump(mode="json"),
            upsert=True
        )

    async def clear(self, session_id: str) -> None:
        await self.db.assessment_sessions.delete_one({"_id": session_id})
        logger.info(f"Cleared session record {session_id}")
