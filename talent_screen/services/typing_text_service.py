"""Typing test passages."""
import logging
from typing import Optional

from bson import ObjectId
from bson.errors import InvalidId

from talent_screen.database import Database
from talent_screen.models.typing_text import TypingTextModel
from talent_screen.utils.question_bank import DEFAULT_TYPING_TEXT

logger = logging.getLogger(__name__)


class TypingTextService:
    """Reads passages from the ``typing_texts`` collection."""

    @property
    def db(self):
        return Database.db

    async def random_text(self, difficulty: Optional[int] = None) -> TypingTextModel:
        """A random passage; the built-in default when none can be loaded."""
        if self.db is None:
            logger.warning("Database not connected; using default typing text")
            return TypingTextModel(text=DEFAULT_TYPING_TEXT)

        pipeline = []
        if difficulty is not None:
            pipeline.append({"$match": {"difficulty": difficulty}})
        pipeline.append({"$sample": {"size": 1}})

        try:
            docs = await self.db.typing_texts.aggregate(pipeline).to_list(length=1)
        except Exception as e:
            logger.error(f"Error fetching typing text: {e}")
            docs = []

        if not docs:
            return TypingTextModel(text=DEFAULT_TYPING_TEXT)
        return TypingTextModel(**docs[0])

    async def get_text(self, text_id: str) -> Optional[TypingTextModel]:
        if self.db is None:
            return None
        try:
            doc = await self.db.typing_texts.find_one({"_id": ObjectId(text_id)})
        except InvalidId:
            return None
        return TypingTextModel(**doc) if doc else None
