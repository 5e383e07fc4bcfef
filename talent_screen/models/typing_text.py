"""Typing test text models."""
from pydantic import BaseModel, Field, ConfigDict
from typing import Optional
from datetime import datetime
from bson import ObjectId
from talent_screen.models.common import PyObjectId


class TypingTextModel(BaseModel):
    """Reference passage for the typing section."""

    model_config = ConfigDict(
        populate_by_name=True,
        arbitrary_types_allowed=True,
        json_encoders={ObjectId: str}
    )

    id: Optional[PyObjectId] = Field(default=None, alias="_id")
    text: str
    category: str = "general"
    difficulty: int = Field(1, ge=1, le=3)  # 1-easy, 2-medium, 3-hard
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
