"""Typing text schemas."""
from pydantic import BaseModel
from typing import Optional


class TypingTextResponse(BaseModel):
    """Response schema for a typing passage."""
    id: Optional[str]
    text: str
    category: str
    difficulty: int
