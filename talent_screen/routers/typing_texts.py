"""Typing text router."""
from fastapi import APIRouter, Depends, HTTPException, Query, status
from typing import Optional

from talent_screen.models.typing_text import TypingTextModel
from talent_screen.schemas.typing_text import TypingTextResponse
from talent_screen.services.typing_text_service import TypingTextService


router = APIRouter(prefix="/api/v1/typing-texts", tags=["Typing Texts"])


def to_response(text: TypingTextModel) -> TypingTextResponse:
    return TypingTextResponse(
        id=str(text.id) if text.id else None,
        text=text.text,
        category=text.category,
        difficulty=text.difficulty
    )


@router.get("/random", response_model=TypingTextResponse)
async def random_text(
    difficulty: Optional[int] = Query(None, ge=1, le=3),
    service: TypingTextService = Depends(TypingTextService)
):
    """Random passage, falling back to the built-in text."""
    return to_response(await service.random_text(difficulty))


@router.get("/{text_id}", response_model=TypingTextResponse)
async def get_text(
    text_id: str,
    service: TypingTextService = Depends(TypingTextService)
):
    text = await service.get_text(text_id)
    if not text:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Typing text not found"
        )
    return to_response(text)
