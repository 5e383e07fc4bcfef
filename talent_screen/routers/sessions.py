"""Session router."""
from fastapi import APIRouter, Depends, HTTPException, status

from talent_screen.models.session import CandidateInfo
from talent_screen.schemas.session import (
    InvalidateSessionRequest,
    InvalidateSessionResponse,
    RegisterSessionRequest,
    SessionResponse
)
from talent_screen.services.assessment_service import AssessmentService
from talent_screen.services.collaborators import SessionValidation
from talent_screen.services.session_service import SessionService
from talent_screen.utils.dependencies import get_assessment_service, get_session_service


router = APIRouter(prefix="/api/v1/sessions", tags=["Sessions"])


@router.post("/register", response_model=SessionResponse, status_code=status.HTTP_201_CREATED)
async def register(
    request: RegisterSessionRequest,
    service: SessionService = Depends(get_session_service)
):
    """Register a candidate and open an assessment session."""
    session = await service.register(CandidateInfo(**request.model_dump()))
    return SessionResponse(
        session_id=session.session_id,
        created_at=session.created_at,
        is_valid=session.is_valid,
        expires_in_hours=service.ttl.total_seconds() / 3600
    )


@router.get("/{session_id}/validate", response_model=SessionValidation)
async def validate_session(
    session_id: str,
    service: SessionService = Depends(get_session_service)
):
    """Check that a session exists, is valid and has not expired."""
    validation = await service.validate_session(session_id)
    if not validation.valid:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=validation.message
        )
    return validation


@router.post("/{session_id}/invalidate", response_model=InvalidateSessionResponse)
async def invalidate_session(
    session_id: str,
    request: InvalidateSessionRequest,
    service: SessionService = Depends(get_session_service),
    assessments: AssessmentService = Depends(get_assessment_service)
):
    """Invalidate a session. Always succeeds from the caller's point of view."""
    await service.invalidate_session(session_id, request.reason or "Not specified")
    assessments.forget(session_id)
    return InvalidateSessionResponse(success=True, message="Session invalidated successfully")
