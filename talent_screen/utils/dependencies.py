"""Service wiring and FastAPI dependencies."""
from fastapi import HTTPException, Request, status
from motor.motor_asyncio import AsyncIOMotorDatabase

from talent_screen.config import settings
from talent_screen.services.assessment_service import AssessmentService
from talent_screen.services.results_service import MongoResultsSubmitter
from talent_screen.services.scoring_oracle import OpenAIScoringOracle
from talent_screen.services.session_service import HttpSessionValidator, SessionService
from talent_screen.services.session_store import MongoSessionStore


def build_services(db: AsyncIOMotorDatabase) -> tuple:
    """Create the session and assessment services for a connected database."""
    store = MongoSessionStore(db)
    sessions = SessionService(store)

    # Validation is delegated when an external session service is configured
    remote = HttpSessionValidator(settings.session_validation_url) if settings.session_validation_url else None

    assessments = AssessmentService(
        store=store,
        validator=remote or sessions,
        invalidator=remote or sessions,
        submitter=MongoResultsSubmitter(db, settings.results_webhook_url),
        oracle=OpenAIScoringOracle(),
    )
    return sessions, assessments


def get_session_service(request: Request) -> SessionService:
    service = getattr(request.app.state, "sessions", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Session service not ready"
        )
    return service


def get_assessment_service(request: Request) -> AssessmentService:
    service = getattr(request.app.state, "assessments", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Assessment service not ready"
        )
    return service
