"""Translate assessment errors into HTTP responses."""
from fastapi import HTTPException, status

from talent_screen.errors import (
    AssessmentError, FullscreenRequired, InvalidTransition, PermissionDenied, PersistenceFailure,
    ScoringOracleFailure, SectionAlreadyCompleted, SectionNotAvailable, SecurityViolation, SessionInvalid
)

STATUS_CODES = [
    (SessionInvalid, status.HTTP_401_UNAUTHORIZED),
    (PermissionDenied, status.HTTP_403_FORBIDDEN),
    (FullscreenRequired, status.HTTP_403_FORBIDDEN),
    (SecurityViolation, status.HTTP_403_FORBIDDEN),
    (SectionAlreadyCompleted, status.HTTP_409_CONFLICT),
    (InvalidTransition, status.HTTP_409_CONFLICT),
    (SectionNotAvailable, status.HTTP_400_BAD_REQUEST),
    (ScoringOracleFailure, status.HTTP_502_BAD_GATEWAY),
    (PersistenceFailure, status.HTTP_503_SERVICE_UNAVAILABLE),
]


def to_http_exception(error: AssessmentError) -> HTTPException:
    for error_type, status_code in STATUS_CODES:
        if isinstance(error, error_type):
            return HTTPException(status_code=status_code, detail=error.message)
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=error.message)
