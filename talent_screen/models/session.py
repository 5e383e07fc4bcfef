"""Assessment session models."""
from enum import Enum
from pydantic import BaseModel, Field, EmailStr
from typing import Any, Dict, List, Optional
from datetime import datetime, timedelta

from talent_screen.models.events import ProctoringEvent
from talent_screen.models.section import AssessmentState, SectionKind, SectionRecord, Stage


class CandidateInfo(BaseModel):
    """Candidate identity, opaque to the assessment core."""
    full_name: str
    email: EmailStr
    phone: Optional[str] = None
    location: Optional[str] = None
    experience: Dict[str, Any] = Field(default_factory=dict)


class AssessmentSession(BaseModel):
    """One candidate's attempt."""

    session_id: str
    created_at: datetime = Field(default_factory=datetime.utcnow)
    is_valid: bool = True
    candidate: CandidateInfo
    invalidated_at: Optional[datetime] = None
    invalidation_reason: Optional[str] = None

    def is_expired(self, ttl: timedelta, now: Optional[datetime] = None) -> bool:
        now = now or datetime.utcnow()
        return now - self.created_at > ttl

    def is_active(self, ttl: timedelta, now: Optional[datetime] = None) -> bool:
        return self.is_valid and not self.is_expired(ttl, now)


class OutcomeReason(str, Enum):
    COMPLETED = "completed"
    STAGE1_FAILED = "stage1_failed"
    SECURITY_VIOLATION = "security_violation"
    SESSION_EXPIRED = "session_expired"


class AssessmentOutcome(BaseModel):
    """Terminal outcome of an assessment."""
    reason: OutcomeReason
    message: str
    at: datetime = Field(default_factory=datetime.utcnow)


class NoticeKind(str, Enum):
    VIOLATION = "violation"
    TIMEOUT = "timeout"
    SESSION_EXPIRED = "session_expired"
    PERSISTENCE_ERROR = "persistence_error"
    SCORING_FALLBACK = "scoring_fallback"
    WARNING = "warning"
    INFO = "info"


class Notice(BaseModel):
    """Candidate-visible message produced by the state machine."""
    kind: NoticeKind
    message: str
    section: Optional[SectionKind] = None
    at: datetime = Field(default_factory=datetime.utcnow)


class SessionRecord(BaseModel):
    """Everything persisted for one session, keyed by ``session.session_id``."""

    session: AssessmentSession
    state: AssessmentState = AssessmentState.NOT_STARTED
    gate_results: Dict[Stage, bool] = Field(default_factory=dict)
    sections: Dict[SectionKind, SectionRecord] = Field(default_factory=dict)
    attempts: Dict[SectionKind, Dict[str, Any]] = Field(default_factory=dict)
    events: List[ProctoringEvent] = Field(default_factory=list)
    notices: List[Notice] = Field(default_factory=list)
    outcome: Optional[AssessmentOutcome] = None
    assessment_exited: bool = False
    summaries: Dict[Stage, Dict[str, Any]] = Field(default_factory=dict)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def session_id(self) -> str:
        return self.session.session_id
