"""Interfaces of the services the assessment core depends on."""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from talent_screen.models.results import VoiceScores, WritingScores
from talent_screen.models.section import SectionKind


class SessionValidation(BaseModel):
    """Answer of the session validation collaborator."""
    valid: bool
    message: Optional[str] = None
    session_id: Optional[str] = None
    created_at: Optional[datetime] = None
    expired: bool = False
    timestamp: datetime = Field(default_factory=datetime.utcnow)


class SessionValidator(ABC):

    @abstractmethod
    async def validate_session(self, session_id: Optional[str]) -> SessionValidation:
        """Never raises: failures come back as ``valid=False``."""
        pass


class SessionInvalidator(ABC):

    @abstractmethod
    async def invalidate_session(self, session_id: str, reason: str) -> None:
        """Fire-and-forget; callers do not depend on the outcome."""
        pass


class ResultsSubmitter(ABC):

    @abstractmethod
    async def submit(self, session_id: str, kind: SectionKind, payload: Dict[str, Any]) -> None:
        """Persist one section result. Raises ``PersistenceFailure``."""
        pass


class ScoringOracle(ABC):
    """Opaque scorer for spoken and written answers."""

    @abstractmethod
    async def score_voice(self, audio: bytes, prompt: str, task_type: str) -> VoiceScores:
        """Raises ``ScoringOracleFailure``."""
        pass

    @abstractmethod
    async def score_writing(self, text: str, prompt: str, task_type: str) -> WritingScores:
        """Raises ``ScoringOracleFailure``."""
        pass
