"""Assessment schemas."""
from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional
from datetime import datetime

from talent_screen.models.section import AssessmentState, SectionKind, SectionStatus
from talent_screen.models.session import AssessmentOutcome, Notice
from talent_screen.services.signals import Signal


class StartSectionRequest(BaseModel):
    """Host state reported by the browser when a section starts."""
    fullscreen: bool = False
    visible: bool = True
    camera_granted: Optional[bool] = None
    microphone_granted: Optional[bool] = None
    typing_difficulty: Optional[int] = Field(None, ge=1, le=3)


class CompleteSectionRequest(BaseModel):
    """Final answers sent with a voluntary submission."""
    answers: Dict[str, int] = Field(default_factory=dict)
    writing_response: Optional[str] = None
    rationales: Dict[str, str] = Field(default_factory=dict)


class AnswerRequest(BaseModel):
    question_id: str
    option: int = Field(..., ge=0)


class WriteRequest(BaseModel):
    text: str
    task_id: Optional[str] = None


class TypingInputRequest(BaseModel):
    text: str
    at_ms: Optional[float] = None


class TypingInputResponse(BaseModel):
    characters: int
    keystrokes: int
    live_wpm: int
    remaining_seconds: int


class ReadingPageRequest(BaseModel):
    page: int


class PermissionsRequest(BaseModel):
    camera: Optional[bool] = None
    microphone: Optional[bool] = None


class SignalRequest(BaseModel):
    signal: Signal
    payload: Dict[str, Any] = Field(default_factory=dict)


class SignalResponse(BaseModel):
    rejected: bool
    state: AssessmentState
    inputs_enabled: bool


class SectionResponse(BaseModel):
    """Response schema for one section."""
    kind: SectionKind
    status: SectionStatus
    time_limit: int
    remaining_seconds: int
    started_at: Optional[datetime]
    completed_at: Optional[datetime]
    locked: bool
    timed_out: bool
    result: Optional[Dict[str, Any]]


class AssessmentStateResponse(BaseModel):
    """Response schema for the assessment state."""
    session_id: str
    state: AssessmentState
    active_section: Optional[SectionKind]
    current_section: Optional[SectionKind]
    sections: List[SectionResponse]
    gate_results: Dict[str, bool]
    assessment_exited: bool
    outcome: Optional[AssessmentOutcome]
    notices: List[Notice]
    heartbeat_interval: float = Field(..., description="Seconds between host heartbeat signals")


class VoicePromptResponse(BaseModel):
    id: str
    type: str
    text: str
    max_time: int


class VoiceScoreResponse(BaseModel):
    accepted: bool
    overall_score: Optional[int] = None
    cefr_level: Optional[str] = None
    fallback: bool = False
    section_status: SectionStatus


class WritingTaskResponse(BaseModel):
    accepted: bool
    score: Optional[int] = None
    fallback: bool = False
    section_status: SectionStatus


class ChunkResponse(BaseModel):
    chunk_count: int


class ResultsResponse(BaseModel):
    session_id: str
    state: AssessmentState
    outcome: Optional[AssessmentOutcome]
    summaries: Dict[str, Dict[str, Any]]
    sections: Dict[str, Optional[Dict[str, Any]]]
