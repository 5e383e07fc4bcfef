"""Section and stage models."""
from enum import Enum
from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional
from datetime import datetime


class Stage(str, Enum):
    """The two sequential phases of the assessment."""
    STAGE_1 = "stage1"
    STAGE_2 = "stage2"


class SectionKind(str, Enum):
    """One gradeable sub-test."""
    TYPING = "typing"
    READING = "reading"
    GRAMMAR = "grammar"
    VOICE = "voice"
    WRITING = "writing"
    SJT = "sjt"

    @property
    def stage(self) -> Stage:
        return Stage.STAGE_1 if self in STAGE_SECTIONS[Stage.STAGE_1] else Stage.STAGE_2


# Ordered: sections run in this order within their stage
STAGE_SECTIONS: Dict[Stage, List[SectionKind]] = {
    Stage.STAGE_1: [SectionKind.TYPING, SectionKind.READING, SectionKind.GRAMMAR],
    Stage.STAGE_2: [SectionKind.VOICE, SectionKind.WRITING, SectionKind.SJT],
}

ALL_SECTIONS: List[SectionKind] = STAGE_SECTIONS[Stage.STAGE_1] + STAGE_SECTIONS[Stage.STAGE_2]


class SectionStatus(str, Enum):
    """Lifecycle of a section within one session."""
    NOT_STARTED = "not_started"
    ACTIVE = "active"
    COMPLETED = "completed"
    FORCE_COMPLETED = "force_completed"

    @property
    def is_terminal(self) -> bool:
        return self in (SectionStatus.COMPLETED, SectionStatus.FORCE_COMPLETED)


class AssessmentState(str, Enum):
    """Top-level states of the assessment state machine."""
    NOT_STARTED = "not_started"
    STAGE1_ACTIVE = "stage1_active"
    STAGE1_GATED = "stage1_gated"
    STAGE2_ACTIVE = "stage2_active"
    STAGE2_GATED = "stage2_gated"
    COMPLETE = "complete"


class SectionRecord(BaseModel):
    """Persisted view of one section."""

    kind: SectionKind
    status: SectionStatus = SectionStatus.NOT_STARTED
    time_limit: int = Field(..., description="Countdown in seconds")
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    locked: bool = False
    timed_out: bool = False
    result: Optional[Dict[str, Any]] = None
