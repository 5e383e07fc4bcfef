"""Proctoring event models."""
from enum import Enum
from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Dict
from datetime import datetime


class ProctoringEventType(str, Enum):
    """Integrity signals observed while a section is active."""
    FULLSCREEN_EXITED = "fullscreen_exited"
    TAB_HIDDEN = "tab_hidden"
    COPY_PASTE_ATTEMPTED = "copy_paste_attempted"
    SHORTCUT_BLOCKED = "shortcut_blocked"


VIOLATION_MESSAGES = {
    ProctoringEventType.FULLSCREEN_EXITED: (
        "Your assessment has been submitted because you exited fullscreen mode, "
        "which violates test security requirements. You cannot retake this assessment."
    ),
    ProctoringEventType.TAB_HIDDEN: (
        "Your assessment has been submitted because you switched tabs or windows "
        "during an active section. You cannot retake this assessment."
    ),
    ProctoringEventType.COPY_PASTE_ATTEMPTED: (
        "Your assessment has been submitted after repeated copy or paste attempts. "
        "You cannot retake this assessment."
    ),
    ProctoringEventType.SHORTCUT_BLOCKED: (
        "Your assessment has been submitted after repeated use of blocked keyboard "
        "shortcuts. You cannot retake this assessment."
    ),
}


class ProctoringEvent(BaseModel):
    """One entry of the append-only proctoring audit log."""

    model_config = ConfigDict(frozen=True)

    type: ProctoringEventType
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    detail: Dict[str, Any] = Field(default_factory=dict)
