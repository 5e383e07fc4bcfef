"""Media recording models."""
from enum import Enum
from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime


class MediaKind(str, Enum):
    AUDIO = "audio"
    VIDEO = "video"


class CapturePurpose(str, Enum):
    """Independent capture owners within one session."""
    SECURITY = "security"          # video-only, continuous while a section is active
    VOICE_ANSWER = "voice_answer"  # audio-only, one prompt's recording window


class MediaConstraints(BaseModel):
    """What the controller asks the device for."""
    audio: bool = False
    video: bool = False

    @property
    def kind(self) -> MediaKind:
        return MediaKind.VIDEO if self.video else MediaKind.AUDIO


SECURITY_CONSTRAINTS = MediaConstraints(video=True, audio=False)
VOICE_CONSTRAINTS = MediaConstraints(audio=True, video=False)


class MediaRecording(BaseModel):
    """A finalized recording handed to the results collaborator."""

    kind: MediaKind
    blob: bytes = b""
    mime_type: str = "audio/webm"
    chunk_count: int = 0
    started_at: datetime
    stopped_at: datetime = Field(default_factory=datetime.utcnow)
    preview_url: Optional[str] = None

    @property
    def size(self) -> int:
        return len(self.blob)

    @property
    def duration_seconds(self) -> float:
        return (self.stopped_at - self.started_at).total_seconds()
