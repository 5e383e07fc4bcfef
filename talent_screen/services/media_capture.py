"""Media capture controller.

Wraps one recording purpose (security webcam or voice answer): acquires the
device, buffers uploaded data in fixed time slices, and finalizes everything
into a single ``MediaRecording`` on stop.
"""
import logging
import uuid
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncIterator, Callable, Dict, List, Optional

from talent_screen.errors import InvalidTransition, PermissionDenied
from talent_screen.models.media import (
    CapturePurpose, MediaConstraints, MediaKind, MediaRecording,
    SECURITY_CONSTRAINTS, VOICE_CONSTRAINTS
)

logger = logging.getLogger(__name__)

DEFAULT_CONSTRAINTS = {
    CapturePurpose.SECURITY: SECURITY_CONSTRAINTS,
    CapturePurpose.VOICE_ANSWER: VOICE_CONSTRAINTS,
}


class MediaTrack:
    def __init__(self, kind: MediaKind):
        self.kind = kind
        self.stopped = False

    def stop(self) -> None:
        self.stopped = True


class MediaStream:
    """A granted device stream made of one track per requested kind."""

    def __init__(self, tracks: List[MediaTrack]):
        self.tracks = tracks

    @property
    def active(self) -> bool:
        return any(not track.stopped for track in self.tracks)

    def stop_all(self) -> None:
        for track in self.tracks:
            track.stop()


class MediaDevice(ABC):
    """Source of media streams."""

    @abstractmethod
    async def acquire(self, constraints: MediaConstraints) -> MediaStream:
        """Return a live stream or raise ``PermissionDenied``."""
        pass


class ClientMediaDevice(MediaDevice):
    """Device backed by the candidate's browser and its reported permissions."""

    def __init__(self, camera_granted: bool = False, microphone_granted: bool = False):
        self.camera_granted = camera_granted
        self.microphone_granted = microphone_granted

    def update_permissions(self, camera: Optional[bool] = None, microphone: Optional[bool] = None) -> None:
        if camera is not None:
            self.camera_granted = camera
        if microphone is not None:
            self.microphone_granted = microphone

    async def acquire(self, constraints: MediaConstraints) -> MediaStream:
        tracks = []
        if constraints.video:
            if not self.camera_granted:
                raise PermissionDenied("Camera access is required for test security verification.", device="camera")
            tracks.append(MediaTrack(MediaKind.VIDEO))
        if constraints.audio:
            if not self.microphone_granted:
                raise PermissionDenied("Microphone access is required to record your answer.", device="microphone")
            tracks.append(MediaTrack(MediaKind.AUDIO))
        return MediaStream(tracks)


class ObjectUrlRegistry:
    """Transient preview URLs for finished recordings."""

    def __init__(self):
        self._urls: Dict[str, bytes] = {}

    def create(self, blob: bytes) -> str:
        url = f"blob:{uuid.uuid4()}"
        self._urls[url] = blob
        return url

    def revoke(self, url: str) -> None:
        self._urls.pop(url, None)

    def get(self, url: str) -> Optional[bytes]:
        return self._urls.get(url)

    def __len__(self) -> int:
        return len(self._urls)


class DeviceRegistry:
    """Single-flight ownership: one active controller per purpose."""

    def __init__(self):
        self._owners: Dict[CapturePurpose, "MediaCaptureController"] = {}

    def claim(self, purpose: CapturePurpose, owner: "MediaCaptureController") -> None:
        current = self._owners.get(purpose)
        if current is not None and current is not owner:
            raise InvalidTransition(f"A {purpose.value} recording is already in progress.")
        self._owners[purpose] = owner

    def release(self, purpose: CapturePurpose, owner: "MediaCaptureController") -> None:
        if self._owners.get(purpose) is owner:
            del self._owners[purpose]

    def owner(self, purpose: CapturePurpose) -> Optional["MediaCaptureController"]:
        return self._owners.get(purpose)


class MediaCaptureController:
    """Start/feed/stop lifecycle for one capture purpose."""

    def __init__(
        self,
        purpose: CapturePurpose,
        device: MediaDevice,
        registry: DeviceRegistry,
        urls: ObjectUrlRegistry,
        chunk_seconds: float = 1.0,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self.purpose = purpose
        self.device = device
        self.registry = registry
        self.urls = urls
        self.chunk_seconds = chunk_seconds
        self.clock = clock

        self._stream: Optional[MediaStream] = None
        self._constraints: Optional[MediaConstraints] = None
        self._started_at: Optional[datetime] = None
        self._chunks: List[bytes] = []
        self._slice = bytearray()
        self._slice_started_at: Optional[datetime] = None
        self.last_recording: Optional[MediaRecording] = None

    @property
    def is_recording(self) -> bool:
        return self._stream is not None

    @property
    def stream(self) -> Optional[MediaStream]:
        return self._stream

    @property
    def chunk_count(self) -> int:
        return len(self._chunks)

    async def start(self, constraints: Optional[MediaConstraints] = None) -> None:
        """Acquire the device. Raises ``PermissionDenied`` if refused."""
        if self.is_recording:
            raise InvalidTransition(f"The {self.purpose.value} recording has already started.")

        constraints = constraints or DEFAULT_CONSTRAINTS[self.purpose]
        self.registry.claim(self.purpose, self)
        try:
            stream = await self.device.acquire(constraints)
        except PermissionDenied:
            self.registry.release(self.purpose, self)
            logger.warning(f"Media permission denied for {self.purpose.value}")
            raise

        self._stream = stream
        self._constraints = constraints
        self._started_at = self.clock()
        self._chunks = []
        self._slice = bytearray()
        self._slice_started_at = self._started_at
        logger.info(f"[{self._started_at.isoformat()}] {self.purpose.value} recording started")

    def feed(self, data: bytes, at: Optional[datetime] = None) -> None:
        """Buffer uploaded media; closes a chunk every ``chunk_seconds``."""
        if not self.is_recording:
            raise InvalidTransition(f"No {self.purpose.value} recording in progress.")

        at = at or self.clock()
        if (at - self._slice_started_at).total_seconds() >= self.chunk_seconds:
            self._close_slice()
            self._slice_started_at = at
        self._slice.extend(data)

    def stop(self) -> Optional[MediaRecording]:
        """Finalize the recording and release the device. No-op when idle."""
        if not self.is_recording:
            return None

        self._close_slice()
        stopped_at = self.clock()
        blob = b"".join(self._chunks)
        kind = self._constraints.kind
        recording = MediaRecording(
            kind=kind,
            blob=blob,
            mime_type="video/webm" if kind == MediaKind.VIDEO else "audio/webm",
            chunk_count=len(self._chunks),
            started_at=self._started_at,
            stopped_at=stopped_at,
            preview_url=self.urls.create(blob),
        )

        self._teardown()
        self.last_recording = recording
        logger.info(f"[{stopped_at.isoformat()}] {self.purpose.value} recording saved: {round(len(blob) / 1024)} KB")
        return recording

    def release(self, recording: Optional[MediaRecording] = None) -> None:
        """Drop transient references to a finished recording."""
        recording = recording or self.last_recording
        if recording and recording.preview_url:
            self.urls.revoke(recording.preview_url)
        if recording is self.last_recording:
            self.last_recording = None

    @asynccontextmanager
    async def capture(self, constraints: Optional[MediaConstraints] = None) -> AsyncIterator["MediaCaptureController"]:
        """Scoped capture: device and preview URL are released however the block exits."""
        await self.start(constraints)
        try:
            yield self
        finally:
            recording = self.stop() if self.is_recording else None
            self.release(recording)

    def _close_slice(self) -> None:
        if self._slice:
            self._chunks.append(bytes(self._slice))
            self._slice = bytearray()

    def _teardown(self) -> None:
        if self._stream:
            self._stream.stop_all()
        self._stream = None
        self.registry.release(self.purpose, self)
