"""Proctoring monitor.

Watches host signals while a section is active and reports integrity
violations. Fullscreen exits and hidden tabs are violations on their own;
clipboard use and blocked shortcuts are rejected and logged, and become a
violation once they exceed the warning threshold.
"""
import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Callable, Dict, Iterator, Optional

from talent_screen.models.events import ProctoringEvent, ProctoringEventType
from talent_screen.services.signals import Signal, SignalBus

logger = logging.getLogger(__name__)

CLIPBOARD_KEYS = {"c", "v", "x"}


def is_blocked_shortcut(key_event: Dict[str, Any]) -> bool:
    """Print, save, devtools, print-screen and alt-tab combinations."""
    key = str(key_event.get("key", ""))
    lowered = key.lower()
    ctrl = bool(key_event.get("ctrl") or key_event.get("meta"))
    shift = bool(key_event.get("shift"))
    alt = bool(key_event.get("alt"))

    if key in ("F12", "PrintScreen"):
        return True
    if alt and lowered == "tab":
        return True
    if ctrl and lowered in ("p", "s"):
        return True
    if ctrl and shift and lowered in ("i", "j", "c"):
        return True
    return False


def is_clipboard_shortcut(key_event: Dict[str, Any]) -> bool:
    ctrl = bool(key_event.get("ctrl") or key_event.get("meta"))
    return ctrl and not key_event.get("shift") and str(key_event.get("key", "")).lower() in CLIPBOARD_KEYS


class ProctoringMonitor:
    """Edge-triggered integrity watcher for one session."""

    def __init__(
        self,
        bus: SignalBus,
        on_violation: Callable[[ProctoringEventType], None],
        on_event: Optional[Callable[[ProctoringEvent], None]] = None,
        warning_threshold: int = 3,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self.bus = bus
        self.on_violation = on_violation
        self.on_event = on_event
        self.warning_threshold = warning_threshold
        self.clock = clock

        self._armed = False
        self._fullscreen = True
        self._visible = True
        self._counts: Dict[ProctoringEventType, int] = {}
        self._escalated: set = set()
        self._handlers = {
            Signal.FULLSCREEN_CHANGE: self._on_fullscreen_change,
            Signal.VISIBILITY_CHANGE: self._on_visibility_change,
            Signal.CLIPBOARD: self._on_clipboard,
            Signal.KEYDOWN: self._on_keydown,
            Signal.HEARTBEAT: self._on_heartbeat,
        }

    @property
    def is_armed(self) -> bool:
        return self._armed

    @property
    def inputs_enabled(self) -> bool:
        """Clipboard and shortcuts pass through only while disarmed."""
        return not self._armed

    def warnings(self, event_type: ProctoringEventType) -> int:
        return self._counts.get(event_type, 0)

    def arm(self, fullscreen: bool = True, visible: bool = True) -> None:
        if self._armed:
            return
        self._fullscreen = fullscreen
        self._visible = visible
        self._counts = {}
        self._escalated = set()
        for signal, handler in self._handlers.items():
            self.bus.add_listener(signal, handler)
        self._armed = True
        logger.info("Proctoring monitor armed")

    def disarm(self) -> None:
        if not self._armed:
            return
        for signal, handler in self._handlers.items():
            self.bus.remove_listener(signal, handler)
        self._armed = False
        logger.info("Proctoring monitor disarmed")

    @contextmanager
    def armed(self, fullscreen: bool = True, visible: bool = True) -> Iterator["ProctoringMonitor"]:
        """Arm for the duration of the block; always disarms on exit."""
        self.arm(fullscreen=fullscreen, visible=visible)
        try:
            yield self
        finally:
            self.disarm()

    # Signal handlers

    def _on_fullscreen_change(self, payload: Dict[str, Any]) -> None:
        self._observe_fullscreen(bool(payload.get("fullscreen", False)))

    def _on_visibility_change(self, payload: Dict[str, Any]) -> None:
        self._observe_visibility(payload.get("state", "visible") != "hidden")

    def _on_heartbeat(self, payload: Dict[str, Any]) -> None:
        # Liveness poll: same edge detection as the change events
        if "fullscreen" in payload:
            self._observe_fullscreen(bool(payload["fullscreen"]))
        if "visibility" in payload:
            self._observe_visibility(payload["visibility"] != "hidden")

    def _on_clipboard(self, payload: Dict[str, Any]) -> bool:
        self._record_warning(ProctoringEventType.COPY_PASTE_ATTEMPTED, {"action": payload.get("action", "unknown")})
        return True

    def _on_keydown(self, payload: Dict[str, Any]) -> bool:
        if is_clipboard_shortcut(payload):
            self._record_warning(ProctoringEventType.COPY_PASTE_ATTEMPTED, {"key": payload.get("key")})
            return True
        if is_blocked_shortcut(payload):
            self._record_warning(ProctoringEventType.SHORTCUT_BLOCKED, {"key": payload.get("key")})
            return True
        return False

    # Edge detection

    def _observe_fullscreen(self, fullscreen: bool) -> None:
        was_fullscreen = self._fullscreen
        self._fullscreen = fullscreen
        if was_fullscreen and not fullscreen:
            self._violate(ProctoringEventType.FULLSCREEN_EXITED, {})

    def _observe_visibility(self, visible: bool) -> None:
        was_visible = self._visible
        self._visible = visible
        if was_visible and not visible:
            self._violate(ProctoringEventType.TAB_HIDDEN, {})

    def _record_warning(self, event_type: ProctoringEventType, detail: Dict[str, Any]) -> None:
        count = self._counts.get(event_type, 0) + 1
        self._counts[event_type] = count
        event = self._emit(event_type, {**detail, "count": count})
        logger.warning(f"[{event.timestamp.isoformat()}] Blocked {event_type.value} (attempt {count})")

        if count > self.warning_threshold and event_type not in self._escalated:
            self._escalated.add(event_type)
            self.on_violation(event_type)

    def _violate(self, event_type: ProctoringEventType, detail: Dict[str, Any]) -> None:
        event = self._emit(event_type, detail)
        logger.warning(f"[{event.timestamp.isoformat()}] SECURITY VIOLATION: {event_type.value}")
        self.on_violation(event_type)

    def _emit(self, event_type: ProctoringEventType, detail: Dict[str, Any]) -> ProctoringEvent:
        event = ProctoringEvent(type=event_type, timestamp=self.clock(), detail=detail)
        if self.on_event:
            self.on_event(event)
        return event
