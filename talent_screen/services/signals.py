"""Host-environment signal bus.

The candidate's browser reports fullscreen, visibility, clipboard and keyboard
activity to the service. Each session gets its own bus; components subscribe
while they need the signals and unsubscribe when done.
"""
import logging
from collections import defaultdict
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

# A handler returns True to reject the host action (e.g. block a paste)
SignalHandler = Callable[[Dict[str, Any]], Optional[bool]]


class Signal(str, Enum):
    FULLSCREEN_CHANGE = "fullscreen_change"
    VISIBILITY_CHANGE = "visibility_change"
    CLIPBOARD = "clipboard"
    KEYDOWN = "keydown"
    HEARTBEAT = "heartbeat"


class SignalBus:
    """Listener registry with synchronous dispatch."""

    def __init__(self):
        self._listeners: Dict[Signal, List[SignalHandler]] = defaultdict(list)

    def add_listener(self, signal: Signal, handler: SignalHandler) -> None:
        self._listeners[signal].append(handler)

    def remove_listener(self, signal: Signal, handler: SignalHandler) -> None:
        try:
            self._listeners[signal].remove(handler)
        except ValueError:
            logger.debug(f"Handler not registered for {signal.value}")

    def listener_count(self, signal: Optional[Signal] = None) -> int:
        if signal is not None:
            return len(self._listeners[signal])
        return sum(len(handlers) for handlers in self._listeners.values())

    def dispatch(self, signal: Signal, payload: Optional[Dict[str, Any]] = None) -> bool:
        """Deliver a signal. Returns True if any handler rejected the action."""
        rejected = False
        # Copy: handlers may unsubscribe while being dispatched
        for handler in list(self._listeners[signal]):
            if handler(payload or {}):
                rejected = True
        return rejected
