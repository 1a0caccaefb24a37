"""Named-event subscription for UI surfaces observing the client."""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List

logger = logging.getLogger(__name__)

CONNECTED = "connected"
DISCONNECTED = "disconnected"
CACHE_UPDATE = "cache-update"
MIDI = "midi"
AVAILABLE_MIDI_INPUTS = "available-midi-inputs"
CONNECTED_MIDI_INPUTS = "connected-midi-inputs"
BEAT_STATE = "beat-state"
LOG = "log"
DECODE_ERROR = "decode-error"

EVENT_NAMES = frozenset(
    {
        CONNECTED,
        DISCONNECTED,
        CACHE_UPDATE,
        MIDI,
        AVAILABLE_MIDI_INPUTS,
        CONNECTED_MIDI_INPUTS,
        BEAT_STATE,
        LOG,
        DECODE_ERROR,
    }
)

EventListener = Callable[[Any], None]


class EventHub:
    """Dispatch named events to listeners in registration order.

    Listeners receive the event detail (``None`` for ``connected``). A failing
    listener is logged and does not stop delivery to the others.
    """

    def __init__(self) -> None:
        self._listeners: Dict[str, List[EventListener]] = {}
        self._closed = False

    def add_listener(self, event: str, callback: EventListener) -> None:
        if event not in EVENT_NAMES:
            raise ValueError(f"unknown event name: {event!r}")
        listeners = self._listeners.setdefault(event, [])
        if callback not in listeners:
            listeners.append(callback)

    def remove_listener(self, event: str, callback: EventListener) -> None:
        listeners = self._listeners.get(event)
        if listeners and callback in listeners:
            listeners.remove(callback)

    def emit(self, event: str, detail: Any = None) -> None:
        if self._closed:
            return
        for callback in tuple(self._listeners.get(event, ())):
            try:
                callback(detail)
            except Exception:
                logger.debug("%s listener failed", event, exc_info=True)

    def close(self) -> None:
        """Drop every listener; later emits are ignored."""

        self._closed = True
        self._listeners.clear()
