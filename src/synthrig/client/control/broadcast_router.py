"""Route unsolicited server broadcasts to events and the replica."""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional, Tuple

from synthrig.client import events
from synthrig.client.control.replica_store import ReplicaStore
from synthrig.client.errors import ReplicaError
from synthrig.protocol.deltas import (
    DeltaOp,
    delta_from_cache,
    delta_from_controller_update,
    delta_from_drum_machine,
    delta_from_renderer_update,
)
from synthrig.protocol.messages import (
    AvailableMidiInputs,
    CacheBroadcast,
    ConnectedMidiInputs,
    ControllerUpdate,
    DrumMachineUpdates,
    LogBroadcast,
    MidiEvent,
    ProtocolError,
    RendererUpdate,
    ServerEnvelope,
    decode_broadcast,
)

logger = logging.getLogger(__name__)

Emit = Callable[[str, Any], None]


class BroadcastRouter:
    """Classify broadcast payloads by tag and dispatch them.

    Domain broadcasts become named events through *emit*; state broadcasts
    become delta ops applied to *store*. Nothing raised while handling one
    broadcast escapes :meth:`route`.
    """

    def __init__(self, store: ReplicaStore, emit: Emit) -> None:
        self._store = store
        self._emit = emit
        self.available_midi_inputs: Tuple[str, ...] = ()
        self.connected_midi_inputs: Tuple[Optional[str], ...] = ()

    def route(self, envelope: ServerEnvelope) -> None:
        if not envelope.is_broadcast:
            logger.debug("router ignoring non-broadcast frame id=%s", envelope.id)
            return
        self.route_payload(envelope.payload)

    def route_payload(self, payload: Any) -> None:
        try:
            message = decode_broadcast(payload)
        except ProtocolError as exc:
            logger.warning("Dropping broadcast: %s", exc)
            return

        if isinstance(message, MidiEvent):
            self._emit(events.MIDI, message.message)
        elif isinstance(message, AvailableMidiInputs):
            self.available_midi_inputs = message.names
            self._emit(events.AVAILABLE_MIDI_INPUTS, list(message.names))
        elif isinstance(message, ConnectedMidiInputs):
            self.connected_midi_inputs = message.slots
            self._emit(events.CONNECTED_MIDI_INPUTS, list(message.slots))
        elif isinstance(message, LogBroadcast):
            logger.info("server log: %s", message.text)
            self._emit(events.LOG, message.text)
        elif isinstance(message, ControllerUpdate):
            self._route_controller_update(message)
        else:
            self._apply(message)

    def _route_controller_update(self, message: ControllerUpdate) -> None:
        try:
            op = delta_from_controller_update(message)
        except ProtocolError as exc:
            logger.warning("Dropping controller update: %s", exc)
            return
        if op is None:
            self._emit(events.BEAT_STATE, message.body)
            return
        self._apply_op(op)

    def _apply(self, message: CacheBroadcast | RendererUpdate | DrumMachineUpdates) -> None:
        try:
            if isinstance(message, CacheBroadcast):
                op: DeltaOp = delta_from_cache(message)
            elif isinstance(message, RendererUpdate):
                op = delta_from_renderer_update(message)
            else:
                op = delta_from_drum_machine(message)
        except ProtocolError as exc:
            logger.warning("Dropping state update: %s", exc)
            return
        self._apply_op(op)

    def _apply_op(self, op: DeltaOp) -> None:
        try:
            self._store.apply_delta(op)
        except ReplicaError as exc:
            logger.warning("Dropping delta %s: %s", type(op).__name__, exc)
