"""Wire envelopes and tagged payload families for the rig control protocol.

Every frame is a UTF-8 JSON text frame carrying an envelope::

    client -> server   {"id": 7, "request": true, "payload": <tagged>}
    server -> client   {"id": 7, "response": true, "payload": <tagged>}

Broadcasts are server frames with ``id == 0`` and ``response == false``.

Payloads use externally tagged enums: a unit variant is a bare string
(``"Ack"``) and a data variant is a single-key object (``{"Log": "text"}``).
Each family below is closed; decoding a tag outside the family raises
:class:`UnknownTagError` instead of falling through.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from numbers import Integral
from typing import Any, Callable, Dict, Mapping, Optional, Sequence, Tuple

BROADCAST_ID = 0

# Broadcast payload tags
MIDI_EVENT_TAG = "MidiEvent"
AVAILABLE_MIDI_INPUTS_TAG = "AvailableMidiInputs"
CONNECTED_MIDI_INPUTS_TAG = "ConnectedMidiInputs"
CACHE_TAG = "Cache"
RENDERER_UPDATE_TAG = "RendererUpdate"
CONTROLLER_UPDATE_TAG = "ControllerUpdate"
DRUM_MACHINE_UPDATES_TAG = "DrumMachineUpdates"
LOG_TAG = "Log"

# Response payload tags
PONG_TAG = "Pong"
ACK_TAG = "Ack"
NAK_TAG = "Nak"
RENDERER_RESPONSE_TAG = "RendererResponse"
CONTROLLER_RESPONSE_TAG = "ControllerResponse"
DIR_INFO_TAG = "DirInfo"

_OK_TAGS = frozenset({ACK_TAG, PONG_TAG, "Ok"})

_UNIT = object()


class ProtocolError(ValueError):
    """Raised when a frame or payload does not match the wire format."""


class UnknownTagError(ProtocolError):
    """Raised when a tagged value carries a tag outside its family."""

    def __init__(self, family: str, tag: str) -> None:
        super().__init__(f"unknown {family} tag: {tag!r}")
        self.family = family
        self.tag = tag


def split_tag(value: Any, family: str = "payload") -> Tuple[str, Any]:
    """Return ``(tag, inner)`` for an externally tagged value.

    Unit variants yield ``inner is None``.
    """

    if isinstance(value, str):
        return value, None
    if isinstance(value, Mapping) and len(value) == 1:
        ((tag, inner),) = value.items()
        return str(tag), inner
    raise ProtocolError(f"{family} must be a tag string or a single-key object, got {value!r}")


def tagged(tag: str, inner: Any = _UNIT) -> Any:
    """Build an externally tagged value; omit *inner* for unit variants."""

    if inner is _UNIT:
        return tag
    return {tag: inner}


def _require_int(value: Any, field_name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, Integral):
        raise ProtocolError(f"{field_name} must be an integer")
    return int(value)


def _require_bool(value: Any, field_name: str) -> bool:
    if not isinstance(value, bool):
        raise ProtocolError(f"{field_name} must be a boolean")
    return value


def _as_sequence(value: Any, field_name: str) -> Sequence[Any]:
    if not isinstance(value, Sequence) or isinstance(value, (str, bytes, bytearray)):
        raise ProtocolError(f"{field_name} must be a JSON array")
    return value


def _as_mapping(value: Any, field_name: str) -> Mapping[str, Any]:
    if not isinstance(value, Mapping):
        raise ProtocolError(f"{field_name} must be a mapping")
    return value


# ---------------------------------------------------------------------------
# Envelopes
# ---------------------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class ClientEnvelope:
    """Outbound frame."""

    id: int
    request: bool
    payload: Any

    def to_dict(self) -> Dict[str, Any]:
        return {"id": int(self.id), "request": bool(self.request), "payload": self.payload}

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), separators=(",", ":"))


@dataclass(slots=True, frozen=True)
class ServerEnvelope:
    """Inbound frame."""

    id: int
    response: bool
    payload: Any

    @property
    def is_broadcast(self) -> bool:
        return self.id == BROADCAST_ID and not self.response

    @classmethod
    def from_dict(cls, data: Any) -> "ServerEnvelope":
        mapping = _as_mapping(data, "server envelope")
        missing = sorted(key for key in ("id", "response", "payload") if key not in mapping)
        if missing:
            raise ProtocolError(f"server envelope missing fields: {', '.join(missing)}")
        return cls(
            id=_require_int(mapping["id"], "id"),
            response=_require_bool(mapping["response"], "response"),
            payload=mapping["payload"],
        )


def decode_server_frame(raw: Any) -> ServerEnvelope:
    """Parse one inbound WebSocket message into a :class:`ServerEnvelope`."""

    if isinstance(raw, (bytes, bytearray, memoryview)):
        raise ProtocolError("binary frames are not part of the control protocol")
    try:
        data = json.loads(raw)
    except (TypeError, json.JSONDecodeError) as exc:
        raise ProtocolError(f"frame is not valid JSON: {exc}") from exc
    return ServerEnvelope.from_dict(data)


# ---------------------------------------------------------------------------
# Broadcast family
# ---------------------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class MidiEvent:
    message: Any

    @classmethod
    def from_inner(cls, inner: Any) -> "MidiEvent":
        return cls(message=_as_mapping(inner, MIDI_EVENT_TAG))


@dataclass(slots=True, frozen=True)
class AvailableMidiInputs:
    names: Tuple[str, ...]

    @classmethod
    def from_inner(cls, inner: Any) -> "AvailableMidiInputs":
        names = _as_sequence(inner, AVAILABLE_MIDI_INPUTS_TAG)
        return cls(names=tuple(str(name) for name in names))


@dataclass(slots=True, frozen=True)
class ConnectedMidiInputs:
    """Input name per slot; ``None`` marks an empty slot."""

    slots: Tuple[Optional[str], ...]

    @classmethod
    def from_inner(cls, inner: Any) -> "ConnectedMidiInputs":
        slots = _as_sequence(inner, CONNECTED_MIDI_INPUTS_TAG)
        return cls(slots=tuple(None if name is None else str(name) for name in slots))


@dataclass(slots=True, frozen=True)
class CacheBroadcast:
    tree: Mapping[str, Any]

    @classmethod
    def from_inner(cls, inner: Any) -> "CacheBroadcast":
        return cls(tree=_as_mapping(inner, CACHE_TAG))


@dataclass(slots=True, frozen=True)
class RendererUpdate:
    kind: str
    body: Any

    @classmethod
    def from_inner(cls, inner: Any) -> "RendererUpdate":
        kind, body = split_tag(inner, RENDERER_UPDATE_TAG)
        return cls(kind=kind, body=body)


@dataclass(slots=True, frozen=True)
class ControllerUpdate:
    kind: str
    body: Any

    @classmethod
    def from_inner(cls, inner: Any) -> "ControllerUpdate":
        kind, body = split_tag(inner, CONTROLLER_UPDATE_TAG)
        return cls(kind=kind, body=body)


@dataclass(slots=True, frozen=True)
class DrumMachineUpdates:
    updates: Tuple[Tuple[str, Any], ...]

    @classmethod
    def from_inner(cls, inner: Any) -> "DrumMachineUpdates":
        return cls(updates=field_updates_from_wire(inner, DRUM_MACHINE_UPDATES_TAG))


@dataclass(slots=True, frozen=True)
class LogBroadcast:
    text: str

    @classmethod
    def from_inner(cls, inner: Any) -> "LogBroadcast":
        return cls(text=str(inner))


Broadcast = (
    MidiEvent
    | AvailableMidiInputs
    | ConnectedMidiInputs
    | CacheBroadcast
    | RendererUpdate
    | ControllerUpdate
    | DrumMachineUpdates
    | LogBroadcast
)

_BROADCAST_DECODERS: Dict[str, Callable[[Any], Broadcast]] = {
    MIDI_EVENT_TAG: MidiEvent.from_inner,
    AVAILABLE_MIDI_INPUTS_TAG: AvailableMidiInputs.from_inner,
    CONNECTED_MIDI_INPUTS_TAG: ConnectedMidiInputs.from_inner,
    CACHE_TAG: CacheBroadcast.from_inner,
    RENDERER_UPDATE_TAG: RendererUpdate.from_inner,
    CONTROLLER_UPDATE_TAG: ControllerUpdate.from_inner,
    DRUM_MACHINE_UPDATES_TAG: DrumMachineUpdates.from_inner,
    LOG_TAG: LogBroadcast.from_inner,
}

BROADCAST_TAGS = frozenset(_BROADCAST_DECODERS)


def decode_broadcast(payload: Any) -> Broadcast:
    """Decode a broadcast payload into its typed message."""

    tag, inner = split_tag(payload, "broadcast")
    decoder = _BROADCAST_DECODERS.get(tag)
    if decoder is None:
        raise UnknownTagError("broadcast", tag)
    return decoder(inner)


def field_updates_from_wire(value: Any, context: str) -> Tuple[Tuple[str, Any], ...]:
    """Decode ``[[field, value], ...]`` into ordered ``(field, value)`` pairs."""

    pairs = []
    for index, entry in enumerate(_as_sequence(value, context)):
        pair = _as_sequence(entry, f"{context}[{index}]")
        if len(pair) != 2:
            raise ProtocolError(f"{context}[{index}] must be a [field, value] pair")
        pairs.append((str(pair[0]), pair[1]))
    return tuple(pairs)


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------


def response_tag(payload: Any) -> str:
    """Return the outer tag of a response payload."""

    tag, _ = split_tag(payload, "response")
    return tag


def is_ok_response(payload: Any) -> bool:
    """True for ``Ack``/``Pong`` and for nested ``Ok`` replies.

    ``{"RendererResponse": "Ok"}`` and
    ``{"RendererResponse": {"NodeResponse": {"id": 0, "kind": "Ok"}}}`` both
    count as success.
    """

    try:
        tag, inner = split_tag(payload, "response")
    except ProtocolError:
        return False
    if tag in _OK_TAGS:
        return True
    if tag not in (RENDERER_RESPONSE_TAG, CONTROLLER_RESPONSE_TAG) or inner is None:
        return False
    try:
        inner_tag, inner_body = split_tag(inner, tag)
    except ProtocolError:
        return False
    if inner_tag == "NodeResponse" and isinstance(inner_body, Mapping):
        return is_ok_response(inner_body.get("kind"))
    return inner_tag in _OK_TAGS
