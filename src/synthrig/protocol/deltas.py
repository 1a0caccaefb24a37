"""Delta operations applied to the client replica.

The server describes every state change as one of a closed set of ops. This
module holds the op dataclasses and the translation from the broadcast
messages that carry them (``Cache``, ``RendererUpdate``, ``ControllerUpdate``
and the legacy ``DrumMachineUpdates``).
"""

from __future__ import annotations

from dataclasses import dataclass
from numbers import Integral
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

from .messages import (
    CacheBroadcast,
    ControllerUpdate,
    DrumMachineUpdates,
    ProtocolError,
    RendererUpdate,
    UnknownTagError,
    field_updates_from_wire,
)

RENDER_NODES = "render_nodes"
CONTROL_NODES = "control_nodes"
CONTROLLER = "controller"
DRUM_MACHINE = "drum_machine"

BEAT_STATE_KIND = "BeatState"

FieldUpdates = Tuple[Tuple[str, Any], ...]


@dataclass(slots=True, frozen=True)
class FullSnapshot:
    tree: Mapping[str, Any]


@dataclass(slots=True, frozen=True)
class FieldUpdate:
    collection: str
    index: int
    updates: FieldUpdates


@dataclass(slots=True, frozen=True)
class ItemAdded:
    collection: str
    record: Mapping[str, Any]


@dataclass(slots=True, frozen=True)
class ItemRemoved:
    collection: str
    index: int


@dataclass(slots=True, frozen=True)
class ItemCloned:
    collection: str
    index: int


@dataclass(slots=True, frozen=True)
class ItemMoved:
    collection: str
    index: int
    new_index: int


@dataclass(slots=True, frozen=True)
class SingletonUpdate:
    name: str
    updates: FieldUpdates


DeltaOp = FullSnapshot | FieldUpdate | ItemAdded | ItemRemoved | ItemCloned | ItemMoved | SingletonUpdate


def _index(body: Any, key: str, context: str) -> int:
    if not isinstance(body, Mapping) or key not in body:
        raise ProtocolError(f"{context} requires '{key}'")
    value = body[key]
    if isinstance(value, bool) or not isinstance(value, Integral) or value < 0:
        raise ProtocolError(f"{context}.{key} must be a non-negative integer")
    return int(value)


def _node_add(collection: str, body: Any, context: str) -> ItemAdded:
    if not isinstance(body, Mapping) or "kind" not in body:
        raise ProtocolError(f"{context} requires 'kind'")
    instance = body.get("instance")
    record: Dict[str, Any] = {"kind": str(body["kind"]), "instance": instance if instance is not None else {}}
    return ItemAdded(collection=collection, record=record)


def _node_ops(collection: str) -> Dict[str, Callable[[Any], DeltaOp]]:
    """Node list ops shared by the renderer and the controller."""

    return {
        "AddNode": lambda body: _node_add(collection, body, "AddNode"),
        "RemoveNode": lambda body: ItemRemoved(collection, _index(body, "id", "RemoveNode")),
        "CloneNode": lambda body: ItemCloned(collection, _index(body, "id", "CloneNode")),
        "MoveNode": lambda body: ItemMoved(
            collection,
            _index(body, "id", "MoveNode"),
            _index(body, "new_id", "MoveNode"),
        ),
        "NodeUpdates": lambda body: FieldUpdate(
            collection,
            _index(body, "id", "NodeUpdates"),
            field_updates_from_wire(
                body.get("updates") if isinstance(body, Mapping) else None,
                "NodeUpdates.updates",
            ),
        ),
    }


def _controller_field(field: str) -> Callable[[Any], DeltaOp]:
    return lambda body: SingletonUpdate(CONTROLLER, ((field, body),))


_RENDERER_OPS = _node_ops(RENDER_NODES)

_CONTROLLER_OPS: Dict[str, Callable[[Any], DeltaOp]] = {
    **_node_ops(CONTROL_NODES),
    "Enabled": _controller_field("enabled"),
    "TempoBpm": _controller_field("tempo_bpm"),
    "Rhythm": _controller_field("rhythm"),
}


def delta_from_cache(message: CacheBroadcast) -> FullSnapshot:
    return FullSnapshot(tree=message.tree)


def delta_from_renderer_update(message: RendererUpdate) -> DeltaOp:
    builder = _RENDERER_OPS.get(message.kind)
    if builder is None:
        raise UnknownTagError("renderer update", message.kind)
    return builder(message.body)


def delta_from_controller_update(message: ControllerUpdate) -> Optional[DeltaOp]:
    """Translate a controller update; ``None`` for the realtime beat pulse."""

    if message.kind == BEAT_STATE_KIND:
        return None
    builder = _CONTROLLER_OPS.get(message.kind)
    if builder is None:
        raise UnknownTagError("controller update", message.kind)
    return builder(message.body)


def delta_from_drum_machine(message: DrumMachineUpdates) -> SingletonUpdate:
    return SingletonUpdate(DRUM_MACHINE, message.updates)
