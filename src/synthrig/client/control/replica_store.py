"""Local mirror of the rig server's state tree.

The replica is rebuilt from every ``Cache`` snapshot and then mutated by
delta ops in the order they arrive. The server addresses node records by
position; the store additionally gives every record a stable key, minted when
the record enters its collection, so observers can follow a record across
removals and moves of its neighbours.

Observers never see the internal tree: they receive :class:`ReplicaSnapshot`
objects built from copies.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple

from synthrig.client.errors import ReplicaError, ReplicaIndexError, ReplicaNotReadyError
from synthrig.protocol.deltas import (
    DeltaOp,
    FieldUpdate,
    FieldUpdates,
    FullSnapshot,
    ItemAdded,
    ItemCloned,
    ItemMoved,
    ItemRemoved,
    SingletonUpdate,
)
from synthrig.utils.debug_log import maybe_enable_debug_logger

logger = logging.getLogger(__name__)

_REPLICA_DEBUG = maybe_enable_debug_logger(logger, "SYNTHRIG_REPLICA_DEBUG")

ReplicaListener = Callable[["ReplicaSnapshot"], None]


_EMPTY: Mapping[str, Any] = MappingProxyType({})


def _freeze(value: Any) -> Any:
    """Read-only deep copy: mappings become proxies, arrays become tuples."""

    if isinstance(value, Mapping):
        return MappingProxyType({str(key): _freeze(item) for key, item in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(_freeze(item) for item in value)
    return value


def _thaw(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {key: _thaw(item) for key, item in value.items()}
    if isinstance(value, tuple):
        return [_thaw(item) for item in value]
    return value


@dataclass(frozen=True)
class NodeRecord:
    """Read-only copy of one node record together with its stable key.

    ``body`` is frozen all the way down; use :meth:`to_json` for a mutable copy.
    """

    key: int
    body: Mapping[str, Any]

    @property
    def kind(self) -> Any:
        return self.body.get("kind")

    @property
    def instance(self) -> Mapping[str, Any]:
        instance = self.body.get("instance")
        return instance if isinstance(instance, Mapping) else _EMPTY

    def to_json(self) -> Dict[str, Any]:
        return _thaw(self.body)


@dataclass(frozen=True)
class ReplicaSnapshot:
    """Immutable view of the replica at one revision."""

    revision: int
    collections: Mapping[str, Tuple[NodeRecord, ...]]
    singletons: Mapping[str, Any]
    order: Tuple[str, ...] = ()

    def collection(self, name: str) -> Tuple[NodeRecord, ...]:
        return self.collections.get(name, ())

    def singleton(self, name: str, default: Any = None) -> Any:
        """Mutable copy of singleton *name*; ``singletons`` holds the frozen value."""

        if name not in self.singletons:
            return default
        return _thaw(self.singletons[name])

    def __iter__(self) -> Iterator[str]:
        return iter(self.order)

    def to_json(self) -> Dict[str, Any]:
        """Rebuild the server tree this snapshot mirrors."""

        tree: Dict[str, Any] = {}
        for name in self.order:
            if name in self.collections:
                tree[name] = [record.to_json() for record in self.collections[name]]
            else:
                tree[name] = _thaw(self.singletons[name])
        return tree


EMPTY_SNAPSHOT = ReplicaSnapshot(revision=0, collections=MappingProxyType({}), singletons=MappingProxyType({}))


@dataclass
class _Entry:
    key: int
    body: Dict[str, Any]
    frozen: Optional[NodeRecord] = None

    def freeze(self) -> NodeRecord:
        if self.frozen is None:
            self.frozen = NodeRecord(key=self.key, body=_freeze(self.body))
        return self.frozen


@dataclass
class _Collection:
    name: str
    entries: List[_Entry] = field(default_factory=list)
    next_key: int = 0

    def append(self, body: Dict[str, Any]) -> int:
        key = self.next_key
        self.next_key += 1
        self.entries.append(_Entry(key=key, body=body))
        return key

    def entry_at(self, index: int) -> _Entry:
        if not 0 <= index < len(self.entries):
            raise ReplicaIndexError(f"{self.name}[{index}] out of range (len={len(self.entries)})")
        return self.entries[index]

    def index_of(self, key: int) -> int:
        for index, entry in enumerate(self.entries):
            if entry.key == key:
                return index
        raise ReplicaIndexError(f"{self.name} has no record with key {key}")


def _record_body(record: Any, context: str) -> Dict[str, Any]:
    if not isinstance(record, Mapping):
        raise ReplicaError(f"{context} must be an object, got {type(record).__name__}")
    return copy.deepcopy(dict(record))


class ReplicaStore:
    """Owns the replica and notifies listeners after every applied change."""

    def __init__(self) -> None:
        self._collections: Dict[str, _Collection] = {}
        self._singletons: Dict[str, Any] = {}
        self._order: List[str] = []
        # next key per collection name, kept across snapshots so keys are never reused
        self._next_keys: Dict[str, int] = {}
        self._populated = False
        self._revision = 0
        self._snapshot: ReplicaSnapshot = EMPTY_SNAPSHOT
        self._dirty = False
        self._listeners: List[ReplicaListener] = []

    # ------------------------------------------------------------------
    @property
    def populated(self) -> bool:
        return self._populated

    @property
    def revision(self) -> int:
        return self._revision

    def add_listener(self, callback: ReplicaListener) -> None:
        if callback not in self._listeners:
            self._listeners.append(callback)

    def remove_listener(self, callback: ReplicaListener) -> None:
        if callback in self._listeners:
            self._listeners.remove(callback)

    def snapshot(self) -> ReplicaSnapshot:
        if self._dirty:
            self._snapshot = self._build_snapshot()
            self._dirty = False
        return self._snapshot

    def key_at(self, collection: str, index: int) -> int:
        return self._collection(collection).entry_at(index).key

    def index_of(self, collection: str, key: int) -> int:
        return self._collection(collection).index_of(key)

    # ------------------------------------------------------------------
    def apply_snapshot(self, tree: Mapping[str, Any]) -> ReplicaSnapshot:
        """Replace the whole replica with *tree*."""

        if not isinstance(tree, Mapping):
            raise ReplicaError("snapshot tree must be an object")
        collections: Dict[str, _Collection] = {}
        singletons: Dict[str, Any] = {}
        order: List[str] = []
        for raw_name, value in tree.items():
            name = str(raw_name)
            order.append(name)
            if isinstance(value, Sequence) and not isinstance(value, (str, bytes, bytearray)):
                target = self._new_collection(name)
                for index, record in enumerate(value):
                    target.append(_record_body(record, f"{name}[{index}]"))
                collections[name] = target
            else:
                singletons[name] = copy.deepcopy(value)
        self._retire_keys()
        self._collections = collections
        self._singletons = singletons
        self._order = order
        self._populated = True
        if _REPLICA_DEBUG:
            logger.debug(
                "replica snapshot applied: %s",
                {name: len(target.entries) for name, target in collections.items()},
            )
        return self._commit()

    def apply_delta(self, op: DeltaOp) -> ReplicaSnapshot:
        """Apply one delta op and notify; raises without mutating on failure."""

        if isinstance(op, FullSnapshot):
            return self.apply_snapshot(op.tree)
        if not self._populated:
            raise ReplicaNotReadyError(f"{type(op).__name__} received before the first snapshot")
        handler = self._DELTA_HANDLERS.get(type(op))
        if handler is None:
            raise ReplicaError(f"unsupported delta op: {op!r}")
        handler(self, op)
        if _REPLICA_DEBUG:
            logger.debug("replica delta applied: %r", op)
        return self._commit()

    # ------------------------------------------------------------------
    def _apply_field_update(self, op: FieldUpdate) -> None:
        entry = self._collection(op.collection).entry_at(op.index)
        instance = entry.body.get("instance")
        if not isinstance(instance, dict):
            instance = {}
            entry.body["instance"] = instance
        _set_fields(instance, op.updates)
        entry.frozen = None

    def _apply_item_added(self, op: ItemAdded) -> None:
        body = _record_body(op.record, f"{op.collection} record")
        target = self._collections.get(op.collection)
        if target is None:
            if op.collection in self._singletons:
                raise ReplicaIndexError(f"{op.collection} is not a collection")
            target = self._new_collection(op.collection)
            self._collections[op.collection] = target
            self._order.append(op.collection)
        target.append(body)

    def _apply_item_removed(self, op: ItemRemoved) -> None:
        target = self._collection(op.collection)
        target.entry_at(op.index)
        del target.entries[op.index]

    def _apply_item_cloned(self, op: ItemCloned) -> None:
        target = self._collection(op.collection)
        source = target.entry_at(op.index)
        target.append(copy.deepcopy(source.body))

    def _apply_item_moved(self, op: ItemMoved) -> None:
        target = self._collection(op.collection)
        target.entry_at(op.index)
        if not 0 <= op.new_index < len(target.entries):
            raise ReplicaIndexError(
                f"{op.collection} move target {op.new_index} out of range (len={len(target.entries)})"
            )
        entry = target.entries.pop(op.index)
        target.entries.insert(op.new_index, entry)

    def _apply_singleton_update(self, op: SingletonUpdate) -> None:
        if op.name in self._collections:
            raise ReplicaIndexError(f"{op.name} is a collection, not a singleton")
        current = self._singletons.get(op.name)
        if not isinstance(current, dict):
            current = {}
            if op.name not in self._singletons:
                self._order.append(op.name)
            self._singletons[op.name] = current
        _set_fields(current, op.updates)

    _DELTA_HANDLERS: Dict[type, Callable[["ReplicaStore", Any], None]] = {
        FieldUpdate: _apply_field_update,
        ItemAdded: _apply_item_added,
        ItemRemoved: _apply_item_removed,
        ItemCloned: _apply_item_cloned,
        ItemMoved: _apply_item_moved,
        SingletonUpdate: _apply_singleton_update,
    }

    # ------------------------------------------------------------------
    def _collection(self, name: str) -> _Collection:
        target = self._collections.get(name)
        if target is None:
            raise ReplicaIndexError(f"no collection named {name!r}")
        return target

    def _new_collection(self, name: str) -> _Collection:
        current = self._collections.get(name)
        next_key = self._next_keys.get(name, 0)
        if current is not None:
            next_key = max(next_key, current.next_key)
        return _Collection(name, next_key=next_key)

    def _retire_keys(self) -> None:
        for name, target in self._collections.items():
            self._next_keys[name] = max(self._next_keys.get(name, 0), target.next_key)

    def _build_snapshot(self) -> ReplicaSnapshot:
        collections = {
            name: tuple(entry.freeze() for entry in target.entries)
            for name, target in self._collections.items()
        }
        singletons = {name: _freeze(value) for name, value in self._singletons.items()}
        return ReplicaSnapshot(
            revision=self._revision,
            collections=MappingProxyType(collections),
            singletons=MappingProxyType(singletons),
            order=tuple(self._order),
        )

    def _commit(self) -> ReplicaSnapshot:
        self._revision += 1
        self._dirty = True
        snapshot = self.snapshot()
        for callback in tuple(self._listeners):
            try:
                callback(snapshot)
            except Exception:
                logger.debug("replica listener failed", exc_info=True)
        return snapshot


def _set_fields(target: Dict[str, Any], updates: FieldUpdates) -> None:
    for name, value in updates:
        target[str(name)] = copy.deepcopy(value)
