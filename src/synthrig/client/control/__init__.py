"""Control-channel plumbing: transport, correlation, routing and the replica."""

from .broadcast_router import BroadcastRouter
from .correlator import PendingRequest, RequestCorrelator
from .replica_store import NodeRecord, ReplicaSnapshot, ReplicaStore
from .transport import Transport

__all__ = [
    "BroadcastRouter",
    "NodeRecord",
    "PendingRequest",
    "ReplicaSnapshot",
    "ReplicaStore",
    "RequestCorrelator",
    "Transport",
]
