"""Exceptions raised to callers of the control client."""

from __future__ import annotations


class RigClientError(RuntimeError):
    """Base class for control client failures."""


class NotConnectedError(RigClientError):
    """Raised when a frame is sent while no connection is open."""


class RequestTimeoutError(RigClientError, TimeoutError):
    """Raised when no response arrives for a request within its timeout."""

    def __init__(self, request_id: int, timeout_ms: float) -> None:
        super().__init__(f"request {request_id} timed out after {timeout_ms:g} ms")
        self.request_id = request_id
        self.timeout_ms = timeout_ms


class RequestResetError(RigClientError, ConnectionResetError):
    """Raised for requests left pending when a new connection replaced theirs."""

    def __init__(self, request_id: int, epoch: int) -> None:
        super().__init__(f"request {request_id} from connection epoch {epoch} was reset")
        self.request_id = request_id
        self.epoch = epoch


class ClientDestroyedError(RigClientError):
    """Raised for requests still pending when the client is destroyed."""


class ReplicaError(RigClientError):
    """Base class for delta application failures."""


class ReplicaNotReadyError(ReplicaError):
    """Raised when a delta arrives before the first full snapshot."""


class ReplicaIndexError(ReplicaError, IndexError):
    """Raised when a delta addresses a record or collection that does not exist."""
