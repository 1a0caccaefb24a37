"""synthrig: control-plane client for a networked synth rig.

The client keeps a live mirror of the rig server's state over one WebSocket
and issues correlated requests over the same connection.
"""

from __future__ import annotations

from importlib import import_module
from typing import Any

__version__ = "0.1.0"

__all__ = ["ClientConfig", "RigApi", "RigClient", "__version__"]

_CLIENT_EXPORTS = frozenset({"ClientConfig", "RigApi", "RigClient"})


def __getattr__(name: str) -> Any:  # pragma: no cover - trivial delegation
    if name not in _CLIENT_EXPORTS:
        raise AttributeError(name)
    return getattr(import_module("synthrig.client"), name)
