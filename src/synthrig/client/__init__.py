"""synthrig client components for mirroring rig state and issuing requests."""

from __future__ import annotations

from importlib import import_module
from typing import Any

__all__ = ["ClientConfig", "RigApi", "RigClient", "load_client_config", "main"]


def _lazy_attr(name: str) -> Any:
    module_map = {
        "ClientConfig": ("synthrig.client.config", "ClientConfig"),
        "load_client_config": ("synthrig.client.config", "load_client_config"),
        "RigApi": ("synthrig.client.api", "RigApi"),
        "RigClient": ("synthrig.client.session", "RigClient"),
        "main": ("synthrig.client.launcher", "main"),
    }
    if name not in module_map:
        raise AttributeError(name)
    module_path, attr = module_map[name]
    module = import_module(module_path)
    return getattr(module, attr)


def __getattr__(name: str) -> Any:  # pragma: no cover - trivial delegation
    return _lazy_attr(name)
