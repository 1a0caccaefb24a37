"""Protocol definitions for synthrig client-server communication."""

from __future__ import annotations

from .deltas import *  # noqa: F401,F403
from .messages import *  # noqa: F401,F403

__all__ = [name for name in globals().keys() if not name.startswith("_")]
