"""Typed readers for ``SYNTHRIG_*`` environment variables.

Each reader returns *default* when the variable is unset, blank, or does not
parse; configuration never fails because of a bad environment value.
"""

from __future__ import annotations

import os
from typing import Optional

_TRUE = ("1", "true", "yes", "on")
_FALSE = ("0", "false", "no", "off")


def _raw(name: str) -> Optional[str]:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return None
    return value.strip()


def env_str(name: str, default: Optional[str] = None) -> Optional[str]:
    value = _raw(name)
    return value if value is not None else default


def env_bool(name: str, default: bool = False) -> bool:
    value = _raw(name)
    if value is None:
        return default
    lowered = value.lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    return default


def env_int(name: str, default: int, *, minimum: Optional[int] = None, maximum: Optional[int] = None) -> int:
    value = _raw(name)
    if value is None:
        return default
    try:
        parsed = int(value, 10)
    except ValueError:
        return default
    if minimum is not None and parsed < minimum:
        return default
    if maximum is not None and parsed > maximum:
        return default
    return parsed


def env_float(name: str, default: float, *, minimum: Optional[float] = None) -> float:
    value = _raw(name)
    if value is None:
        return default
    try:
        parsed = float(value)
    except ValueError:
        return default
    if minimum is not None and parsed < minimum:
        return default
    return parsed
