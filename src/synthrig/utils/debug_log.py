"""Opt-in verbose logging for individual client areas."""

from __future__ import annotations

import logging
import os

DEBUG_FORMAT = "[%(asctime)s] %(name)s - %(levelname)s - %(message)s"

_ENABLED_VALUES = ("1", "true", "yes", "on", "dbg", "debug")


def maybe_enable_debug_logger(logger: logging.Logger, *env_names: str) -> bool:
    """Attach a local DEBUG handler to *logger* when any of *env_names* is set.

    Returns True when debug tracing is active so callers can guard expensive
    log formatting behind a module flag.
    """

    flag = ""
    for name in env_names:
        flag = (os.getenv(name) or "").lower()
        if flag:
            break
    if flag not in _ENABLED_VALUES:
        return False
    has_local = any(getattr(handler, "_synthrig_local", False) for handler in logger.handlers)
    if not has_local:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(DEBUG_FORMAT))
        handler.setLevel(logging.DEBUG)
        setattr(handler, "_synthrig_local", True)
        logger.addHandler(handler)
    logger.setLevel(logging.DEBUG)
    logger.propagate = False
    return True
