"""Opt-in per-module debug logging driven by environment flags."""

from __future__ import annotations

import logging

from .env import TRUTHY, env_flag

_DEBUG_VALUES = TRUTHY | {"dbg", "debug"}
_FORMAT = "[%(asctime)s] %(name)s - %(levelname)s - %(message)s"


def enable_debug_logger(logger: logging.Logger, *env_names: str) -> bool:
    """Attach a local DEBUG handler to *logger* when any env flag is set.

    Returns ``True`` when debug logging was enabled so callers can guard
    expensive log formatting behind a module-level flag.
    """
    if not any(env_flag(name, _DEBUG_VALUES) for name in env_names):
        return False
    has_local = any(getattr(handler, "_duality_local", False) for handler in logger.handlers)
    if not has_local:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_FORMAT))
        handler.setLevel(logging.DEBUG)
        setattr(handler, "_duality_local", True)
        logger.addHandler(handler)
    logger.setLevel(logging.DEBUG)
    logger.propagate = False
    return True
