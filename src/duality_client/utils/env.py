"""Lenient ``DUALITY_*`` environment parsing; malformed values fall back to defaults."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Iterable, Optional

TRUTHY = frozenset({"1", "true", "yes", "on"})
FALSY = frozenset({"0", "false", "no", "off"})


def env_str(name: str, default: Optional[str] = None) -> Optional[str]:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip()


def env_flag(name: str, truthy: Iterable[str] = TRUTHY) -> bool:
    raw = env_str(name)
    return raw is not None and raw.lower() in set(truthy)


def env_bool(name: str, default: bool = False) -> bool:
    raw = env_str(name)
    if raw is None:
        return default
    key = raw.lower()
    if key in TRUTHY:
        return True
    if key in FALSY:
        return False
    return default


def env_int(name: str, default: int, *, minimum: Optional[int] = None) -> int:
    raw = env_str(name)
    try:
        value = default if raw is None else int(raw, 10)
    except ValueError:
        value = default
    if minimum is not None:
        value = max(minimum, value)
    return value


def env_float(name: str, default: float) -> float:
    raw = env_str(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def env_choice(name: str, choices: Iterable[str], default: str) -> str:
    raw = env_str(name)
    if raw is None:
        return default
    by_key = {choice.lower(): choice for choice in choices}
    return by_key.get(raw.lower(), default)


def env_path(name: str) -> Optional[Path]:
    raw = env_str(name)
    return Path(raw).expanduser() if raw is not None else None
