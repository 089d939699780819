"""Environment helpers for overriding HeartSync configuration."""

from __future__ import annotations

import logging
import math
import os
from typing import Optional, Tuple

ENV_PREFIX = "HEARTSYNC_"

log = logging.getLogger(__name__)


def read_env(name: str) -> Optional[str]:
    """Return the raw value of ``HEARTSYNC_<name>`` or ``None`` if unset."""

    return os.environ.get(ENV_PREFIX + name)


def coerce_float_env(
    value: Optional[str], default: float, *, minimum: float = 0.0
) -> Tuple[float, bool]:
    if value is None or value.strip() == "":
        return default, False
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        log.warning("Ignoring non-numeric override %r", value)
        return default, False
    if not math.isfinite(parsed):
        return default, False
    return max(minimum, parsed), True


def coerce_int_env(
    value: Optional[str], default: int, *, minimum: int = 1, maximum: Optional[int] = None
) -> Tuple[int, bool]:
    if value is None or value.strip() == "":
        return default, False
    try:
        parsed = int(round(float(value)))
    except (TypeError, ValueError, OverflowError):
        log.warning("Ignoring non-integer override %r", value)
        return default, False
    parsed = max(minimum, parsed)
    if maximum is not None:
        parsed = min(maximum, parsed)
    return parsed, True


def coerce_str_env(value: Optional[str], default: Optional[str]) -> Tuple[Optional[str], bool]:
    if value is None:
        return default, False
    stripped = value.strip()
    if not stripped:
        return default, False
    return stripped, True
