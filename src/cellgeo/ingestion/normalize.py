"""Normalization helpers.

Centralizes defensive parsing of device report values.  Devices and
shadow documents frequently carry placeholders (``""``, ``"--"``, NaN)
where a value is unknown.
"""

from __future__ import annotations

import math
from typing import Any


def safe_float(value: Any) -> float | None:
    if value is None or value == "" or value == "--":
        return None
    if isinstance(value, bool):
        return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(result) or math.isinf(result):
        return None
    return result


def safe_int(value: Any) -> int | None:
    parsed = safe_float(value)
    if parsed is None:
        return None
    if parsed != int(parsed):
        return None
    return int(parsed)


def safe_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text if text else None


def unwrap_value(value: Any) -> Any:
    """Return ``value["v"]`` for shadow-style ``{"v": ..., "ts": ...}`` wrappers."""
    if isinstance(value, dict) and "v" in value:
        return value["v"]
    return value
