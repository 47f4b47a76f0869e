"""Helpers for safe debug logging.

cellgeo handles provider API tokens and device identifiers.  Aggregate
lookups must not leak which device reported a fix, so anything that
names a device is masked before payloads reach DEBUG logs.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from cellgeo._constants import DEVICE_SOURCE_PREFIX

_SENSITIVE_KEYS: frozenset[str] = frozenset(
    {
        "token",
        "apikey",
        "authorization",
        "deviceid",
        "device_id",
        "devicesource",
        "device_source",
        "imei",
        "iccid",
    }
)

REDACTED = "<redacted>"


def _redact_str(value: str, max_string: int) -> str:
    if value.startswith(DEVICE_SOURCE_PREFIX):
        return f"{DEVICE_SOURCE_PREFIX}{REDACTED}"
    if len(value) > max_string:
        return f"{value[:max_string]}…<truncated>"
    return value


def redact_for_log(value: Any, *, max_string: int = 256, _depth: int = 0) -> Any:
    """Return a copy of *value* with secrets and device identity masked."""
    if _depth > 16:
        return "<max-depth>"

    if value is None or isinstance(value, (bool, int, float)):
        return value

    if isinstance(value, str):
        return _redact_str(value, max_string)

    if isinstance(value, (bytes, bytearray)):
        return f"<bytes:{len(value)}b>"

    if isinstance(value, Mapping):
        return {
            str(key): REDACTED
            if str(key).lower() in _SENSITIVE_KEYS
            else redact_for_log(item, max_string=max_string, _depth=_depth + 1)
            for key, item in value.items()
        }

    if isinstance(value, Sequence):
        return [redact_for_log(item, max_string=max_string, _depth=_depth + 1) for item in value]

    return repr(value)
