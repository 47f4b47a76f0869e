"""Base model for cellgeo domain types.

Every model inherits from :class:`CellGeoBaseModel` which provides:

* frozen, hashable instances (cell ids are dictionary keys);
* ``populate_by_name`` so both field names and aliases validate;
* a ``model_validator(mode="before")`` that drops placeholder values
  (``""``, ``"--"``, NaN) so the field default or a missing-field error
  applies instead of a bogus coercion.
"""

from __future__ import annotations

import math
from datetime import UTC, datetime
from typing import Annotated, Any

from pydantic import AfterValidator, BaseModel, ConfigDict, model_validator

# Placeholder strings devices send for "not available".
_SENTINELS = frozenset({"", "--", "NaN", "nan", "null"})


def utcnow() -> datetime:
    return datetime.now(UTC)


def _ensure_tz_aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


UtcDatetime = Annotated[datetime, AfterValidator(_ensure_tz_aware)]
"""Datetime normalized to UTC; naive values are assumed to already be UTC."""


def strip_sentinels(values: dict[str, Any]) -> dict[str, Any]:
    """Return *values* without ``None``/placeholder entries."""
    cleaned: dict[str, Any] = {}
    for key, value in values.items():
        if value is None:
            continue
        if isinstance(value, str) and value.strip() in _SENTINELS:
            continue
        if isinstance(value, float) and math.isnan(value):
            continue
        cleaned[key] = value
    return cleaned


class CellGeoBaseModel(BaseModel):
    """Base for cellgeo value objects."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
    )

    @model_validator(mode="before")
    @classmethod
    def _drop_sentinels(cls, values: Any) -> Any:
        if not isinstance(values, dict):
            return values
        return strip_sentinels(values)
