"""Geolocation, cache entry and device location record models."""

from __future__ import annotations

import uuid
from enum import StrEnum
from typing import Annotated, Any

from pydantic import AliasChoices, BeforeValidator, Field, ValidationError, field_validator

from cellgeo._constants import DEVICE_SOURCE_PREFIX
from cellgeo.exceptions import MalformedRecordError
from cellgeo.ingestion.normalize import safe_float
from cellgeo.models._base import CellGeoBaseModel, UtcDatetime, utcnow
from cellgeo.models.cell import CellId


def _cell_id_from_str(value: Any) -> Any:
    if isinstance(value, str):
        return CellId.parse(value)
    return value


CellIdKey = Annotated[CellId, BeforeValidator(_cell_id_from_str)]
"""Cell id that also validates from its canonical string form."""


class LocationSource(StrEnum):
    """Where a cached cell location came from."""

    DEVICE_SEED = "device"
    CROWD_SOURCED = "devices"
    EXTERNAL_API = "api"


class GeoLocation(CellGeoBaseModel):
    """A WGS84 position with optional accuracy radius.

    Parameters
    ----------
    lat : float
        Latitude in degrees, ``-90..90``.
    lng : float
        Longitude in degrees, ``-180..180``.
    accuracy : float or None
        Accuracy radius in meters.
    """

    lat: float = Field(ge=-90.0, le=90.0, validation_alias=AliasChoices("lat", "latitude"))
    lng: float = Field(ge=-180.0, le=180.0, validation_alias=AliasChoices("lng", "lon", "longitude"))
    accuracy: float | None = Field(default=None, ge=0.0, validation_alias=AliasChoices("accuracy", "acc"))

    @field_validator("accuracy", mode="before")
    @classmethod
    def _coerce_accuracy(cls, value: Any) -> float | None:
        return safe_float(value)


class CacheEntry(CellGeoBaseModel):
    """The single, write-once cached location of a cell."""

    cell_id: CellIdKey
    location: GeoLocation
    source: LocationSource
    resolved_at: UtcDatetime = Field(default_factory=utcnow)

    def to_item(self) -> dict[str, Any]:
        """Persisted record shape, keyed by the canonical cell id."""
        return {
            "cellId": self.cell_id.canonical,
            "lat": self.location.lat,
            "lng": self.location.lng,
            "accuracy": self.location.accuracy,
            "source": self.source.value,
            "resolvedAt": self.resolved_at.isoformat(),
        }

    @classmethod
    def from_item(cls, item: dict[str, Any]) -> CacheEntry:
        return cls(
            cell_id=CellId.parse(item["cellId"]),
            location=GeoLocation.model_validate(item),
            source=LocationSource(item["source"]),
            resolved_at=item["resolvedAt"],
        )


class DeviceLocationRecord(CellGeoBaseModel):
    """A GPS fix a device reported while attached to a cell.

    Records are append-only; ``id`` and ``timestamp`` form the key.
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: UtcDatetime = Field(default_factory=utcnow)
    cell_id: CellIdKey
    device_source: str
    location: GeoLocation

    @field_validator("device_source", mode="before")
    @classmethod
    def _prefix_device_source(cls, value: Any) -> str:
        text = str(value).strip()
        if not text:
            raise ValueError("device_source must be non-empty")
        if not text.startswith(DEVICE_SOURCE_PREFIX):
            text = f"{DEVICE_SOURCE_PREFIX}{text}"
        return text

    @classmethod
    def coerce(cls, value: DeviceLocationRecord | dict[str, Any]) -> DeviceLocationRecord:
        """Validate *value* into a record or raise :class:`MalformedRecordError`."""
        if isinstance(value, DeviceLocationRecord):
            return value
        if not isinstance(value, dict):
            raise MalformedRecordError(f"expected a mapping, got {type(value).__name__}")
        try:
            return cls.model_validate(value)
        except ValidationError as exc:
            fields = sorted({".".join(str(p) for p in err["loc"]) for err in exc.errors()})
            raise MalformedRecordError(f"malformed device location record: {', '.join(fields)}") from exc


class CellObservation(CellGeoBaseModel):
    """Index projection of a device record: location fields only.

    This is what by-cell queries return, so aggregation never sees
    which device produced a fix.
    """

    id: str
    timestamp: UtcDatetime
    location: GeoLocation

    @classmethod
    def from_record(cls, record: DeviceLocationRecord) -> CellObservation:
        return cls(id=record.id, timestamp=record.timestamp, location=record.location)
