"""Device state report model.

Devices report their state as a shadow-style document where each
section carries a ``{"v": ..., "ts": ...}`` wrapper, for example::

    {
        "deviceId": "asset-tracker-1",
        "roam": {"v": {"cell": 21, "mccmnc": 21685, "area": 2305}},
        "gps": {"v": {"lat": 52.10, "lng": 4.30, "acc": 12}},
    }

Flat documents (``cell``/``mccmnc``/``area``/``lat``/``lng`` at the top
level) are accepted too.
"""

from __future__ import annotations

from typing import Any

from pydantic import AliasChoices, Field, ValidationError, field_validator, model_validator

from cellgeo.exceptions import InvalidCellIdError
from cellgeo.ingestion.normalize import safe_float, safe_int, safe_str, unwrap_value
from cellgeo.models._base import CellGeoBaseModel, UtcDatetime
from cellgeo.models.cell import CellId
from cellgeo.models.location import GeoLocation


class DeviceReport(CellGeoBaseModel):
    """A single state report from a device.

    Every field except ``device_id`` is optional: devices frequently
    report without a GPS fix or before they have attached to a cell.
    """

    device_id: str = Field(validation_alias=AliasChoices("deviceId", "device_id", "thingName"))
    cell: int | None = None
    mccmnc: int | None = None
    area: int | None = None
    lat: float | None = Field(default=None, validation_alias=AliasChoices("lat", "latitude"))
    lng: float | None = Field(default=None, validation_alias=AliasChoices("lng", "lon", "longitude"))
    accuracy: float | None = Field(default=None, validation_alias=AliasChoices("accuracy", "acc"))
    reported_at: UtcDatetime | None = Field(default=None, validation_alias=AliasChoices("reportedAt", "timestamp", "ts"))

    @model_validator(mode="before")
    @classmethod
    def _flatten_sections(cls, values: Any) -> Any:
        if not isinstance(values, dict):
            return values
        merged = dict(values)
        for section in ("roam", "gps"):
            inner = unwrap_value(merged.pop(section, None))
            if isinstance(inner, dict):
                for key, value in inner.items():
                    merged.setdefault(key, value)
        return merged

    @field_validator("device_id", mode="before")
    @classmethod
    def _normalize_device_id(cls, value: Any) -> str:
        device_id = safe_str(value)
        if device_id is None:
            raise ValueError("device_id must be non-empty")
        return device_id

    @field_validator("cell", "mccmnc", "area", mode="before")
    @classmethod
    def _coerce_ints(cls, value: Any) -> int | None:
        return safe_int(value)

    @field_validator("lat", "lng", "accuracy", mode="before")
    @classmethod
    def _coerce_floats(cls, value: Any) -> float | None:
        return safe_float(value)

    @property
    def cell_id(self) -> CellId | None:
        """The reported cell, or ``None`` when roaming info is incomplete."""
        if self.cell is None or self.mccmnc is None or self.area is None:
            return None
        try:
            return CellId.from_parts(self.cell, self.mccmnc, self.area)
        except InvalidCellIdError:
            return None

    @property
    def location(self) -> GeoLocation | None:
        """The reported GPS fix, or ``None`` when absent or out of range."""
        if self.lat is None or self.lng is None:
            return None
        try:
            return GeoLocation(lat=self.lat, lng=self.lng, accuracy=self.accuracy)
        except ValidationError:
            return None
