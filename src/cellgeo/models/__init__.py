"""Domain models for cell geolocation."""

from cellgeo.models._base import CellGeoBaseModel
from cellgeo.models.cell import CellId
from cellgeo.models.location import (
    CacheEntry,
    CellObservation,
    DeviceLocationRecord,
    GeoLocation,
    LocationSource,
)
from cellgeo.models.report import DeviceReport
from cellgeo.models.resolution import ResolutionError, ResolutionResult

__all__ = [
    "CacheEntry",
    "CellGeoBaseModel",
    "CellId",
    "CellObservation",
    "DeviceLocationRecord",
    "DeviceReport",
    "GeoLocation",
    "LocationSource",
    "ResolutionError",
    "ResolutionResult",
]
