"""Resolution outcome model."""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from cellgeo.models._base import CellGeoBaseModel
from cellgeo.models.cell import CellId
from cellgeo.models.location import GeoLocation, LocationSource


class ResolutionError(StrEnum):
    """Terminal failure reasons of a resolution."""

    NO_API = "NO_API"
    """Cache and device tiers missed and no provider is configured."""
    FAILED = "FAILED"
    """The provider tier ran and produced nothing."""
    TIMEOUT = "TIMEOUT"
    """The overall resolution deadline was exceeded."""


class ResolutionResult(CellGeoBaseModel):
    """Outcome of resolving one cell."""

    cell_id: CellId
    located: bool
    location: GeoLocation | None = None
    source: LocationSource | None = None
    error: ResolutionError | None = None

    @classmethod
    def success(cls, cell_id: CellId, location: GeoLocation, source: LocationSource) -> ResolutionResult:
        return cls(cell_id=cell_id, located=True, location=location, source=source)

    @classmethod
    def failure(cls, cell_id: CellId, error: ResolutionError) -> ResolutionResult:
        return cls(cell_id=cell_id, located=False, error=error)

    def to_payload(self) -> dict[str, Any]:
        """External result contract: ``{located, lat?, lng?, accuracy?}`` or ``{located, error}``."""
        if not self.located or self.location is None:
            return {"located": False, "error": self.error.value if self.error else ResolutionError.FAILED.value}
        payload: dict[str, Any] = {
            "located": True,
            "lat": self.location.lat,
            "lng": self.location.lng,
        }
        if self.location.accuracy is not None:
            payload["accuracy"] = self.location.accuracy
        return payload
