"""Crowd-sourced cell location estimates.

The :class:`Aggregator` turns the device fixes recorded for a cell into
one location.  How the fixes are combined is a replaceable strategy:
any callable that maps a non-empty, newest-first sequence of
observations to a :class:`GeoLocation`.  Strategies must be
deterministic and depend only on the observations they are given.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Callable, Sequence

from cellgeo._constants import DEFAULT_FIX_ACCURACY_M, DEFAULT_MAX_SCAN_RECORDS, DEFAULT_PAGE_SIZE
from cellgeo.exceptions import CellGeoConfigError
from cellgeo.models.cell import CellId
from cellgeo.models.location import CellObservation, GeoLocation
from cellgeo.store.locations import DeviceLocationStore, iter_cell_observations

_logger = logging.getLogger(__name__)

AggregationStrategy = Callable[[Sequence[CellObservation]], GeoLocation]


def most_recent(observations: Sequence[CellObservation]) -> GeoLocation:
    """The freshest fix wins.

    Ties on timestamp are broken by record id so the result does not
    depend on input order.
    """
    newest = max(observations, key=lambda o: (o.timestamp, o.id))
    return newest.location


def accuracy_weighted_centroid(observations: Sequence[CellObservation]) -> GeoLocation:
    """Inverse-variance weighted mean of all fixes.

    Each fix is weighted by ``1 / accuracy**2``; fixes without an
    accuracy use :data:`DEFAULT_FIX_ACCURACY_M`.  The reported accuracy
    is the weighted RMS distance of the fixes from the centroid, never
    better than the best input fix.
    """
    ordered = sorted(observations, key=lambda o: (o.timestamp, o.id))
    weights: list[float] = []
    for obs in ordered:
        acc = obs.location.accuracy if obs.location.accuracy else DEFAULT_FIX_ACCURACY_M
        weights.append(1.0 / (acc * acc))
    total = math.fsum(weights)

    lat = math.fsum(w * o.location.lat for w, o in zip(weights, ordered, strict=True)) / total
    lng = math.fsum(w * o.location.lng for w, o in zip(weights, ordered, strict=True)) / total

    cos_lat = math.cos(math.radians(lat))
    spread_sq = math.fsum(
        w * _equirectangular_m(lat, lng, o.location.lat, o.location.lng, cos_lat) ** 2
        for w, o in zip(weights, ordered, strict=True)
    )
    best = min(o.location.accuracy or DEFAULT_FIX_ACCURACY_M for o in ordered)
    accuracy = max(best, math.sqrt(spread_sq / total))
    return GeoLocation(lat=lat, lng=lng, accuracy=round(accuracy, 1))


_EARTH_RADIUS_M = 6_371_000.0


def _equirectangular_m(lat1: float, lng1: float, lat2: float, lng2: float, cos_lat: float) -> float:
    x = math.radians(lng2 - lng1) * cos_lat
    y = math.radians(lat2 - lat1)
    return _EARTH_RADIUS_M * math.hypot(x, y)


STRATEGIES: dict[str, AggregationStrategy] = {
    "most_recent": most_recent,
    "accuracy_weighted_centroid": accuracy_weighted_centroid,
}


def strategy_by_name(name: str) -> AggregationStrategy:
    try:
        return STRATEGIES[name]
    except KeyError:
        raise CellGeoConfigError(
            f"unknown aggregation strategy {name!r}; expected one of {sorted(STRATEGIES)}"
        ) from None


class Aggregator:
    """Estimates a cell's location from recorded device fixes."""

    def __init__(
        self,
        store: DeviceLocationStore,
        *,
        strategy: AggregationStrategy = most_recent,
        max_records: int = DEFAULT_MAX_SCAN_RECORDS,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> None:
        self._store = store
        self._strategy = strategy
        self._max_records = max_records
        self._page_size = page_size

    async def estimate(self, cell_id: CellId) -> GeoLocation | None:
        """Return an estimate, or ``None`` when no device has reported this cell."""
        observations = [
            obs
            async for obs in iter_cell_observations(
                self._store,
                cell_id,
                limit=self._max_records,
                page_size=self._page_size,
            )
        ]
        if not observations:
            _logger.debug("No device locations recorded for cell %s", cell_id)
            return None
        location = self._strategy(observations)
        _logger.debug("Estimated cell %s from %d device location(s)", cell_id, len(observations))
        return location
