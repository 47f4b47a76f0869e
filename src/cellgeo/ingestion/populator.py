"""Ingestion-time cache seeding."""

from __future__ import annotations

import logging

from cellgeo.models.cell import CellId
from cellgeo.models.location import GeoLocation, LocationSource
from cellgeo.store.cache import CellGeoCache

_logger = logging.getLogger(__name__)


class CachePopulator:
    """Seeds the cache with a device's own fix the first time a cell is seen.

    A seeded cell resolves from the cache without touching the device
    tier or the provider.
    """

    def __init__(self, cache: CellGeoCache) -> None:
        self._cache = cache

    async def on_new_cell_sighted(self, cell_id: CellId, location: GeoLocation) -> bool:
        """Return ``True`` if this fix became the cell's cached location.

        Storage failures propagate as :class:`~cellgeo.exceptions.CacheStorageError`.
        """
        created = await self._cache.put_if_absent(cell_id, location, LocationSource.DEVICE_SEED)
        if created:
            _logger.debug("Seeded cache for cell %s from device fix", cell_id)
        return created
