"""Storage layer.

Two durable stores back the resolution pipeline:

* the cell geolocation cache, one write-once entry per cell;
* the device location store, an append-only log of GPS fixes indexed
  by cell and timestamp.

Each comes with an in-memory backend and a SQLite backend.
"""

from cellgeo.store.cache import CellGeoCache, MemoryCellGeoCache, SqliteCellGeoCache
from cellgeo.store.locations import (
    DeviceLocationStore,
    MemoryDeviceLocationStore,
    SqliteDeviceLocationStore,
    iter_cell_observations,
)

__all__ = [
    "CellGeoCache",
    "DeviceLocationStore",
    "MemoryCellGeoCache",
    "MemoryDeviceLocationStore",
    "SqliteCellGeoCache",
    "SqliteDeviceLocationStore",
    "iter_cell_observations",
]
