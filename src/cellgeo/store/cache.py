"""Write-once cell geolocation cache.

The cache holds at most one entry per cell.  The first successful write
is permanent; later writes for the same cell are no-ops.  The single
primitive :meth:`CellGeoCache.put_if_absent` is what makes concurrent
resolutions and ingestion-time seeding race-safe without locks.
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Callable
from datetime import datetime
from pathlib import Path
from typing import Protocol

from cellgeo.exceptions import CacheStorageError
from cellgeo.models._base import utcnow
from cellgeo.models.cell import CellId
from cellgeo.models.location import CacheEntry, GeoLocation, LocationSource
from cellgeo.store._sqlite import SqliteDatabase, format_timestamp, parse_timestamp

_logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS cell_geolocation_cache (
    cell_id TEXT PRIMARY KEY,
    lat REAL NOT NULL,
    lng REAL NOT NULL,
    accuracy REAL,
    source TEXT NOT NULL,
    resolved_at TEXT NOT NULL
);
"""


class CellGeoCache(Protocol):
    """Structural interface of the cell geolocation cache."""

    async def get(self, cell_id: CellId) -> CacheEntry | None:
        ...

    async def put_if_absent(self, cell_id: CellId, location: GeoLocation, source: LocationSource) -> bool:
        ...


class MemoryCellGeoCache:
    """Process-local cache backend.

    ``dict.setdefault`` never yields to the event loop, so the
    check-and-insert is atomic with respect to other coroutines.
    """

    def __init__(self, *, clock: Callable[[], datetime] = utcnow) -> None:
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    async def get(self, cell_id: CellId) -> CacheEntry | None:
        return self._entries.get(cell_id.canonical)

    async def put_if_absent(self, cell_id: CellId, location: GeoLocation, source: LocationSource) -> bool:
        entry = CacheEntry(cell_id=cell_id, location=location, source=source, resolved_at=self._clock())
        stored = self._entries.setdefault(cell_id.canonical, entry)
        created = stored is entry
        if created:
            _logger.info("Cached location of cell %s (source=%s)", cell_id, source.value)
        else:
            _logger.debug("Cell %s already cached; discarding %s value", cell_id, source.value)
        return created


class SqliteCellGeoCache:
    """Durable cache backend on a SQLite file.

    ``INSERT OR IGNORE`` on the primary key is the conditional put; its
    row count tells whether this call created the entry.
    """

    def __init__(self, path: str | Path, *, clock: Callable[[], datetime] = utcnow) -> None:
        self._db = SqliteDatabase(path, _SCHEMA)
        self._clock = clock

    async def get(self, cell_id: CellId) -> CacheEntry | None:
        def _select(conn: sqlite3.Connection) -> sqlite3.Row | None:
            cursor = conn.execute(
                "SELECT lat, lng, accuracy, source, resolved_at FROM cell_geolocation_cache WHERE cell_id = ?",
                (cell_id.canonical,),
            )
            row: sqlite3.Row | None = cursor.fetchone()
            return row

        try:
            row = await self._db.run(_select)
        except sqlite3.Error as exc:
            raise CacheStorageError(f"cache read for cell {cell_id} failed: {exc}") from exc

        if row is None:
            return None
        return CacheEntry(
            cell_id=cell_id,
            location=GeoLocation(lat=row["lat"], lng=row["lng"], accuracy=row["accuracy"]),
            source=LocationSource(row["source"]),
            resolved_at=parse_timestamp(row["resolved_at"]),
        )

    async def put_if_absent(self, cell_id: CellId, location: GeoLocation, source: LocationSource) -> bool:
        resolved_at = format_timestamp(self._clock())

        def _insert(conn: sqlite3.Connection) -> bool:
            cursor = conn.execute(
                "INSERT OR IGNORE INTO cell_geolocation_cache "
                "(cell_id, lat, lng, accuracy, source, resolved_at) VALUES (?, ?, ?, ?, ?, ?)",
                (cell_id.canonical, location.lat, location.lng, location.accuracy, source.value, resolved_at),
            )
            return cursor.rowcount == 1

        try:
            created = await self._db.run(_insert)
        except sqlite3.Error as exc:
            # A failed write says nothing about whether an entry exists.
            raise CacheStorageError(f"cache write for cell {cell_id} failed: {exc}") from exc

        if created:
            _logger.info("Cached location of cell %s (source=%s)", cell_id, source.value)
        else:
            _logger.debug("Cell %s already cached; discarding %s value", cell_id, source.value)
        return created
