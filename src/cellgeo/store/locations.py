"""Append-only store of device-reported GPS fixes.

Records are keyed by ``(id, timestamp)`` and indexed by
``(cell_id, timestamp)``.  By-cell queries go through that index and
return :class:`~cellgeo.models.location.CellObservation` projections,
newest first, so aggregation never sees device identity.
"""

from __future__ import annotations

import bisect
import logging
import sqlite3
from collections.abc import AsyncIterator
from datetime import datetime
from pathlib import Path
from typing import Any, Protocol

from cellgeo._constants import DEFAULT_MAX_SCAN_RECORDS, DEFAULT_PAGE_SIZE
from cellgeo.exceptions import LocationStoreError, MalformedRecordError
from cellgeo.models.cell import CellId
from cellgeo.models.location import CellObservation, DeviceLocationRecord, GeoLocation
from cellgeo.store._sqlite import SqliteDatabase, format_timestamp, parse_timestamp

_logger = logging.getLogger(__name__)

#: Resume point of a descending scan: the last ``(timestamp, id)`` returned.
PageCursor = tuple[datetime, str]

_SCHEMA = """
CREATE TABLE IF NOT EXISTS device_cell_locations (
    id TEXT NOT NULL,
    timestamp TEXT NOT NULL,
    cell_id TEXT NOT NULL,
    device_source TEXT NOT NULL,
    lat REAL NOT NULL,
    lng REAL NOT NULL,
    accuracy REAL,
    PRIMARY KEY (id, timestamp)
);
CREATE INDEX IF NOT EXISTS device_cell_locations_cell_id_timestamp
    ON device_cell_locations (cell_id, timestamp);
"""


class DeviceLocationStore(Protocol):
    """Structural interface of the device location store."""

    async def append(self, record: DeviceLocationRecord | dict[str, Any]) -> DeviceLocationRecord:
        ...

    async def query_page(
        self,
        cell_id: CellId,
        *,
        page_size: int,
        cursor: PageCursor | None = None,
    ) -> tuple[list[CellObservation], PageCursor | None]:
        ...


async def iter_cell_observations(
    store: DeviceLocationStore,
    cell_id: CellId,
    *,
    limit: int = DEFAULT_MAX_SCAN_RECORDS,
    page_size: int = DEFAULT_PAGE_SIZE,
) -> AsyncIterator[CellObservation]:
    """Yield up to *limit* observations for *cell_id*, newest first.

    The scan is finite and restartable: calling again starts over from
    the most recent record.
    """
    remaining = limit
    cursor: PageCursor | None = None
    while remaining > 0:
        page, cursor = await store.query_page(cell_id, page_size=min(page_size, remaining), cursor=cursor)
        for observation in page:
            yield observation
        remaining -= len(page)
        if cursor is None:
            return


def _sort_key(record: DeviceLocationRecord) -> PageCursor:
    return (record.timestamp, record.id)


class MemoryDeviceLocationStore:
    """Process-local backend.

    Each cell keeps its records sorted ascending by ``(timestamp, id)``;
    pages are read from the tail.
    """

    def __init__(self) -> None:
        self._keys: set[tuple[str, datetime]] = set()
        self._by_cell: dict[str, list[DeviceLocationRecord]] = {}

    def __len__(self) -> int:
        return len(self._keys)

    async def append(self, record: DeviceLocationRecord | dict[str, Any]) -> DeviceLocationRecord:
        parsed = DeviceLocationRecord.coerce(record)
        key = (parsed.id, parsed.timestamp)
        if key in self._keys:
            raise MalformedRecordError(f"duplicate device location record {parsed.id}")
        self._keys.add(key)
        bisect.insort(self._by_cell.setdefault(parsed.cell_id.canonical, []), parsed, key=_sort_key)
        _logger.debug("Stored device location for cell %s", parsed.cell_id)
        return parsed

    async def query_page(
        self,
        cell_id: CellId,
        *,
        page_size: int,
        cursor: PageCursor | None = None,
    ) -> tuple[list[CellObservation], PageCursor | None]:
        records = self._by_cell.get(cell_id.canonical, [])
        end = len(records) if cursor is None else bisect.bisect_left(records, cursor, key=_sort_key)
        start = max(0, end - page_size)
        page = [CellObservation.from_record(r) for r in reversed(records[start:end])]
        next_cursor = _sort_key(records[start]) if start > 0 else None
        return page, next_cursor


class SqliteDeviceLocationStore:
    """Durable backend on a SQLite file."""

    def __init__(self, path: str | Path) -> None:
        self._db = SqliteDatabase(path, _SCHEMA)

    async def append(self, record: DeviceLocationRecord | dict[str, Any]) -> DeviceLocationRecord:
        parsed = DeviceLocationRecord.coerce(record)
        row = (
            parsed.id,
            format_timestamp(parsed.timestamp),
            parsed.cell_id.canonical,
            parsed.device_source,
            parsed.location.lat,
            parsed.location.lng,
            parsed.location.accuracy,
        )

        def _insert(conn: sqlite3.Connection) -> None:
            conn.execute(
                "INSERT INTO device_cell_locations "
                "(id, timestamp, cell_id, device_source, lat, lng, accuracy) VALUES (?, ?, ?, ?, ?, ?, ?)",
                row,
            )

        try:
            await self._db.run(_insert)
        except sqlite3.IntegrityError as exc:
            raise MalformedRecordError(f"duplicate device location record {parsed.id}") from exc
        except sqlite3.Error as exc:
            raise LocationStoreError(f"append for cell {parsed.cell_id} failed: {exc}") from exc
        _logger.debug("Stored device location for cell %s", parsed.cell_id)
        return parsed

    async def query_page(
        self,
        cell_id: CellId,
        *,
        page_size: int,
        cursor: PageCursor | None = None,
    ) -> tuple[list[CellObservation], PageCursor | None]:
        # Only index-projected columns are selected; device_source never leaves the table.
        sql = "SELECT id, timestamp, lat, lng, accuracy FROM device_cell_locations WHERE cell_id = ?"
        params: list[Any] = [cell_id.canonical]
        if cursor is not None:
            ts = format_timestamp(cursor[0])
            sql += " AND (timestamp < ? OR (timestamp = ? AND id < ?))"
            params.extend([ts, ts, cursor[1]])
        sql += " ORDER BY timestamp DESC, id DESC LIMIT ?"
        params.append(page_size + 1)

        def _select(conn: sqlite3.Connection) -> list[sqlite3.Row]:
            return list(conn.execute(sql, params).fetchall())

        try:
            rows = await self._db.run(_select)
        except sqlite3.Error as exc:
            raise LocationStoreError(f"query for cell {cell_id} failed: {exc}") from exc

        has_more = len(rows) > page_size
        page = [
            CellObservation(
                id=row["id"],
                timestamp=parse_timestamp(row["timestamp"]),
                location=GeoLocation(lat=row["lat"], lng=row["lng"], accuracy=row["accuracy"]),
            )
            for row in rows[:page_size]
        ]
        next_cursor = (page[-1].timestamp, page[-1].id) if has_more and page else None
        return page, next_cursor
