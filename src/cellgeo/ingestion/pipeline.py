"""Device report ingestion.

Each report is merged into a per-device view of the last known cell and
GPS fix, the same way a device shadow merges partial updates: fields
missing from a report leave the known value untouched.  Against that
view the pipeline decides:

- whether the fix is recorded: the report carries a GPS fix, the
  device has a known cell (from this report or an earlier one), and
  either the device has no prior fix or its cell or coordinates changed;
- whether the cell is resolved: the report carries a cell that differs
  from the device's previous one.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from pydantic import ValidationError

from cellgeo.exceptions import MalformedRecordError, StorageError
from cellgeo.ingestion.populator import CachePopulator
from cellgeo.models._base import utcnow
from cellgeo.models.cell import CellId
from cellgeo.models.location import DeviceLocationRecord, GeoLocation
from cellgeo.models.report import DeviceReport
from cellgeo.store.locations import DeviceLocationStore

_logger = logging.getLogger(__name__)

ResolutionRequestHandler = Callable[[CellId], Awaitable[Any]]


@dataclass(slots=True)
class _DeviceView:
    cell_id: CellId | None = None
    location: GeoLocation | None = None


@dataclass(slots=True)
class IngestionOutcome:
    """What the pipeline did with one report."""

    device_id: str | None
    dropped: bool = False
    record: DeviceLocationRecord | None = None
    seeded: bool = False
    resolution_requested: CellId | None = None


def _same_fix(a: GeoLocation | None, b: GeoLocation | None) -> bool:
    if a is None or b is None:
        return False
    return a.lat == b.lat and a.lng == b.lng


class IngestionPipeline:
    """Turns device reports into device location records and cache seeds."""

    def __init__(
        self,
        store: DeviceLocationStore,
        populator: CachePopulator,
        *,
        on_resolution_request: ResolutionRequestHandler | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._store = store
        self._populator = populator
        self._on_resolution_request = on_resolution_request
        self._clock = clock
        self._devices: dict[str, _DeviceView] = {}

    async def handle_report(self, report: DeviceReport | dict[str, Any]) -> IngestionOutcome:
        """Process one report.  Malformed reports are logged and dropped."""
        if not isinstance(report, DeviceReport):
            try:
                report = DeviceReport.model_validate(report)
            except ValidationError as exc:
                _logger.warning("Dropping malformed device report: %d validation error(s)", exc.error_count())
                return IngestionOutcome(device_id=None, dropped=True)

        view = self._devices.setdefault(report.device_id, _DeviceView())
        outcome = IngestionOutcome(device_id=report.device_id)
        cell_id = report.cell_id
        location = report.location
        previous_cell = view.cell_id
        effective_cell = cell_id if cell_id is not None else previous_cell

        if effective_cell is not None and location is not None:
            if view.location is None or effective_cell != previous_cell or not _same_fix(location, view.location):
                await self._record(report.device_id, effective_cell, location, report.reported_at, outcome)
            else:
                _logger.debug("Device fix unchanged; not recording")

        if location is not None and (outcome.record is not None or effective_cell is None):
            view.location = location

        if cell_id is not None:
            view.cell_id = cell_id
            if cell_id != previous_cell:
                outcome.resolution_requested = cell_id
                if self._on_resolution_request is not None:
                    await self._on_resolution_request(cell_id)

        return outcome

    async def _record(
        self,
        device_id: str,
        cell_id: CellId,
        location: GeoLocation,
        reported_at: datetime | None,
        outcome: IngestionOutcome,
    ) -> None:
        try:
            outcome.record = await self._store.append(
                DeviceLocationRecord(
                    timestamp=reported_at or self._clock(),
                    cell_id=cell_id,
                    device_source=device_id,
                    location=location,
                )
            )
        except (MalformedRecordError, StorageError) as exc:
            _logger.warning("Dropping device location for cell %s: %s", cell_id, exc)
            return

        try:
            outcome.seeded = await self._populator.on_new_cell_sighted(cell_id, location)
        except StorageError as exc:
            _logger.warning("Seeding cache for cell %s failed: %s", cell_id, exc)

    async def handle_reports(self, reports: Iterable[DeviceReport | dict[str, Any]]) -> list[IngestionOutcome]:
        """Process a batch.

        Reports from different devices run concurrently; reports from
        one device are applied in the order given.  Outcomes are
        returned in input order.
        """
        indexed: dict[str | None, list[tuple[int, DeviceReport | dict[str, Any]]]] = {}
        for index, report in enumerate(reports):
            indexed.setdefault(_device_key(report), []).append((index, report))

        outcomes: dict[int, IngestionOutcome] = {}

        async def _device_lane(items: list[tuple[int, DeviceReport | dict[str, Any]]]) -> None:
            for index, item in items:
                outcomes[index] = await self.handle_report(item)

        await asyncio.gather(*(_device_lane(items) for items in indexed.values()))
        return [outcomes[index] for index in sorted(outcomes)]


def _device_key(report: DeviceReport | dict[str, Any]) -> str | None:
    if isinstance(report, DeviceReport):
        return report.device_id
    if isinstance(report, dict):
        for key in ("deviceId", "device_id", "thingName"):
            value = report.get(key)
            if value is not None:
                return str(value)
    return None
