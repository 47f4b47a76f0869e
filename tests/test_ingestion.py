from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

import pytest

from cellgeo.exceptions import CacheStorageError
from cellgeo.ingestion.pipeline import IngestionPipeline
from cellgeo.ingestion.populator import CachePopulator
from cellgeo.models import CellId, GeoLocation, LocationSource
from cellgeo.store.cache import MemoryCellGeoCache
from cellgeo.store.locations import MemoryDeviceLocationStore, iter_cell_observations

CELL = CellId.parse("21-21685-2305")


def _report(device: str = "D", *, cell: int | None = 21, lat: float | None = 52.10, lng: float | None = 4.30) -> dict[str, Any]:
    report: dict[str, Any] = {"deviceId": device}
    if cell is not None:
        report["roam"] = {"v": {"cell": cell, "mccmnc": 21685, "area": 2305}}
    if lat is not None or lng is not None:
        report["gps"] = {"v": {"lat": lat, "lng": lng}}
    return report


class _Harness:
    def __init__(self) -> None:
        self.cache = MemoryCellGeoCache()
        self.store = MemoryDeviceLocationStore()
        self.requested: list[CellId] = []
        self.pipeline = IngestionPipeline(
            self.store,
            CachePopulator(self.cache),
            on_resolution_request=self._request,
            clock=lambda: datetime(2026, 5, 1, tzinfo=UTC),
        )

    async def _request(self, cell_id: CellId) -> None:
        self.requested.append(cell_id)


@pytest.mark.asyncio
async def test_first_sighting_records_and_seeds_cache() -> None:
    h = _Harness()

    outcome = await h.pipeline.handle_report(_report())

    assert outcome.record is not None
    assert outcome.record.device_source == "device:D"
    assert outcome.seeded is True
    entry = await h.cache.get(CELL)
    assert entry is not None
    assert entry.location == GeoLocation(lat=52.10, lng=4.30)
    assert entry.source is LocationSource.DEVICE_SEED
    assert h.requested == [CELL]


@pytest.mark.asyncio
async def test_identical_consecutive_reports_yield_one_record() -> None:
    h = _Harness()

    await h.pipeline.handle_report(_report())
    second = await h.pipeline.handle_report(_report())

    assert second.record is None
    assert len(h.store) == 1
    assert h.requested == [CELL]


@pytest.mark.asyncio
async def test_moved_device_appends_but_does_not_reseed() -> None:
    h = _Harness()

    await h.pipeline.handle_report(_report())
    moved = await h.pipeline.handle_report(_report(lat=52.11))

    assert moved.record is not None
    assert moved.seeded is False
    assert len(h.store) == 2
    entry = await h.cache.get(CELL)
    assert entry is not None and entry.location.lat == 52.10


@pytest.mark.asyncio
async def test_cell_change_with_same_fix_is_recorded_and_resolved() -> None:
    h = _Harness()

    await h.pipeline.handle_report(_report(cell=21))
    outcome = await h.pipeline.handle_report(_report(cell=22))

    new_cell = CellId.parse("22-21685-2305")
    assert outcome.record is not None
    assert outcome.resolution_requested == new_cell
    assert h.requested == [CELL, new_cell]


@pytest.mark.asyncio
async def test_report_without_gps_only_triggers_resolution() -> None:
    h = _Harness()

    outcome = await h.pipeline.handle_report(_report(lat=None, lng=None))

    assert outcome.record is None
    assert len(h.store) == 0
    assert h.requested == [CELL]


@pytest.mark.asyncio
async def test_report_without_cell_is_not_recorded() -> None:
    h = _Harness()

    outcome = await h.pipeline.handle_report(_report(cell=None))

    assert outcome.record is None
    assert outcome.resolution_requested is None
    assert h.requested == []


@pytest.mark.asyncio
async def test_gps_updates_without_cell_are_recorded_against_last_cell() -> None:
    h = _Harness()

    await h.pipeline.handle_report(_report())
    for lat in (52.11, 52.12, 52.13):
        delta = await h.pipeline.handle_report(_report(cell=None, lat=lat))
        assert delta.record is not None
        assert delta.record.cell_id == CELL
        assert delta.resolution_requested is None
    full = await h.pipeline.handle_report(_report(lat=52.13))

    # Same cell and the fix matches the last recorded one.
    assert full.record is None
    assert len(h.store) == 4
    recorded = [obs async for obs in iter_cell_observations(h.store, CELL)]
    assert sorted(obs.location.lat for obs in recorded) == [52.10, 52.11, 52.12, 52.13]
    assert h.requested == [CELL]


@pytest.mark.asyncio
async def test_gps_update_before_any_cell_is_remembered() -> None:
    h = _Harness()

    await h.pipeline.handle_report(_report(cell=None, lat=1.0, lng=1.0))
    first = await h.pipeline.handle_report(_report(lat=1.0, lng=1.0))

    assert first.record is not None
    assert first.record.location == GeoLocation(lat=1.0, lng=1.0)
    assert len(h.store) == 1


@pytest.mark.asyncio
async def test_malformed_report_is_dropped() -> None:
    h = _Harness()

    outcome = await h.pipeline.handle_report({"roam": {"v": {"cell": 1}}})

    assert outcome.dropped is True
    assert len(h.store) == 0


@pytest.mark.asyncio
async def test_batch_keeps_per_device_order_and_isolates_bad_reports() -> None:
    h = _Harness()
    reports = [
        _report("A"),
        {"gps": "garbage"},
        _report("B", cell=30, lat=10.0, lng=10.0),
        _report("A"),
        _report("A", lat=52.2),
    ]

    outcomes = await h.pipeline.handle_reports(reports)

    assert [o.device_id for o in outcomes] == ["A", None, "B", "A", "A"]
    assert outcomes[1].dropped
    assert outcomes[3].record is None
    assert outcomes[4].record is not None
    assert len(h.store) == 3
    observations = [obs async for obs in iter_cell_observations(h.store, CELL)]
    assert len(observations) == 2


@pytest.mark.asyncio
async def test_seed_failure_does_not_block_ingestion() -> None:
    class _FailingCache(MemoryCellGeoCache):
        async def put_if_absent(self, *args: object) -> bool:
            raise CacheStorageError("unavailable")

    store = MemoryDeviceLocationStore()
    pipeline = IngestionPipeline(store, CachePopulator(_FailingCache()))

    outcome = await pipeline.handle_report(_report())

    assert outcome.record is not None
    assert outcome.seeded is False
    assert len(store) == 1


@pytest.mark.asyncio
async def test_populator_reports_whether_it_won() -> None:
    cache = MemoryCellGeoCache()
    populator = CachePopulator(cache)

    assert await populator.on_new_cell_sighted(CELL, GeoLocation(lat=1.0, lng=1.0)) is True
    assert await populator.on_new_cell_sighted(CELL, GeoLocation(lat=2.0, lng=2.0)) is False
    entry = await cache.get(CELL)
    assert entry is not None and entry.location.lat == 1.0
