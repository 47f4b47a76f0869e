from __future__ import annotations

from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

from cellgeo.exceptions import MalformedRecordError
from cellgeo.models import CellId, CellObservation, DeviceLocationRecord, GeoLocation
from cellgeo.store.locations import (
    MemoryDeviceLocationStore,
    SqliteDeviceLocationStore,
    iter_cell_observations,
)

CELL = CellId.parse("9-999-1")
OTHER = CellId.parse("10-999-1")
T0 = datetime(2026, 3, 1, tzinfo=UTC)


def _record(cell: CellId, minutes: int, lat: float, *, device: str = "d1") -> DeviceLocationRecord:
    return DeviceLocationRecord(
        timestamp=T0 + timedelta(minutes=minutes),
        cell_id=cell,
        device_source=device,
        location=GeoLocation(lat=lat, lng=lat / 2, accuracy=5.0),
    )


@pytest.fixture(params=["memory", "sqlite"])
def store(request: pytest.FixtureRequest, tmp_path: Path) -> MemoryDeviceLocationStore | SqliteDeviceLocationStore:
    if request.param == "memory":
        return MemoryDeviceLocationStore()
    return SqliteDeviceLocationStore(tmp_path / "cellgeo.db")


async def _collect(store: MemoryDeviceLocationStore | SqliteDeviceLocationStore, cell: CellId, **kwargs: int) -> list[CellObservation]:
    return [obs async for obs in iter_cell_observations(store, cell, **kwargs)]


@pytest.mark.asyncio
async def test_append_rejects_records_without_cell_or_gps(
    store: MemoryDeviceLocationStore | SqliteDeviceLocationStore,
) -> None:
    with pytest.raises(MalformedRecordError):
        await store.append({"device_source": "d1", "location": {"lat": 1.0, "lng": 2.0}})
    with pytest.raises(MalformedRecordError):
        await store.append({"device_source": "d1", "cell_id": "9-999-1", "location": {"lng": 2.0}})

    assert await _collect(store, CELL) == []


@pytest.mark.asyncio
async def test_append_accepts_mapping(store: MemoryDeviceLocationStore | SqliteDeviceLocationStore) -> None:
    record = await store.append(
        {"device_source": "d1", "cell_id": "9-999-1", "location": {"lat": 1.0, "lng": 2.0, "acc": 3}}
    )

    observations = await _collect(store, CELL)
    assert [obs.id for obs in observations] == [record.id]
    assert observations[0].location == GeoLocation(lat=1.0, lng=2.0, accuracy=3.0)


@pytest.mark.asyncio
async def test_duplicate_key_is_rejected(store: MemoryDeviceLocationStore | SqliteDeviceLocationStore) -> None:
    record = _record(CELL, 0, 10.0)
    await store.append(record)

    with pytest.raises(MalformedRecordError, match="duplicate"):
        await store.append(record)


@pytest.mark.asyncio
async def test_query_is_newest_first_and_scoped_to_cell(
    store: MemoryDeviceLocationStore | SqliteDeviceLocationStore,
) -> None:
    for minutes, lat in [(2, 12.0), (0, 10.0), (1, 11.0)]:
        await store.append(_record(CELL, minutes, lat))
    await store.append(_record(OTHER, 5, 50.0))

    observations = await _collect(store, CELL)

    assert [obs.location.lat for obs in observations] == [12.0, 11.0, 10.0]


@pytest.mark.asyncio
async def test_query_pages_and_limit(store: MemoryDeviceLocationStore | SqliteDeviceLocationStore) -> None:
    for minutes in range(7):
        await store.append(_record(CELL, minutes, float(minutes)))

    page, cursor = await store.query_page(CELL, page_size=3)
    assert [obs.location.lat for obs in page] == [6.0, 5.0, 4.0]
    assert cursor is not None

    page, cursor = await store.query_page(CELL, page_size=3, cursor=cursor)
    assert [obs.location.lat for obs in page] == [3.0, 2.0, 1.0]

    page, cursor = await store.query_page(CELL, page_size=3, cursor=cursor)
    assert [obs.location.lat for obs in page] == [0.0]
    assert cursor is None

    limited = await _collect(store, CELL, limit=4, page_size=3)
    assert [obs.location.lat for obs in limited] == [6.0, 5.0, 4.0, 3.0]


@pytest.mark.asyncio
async def test_scan_is_restartable(store: MemoryDeviceLocationStore | SqliteDeviceLocationStore) -> None:
    for minutes in range(3):
        await store.append(_record(CELL, minutes, float(minutes)))

    first = await _collect(store, CELL, page_size=2)
    second = await _collect(store, CELL, page_size=2)

    assert first == second
    assert len(first) == 3


@pytest.mark.asyncio
async def test_same_timestamp_records_are_all_returned(
    store: MemoryDeviceLocationStore | SqliteDeviceLocationStore,
) -> None:
    for device in ("a", "b", "c"):
        await store.append(_record(CELL, 0, 1.0, device=device))

    observations = await _collect(store, CELL, page_size=1)

    assert len({obs.id for obs in observations}) == 3


@pytest.mark.asyncio
async def test_observations_do_not_expose_device_identity(
    store: MemoryDeviceLocationStore | SqliteDeviceLocationStore,
) -> None:
    await store.append(_record(CELL, 0, 1.0, device="secret-device"))

    (observation,) = await _collect(store, CELL)

    assert "device_source" not in observation.model_dump()
    assert "secret-device" not in repr(observation)
