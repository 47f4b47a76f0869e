from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from cellgeo.exceptions import CellGeoConfigError
from cellgeo.models import CellId, CellObservation, DeviceLocationRecord, GeoLocation
from cellgeo.resolve.aggregate import (
    Aggregator,
    accuracy_weighted_centroid,
    most_recent,
    strategy_by_name,
)
from cellgeo.store.locations import MemoryDeviceLocationStore

CELL = CellId.parse("9-999-1")
T0 = datetime(2026, 3, 1, tzinfo=UTC)


def _obs(id_: str, minutes: int, lat: float, lng: float, accuracy: float | None = None) -> CellObservation:
    return CellObservation(
        id=id_,
        timestamp=T0 + timedelta(minutes=minutes),
        location=GeoLocation(lat=lat, lng=lng, accuracy=accuracy),
    )


def test_most_recent_picks_newest_regardless_of_order() -> None:
    observations = [_obs("b", 3, 3.0, 3.0), _obs("a", 1, 1.0, 1.0), _obs("c", 2, 2.0, 2.0)]

    assert most_recent(observations) == GeoLocation(lat=3.0, lng=3.0)
    assert most_recent(list(reversed(observations))) == GeoLocation(lat=3.0, lng=3.0)


def test_most_recent_breaks_timestamp_ties_by_id() -> None:
    observations = [_obs("a", 1, 1.0, 1.0), _obs("z", 1, 9.0, 9.0)]

    assert most_recent(observations).lat == 9.0
    assert most_recent(observations[::-1]).lat == 9.0


def test_weighted_centroid_favours_accurate_fixes() -> None:
    observations = [_obs("a", 0, 52.0, 4.0, accuracy=10.0), _obs("b", 1, 52.001, 4.001, accuracy=100.0)]

    centroid = accuracy_weighted_centroid(observations)

    assert 52.0 < centroid.lat < 52.0001
    assert 4.0 < centroid.lng < 4.0001
    assert centroid.accuracy is not None and centroid.accuracy >= 10.0


def test_weighted_centroid_is_order_independent() -> None:
    observations = [_obs("a", 0, 1.0, 1.0), _obs("b", 1, 1.002, 1.0, 20.0), _obs("c", 2, 1.001, 1.003, 5.0)]

    assert accuracy_weighted_centroid(observations) == accuracy_weighted_centroid(observations[::-1])


def test_strategy_by_name() -> None:
    assert strategy_by_name("most_recent") is most_recent
    with pytest.raises(CellGeoConfigError):
        strategy_by_name("median")


@pytest.mark.asyncio
async def test_estimate_without_records_is_a_miss() -> None:
    aggregator = Aggregator(MemoryDeviceLocationStore())

    assert await aggregator.estimate(CELL) is None


@pytest.mark.asyncio
async def test_estimate_returns_latest_record_by_default() -> None:
    store = MemoryDeviceLocationStore()
    for minutes, lat, lng in [(1, 10.0, 20.0), (3, 30.0, 40.0), (2, 50.0, 60.0)]:
        await store.append(
            DeviceLocationRecord(
                timestamp=T0 + timedelta(minutes=minutes),
                cell_id=CELL,
                device_source=f"d{minutes}",
                location=GeoLocation(lat=lat, lng=lng),
            )
        )

    assert await Aggregator(store).estimate(CELL) == GeoLocation(lat=30.0, lng=40.0)


@pytest.mark.asyncio
async def test_estimate_only_scans_most_recent_records() -> None:
    store = MemoryDeviceLocationStore()
    seen: list[int] = []

    def _count(observations: list[CellObservation]) -> GeoLocation:
        seen.append(len(observations))
        return most_recent(observations)

    for minutes in range(5):
        await store.append(
            DeviceLocationRecord(
                timestamp=T0 + timedelta(minutes=minutes),
                cell_id=CELL,
                device_source="d1",
                location=GeoLocation(lat=float(minutes), lng=0.0),
            )
        )

    result = await Aggregator(store, strategy=_count, max_records=2, page_size=1).estimate(CELL)

    assert seen == [2]
    assert result == GeoLocation(lat=4.0, lng=0.0)
