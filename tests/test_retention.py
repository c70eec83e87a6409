"""History retention: strict cutoff, per-class isolation, idempotent reruns."""

from __future__ import annotations

from datetime import timedelta
from typing import Any

import pytest

from conftest import NOW, FakeClock
from weather_collector.exceptions import StoreError
from weather_collector.models import HistoryRecord, LocationClass, StoredSnapshot, WeatherSnapshot
from weather_collector.retention import RetentionCleaner
from weather_collector.store.sql import SqlWeatherStore


def _archived(location_class: LocationClass, name: str, days_ago: int) -> HistoryRecord:
    snapshot = WeatherSnapshot(
        location_class=location_class,
        name=name,
        latitude=-6.0,
        longitude=106.0,
        slug=name.lower() if location_class is LocationClass.PORT else None,
        weather_data={"temperature_2m": 29.0},
        fetched_at=NOW - timedelta(days=days_ago, hours=1),
    )
    stored = StoredSnapshot(snapshot=snapshot, updated_at=snapshot.fetched_at)
    return HistoryRecord.from_stored(stored, archived_at=NOW - timedelta(days=days_ago))


def _seed(store: SqlWeatherStore, location_class: LocationClass, *ages: int) -> None:
    store.insert_history(
        location_class, [_archived(location_class, f"Loc{age}", age) for age in ages]
    )


def test_old_records_are_removed_recent_kept(store: SqlWeatherStore, clock: FakeClock) -> None:
    _seed(store, LocationClass.CITY, 100, 50, 10)

    result = RetentionCleaner(store, now_fn=clock).cleanup(90)

    assert result.deleted[LocationClass.CITY] == 1
    assert result.cutoff == NOW - timedelta(days=90)
    assert store.find_history(LocationClass.CITY, "Loc100") == []
    assert len(store.find_history(LocationClass.CITY, "Loc50")) == 1
    assert len(store.find_history(LocationClass.CITY, "Loc10")) == 1


def test_cleanup_runs_every_class_and_totals(store: SqlWeatherStore, clock: FakeClock) -> None:
    _seed(store, LocationClass.CITY, 120, 5)
    _seed(store, LocationClass.GRID, 95, 91, 3)
    _seed(store, LocationClass.PORT, 200)

    result = RetentionCleaner(store, now_fn=clock).cleanup(90)

    assert result.deleted == {
        LocationClass.CITY: 1,
        LocationClass.GRID: 2,
        LocationClass.PORT: 1,
    }
    assert result.total == 4
    assert result.succeeded


def test_second_cleanup_deletes_nothing(store: SqlWeatherStore, clock: FakeClock) -> None:
    _seed(store, LocationClass.GRID, 100, 10)
    cleaner = RetentionCleaner(store, now_fn=clock)

    cleaner.cleanup(90)
    again = cleaner.cleanup(90)

    assert again.total == 0


def test_zero_days_keeps_nothing_archived_before_now(
    store: SqlWeatherStore, clock: FakeClock
) -> None:
    _seed(store, LocationClass.CITY, 1, 2)

    result = RetentionCleaner(store, now_fn=clock).cleanup(0)

    assert result.deleted[LocationClass.CITY] == 2


def test_one_class_failing_does_not_stop_the_others(
    store: SqlWeatherStore, clock: FakeClock, monkeypatch: Any
) -> None:
    _seed(store, LocationClass.CITY, 100)
    _seed(store, LocationClass.PORT, 100)
    original = store.delete_history_before

    def flaky_delete(location_class: LocationClass, cutoff: Any) -> int:
        if location_class is LocationClass.GRID:
            raise StoreError("delete_history_before[grid] failed: locked")
        return original(location_class, cutoff)

    monkeypatch.setattr(store, "delete_history_before", flaky_delete)

    result = RetentionCleaner(store, now_fn=clock).cleanup(90)

    assert not result.succeeded
    assert "locked" in result.errors[LocationClass.GRID]
    assert result.deleted == {LocationClass.CITY: 1, LocationClass.PORT: 1}


def test_negative_retention_is_rejected(store: SqlWeatherStore) -> None:
    with pytest.raises(ValueError, match="days_to_keep"):
        RetentionCleaner(store).cleanup(-1)
