"""SQLAlchemy store: upsert/replace semantics, history queries, metadata."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest

from weather_collector.exceptions import StoreError
from weather_collector.models import (
    HistoryRecord,
    Location,
    LocationClass,
    StoredSnapshot,
    WeatherSnapshot,
)
from weather_collector.store.sql import SqlWeatherStore

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


def _grid(
    lat: float, lon: float, temperature: float, fetched_at: datetime = NOW
) -> WeatherSnapshot:
    return WeatherSnapshot(
        location_class=LocationClass.GRID,
        name=f"{lat:.1f}, {lon:.1f}",
        latitude=lat,
        longitude=lon,
        weather_data={"temperature_2m": temperature},
        fetched_at=fetched_at,
    )


def _city(name: str, temperature: float, fetched_at: datetime = NOW) -> WeatherSnapshot:
    return WeatherSnapshot(
        location_class=LocationClass.CITY,
        name=name,
        latitude=-6.2,
        longitude=106.8,
        weather_data={"temperature_2m": temperature},
        fetched_at=fetched_at,
    )


def test_upsert_overwrites_by_identity_key(store: SqlWeatherStore) -> None:
    store.upsert_current(LocationClass.CITY, [_city("Jakarta", 30.0), _city("Medan", 28.0)], NOW)
    later = NOW + timedelta(hours=7)
    store.upsert_current(LocationClass.CITY, [_city("Jakarta", 33.0, later)], later)

    current = {s.snapshot.name: s for s in store.list_current(LocationClass.CITY)}

    assert set(current) == {"Jakarta", "Medan"}
    assert current["Jakarta"].snapshot.weather_data == {"temperature_2m": 33.0}
    assert current["Jakarta"].updated_at == later
    assert current["Medan"].updated_at == NOW


def test_replace_drops_points_missing_from_new_set(store: SqlWeatherStore) -> None:
    store.replace_current(
        LocationClass.GRID, [_grid(-6.0, 106.0, 30.0), _grid(-7.0, 107.0, 29.0)], NOW
    )
    store.replace_current(LocationClass.GRID, [_grid(-6.0, 106.0, 31.0)], NOW)

    current = store.list_current(LocationClass.GRID)

    assert [s.snapshot.key for s in current] == ["-6.0000,106.0000"]
    assert current[0].snapshot.weather_data == {"temperature_2m": 31.0}


def test_find_current_filters_by_key(store: SqlWeatherStore) -> None:
    store.upsert_current(LocationClass.CITY, [_city("Jakarta", 30.0), _city("Medan", 28.0)], NOW)

    found = store.find_current(LocationClass.CITY, ["Medan", "Nowhere"])

    assert [s.snapshot.name for s in found] == ["Medan"]
    assert store.find_current(LocationClass.CITY, []) == []


def test_latest_fetched_at_is_timezone_aware(store: SqlWeatherStore) -> None:
    assert store.latest_fetched_at(LocationClass.CITY) is None
    older = NOW - timedelta(hours=3)
    store.upsert_current(
        LocationClass.CITY, [_city("Jakarta", 30.0, older), _city("Medan", 28.0, NOW)], NOW
    )

    latest = store.latest_fetched_at(LocationClass.CITY)

    assert latest == NOW
    assert latest is not None and latest.tzinfo is not None


def _history(key: str, archived_at: datetime) -> HistoryRecord:
    stored = StoredSnapshot(snapshot=_city(key, 25.0), updated_at=archived_at - timedelta(hours=6))
    return HistoryRecord.from_stored(stored, archived_at=archived_at)


def test_find_history_newest_first_with_bounds(store: SqlWeatherStore) -> None:
    records = [_history("Jakarta", NOW - timedelta(days=d)) for d in (1, 2, 3, 4)]
    records.append(_history("Medan", NOW))
    store.insert_history(LocationClass.CITY, records)

    newest_first = store.find_history(LocationClass.CITY, "Jakarta")
    assert [r.archived_at for r in newest_first] == [
        NOW - timedelta(days=d) for d in (1, 2, 3, 4)
    ]
    assert newest_first[0].original_updated_at == NOW - timedelta(days=1, hours=6)
    assert newest_first[0].snapshot().name == "Jakarta"

    bounded = store.find_history(
        LocationClass.CITY,
        "Jakarta",
        start=NOW - timedelta(days=3),
        end=NOW - timedelta(days=2),
    )
    assert len(bounded) == 2
    assert len(store.find_history(LocationClass.CITY, "Jakarta", limit=1)) == 1


def test_delete_history_before_is_strict(store: SqlWeatherStore) -> None:
    cutoff = NOW - timedelta(days=90)
    store.insert_history(
        LocationClass.PORT,
        [
            _history("a", cutoff - timedelta(seconds=1)),
            _history("b", cutoff),
            _history("c", NOW),
        ],
    )

    assert store.delete_history_before(LocationClass.PORT, cutoff) == 1
    assert store.delete_history_before(LocationClass.PORT, cutoff) == 0


def test_save_locations_upserts_cities_and_replaces_grid(store: SqlWeatherStore) -> None:
    jakarta = Location(
        location_class=LocationClass.CITY, name="Jakarta", latitude=-6.2, longitude=106.8
    )
    store.save_locations(LocationClass.CITY, [jakarta], NOW)
    moved = jakarta.model_copy(update={"latitude": -6.21})
    store.save_locations(LocationClass.CITY, [moved], NOW)
    assert [(loc.name, loc.latitude) for loc in store.load_locations(LocationClass.CITY)] == [
        ("Jakarta", -6.21)
    ]

    point_a = Location(location_class=LocationClass.GRID, name="a", latitude=0, longitude=100)
    point_b = Location(location_class=LocationClass.GRID, name="b", latitude=1, longitude=101)
    store.save_locations(LocationClass.GRID, [point_a, point_b], NOW)
    store.save_locations(LocationClass.GRID, [point_b], NOW)
    assert [loc.key for loc in store.load_locations(LocationClass.GRID)] == [point_b.key]


def test_connect_creates_sqlite_file_and_schema(tmp_path: Path) -> None:
    db_path = tmp_path / "nested" / "weather.db"
    store = SqlWeatherStore.connect(f"sqlite:///{db_path}")
    try:
        store.upsert_current(LocationClass.CITY, [_city("Jakarta", 30.0)], NOW)
        assert db_path.exists()
        assert len(store.list_current(LocationClass.CITY)) == 1
    finally:
        store.close()


def test_backend_failure_is_wrapped(store: SqlWeatherStore) -> None:
    with store.engine.begin() as conn:
        conn.exec_driver_sql("DROP TABLE city_weather")

    with pytest.raises(StoreError, match="list_current"):
        store.list_current(LocationClass.CITY)
