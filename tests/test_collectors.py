"""Per-class flows against an in-memory store with scripted providers."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

import pytest

from conftest import NOW, FakeClock
from weather_collector.archive import ArchivalUpsertWriter
from weather_collector.catalog import LocationCatalog
from weather_collector.collectors import (
    BatchedCollectionFlow,
    ItemCollectionFlow,
    build_flow,
)
from weather_collector.config import Settings
from weather_collector.defaults import DEFAULT_CITIES, DEFAULT_PORTS
from weather_collector.exceptions import CollectionError, StoreError, WeatherProviderError
from weather_collector.models import FetchStatus, Location, LocationClass, WeatherSnapshot
from weather_collector.store.sql import SqlWeatherStore
from weather_collector.weather.base import BatchWeatherProvider, ItemWeatherProvider
from weather_collector.weather.fetchers import BatchedFetcher, SequentialFetcher

LOGGER = logging.getLogger("test_collectors")


class StaticBatchProvider(BatchWeatherProvider):
    provider_name = "static"

    def __init__(self, clock: FakeClock, *, fail: bool = False) -> None:
        self.clock = clock
        self.fail = fail
        self.closed = False

    def fetch_batch(self, locations: Sequence[Location]) -> list[WeatherSnapshot]:
        if self.fail:
            raise WeatherProviderError("bad request", category="client", status_code=400)
        return [
            WeatherSnapshot.for_location(
                loc, weather_data={"temperature_2m": 28.5}, fetched_at=self.clock()
            )
            for loc in locations
        ]

    def close(self) -> None:
        self.closed = True


class StaticItemProvider(ItemWeatherProvider):
    provider_name = "static-items"

    def __init__(self, clock: FakeClock, failing: set[str]) -> None:
        self.clock = clock
        self.failing = failing

    def fetch_item(self, location: Location) -> WeatherSnapshot:
        if location.key in self.failing:
            return WeatherSnapshot.for_location(
                location, fetched_at=self.clock(), status=FetchStatus.FAILED, error="HTTP 503"
            )
        return WeatherSnapshot.for_location(
            location,
            fetched_at=self.clock(),
            status=FetchStatus.SUCCESS,
            weather_data={"weather": "Cerah Berawan"},
        )

    def close(self) -> None:
        pass


def _common(
    store: SqlWeatherStore, clock: FakeClock, location_class: LocationClass
) -> dict[str, Any]:
    return {
        "store": store,
        "catalog": LocationCatalog(store, Settings(_env_file=None), now_fn=clock),
        "writer": ArchivalUpsertWriter(store, location_class, now_fn=clock),
        "max_age_hours": 6.0,
        "logger": LOGGER,
        "now_fn": clock,
    }


def _city_flow(
    store: SqlWeatherStore, clock: FakeClock, provider: StaticBatchProvider
) -> BatchedCollectionFlow:
    fetcher = BatchedFetcher(
        provider,
        batch_size=10,
        batch_delay_seconds=0,
        max_retries=2,
        backoff_base_seconds=0,
        logger=LOGGER,
        sleep_fn=lambda _s: None,
    )
    return BatchedCollectionFlow(
        LocationClass.CITY, fetcher=fetcher, **_common(store, clock, LocationClass.CITY)
    )


def _port_flow(
    store: SqlWeatherStore, clock: FakeClock, failing: set[str]
) -> ItemCollectionFlow:
    fetcher = SequentialFetcher(
        StaticItemProvider(clock, failing),
        request_delay_seconds=0,
        logger=LOGGER,
        sleep_fn=lambda _s: None,
    )
    return ItemCollectionFlow(
        LocationClass.PORT, fetcher=fetcher, **_common(store, clock, LocationClass.PORT)
    )


def test_city_flow_seeds_fetches_and_writes(store: SqlWeatherStore, clock: FakeClock) -> None:
    flow = _city_flow(store, clock, StaticBatchProvider(clock))
    assert not flow.is_fresh()

    outcome = flow.collect()

    assert outcome.succeeded
    assert outcome.requested == outcome.fetched == outcome.written == len(DEFAULT_CITIES)
    assert outcome.archived == 0
    assert len(store.load_locations(LocationClass.CITY)) == len(DEFAULT_CITIES)
    assert flow.is_fresh()

    clock.advance(hours=6, minutes=1)
    assert not flow.is_fresh()
    second = flow.collect()
    assert second.archived == len(DEFAULT_CITIES)


def test_city_flow_with_nothing_fetched_raises(store: SqlWeatherStore, clock: FakeClock) -> None:
    flow = _city_flow(store, clock, StaticBatchProvider(clock, fail=True))

    with pytest.raises(CollectionError, match="No city weather fetched"):
        flow.collect()
    assert store.list_current(LocationClass.CITY) == []


def test_port_flow_writes_failures_alongside_successes(
    store: SqlWeatherStore, clock: FakeClock
) -> None:
    failing = {"pelabuhan-sabang", "pelabuhan-benoa", "pelabuhan-ambon"}
    flow = _port_flow(store, clock, failing)

    outcome = flow.collect()

    assert outcome.requested == len(DEFAULT_PORTS)
    assert outcome.fetched == len(DEFAULT_PORTS) - 3
    assert outcome.failed_items == 3
    assert outcome.written == len(DEFAULT_PORTS)
    assert set(outcome.dropped_keys) == failing
    stored = {s.snapshot.key: s.snapshot for s in store.list_current(LocationClass.PORT)}
    assert stored["pelabuhan-benoa"].status is FetchStatus.FAILED
    assert stored["pelabuhan-benoa"].error == "HTTP 503"
    assert stored["pelabuhan-bitung"].status is FetchStatus.SUCCESS


def test_port_flow_with_every_port_failing_keeps_existing_data(
    store: SqlWeatherStore, clock: FakeClock
) -> None:
    _port_flow(store, clock, failing=set()).collect()
    clock.advance(hours=7)
    all_slugs = {loc.key for loc in store.load_locations(LocationClass.PORT)}

    with pytest.raises(CollectionError, match="All 21 port fetches failed"):
        _port_flow(store, clock, failing=all_slugs).collect()

    current = store.list_current(LocationClass.PORT)
    assert all(s.snapshot.status is FetchStatus.SUCCESS for s in current)
    assert store.find_history(LocationClass.PORT, "pelabuhan-benoa") == []


def test_freshness_check_failure_counts_as_stale(
    store: SqlWeatherStore, clock: FakeClock, monkeypatch: Any
) -> None:
    flow = _city_flow(store, clock, StaticBatchProvider(clock))
    flow.collect()

    def broken_latest(_location_class: LocationClass) -> None:
        raise StoreError("latest_fetched_at[city] failed: timeout")

    monkeypatch.setattr(store, "latest_fetched_at", broken_latest)

    assert not flow.is_fresh()


def test_build_flow_wires_each_class(store: SqlWeatherStore) -> None:
    settings = Settings(_env_file=None, FRESHNESS_GRID=24)

    city = build_flow(LocationClass.CITY, settings=settings, store=store, logger=LOGGER)
    grid = build_flow(LocationClass.GRID, settings=settings, store=store, logger=LOGGER)
    port = build_flow(LocationClass.PORT, settings=settings, store=store, logger=LOGGER)
    try:
        assert isinstance(city, BatchedCollectionFlow)
        assert city.writer.mode == "upsert"
        assert city.fetcher.batch_size == 50
        assert isinstance(grid, BatchedCollectionFlow)
        assert grid.writer.mode == "replace"
        assert grid.max_age_hours == 24
        assert isinstance(port, ItemCollectionFlow)
        assert port.fetcher.provider.provider_name == "bmkg-maritim"
        assert port.fetcher.request_delay_seconds == 0.5
    finally:
        for flow in (city, grid, port):
            flow.close()


def test_collected_snapshots_keep_fetch_time(store: SqlWeatherStore, clock: FakeClock) -> None:
    _city_flow(store, clock, StaticBatchProvider(clock)).collect()

    assert store.latest_fetched_at(LocationClass.CITY) == NOW
