"""Per-class collection flows: load locations, fetch, archive and write."""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

from .archive import ArchivalUpsertWriter
from .catalog import LocationCatalog
from .exceptions import CollectionError, StoreError
from .freshness import hours_since, is_fresh
from .models import ClassOutcome, LocationClass
from .store.base import WeatherStore
from .weather.bmkg import BmkgPortProvider
from .weather.fetchers import BatchedFetcher, SequentialFetcher
from .weather.open_meteo import OpenMeteoProvider


def _utcnow() -> datetime:
    return datetime.now(UTC)


class CollectionFlow(ABC):
    """One location class's update: freshness check plus a full collect pass."""

    location_class: LocationClass

    def __init__(
        self,
        location_class: LocationClass,
        *,
        store: WeatherStore,
        catalog: LocationCatalog,
        writer: ArchivalUpsertWriter,
        max_age_hours: float,
        logger: logging.Logger,
        now_fn: Callable[[], datetime] = _utcnow,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.location_class = location_class
        self.store = store
        self.catalog = catalog
        self.writer = writer
        self.max_age_hours = max_age_hours
        self.logger = logger
        self._now = now_fn
        self._clock = clock

    def is_fresh(self) -> bool:
        """True when the newest stored snapshot is within the freshness window.

        A store failure while checking counts as stale so the data gets refreshed.
        """
        try:
            latest = self.store.latest_fetched_at(self.location_class)
        except StoreError as exc:
            self.logger.error(
                "Freshness check for %s failed, treating as stale: %s", self.location_class, exc
            )
            return False

        fresh = is_fresh(latest, self.max_age_hours, now=self._now())
        if latest is None:
            self.logger.info("No %s weather stored yet; update required", self.location_class)
        elif fresh:
            self.logger.info(
                "%s weather is fresh (%.1fh old, limit %gh)",
                self.location_class,
                hours_since(latest, self._now()),
                self.max_age_hours,
            )
        else:
            self.logger.info(
                "%s weather is stale (%.1fh old, limit %gh); update required",
                self.location_class,
                hours_since(latest, self._now()),
                self.max_age_hours,
            )
        return fresh

    @abstractmethod
    def collect(self) -> ClassOutcome:
        """Run one fetch-and-write pass; raises CollectionError on class failure."""

    def close(self) -> None:
        """Release provider resources."""


class BatchedCollectionFlow(CollectionFlow):
    """City and grid collection through a multi-coordinate provider."""

    def __init__(
        self, location_class: LocationClass, *, fetcher: BatchedFetcher, **kwargs: Any
    ) -> None:
        super().__init__(location_class, **kwargs)
        self.fetcher = fetcher

    def collect(self) -> ClassOutcome:
        started = self._clock()
        locations = self.catalog.load(self.location_class)
        report = self.fetcher.fetch(locations)
        if report.fetched == 0:
            raise CollectionError(
                f"No {self.location_class} weather fetched: {report.requested} requested, "
                f"{report.batches_failed}/{report.batches_total} batches failed."
            )
        if report.fetched < report.requested:
            self.logger.warning(
                "Partial %s fetch: %d/%d locations (%.0f%%)",
                self.location_class,
                report.fetched,
                report.requested,
                report.success_ratio * 100,
            )

        result = self.writer.write(report.snapshots)
        return ClassOutcome(
            location_class=self.location_class,
            succeeded=True,
            requested=report.requested,
            fetched=report.fetched,
            archived=result.archived,
            written=result.written,
            dropped_keys=list(report.dropped_keys),
            duration_seconds=round(self._clock() - started, 3),
        )

    def close(self) -> None:
        self.fetcher.provider.close()


class ItemCollectionFlow(CollectionFlow):
    """Port collection, one request per location.

    Failed items are written with their failure status so the current table
    shows every port. A run where no item succeeded writes nothing.
    """

    def __init__(
        self, location_class: LocationClass, *, fetcher: SequentialFetcher, **kwargs: Any
    ) -> None:
        super().__init__(location_class, **kwargs)
        self.fetcher = fetcher

    def collect(self) -> ClassOutcome:
        started = self._clock()
        locations = self.catalog.load(self.location_class)
        report = self.fetcher.fetch(locations)
        if report.succeeded == 0:
            raise CollectionError(
                f"All {report.requested} {self.location_class} fetches failed; "
                "existing data left untouched."
            )

        result = self.writer.write(report.snapshots)
        return ClassOutcome(
            location_class=self.location_class,
            succeeded=True,
            requested=report.requested,
            fetched=report.succeeded,
            failed_items=report.failed,
            archived=result.archived,
            written=result.written,
            dropped_keys=[
                snapshot.key for snapshot in report.snapshots if not snapshot.succeeded
            ],
            duration_seconds=round(self._clock() - started, 3),
        )

    def close(self) -> None:
        self.fetcher.provider.close()


def build_flow(
    location_class: LocationClass,
    *,
    settings: Any,
    store: WeatherStore,
    logger: logging.Logger,
    sleep_fn: Callable[[float], None] = time.sleep,
) -> CollectionFlow:
    """Wire provider, fetcher, writer and catalog for one location class."""
    common: dict[str, Any] = {
        "store": store,
        "catalog": LocationCatalog(store, settings, logger=logger),
        "writer": ArchivalUpsertWriter(
            store,
            location_class,
            mode="replace" if location_class is LocationClass.GRID else "upsert",
            logger=logger,
        ),
        "max_age_hours": settings.freshness_hours(location_class),
        "logger": logger,
    }

    if location_class is LocationClass.PORT:
        fetcher = SequentialFetcher(
            BmkgPortProvider(settings, logger),
            request_delay_seconds=settings.request_delay_ms / 1000.0,
            progress_every=settings.port_progress_every,
            logger=logger,
            sleep_fn=sleep_fn,
        )
        return ItemCollectionFlow(location_class, fetcher=fetcher, **common)

    batched = BatchedFetcher(
        OpenMeteoProvider(settings, logger),
        batch_size=settings.batch_size,
        batch_delay_seconds=settings.batch_delay_ms / 1000.0,
        max_retries=settings.max_retries,
        backoff_base_seconds=settings.rate_limit_backoff_seconds,
        logger=logger,
        sleep_fn=sleep_fn,
    )
    return BatchedCollectionFlow(location_class, fetcher=batched, **common)
