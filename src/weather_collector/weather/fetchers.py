"""Rate-aware batched fetching and sequential per-item fetching."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Sequence
from datetime import UTC, datetime
from typing import TypeVar

from ..exceptions import WeatherProviderError
from ..models import (
    BatchFetchReport,
    BatchProgress,
    FetchStatus,
    ItemFetchReport,
    Location,
    WeatherSnapshot,
)
from ..redaction import sanitize_text
from .base import BatchWeatherProvider, ItemWeatherProvider

T = TypeVar("T")

# Dropped keys beyond this count are summarized in log lines (the report keeps all).
_MAX_LOGGED_KEYS = 20


def partition(items: Sequence[T], size: int) -> list[list[T]]:
    """Split into contiguous chunks of ``size``; only the last may be shorter."""
    if size <= 0:
        raise ValueError("Batch size must be > 0.")
    return [list(items[start : start + size]) for start in range(0, len(items), size)]


def _preview(keys: Sequence[str]) -> str:
    shown = ", ".join(keys[:_MAX_LOGGED_KEYS])
    if len(keys) > _MAX_LOGGED_KEYS:
        shown += f", ... (+{len(keys) - _MAX_LOGGED_KEYS} more)"
    return shown


class BatchedFetcher:
    """Runs a batch provider over many locations with pacing and bounded retry.

    Each batch gets up to ``max_retries`` attempts, and every failed attempt
    (any error category, or an empty result) backs off exponentially from
    ``backoff_base_seconds``. Rate limiting, transient and rejected (client or
    malformed) failures are logged distinctly. A dropped batch never aborts
    the run.
    """

    def __init__(
        self,
        provider: BatchWeatherProvider,
        *,
        batch_size: int,
        batch_delay_seconds: float,
        max_retries: int,
        backoff_base_seconds: float,
        logger: logging.Logger,
        sleep_fn: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if batch_size <= 0:
            raise ValueError("batch_size must be > 0.")
        if max_retries <= 0:
            raise ValueError("max_retries must be > 0.")
        self.provider = provider
        self.batch_size = batch_size
        self.batch_delay_seconds = batch_delay_seconds
        self.max_retries = max_retries
        self.backoff_base_seconds = backoff_base_seconds
        self.logger = logger
        self._sleep = sleep_fn
        self._clock = clock

    def fetch(self, locations: Sequence[Location]) -> BatchFetchReport:
        batches = partition(locations, self.batch_size)
        total = len(batches)
        report = BatchFetchReport(requested=len(locations), batches_total=total)
        self.logger.info(
            "Fetching %d locations in %d batches of up to %d via %s",
            len(locations),
            total,
            self.batch_size,
            self.provider.provider_name,
        )

        started = self._clock()
        for index, batch in enumerate(batches, start=1):
            results = self._fetch_with_retry(batch, index, total)
            if results is None:
                report.batches_failed += 1
                results = []

            returned = {snapshot.key for snapshot in results}
            missing = [location.key for location in batch if location.key not in returned]
            if missing and results:
                self.logger.warning(
                    "Batch %d/%d returned %d of %d locations; missing: %s",
                    index,
                    total,
                    len(results),
                    len(batch),
                    _preview(missing),
                )
            report.dropped_keys.extend(missing)
            report.snapshots.extend(results)

            elapsed = self._clock() - started
            avg = elapsed / index
            progress = BatchProgress(
                batch_index=index,
                batches_total=total,
                batch_size=len(batch),
                results=len(results),
                elapsed_seconds=round(elapsed, 3),
                avg_batch_seconds=round(avg, 3),
                eta_seconds=round(avg * (total - index), 3),
            )
            report.progress.append(progress)
            self.logger.info(
                "Batch %d/%d done: %d/%d results, elapsed=%.1fs avg=%.1fs eta=%.1fs",
                index,
                total,
                progress.results,
                progress.batch_size,
                progress.elapsed_seconds,
                progress.avg_batch_seconds,
                progress.eta_seconds,
            )

            if index < total and self.batch_delay_seconds > 0:
                self._sleep(self.batch_delay_seconds)

        report.elapsed_seconds = round(self._clock() - started, 3)
        if report.dropped_keys:
            self.logger.warning(
                "%d of %d locations produced no snapshot (%d batches failed): %s",
                len(report.dropped_keys),
                report.requested,
                report.batches_failed,
                _preview(report.dropped_keys),
            )
        self.logger.info(
            "Batched fetch finished: %d/%d snapshots (%.0f%%) in %.1fs",
            report.fetched,
            report.requested,
            report.success_ratio * 100,
            report.elapsed_seconds,
        )
        return report

    def _fetch_with_retry(
        self, batch: list[Location], index: int, total: int
    ) -> list[WeatherSnapshot] | None:
        for attempt in range(1, self.max_retries + 1):
            try:
                results = self.provider.fetch_batch(batch)
            except WeatherProviderError as exc:
                if not exc.retryable:
                    self.logger.error(
                        "Batch %d/%d rejected (attempt %d/%d, category=%s status=%s): %s",
                        index,
                        total,
                        attempt,
                        self.max_retries,
                        exc.category,
                        exc.status_code,
                        sanitize_text(str(exc)),
                    )
                elif exc.category == "rate_limit":
                    self.logger.warning(
                        "Rate limited on batch %d/%d (attempt %d/%d): %s",
                        index,
                        total,
                        attempt,
                        self.max_retries,
                        sanitize_text(str(exc)),
                    )
                else:
                    self.logger.warning(
                        "Batch %d/%d failed (attempt %d/%d, category=%s status=%s): %s",
                        index,
                        total,
                        attempt,
                        self.max_retries,
                        exc.category,
                        exc.status_code,
                        sanitize_text(str(exc)),
                    )
            else:
                if results:
                    return results
                self.logger.warning(
                    "Batch %d/%d returned no results (attempt %d/%d)",
                    index,
                    total,
                    attempt,
                    self.max_retries,
                )

            if attempt < self.max_retries:
                delay = self.backoff_base_seconds * (2 ** (attempt - 1))
                self.logger.info("Retrying batch %d/%d in %.1fs", index, total, delay)
                if delay > 0:
                    self._sleep(delay)

        self.logger.error(
            "Batch %d/%d dropped after %d attempts", index, total, self.max_retries
        )
        return None


class SequentialFetcher:
    """Fetches one location at a time with a fixed delay between requests."""

    def __init__(
        self,
        provider: ItemWeatherProvider,
        *,
        request_delay_seconds: float,
        logger: logging.Logger,
        progress_every: int = 50,
        sleep_fn: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.provider = provider
        self.request_delay_seconds = request_delay_seconds
        self.progress_every = max(1, progress_every)
        self.logger = logger
        self._sleep = sleep_fn
        self._clock = clock

    def fetch(self, locations: Sequence[Location]) -> ItemFetchReport:
        report = ItemFetchReport()
        total = len(locations)
        started = self._clock()
        self.logger.info(
            "Fetching %d locations one by one via %s", total, self.provider.provider_name
        )

        for index, location in enumerate(locations, start=1):
            snapshot = self._fetch_one(location)
            report.snapshots.append(snapshot)
            if snapshot.status is FetchStatus.SUCCESS:
                report.succeeded += 1
            else:
                report.failed += 1

            if index % self.progress_every == 0 or index == total:
                self.logger.info(
                    "Progress %d/%d (success=%d failed=%d)",
                    index,
                    total,
                    report.succeeded,
                    report.failed,
                )
            if index < total and self.request_delay_seconds > 0:
                self._sleep(self.request_delay_seconds)

        report.elapsed_seconds = round(self._clock() - started, 3)
        self.logger.info(
            "Per-item fetch finished: success=%d failed=%d in %.1fs",
            report.succeeded,
            report.failed,
            report.elapsed_seconds,
        )
        return report

    def _fetch_one(self, location: Location) -> WeatherSnapshot:
        try:
            return self.provider.fetch_item(location)
        except WeatherProviderError as exc:
            self.logger.warning("Fetching %s raised: %s", location.key, exc)
            return WeatherSnapshot.for_location(
                location,
                fetched_at=datetime.now(UTC),
                status=FetchStatus.ERROR,
                error=str(exc) or type(exc).__name__,
            )
