"""Time-based pruning of the history log."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from datetime import UTC, datetime, timedelta

from .exceptions import StoreError
from .models import CleanupResult, LocationClass
from .store.base import WeatherStore

DEFAULT_DAYS_TO_KEEP = 90


def _utcnow() -> datetime:
    return datetime.now(UTC)


class RetentionCleaner:
    """Deletes history older than a retention window, one class at a time."""

    def __init__(
        self,
        store: WeatherStore,
        *,
        logger: logging.Logger | None = None,
        now_fn: Callable[[], datetime] = _utcnow,
        location_classes: Iterable[LocationClass] = tuple(LocationClass),
    ) -> None:
        self.store = store
        self.logger = logger or logging.getLogger("weather_collector.retention")
        self._now = now_fn
        self.location_classes = tuple(location_classes)

    def cleanup(self, days_to_keep: int = DEFAULT_DAYS_TO_KEEP) -> CleanupResult:
        """Remove records with ``archived_at`` before ``now - days_to_keep``.

        A failure in one class is recorded and the remaining classes still run.
        """
        if days_to_keep < 0:
            raise ValueError("days_to_keep must be >= 0.")
        cutoff = self._now() - timedelta(days=days_to_keep)
        result = CleanupResult(days_to_keep=days_to_keep, cutoff=cutoff)
        self.logger.info(
            "Cleaning history older than %d days (cutoff=%s)", days_to_keep, cutoff.isoformat()
        )

        for location_class in self.location_classes:
            try:
                deleted = self.store.delete_history_before(location_class, cutoff)
            except StoreError as exc:
                result.errors[location_class] = str(exc)
                self.logger.error("History cleanup failed for %s: %s", location_class, exc)
                continue
            result.deleted[location_class] = deleted
            self.logger.info("Deleted %d %s history records", deleted, location_class)

        self.logger.info(
            "History cleanup finished: total=%d errors=%d", result.total, len(result.errors)
        )
        return result
