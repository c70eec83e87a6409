"""Archive-then-overwrite writer for current snapshots."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from datetime import UTC, datetime
from typing import Literal

from .exceptions import ArchivalError, StoreError
from .models import HistoryRecord, LocationClass, WeatherSnapshot, WriteResult
from .store.base import WeatherStore

WriteMode = Literal["upsert", "replace"]


def _utcnow() -> datetime:
    return datetime.now(UTC)


class ArchivalUpsertWriter:
    """Copies the snapshots about to be overwritten into history, then writes.

    If the copy fails nothing is overwritten. The copy and the write are two
    separate units of work, so a crash in between leaves a duplicate history
    entry and an untouched current snapshot, never a lost one.
    """

    def __init__(
        self,
        store: WeatherStore,
        location_class: LocationClass,
        *,
        mode: WriteMode = "upsert",
        logger: logging.Logger | None = None,
        now_fn: Callable[[], datetime] = _utcnow,
    ) -> None:
        if mode not in ("upsert", "replace"):
            raise ValueError(f"Unknown write mode {mode!r}.")
        self.store = store
        self.location_class = location_class
        self.mode = mode
        self.logger = logger or logging.getLogger("weather_collector.archive")
        self._now = now_fn

    def write(self, snapshots: Sequence[WeatherSnapshot]) -> WriteResult:
        if not snapshots:
            self.logger.info("No %s snapshots to write", self.location_class)
            return WriteResult(location_class=self.location_class)

        keys = [snapshot.key for snapshot in snapshots]
        archived = self._archive(keys)

        now = self._now()
        if self.mode == "replace":
            written = self.store.replace_current(self.location_class, snapshots, now)
        else:
            written = self.store.upsert_current(self.location_class, snapshots, now)
        self.logger.info(
            "Wrote %d %s snapshots (mode=%s, archived=%d)",
            written,
            self.location_class,
            self.mode,
            archived,
        )
        return WriteResult(location_class=self.location_class, archived=archived, written=written)

    def _archive(self, keys: Sequence[str]) -> int:
        try:
            existing = self.store.find_current(self.location_class, keys)
            if not existing:
                self.logger.info("No existing %s snapshots to archive", self.location_class)
                return 0
            archived_at = self._now()
            records = [
                HistoryRecord.from_stored(stored, archived_at=archived_at) for stored in existing
            ]
            inserted = self.store.insert_history(self.location_class, records)
        except StoreError as exc:
            raise ArchivalError(
                f"Archiving {self.location_class} snapshots failed; current data left "
                f"untouched: {exc}"
            ) from exc
        self.logger.info("Archived %d %s snapshots to history", inserted, self.location_class)
        return inserted
