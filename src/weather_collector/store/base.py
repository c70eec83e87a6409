"""Storage capability interface consumed by writers, gates and the cleaner."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from datetime import datetime

from ..models import HistoryRecord, Location, LocationClass, StoredSnapshot, WeatherSnapshot


class WeatherStore(ABC):
    """Per-class current, history and metadata collections.

    Implementations raise ``StoreError`` for any backend failure. Each method
    is its own unit of work; nothing spans calls.
    """

    @abstractmethod
    def find_current(
        self, location_class: LocationClass, keys: Sequence[str]
    ) -> list[StoredSnapshot]:
        """Return current snapshots whose identity key is in ``keys``."""

    @abstractmethod
    def list_current(self, location_class: LocationClass) -> list[StoredSnapshot]:
        """Return every current snapshot of a class."""

    @abstractmethod
    def upsert_current(
        self,
        location_class: LocationClass,
        snapshots: Sequence[WeatherSnapshot],
        now: datetime,
    ) -> int:
        """Insert or overwrite by identity key; returns rows written."""

    @abstractmethod
    def replace_current(
        self,
        location_class: LocationClass,
        snapshots: Sequence[WeatherSnapshot],
        now: datetime,
    ) -> int:
        """Delete every current snapshot of the class, then insert ``snapshots``."""

    @abstractmethod
    def insert_history(
        self, location_class: LocationClass, records: Sequence[HistoryRecord]
    ) -> int:
        """Append history records; returns rows inserted."""

    @abstractmethod
    def find_history(
        self,
        location_class: LocationClass,
        location_key: str,
        *,
        start: datetime | None = None,
        end: datetime | None = None,
        limit: int = 100,
    ) -> list[HistoryRecord]:
        """History for one location, newest ``archived_at`` first."""

    @abstractmethod
    def delete_history_before(self, location_class: LocationClass, cutoff: datetime) -> int:
        """Delete history with ``archived_at`` strictly before ``cutoff``."""

    @abstractmethod
    def latest_fetched_at(self, location_class: LocationClass) -> datetime | None:
        """Newest ``fetched_at`` among current snapshots, or None when empty."""

    @abstractmethod
    def load_locations(self, location_class: LocationClass) -> list[Location]:
        """Locations registered in the class's metadata collection."""

    @abstractmethod
    def save_locations(
        self,
        location_class: LocationClass,
        locations: Sequence[Location],
        now: datetime,
    ) -> int:
        """Persist metadata (grid replaces wholesale, city/port upsert)."""

    @abstractmethod
    def close(self) -> None:
        """Release backend resources."""
