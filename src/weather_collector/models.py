"""Typed models shared by fetchers, the store and the orchestrator."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class LocationClass(StrEnum):
    """Category of monitored location; each has its own tables and thresholds."""

    CITY = "city"
    GRID = "grid"
    PORT = "port"


class FetchStatus(StrEnum):
    """Outcome tag for per-item fetches."""

    SUCCESS = "success"
    FAILED = "failed"
    ERROR = "error"


def grid_key(latitude: float, longitude: float) -> str:
    """Canonical identity for a grid point."""
    return f"{latitude:.4f},{longitude:.4f}"


def identity_key(
    location_class: LocationClass,
    *,
    name: str,
    latitude: float,
    longitude: float,
    slug: str | None,
) -> str:
    if location_class is LocationClass.GRID:
        return grid_key(latitude, longitude)
    if location_class is LocationClass.PORT:
        if not slug:
            raise ValueError(f"Port {name!r} has no slug.")
        return slug
    return name


def _ensure_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    return value.astimezone(UTC) if value.tzinfo else value.replace(tzinfo=UTC)


class Location(BaseModel):
    """A monitored point with a stable identity within its class."""

    model_config = ConfigDict(frozen=True)

    location_class: LocationClass
    name: str = Field(min_length=1)
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    slug: str | None = None

    @model_validator(mode="after")
    def require_port_slug(self) -> Location:
        if self.location_class is LocationClass.PORT and not self.slug:
            raise ValueError("Port locations require a slug.")
        return self

    @property
    def key(self) -> str:
        return identity_key(
            self.location_class,
            name=self.name,
            latitude=self.latitude,
            longitude=self.longitude,
            slug=self.slug,
        )


class WeatherSnapshot(BaseModel):
    """Latest fetched observation for one location.

    ``latitude``/``longitude`` are the requested coordinates and feed the
    identity key; the provider-resolved point, when reported, is kept in
    ``provider_latitude``/``provider_longitude``.
    """

    location_class: LocationClass
    name: str
    latitude: float
    longitude: float
    slug: str | None = None
    provider_latitude: float | None = None
    provider_longitude: float | None = None
    elevation: float | None = None
    weather_data: dict[str, Any] | None = None
    fetched_at: datetime
    status: FetchStatus | None = None
    error: str | None = None

    @field_validator("fetched_at")
    @classmethod
    def fetched_at_utc(cls, value: datetime) -> datetime:
        return _ensure_utc(value)

    @model_validator(mode="after")
    def status_consistency(self) -> WeatherSnapshot:
        """Failed/error snapshots carry an error message and no payload."""
        if self.status in (FetchStatus.FAILED, FetchStatus.ERROR):
            if not self.error:
                raise ValueError(f"status={self.status.value} requires an error message.")
            if self.weather_data is not None:
                raise ValueError(f"status={self.status.value} must not carry weather_data.")
        elif self.status is FetchStatus.SUCCESS and self.error is not None:
            raise ValueError("status=success must not carry an error message.")
        return self

    @property
    def key(self) -> str:
        return identity_key(
            self.location_class,
            name=self.name,
            latitude=self.latitude,
            longitude=self.longitude,
            slug=self.slug,
        )

    @property
    def succeeded(self) -> bool:
        return self.status in (None, FetchStatus.SUCCESS) and self.weather_data is not None

    @classmethod
    def for_location(cls, location: Location, **fields: Any) -> WeatherSnapshot:
        return cls(
            location_class=location.location_class,
            name=location.name,
            latitude=location.latitude,
            longitude=location.longitude,
            slug=location.slug,
            **fields,
        )


class StoredSnapshot(BaseModel):
    """A current snapshot as persisted, with its last write time.

    ``document`` is the row exactly as stored, including fields the snapshot
    model does not know about; it is what gets archived.
    """

    record_id: int | None = None
    snapshot: WeatherSnapshot
    updated_at: datetime
    document: dict[str, Any] | None = None

    @field_validator("updated_at")
    @classmethod
    def updated_at_utc(cls, value: datetime) -> datetime:
        return _ensure_utc(value)


class HistoryRecord(BaseModel):
    """Frozen copy of a superseded current snapshot."""

    model_config = ConfigDict(frozen=True)

    location_class: LocationClass
    location_key: str
    document: dict[str, Any]
    fetched_at: datetime | None = None
    archived_at: datetime
    original_updated_at: datetime | None = None
    record_id: int | None = None

    @field_validator("fetched_at", "archived_at", "original_updated_at")
    @classmethod
    def timestamps_utc(cls, value: datetime | None) -> datetime | None:
        return _ensure_utc(value)

    @classmethod
    def from_stored(cls, stored: StoredSnapshot, *, archived_at: datetime) -> HistoryRecord:
        snapshot = stored.snapshot
        return cls(
            location_class=snapshot.location_class,
            location_key=snapshot.key,
            document=(
                dict(stored.document)
                if stored.document is not None
                else snapshot.model_dump(mode="json")
            ),
            fetched_at=snapshot.fetched_at,
            archived_at=archived_at,
            original_updated_at=stored.updated_at,
        )

    def snapshot(self) -> WeatherSnapshot:
        return WeatherSnapshot.model_validate(self.document)


class WriteResult(BaseModel):
    """Counts reported by one archival-upsert write."""

    location_class: LocationClass
    archived: int = 0
    written: int = 0


class BatchProgress(BaseModel):
    """Progress line emitted after each batch."""

    batch_index: int
    batches_total: int
    batch_size: int
    results: int
    elapsed_seconds: float
    avg_batch_seconds: float
    eta_seconds: float


class BatchFetchReport(BaseModel):
    """Aggregate result of a batched fetch."""

    requested: int
    snapshots: list[WeatherSnapshot] = Field(default_factory=list)
    batches_total: int = 0
    batches_failed: int = 0
    dropped_keys: list[str] = Field(default_factory=list)
    progress: list[BatchProgress] = Field(default_factory=list)
    elapsed_seconds: float = 0.0

    @property
    def fetched(self) -> int:
        return len(self.snapshots)

    @property
    def success_ratio(self) -> float:
        if self.requested == 0:
            return 0.0
        return self.fetched / self.requested


class ItemFetchReport(BaseModel):
    """Aggregate result of a per-item fetch; one snapshot per input."""

    snapshots: list[WeatherSnapshot] = Field(default_factory=list)
    succeeded: int = 0
    failed: int = 0
    elapsed_seconds: float = 0.0

    @property
    def requested(self) -> int:
        return len(self.snapshots)


class ClassOutcome(BaseModel):
    """Per-class result of one orchestrated run."""

    location_class: LocationClass
    succeeded: bool
    skipped_fresh: bool = False
    attempts: int = 0
    requested: int = 0
    fetched: int = 0
    failed_items: int = 0
    archived: int = 0
    written: int = 0
    dropped_keys: list[str] = Field(default_factory=list)
    duration_seconds: float = 0.0
    error: str | None = None


class RunSummary(BaseModel):
    """Structured outcome of a full orchestrated run."""

    started_at: datetime
    outcomes: list[ClassOutcome] = Field(default_factory=list)
    duration_seconds: float = 0.0

    @property
    def succeeded(self) -> bool:
        return bool(self.outcomes) and all(outcome.succeeded for outcome in self.outcomes)

    @property
    def exit_code(self) -> int:
        return 0 if self.succeeded else 1


class CleanupResult(BaseModel):
    """Per-class deletion counts from one retention cleanup."""

    days_to_keep: int
    cutoff: datetime
    deleted: dict[LocationClass, int] = Field(default_factory=dict)
    errors: dict[LocationClass, str] = Field(default_factory=dict)

    @property
    def total(self) -> int:
        return sum(self.deleted.values())

    @property
    def succeeded(self) -> bool:
        return not self.errors
