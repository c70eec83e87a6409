"""SQLAlchemy-backed implementation of the weather store."""

from __future__ import annotations

import logging
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from sqlalchemy import Engine, create_engine, delete, select
from sqlalchemy.engine import make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from ..exceptions import StoreError
from ..models import (
    HistoryRecord,
    Location,
    LocationClass,
    StoredSnapshot,
    WeatherSnapshot,
)
from ..redaction import sanitize_text
from .base import WeatherStore
from .tables import CURRENT_TABLES, HISTORY_TABLES, METADATA_TABLES, Base, CurrentColumns

# Keeps IN (...) lists under SQLite's bound-parameter limit.
_KEY_CHUNK = 500


def _to_utc(value: datetime) -> datetime:
    return value.astimezone(UTC) if value.tzinfo else value.replace(tzinfo=UTC)


def _from_db(value: datetime | None) -> datetime | None:
    # SQLite hands back naive values; everything is written as UTC.
    if value is None:
        return None
    return _to_utc(value)


def _chunks(items: Sequence[str], size: int = _KEY_CHUNK) -> Iterator[Sequence[str]]:
    for start in range(0, len(items), size):
        yield items[start : start + size]


class SqlWeatherStore(WeatherStore):
    """Relational store: one engine per process, one session per operation."""

    def __init__(self, engine: Engine, logger: logging.Logger | None = None) -> None:
        self.engine = engine
        self.logger = logger or logging.getLogger("weather_collector.store")
        self._session_factory = sessionmaker(
            bind=engine, autoflush=False, expire_on_commit=False
        )

    @classmethod
    def connect(
        cls,
        url: str,
        *,
        echo: bool = False,
        logger: logging.Logger | None = None,
    ) -> SqlWeatherStore:
        """Open the engine, create missing tables and return a ready store."""
        try:
            parsed = make_url(url)
            engine_kwargs: dict[str, Any] = {"echo": echo, "pool_pre_ping": True}
            if parsed.get_backend_name() == "sqlite":
                database = parsed.database
                if database in (None, "", ":memory:"):
                    engine_kwargs["poolclass"] = StaticPool
                    engine_kwargs["connect_args"] = {"check_same_thread": False}
                else:
                    Path(database).expanduser().parent.mkdir(parents=True, exist_ok=True)
            engine = create_engine(parsed, **engine_kwargs)
        except (SQLAlchemyError, OSError) as exc:
            raise StoreError(f"Cannot open database: {sanitize_text(str(exc))}") from exc
        store = cls(engine, logger=logger)
        store.create_schema()
        return store

    def create_schema(self) -> None:
        try:
            Base.metadata.create_all(self.engine)
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed creating schema: {sanitize_text(str(exc))}") from exc

    def close(self) -> None:
        self.engine.dispose()

    def __enter__(self) -> SqlWeatherStore:
        return self

    def __exit__(self, exc_type: Any, exc: Any, exc_tb: Any) -> None:
        self.close()

    @contextmanager
    def _session(self, operation: str) -> Iterator[Session]:
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            self.logger.error("Store operation %s failed: %s", operation, exc)
            raise StoreError(f"{operation} failed: {sanitize_text(str(exc))}") from exc
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    @staticmethod
    def _to_stored(row: CurrentColumns) -> StoredSnapshot:
        return StoredSnapshot(
            record_id=row.id,
            snapshot=WeatherSnapshot.model_validate(row.document),
            updated_at=_from_db(row.updated_at),
            document=dict(row.document),
        )

    def find_current(
        self, location_class: LocationClass, keys: Sequence[str]
    ) -> list[StoredSnapshot]:
        table = CURRENT_TABLES[location_class]
        unique_keys = list(dict.fromkeys(keys))
        if not unique_keys:
            return []
        found: list[StoredSnapshot] = []
        with self._session(f"find_current[{location_class}]") as session:
            for chunk in _chunks(unique_keys):
                rows = session.scalars(select(table).where(table.location_key.in_(chunk)))
                found.extend(self._to_stored(row) for row in rows)
        return found

    def list_current(self, location_class: LocationClass) -> list[StoredSnapshot]:
        table = CURRENT_TABLES[location_class]
        with self._session(f"list_current[{location_class}]") as session:
            rows = session.scalars(select(table).order_by(table.location_key))
            return [self._to_stored(row) for row in rows]

    def upsert_current(
        self,
        location_class: LocationClass,
        snapshots: Sequence[WeatherSnapshot],
        now: datetime,
    ) -> int:
        table = CURRENT_TABLES[location_class]
        written_at = _to_utc(now)
        by_key = {snapshot.key: snapshot for snapshot in snapshots}
        if not by_key:
            return 0
        with self._session(f"upsert_current[{location_class}]") as session:
            existing: dict[str, CurrentColumns] = {}
            for chunk in _chunks(list(by_key)):
                for row in session.scalars(select(table).where(table.location_key.in_(chunk))):
                    existing[row.location_key] = row
            for key, snapshot in by_key.items():
                row = existing.get(key)
                if row is None:
                    row = table(location_key=key)
                    session.add(row)
                row.fetched_at = snapshot.fetched_at
                row.updated_at = written_at
                row.document = snapshot.model_dump(mode="json")
        return len(by_key)

    def replace_current(
        self,
        location_class: LocationClass,
        snapshots: Sequence[WeatherSnapshot],
        now: datetime,
    ) -> int:
        table = CURRENT_TABLES[location_class]
        written_at = _to_utc(now)
        by_key = {snapshot.key: snapshot for snapshot in snapshots}
        with self._session(f"replace_current[{location_class}]") as session:
            session.execute(delete(table))
            session.add_all(
                table(
                    location_key=key,
                    fetched_at=snapshot.fetched_at,
                    updated_at=written_at,
                    document=snapshot.model_dump(mode="json"),
                )
                for key, snapshot in by_key.items()
            )
        return len(by_key)

    def insert_history(
        self, location_class: LocationClass, records: Sequence[HistoryRecord]
    ) -> int:
        if not records:
            return 0
        table = HISTORY_TABLES[location_class]
        with self._session(f"insert_history[{location_class}]") as session:
            session.add_all(
                table(
                    location_key=record.location_key,
                    fetched_at=record.fetched_at,
                    archived_at=_to_utc(record.archived_at),
                    original_updated_at=record.original_updated_at,
                    document=record.document,
                )
                for record in records
            )
        return len(records)

    def find_history(
        self,
        location_class: LocationClass,
        location_key: str,
        *,
        start: datetime | None = None,
        end: datetime | None = None,
        limit: int = 100,
    ) -> list[HistoryRecord]:
        table = HISTORY_TABLES[location_class]
        stmt = select(table).where(table.location_key == location_key)
        if start is not None:
            stmt = stmt.where(table.archived_at >= _to_utc(start))
        if end is not None:
            stmt = stmt.where(table.archived_at <= _to_utc(end))
        stmt = stmt.order_by(table.archived_at.desc(), table.id.desc()).limit(limit)
        with self._session(f"find_history[{location_class}]") as session:
            return [
                HistoryRecord(
                    location_class=location_class,
                    location_key=row.location_key,
                    document=row.document,
                    fetched_at=_from_db(row.fetched_at),
                    archived_at=_from_db(row.archived_at),
                    original_updated_at=_from_db(row.original_updated_at),
                    record_id=row.id,
                )
                for row in session.scalars(stmt)
            ]

    def delete_history_before(self, location_class: LocationClass, cutoff: datetime) -> int:
        table = HISTORY_TABLES[location_class]
        with self._session(f"delete_history_before[{location_class}]") as session:
            result = session.execute(
                delete(table).where(table.archived_at < _to_utc(cutoff)),
                execution_options={"synchronize_session": False},
            )
            return int(result.rowcount or 0)

    def latest_fetched_at(self, location_class: LocationClass) -> datetime | None:
        table = CURRENT_TABLES[location_class]
        stmt = select(table.fetched_at).order_by(table.fetched_at.desc()).limit(1)
        with self._session(f"latest_fetched_at[{location_class}]") as session:
            return _from_db(session.scalar(stmt))

    def load_locations(self, location_class: LocationClass) -> list[Location]:
        table = METADATA_TABLES[location_class]
        with self._session(f"load_locations[{location_class}]") as session:
            rows = session.scalars(select(table).order_by(table.id)).all()
        locations: list[Location] = []
        for row in rows:
            if row.latitude is None or row.longitude is None:
                self.logger.warning(
                    "Skipping %s metadata row without coordinates: %s",
                    location_class,
                    row.location_key,
                )
                continue
            locations.append(
                Location(
                    location_class=location_class,
                    name=row.name,
                    latitude=row.latitude,
                    longitude=row.longitude,
                    slug=row.slug,
                )
            )
        return locations

    def save_locations(
        self,
        location_class: LocationClass,
        locations: Sequence[Location],
        now: datetime,
    ) -> int:
        table = METADATA_TABLES[location_class]
        written_at = _to_utc(now)
        by_key = {location.key: location for location in locations}
        with self._session(f"save_locations[{location_class}]") as session:
            existing: dict[str, Any] = {}
            if location_class is LocationClass.GRID:
                session.execute(delete(table))
            else:
                for chunk in _chunks(list(by_key)):
                    for row in session.scalars(
                        select(table).where(table.location_key.in_(chunk))
                    ):
                        existing[row.location_key] = row
            for key, location in by_key.items():
                row = existing.get(key)
                if row is None:
                    row = table(location_key=key)
                    session.add(row)
                row.name = location.name
                row.latitude = location.latitude
                row.longitude = location.longitude
                row.slug = location.slug
                row.updated_at = written_at
        return len(by_key)
