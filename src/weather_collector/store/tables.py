"""SQLAlchemy mappings: current, history and metadata tables per location class."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, Float, Integer, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from ..models import LocationClass


class Base(DeclarativeBase):
    """Declarative base for collector tables."""


class CurrentColumns:
    """Latest snapshot per location; ``location_key`` is unique."""

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    location_key: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    fetched_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    document: Mapped[dict[str, Any]] = mapped_column(JSON)


class HistoryColumns:
    """Append-only copies of superseded snapshots."""

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    location_key: Mapped[str] = mapped_column(String(255), index=True)
    fetched_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    archived_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)
    original_updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    document: Mapped[dict[str, Any]] = mapped_column(JSON)


class MetadataColumns:
    """Registered locations for a class."""

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    location_key: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    name: Mapped[str] = mapped_column(String(255))
    latitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    longitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    slug: Mapped[str | None] = mapped_column(String(255), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))


class CityWeather(CurrentColumns, Base):
    __tablename__ = "city_weather"


class GridWeather(CurrentColumns, Base):
    __tablename__ = "grid_weather"


class PortWeather(CurrentColumns, Base):
    __tablename__ = "port_weather"


class CityWeatherHistory(HistoryColumns, Base):
    __tablename__ = "city_weather_history"


class GridWeatherHistory(HistoryColumns, Base):
    __tablename__ = "grid_weather_history"


class PortWeatherHistory(HistoryColumns, Base):
    __tablename__ = "port_weather_history"


class CityMetadata(MetadataColumns, Base):
    __tablename__ = "city_metadata"


class GridMetadata(MetadataColumns, Base):
    __tablename__ = "grid_metadata"


class PortMetadata(MetadataColumns, Base):
    __tablename__ = "port_metadata"


CURRENT_TABLES: dict[LocationClass, type[CurrentColumns]] = {
    LocationClass.CITY: CityWeather,
    LocationClass.GRID: GridWeather,
    LocationClass.PORT: PortWeather,
}
HISTORY_TABLES: dict[LocationClass, type[HistoryColumns]] = {
    LocationClass.CITY: CityWeatherHistory,
    LocationClass.GRID: GridWeatherHistory,
    LocationClass.PORT: PortWeatherHistory,
}
METADATA_TABLES: dict[LocationClass, type[MetadataColumns]] = {
    LocationClass.CITY: CityMetadata,
    LocationClass.GRID: GridMetadata,
    LocationClass.PORT: PortMetadata,
}
