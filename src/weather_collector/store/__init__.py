"""Persistence for current snapshots, history and location metadata."""

from .base import WeatherStore
from .sql import SqlWeatherStore

__all__ = ["SqlWeatherStore", "WeatherStore"]
