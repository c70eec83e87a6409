"""Location catalog: loads monitored locations and seeds them on first run."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

from .defaults import default_cities, default_ports, generate_grid
from .exceptions import NoLocationsError, StoreError
from .models import Location, LocationClass
from .store.base import WeatherStore


def _utcnow() -> datetime:
    return datetime.now(UTC)


class LocationCatalog:
    """Reads a class's metadata table, falling back to built-in reference data."""

    def __init__(
        self,
        store: WeatherStore,
        settings: Any,
        *,
        logger: logging.Logger | None = None,
        now_fn: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.store = store
        self.settings = settings
        self.logger = logger or logging.getLogger("weather_collector.catalog")
        self._now = now_fn

    def defaults(self, location_class: LocationClass) -> list[Location]:
        if location_class is LocationClass.CITY:
            return default_cities()
        if location_class is LocationClass.PORT:
            return default_ports()
        return generate_grid(
            self.settings.grid_lat_min,
            self.settings.grid_lat_max,
            self.settings.grid_lon_min,
            self.settings.grid_lon_max,
            self.settings.grid_step,
        )

    def load(self, location_class: LocationClass) -> list[Location]:
        """Return the locations to collect; raises NoLocationsError when none exist."""
        try:
            locations = self.store.load_locations(location_class)
        except StoreError as exc:
            self.logger.warning(
                "Reading %s metadata failed, using built-in defaults: %s", location_class, exc
            )
            return self._require(location_class, self.defaults(location_class))

        if locations:
            self.logger.info("Loaded %d %s locations from metadata", len(locations), location_class)
            return locations

        locations = self._require(location_class, self.defaults(location_class))
        self.logger.info(
            "No %s metadata found; seeding %d default locations", location_class, len(locations)
        )
        self.seed(location_class, locations)
        return locations

    def seed(self, location_class: LocationClass, locations: list[Location]) -> None:
        """Best-effort metadata write; failure is logged, collection continues."""
        try:
            saved = self.store.save_locations(location_class, locations, self._now())
        except StoreError as exc:
            self.logger.warning("Seeding %s metadata failed: %s", location_class, exc)
            return
        self.logger.info("Seeded %d %s metadata rows", saved, location_class)

    @staticmethod
    def _require(location_class: LocationClass, locations: list[Location]) -> list[Location]:
        if not locations:
            raise NoLocationsError(f"No {location_class} locations configured.")
        return locations
