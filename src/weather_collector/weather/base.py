"""Provider-agnostic weather interfaces."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence

from ..models import Location, WeatherSnapshot


class BatchWeatherProvider(ABC):
    """Fetches many coordinates in one request."""

    provider_name: str = "batch"

    @abstractmethod
    def fetch_batch(self, locations: Sequence[Location]) -> list[WeatherSnapshot]:
        """Return snapshots in request order, possibly fewer than requested.

        Raises ``WeatherProviderError`` with a category for request failures.
        """

    @abstractmethod
    def close(self) -> None:
        """Release provider resources."""


class ItemWeatherProvider(ABC):
    """Fetches one location per request."""

    provider_name: str = "item"

    @abstractmethod
    def fetch_item(self, location: Location) -> WeatherSnapshot:
        """Return a snapshot for ``location``; failures are encoded in its status."""

    @abstractmethod
    def close(self) -> None:
        """Release provider resources."""
