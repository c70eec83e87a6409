"""Application exception classes."""


class ConfigError(Exception):
    """Raised when configuration is invalid or incomplete."""


class JournalError(Exception):
    """Raised when writing to journal files fails."""


class WeatherProviderError(Exception):
    """Raised for weather provider request failures with category/status metadata."""

    def __init__(
        self,
        message: str,
        *,
        category: str = "unknown",
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.category = category
        self.status_code = status_code

    @property
    def retryable(self) -> bool:
        return self.category in RETRYABLE_CATEGORIES


RETRYABLE_CATEGORIES = frozenset({"rate_limit", "server", "network", "unknown"})


class StoreError(Exception):
    """Raised when a storage operation fails."""


class ArchivalError(StoreError):
    """Raised when current snapshots could not be copied into history."""


class CollectionError(Exception):
    """Raised when a collection flow for one location class fails."""


class NoLocationsError(CollectionError):
    """Raised when no locations are known for a location class."""
