"""Weather provider integrations and fetch strategies."""

from .base import BatchWeatherProvider, ItemWeatherProvider
from .bmkg import BmkgPortProvider
from .fetchers import BatchedFetcher, SequentialFetcher, partition
from .open_meteo import OpenMeteoProvider

__all__ = [
    "BatchWeatherProvider",
    "BatchedFetcher",
    "BmkgPortProvider",
    "ItemWeatherProvider",
    "OpenMeteoProvider",
    "SequentialFetcher",
    "partition",
]
