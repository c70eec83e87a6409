"""BMKG maritime port forecast provider (one request per port)."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

import httpx

from ..models import FetchStatus, Location, WeatherSnapshot
from ..redaction import sanitize_text
from .base import ItemWeatherProvider


def _utcnow() -> datetime:
    return datetime.now(UTC)


class BmkgPortProvider(ItemWeatherProvider):
    """Fetches one port forecast by slug; failures become tagged snapshots."""

    provider_name = "bmkg-maritim"

    def __init__(
        self,
        settings: Any,
        logger: logging.Logger,
        *,
        now_fn: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.settings = settings
        self.logger = logger
        self._url = str(settings.bmkg_port_api_url)
        self._now = now_fn
        self._client = httpx.Client(
            timeout=settings.port_request_timeout_seconds,
            headers={
                "Accept": "application/json",
                "User-Agent": settings.weather_user_agent,
            },
        )

    def __enter__(self) -> BmkgPortProvider:
        return self

    def __exit__(self, exc_type: Any, exc: Any, exc_tb: Any) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    def fetch_item(self, location: Location) -> WeatherSnapshot:
        self.logger.debug("Fetching port %s -> %s", location.name, location.slug)
        try:
            response = self._client.get(self._url, params={"slug": location.slug})
        except httpx.HTTPError as exc:
            return self._failure(
                location,
                FetchStatus.ERROR,
                f"{type(exc).__name__}: {sanitize_text(str(exc))}".rstrip(": "),
            )

        if not response.is_success:
            return self._failure(location, FetchStatus.FAILED, f"HTTP {response.status_code}")

        try:
            payload = response.json()
        except ValueError as exc:
            return self._failure(location, FetchStatus.ERROR, f"Invalid JSON response: {exc}")

        if not payload:
            return self._failure(
                location, FetchStatus.FAILED, f"HTTP {response.status_code}: empty body"
            )

        weather_data = payload if isinstance(payload, dict) else {"data": payload}
        return WeatherSnapshot.for_location(
            location,
            weather_data=weather_data,
            fetched_at=self._now(),
            status=FetchStatus.SUCCESS,
        )

    def _failure(self, location: Location, status: FetchStatus, error: str) -> WeatherSnapshot:
        self.logger.warning("Port %s (%s) %s: %s", location.name, location.slug, status, error)
        return WeatherSnapshot.for_location(
            location,
            fetched_at=self._now(),
            status=status,
            error=error,
        )
