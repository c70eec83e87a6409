"""Open-Meteo current-conditions provider (multi-coordinate requests)."""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Sequence
from datetime import UTC, datetime
from typing import Any

import httpx

from ..exceptions import WeatherProviderError
from ..models import Location, WeatherSnapshot
from ..redaction import sanitize_text
from .base import BatchWeatherProvider

_RATE_LIMIT_REASON_RE = re.compile(
    r"(rate limit|request limit|too many requests|minutely|hourly|daily api)",
    re.IGNORECASE,
)


def _utcnow() -> datetime:
    return datetime.now(UTC)


def classify_failure(status_code: int, reason: str = "") -> str:
    """Map an HTTP status and provider reason onto an error category."""
    if status_code == 429 or _RATE_LIMIT_REASON_RE.search(reason):
        return "rate_limit"
    if status_code >= 500:
        return "server"
    return "client"


class OpenMeteoProvider(BatchWeatherProvider):
    """Fetches current conditions for a batch of coordinates in a single GET."""

    provider_name = "open-meteo"

    def __init__(
        self,
        settings: Any,
        logger: logging.Logger,
        *,
        now_fn: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.settings = settings
        self.logger = logger
        self._url = str(settings.openmeteo_api_url)
        self._fields = list(settings.current_fields)
        self._timezone = settings.openmeteo_timezone
        self._now = now_fn
        self._client = httpx.Client(
            timeout=settings.openmeteo_timeout_seconds,
            headers={
                "Accept": "application/json",
                "User-Agent": settings.weather_user_agent,
            },
        )

    def __enter__(self) -> OpenMeteoProvider:
        return self

    def __exit__(self, exc_type: Any, exc: Any, exc_tb: Any) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    def build_params(self, locations: Sequence[Location]) -> dict[str, str]:
        return {
            "latitude": ",".join(f"{loc.latitude:.4f}" for loc in locations),
            "longitude": ",".join(f"{loc.longitude:.4f}" for loc in locations),
            "current": ",".join(self._fields),
            "timezone": self._timezone,
        }

    def fetch_batch(self, locations: Sequence[Location]) -> list[WeatherSnapshot]:
        if not locations:
            return []
        payload = self._request_json(self.build_params(locations))
        entries = self._entries(payload)
        if len(entries) < len(locations):
            self.logger.warning(
                "Open-Meteo returned %d entries for %d requested locations",
                len(entries),
                len(locations),
            )

        fetched_at = self._now()
        snapshots: list[WeatherSnapshot] = []
        for location, entry in zip(locations, entries):
            snapshot = self._normalize_entry(location, entry, fetched_at)
            if snapshot is None:
                self.logger.debug("Open-Meteo entry for %s had no current block", location.key)
                continue
            snapshots.append(snapshot)
        return snapshots

    def _request_json(self, params: dict[str, str]) -> Any:
        try:
            response = self._client.get(self._url, params=params)
        except httpx.HTTPError as exc:
            # Transport/protocol errors: timeouts, connection resets, etc.
            raise WeatherProviderError(
                f"Open-Meteo request failed ({type(exc).__name__}): {sanitize_text(str(exc))}",
                category="network",
            ) from exc

        if response.status_code >= 400:
            reason = self._error_reason(response)
            raise WeatherProviderError(
                f"Open-Meteo request failed with status {response.status_code}: {reason}",
                category=classify_failure(response.status_code, reason),
                status_code=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as exc:
            raise WeatherProviderError(
                "Open-Meteo returned non-JSON response.",
                category="malformed",
                status_code=response.status_code,
            ) from exc

        if isinstance(payload, dict) and payload.get("error") is True:
            reason = self._as_str(payload.get("reason")) or "unspecified error"
            raise WeatherProviderError(
                f"Open-Meteo reported an error: {reason}",
                category=classify_failure(response.status_code, reason),
                status_code=response.status_code,
            )
        return payload

    @staticmethod
    def _entries(payload: Any) -> list[Any]:
        # A single coordinate is answered with an object, several with a list.
        if isinstance(payload, dict):
            return [payload]
        if isinstance(payload, list):
            return payload
        raise WeatherProviderError(
            f"Open-Meteo returned unexpected payload type {type(payload).__name__}.",
            category="malformed",
        )

    def _normalize_entry(
        self, location: Location, entry: Any, fetched_at: datetime
    ) -> WeatherSnapshot | None:
        if not isinstance(entry, dict):
            return None
        current = entry.get("current")
        if not isinstance(current, dict):
            return None

        weather_data: dict[str, Any] = {field: current.get(field) for field in self._fields}
        weather_data["time"] = current.get("time")
        weather_data["timezone"] = entry.get("timezone")
        weather_data["utc_offset_seconds"] = entry.get("utc_offset_seconds")
        return WeatherSnapshot.for_location(
            location,
            provider_latitude=self._as_float(entry.get("latitude")),
            provider_longitude=self._as_float(entry.get("longitude")),
            elevation=self._as_float(entry.get("elevation")),
            weather_data=weather_data,
            fetched_at=fetched_at,
        )

    @staticmethod
    def _error_reason(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return sanitize_text(response.text[:300])
        if isinstance(body, dict) and isinstance(body.get("reason"), str):
            return sanitize_text(body["reason"])
        return sanitize_text(response.text[:300])

    @staticmethod
    def _as_str(value: Any) -> str | None:
        if isinstance(value, str) and value.strip():
            return value.strip()
        return None

    @staticmethod
    def _as_float(value: Any) -> float | None:
        if isinstance(value, bool):
            return None
        if isinstance(value, (int, float)):
            return float(value)
        return None
