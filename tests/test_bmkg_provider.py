"""BMKG port provider: failures are encoded in the snapshot, never raised."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from types import SimpleNamespace
from typing import Any

import httpx

from weather_collector.defaults import create_slug
from weather_collector.models import FetchStatus, Location, LocationClass
from weather_collector.weather.bmkg import BmkgPortProvider

API_URL = "https://maritim.bmkg.go.id/api/pelabuhan"
NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)

PRIOK = Location(
    location_class=LocationClass.PORT,
    name="Pelabuhan Tanjung Priok",
    latitude=-6.1,
    longitude=106.8833,
    slug=create_slug("Pelabuhan Tanjung Priok"),
)


def _make_provider() -> BmkgPortProvider:
    settings = SimpleNamespace(
        bmkg_port_api_url=API_URL,
        port_request_timeout_seconds=30.0,
        weather_user_agent="weather-collector-tests/0.1",
    )
    return BmkgPortProvider(settings, logging.getLogger("test_bmkg"), now_fn=lambda: NOW)


def _patch_get(provider: BmkgPortProvider, monkeypatch: Any, handler: Any) -> list[Any]:
    seen: list[Any] = []

    def fake_get(url: str, params: dict[str, Any] | None = None) -> httpx.Response:
        seen.append(params)
        return handler(httpx.Request("GET", url, params=params))

    monkeypatch.setattr(provider._client, "get", fake_get)
    return seen


def test_success_carries_payload_and_status(monkeypatch: Any) -> None:
    provider = _make_provider()
    payload = {"name": "Tanjung Priok", "data": [{"weather": "Berawan", "wave_cat": "Rendah"}]}
    seen = _patch_get(
        provider, monkeypatch, lambda request: httpx.Response(200, request=request, json=payload)
    )

    snapshot = provider.fetch_item(PRIOK)

    assert seen == [{"slug": "pelabuhan-tanjung-priok"}]
    assert snapshot.status is FetchStatus.SUCCESS
    assert snapshot.weather_data == payload
    assert snapshot.error is None
    assert snapshot.key == "pelabuhan-tanjung-priok"
    assert snapshot.fetched_at == NOW


def test_non_success_status_is_failed(monkeypatch: Any) -> None:
    provider = _make_provider()
    _patch_get(provider, monkeypatch, lambda request: httpx.Response(502, request=request))

    snapshot = provider.fetch_item(PRIOK)

    assert snapshot.status is FetchStatus.FAILED
    assert snapshot.error == "HTTP 502"
    assert snapshot.weather_data is None


def test_empty_body_is_failed(monkeypatch: Any) -> None:
    provider = _make_provider()
    _patch_get(provider, monkeypatch, lambda request: httpx.Response(200, request=request, json={}))

    snapshot = provider.fetch_item(PRIOK)

    assert snapshot.status is FetchStatus.FAILED
    assert snapshot.error is not None and snapshot.error.startswith("HTTP 200")


def test_timeout_is_error(monkeypatch: Any) -> None:
    provider = _make_provider()

    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    _patch_get(provider, monkeypatch, handler)

    snapshot = provider.fetch_item(PRIOK)

    assert snapshot.status is FetchStatus.ERROR
    assert snapshot.error is not None and "ReadTimeout" in snapshot.error


def test_invalid_json_is_error(monkeypatch: Any) -> None:
    provider = _make_provider()
    _patch_get(
        provider,
        monkeypatch,
        lambda request: httpx.Response(200, request=request, content=b"not json"),
    )

    snapshot = provider.fetch_item(PRIOK)

    assert snapshot.status is FetchStatus.ERROR
    assert snapshot.error is not None and snapshot.error.startswith("Invalid JSON response")
