"""Freshness gate: decides whether a location class needs a new fetch."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta


def _as_utc(value: datetime) -> datetime:
    return value.astimezone(UTC) if value.tzinfo else value.replace(tzinfo=UTC)


def hours_since(timestamp: datetime, now: datetime | None = None) -> float:
    """Hours elapsed between ``timestamp`` and ``now`` (naive values are UTC)."""
    current = _as_utc(now) if now is not None else datetime.now(UTC)
    return (current - _as_utc(timestamp)) / timedelta(hours=1)


def is_fresh(
    latest_fetch_time: datetime | None,
    max_age_hours: float,
    *,
    now: datetime | None = None,
) -> bool:
    """Return True when the newest snapshot is no older than ``max_age_hours``.

    A missing timestamp means nothing has been collected yet and is never fresh.
    An age exactly equal to the threshold still counts as fresh.
    """
    if latest_fetch_time is None:
        return False
    current = _as_utc(now) if now is not None else datetime.now(UTC)
    age = current - _as_utc(latest_fetch_time)
    return age <= timedelta(hours=max_age_hours)
