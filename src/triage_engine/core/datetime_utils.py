"""Datetime helpers shared by the scoring, gating and CLI layers."""

from __future__ import annotations

import logging
from datetime import UTC, date, datetime
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

__all__ = [
    "days_between",
    "ensure_utc",
    "parse_datetime",
    "send_day",
    "serialize_datetime",
    "to_zone",
]

LOGGER = logging.getLogger(__name__)

_SECONDS_PER_DAY = 86400


def ensure_utc(value: datetime | None) -> datetime | None:
    """Return ``value`` in UTC; naive values are taken to already be UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def serialize_datetime(value: datetime | None) -> str | None:
    """Render ``value`` as ISO 8601 in UTC for JSON reports."""
    normalized = ensure_utc(value)
    return normalized.isoformat() if normalized is not None else None


def parse_datetime(value: str | None, *, assume_utc: bool = False) -> datetime | None:
    """Parse an ISO 8601 timestamp; a trailing ``Z`` is accepted."""
    if value is None or not value.strip():
        return None
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = f"{text[:-1]}+00:00"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None and assume_utc:
        return parsed.replace(tzinfo=UTC)
    return parsed


def days_between(start: datetime | None, end: datetime) -> float:
    """Return fractional days from ``start`` to ``end``; 0 when unknown."""
    begin = ensure_utc(start)
    finish = ensure_utc(end)
    if begin is None or finish is None:
        return 0.0
    return (finish - begin).total_seconds() / _SECONDS_PER_DAY


def to_zone(value: datetime, zone_name: str) -> datetime | None:
    """Convert ``value`` into the named IANA zone; ``None`` if the zone is unknown."""
    try:
        zone = ZoneInfo(zone_name)
    except (ZoneInfoNotFoundError, ValueError):
        LOGGER.warning("Unknown timezone %r", zone_name)
        return None
    return (ensure_utc(value) or value).astimezone(zone)


def send_day(value: datetime, zone_name: str = "UTC") -> date:
    """Return the day a daily send counter buckets ``value`` under."""
    local = to_zone(value, zone_name)
    if local is None:
        local = ensure_utc(value) or value
    return local.date()
