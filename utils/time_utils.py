"""UTC clock and timestamp parsing for provider payloads."""

from __future__ import annotations

from datetime import datetime
from email.utils import parsedate_to_datetime

import pytz


def utc_now() -> datetime:
    """Current time in UTC."""
    return datetime.now(pytz.utc)


def ensure_utc(dt: datetime) -> datetime:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""
    if dt.tzinfo is None:
        return pytz.utc.localize(dt)
    return dt.astimezone(pytz.utc)


def parse_iso_timestamp(value: str | None) -> datetime | None:
    """Parse an ISO-8601 timestamp, returning None when it cannot be read.

    Accepts a trailing 'Z' and offset-less values (Open-Meteo with
    timezone=UTC returns e.g. '2026-10-17T12:15').
    """
    if not value or not isinstance(value, str):
        return None
    try:
        dt = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    return ensure_utc(dt)


def parse_rfc822_timestamp(value: str | None) -> datetime | None:
    """Parse an RSS pubDate such as 'Fri, 17 Oct 2026 06:00:00 +0000'."""
    if not value or not isinstance(value, str):
        return None
    try:
        dt = parsedate_to_datetime(value.strip())
    except (TypeError, ValueError, IndexError):
        return None
    if dt is None:
        return None
    return ensure_utc(dt)


def minutes_between(start: datetime, end: datetime) -> int:
    """Whole minutes from start to end, truncated toward zero."""
    return int((end - start).total_seconds() / 60)
