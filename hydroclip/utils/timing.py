"""Instant parsing, formatting and duration helpers."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Union

Instant = Union[str, datetime]


def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes and convert aware ones to UTC."""

    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_instant(value: Instant) -> datetime:
    """Parse an ISO-8601 instant (``Z`` suffix allowed) into an aware datetime."""

    if isinstance(value, datetime):
        return ensure_utc(value)
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    return ensure_utc(datetime.fromisoformat(text.replace(" ", "T", 1)))


def to_iso(value: datetime) -> str:
    """Format ``value`` as a millisecond-precision UTC string, e.g. ``2024-05-01T12:00:00.000Z``."""

    value = ensure_utc(value)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def shift_seconds(value: datetime, seconds: float) -> datetime:
    return value + timedelta(seconds=seconds)


def seconds_between(start: datetime, end: datetime) -> float:
    return (end - start).total_seconds()


def round_seconds(seconds: float) -> int:
    """Round half up to whole seconds, clamping negatives to zero."""

    return int(max(seconds, 0.0) + 0.5)


def format_duration(milliseconds: float) -> str:
    """Render a duration as ``M:SS``; minutes are not wrapped into hours."""

    total_seconds = round_seconds(milliseconds / 1000)
    minutes, seconds = divmod(total_seconds, 60)
    return f"{minutes}:{seconds:02d}"


__all__ = [
    "Instant",
    "ensure_utc",
    "format_duration",
    "parse_instant",
    "round_seconds",
    "seconds_between",
    "shift_seconds",
    "to_iso",
]
