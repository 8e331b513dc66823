"""Utility helpers for EventBoard."""

from __future__ import annotations

from datetime import UTC, datetime
import math


def utcnow() -> datetime:
    """Return a naive UTC datetime."""

    return datetime.now(UTC).replace(tzinfo=None)


def to_naive_utc(value: datetime | None) -> datetime | None:
    """Convert an aware datetime to naive UTC; naive values are assumed UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value
    return value.astimezone(UTC).replace(tzinfo=None)


def parse_iso_datetime(raw: str) -> datetime:
    """Parse an ISO-8601 string into a naive UTC datetime.

    Accepts the trailing ``Z`` browsers send from ``Date.toISOString()``.
    Raises ``ValueError`` for anything unparseable.
    """
    cleaned = (raw or "").strip()
    if not cleaned:
        raise ValueError("Empty datetime")
    if cleaned.endswith(("z", "Z")):
        cleaned = f"{cleaned[:-1]}+00:00"
    return to_naive_utc(datetime.fromisoformat(cleaned))


def isoformat_utc(value: datetime | None) -> str | None:
    """Render a naive UTC datetime the way JavaScript clients expect."""
    if value is None:
        return None
    return f"{value.isoformat(timespec='milliseconds')}Z"


def page_count(total: int, limit: int) -> int:
    if limit <= 0:
        return 0
    return math.ceil(total / limit)
