"""Datetime helpers shared across the application."""

from __future__ import annotations

import calendar
from datetime import UTC, date, datetime

__all__ = [
    "add_one_month",
    "days_until",
    "next_renewal",
    "parse_date",
    "parse_datetime",
    "renewal_urgency",
    "serialize_date",
    "serialize_datetime",
]


def serialize_datetime(value: datetime | None) -> str | None:
    """Serialise ``value`` to ISO 8601, normalising timezone-aware values."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.isoformat()
    return value.astimezone(UTC).isoformat()


def parse_datetime(value: str | None, *, assume_utc: bool = False) -> datetime | None:
    """Parse an ISO 8601 string into a ``datetime`` instance."""
    if value is None:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None and assume_utc:
        return parsed.replace(tzinfo=UTC)
    return parsed


def serialize_date(value: date | None) -> str | None:
    """Serialise a calendar date to ``YYYY-MM-DD``."""
    if value is None:
        return None
    return value.isoformat()


def parse_date(value: str | None) -> date | None:
    """Parse ``YYYY-MM-DD`` (or a full ISO timestamp) into a ``date``."""
    if not value:
        return None
    if "T" in value:
        return datetime.fromisoformat(value).date()
    return date.fromisoformat(value)


def _clamped(year: int, month: int, day: int) -> date:
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day, last_day))


def add_one_month(value: date) -> date:
    """Return the same day next month, clamped to that month's last day."""
    year = value.year + (1 if value.month == 12 else 0)
    month = 1 if value.month == 12 else value.month + 1
    return _clamped(year, month, value.day)


def next_renewal(renewal_day: int, today: date | None = None) -> date:
    """Return the next date strictly after ``today`` falling on ``renewal_day``.

    Months shorter than ``renewal_day`` renew on their last day.
    """
    if not 1 <= renewal_day <= 31:
        raise ValueError("renewal_day must fall within 1..31")
    reference = today or date.today()
    candidate = _clamped(reference.year, reference.month, renewal_day)
    if candidate > reference:
        return candidate
    year = reference.year + (1 if reference.month == 12 else 0)
    month = 1 if reference.month == 12 else reference.month + 1
    return _clamped(year, month, renewal_day)


def days_until(target: date, today: date | None = None) -> int:
    """Whole days from ``today`` until ``target`` (negative when past)."""
    reference = today or date.today()
    return (target - reference).days


def renewal_urgency(days: int) -> str:
    """Map days-until-renewal onto a display urgency bucket."""
    if days < 0:
        return "overdue"
    if days <= 3:
        return "critical"
    if days <= 7:
        return "warning"
    return "normal"
