"""
Date and time helpers shared by the engines and record serializers.

Calendar arithmetic works on normalized dates (midnight, date-only).
Durations serialize as whole milliseconds and timestamps as ISO-8601.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta

SECONDS_PER_DAY = 86400.0


def normalize_date(value: date | datetime) -> date:
    """Strip the time-of-day component."""
    if isinstance(value, datetime):
        return value.date()
    return value


def calendar_days_between(later: date | datetime, earlier: date | datetime) -> int:
    """Whole calendar days between two moments, after normalizing both."""
    return (normalize_date(later) - normalize_date(earlier)).days


def whole_days(delta: timedelta) -> int:
    """
    Truncate a duration to whole days.

    Truncates toward zero, so -36 hours is -1 day rather than -2.
    """
    return int(delta.total_seconds() / SECONDS_PER_DAY)


def fractional_days_from_hours(delta: timedelta) -> float:
    """Days elapsed at whole-hour resolution."""
    return int(delta.total_seconds() / 3600) / 24.0


def days_to_hours_delta(days: float) -> timedelta:
    """Convert fractional days to a duration rounded to the nearest hour."""
    return timedelta(hours=round(days * 24))


def epoch_millis(moment: datetime) -> int:
    """Milliseconds since the epoch, used for generated ids."""
    return int(moment.timestamp() * 1000)


# ============================================================================
# Serialization helpers
# ============================================================================


def to_millis(value: timedelta | None) -> int | None:
    if value is None:
        return None
    return value // timedelta(milliseconds=1)


def from_millis(value: int | None) -> timedelta | None:
    if value is None:
        return None
    return timedelta(milliseconds=int(value))


def to_iso(value: date | datetime | None) -> str | None:
    if value is None:
        return None
    return value.isoformat()


def parse_datetime(value: str | None) -> datetime | None:
    if value is None:
        return None
    return datetime.fromisoformat(value)


def parse_date(value: str) -> date:
    """Parse a date, accepting full timestamps as well."""
    if "T" in value or " " in value:
        return datetime.fromisoformat(value).date()
    return date.fromisoformat(value)
