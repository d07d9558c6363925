"""Pure helpers for building and comparing appointment time ranges."""

from __future__ import annotations

from datetime import date, datetime, time

from dateutil.parser import isoparse

from session_scheduler.domain.errors import InvalidRangeError

_TIME_FORMATS = ("%H:%M", "%H:%M:%S")


def combine(day: date | str | None, time_of_day: time | str | None) -> datetime | None:
    """Combine a calendar date and a clock time into a single timestamp.

    Strings are accepted for both parts (``"2026-01-05"`` and ``"09:30"``).
    Returns ``None`` when either part is empty or malformed. Seconds and
    microseconds are always zeroed.
    """
    parsed_day = _parse_date(day)
    parsed_time = _parse_time(time_of_day)
    if parsed_day is None or parsed_time is None:
        return None
    return datetime.combine(parsed_day, parsed_time.replace(second=0, microsecond=0))


def validate_range(start: datetime, end: datetime) -> None:
    """Raise ``InvalidRangeError`` unless *end* is strictly after *start*."""
    if end <= start:
        raise InvalidRangeError()


def overlaps(
    a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime
) -> bool:
    """Half-open overlap test. Touching endpoints are not a conflict."""
    return a_start < b_end and a_end > b_start


def weekday_index(day: date) -> int:
    """Weekday as 0 = Sunday … 6 = Saturday."""
    return (day.weekday() + 1) % 7


def _parse_date(value: date | str | None) -> date | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    value = value.strip()
    if not value:
        return None
    try:
        return isoparse(value).date()
    except (ValueError, OverflowError):
        return None


def _parse_time(value: time | str | None) -> time | None:
    if value is None:
        return None
    if isinstance(value, time):
        return value
    value = value.strip()
    if not value:
        return None
    for fmt in _TIME_FORMATS:
        try:
            return datetime.strptime(value, fmt).time()
        except ValueError:
            continue
    return None
