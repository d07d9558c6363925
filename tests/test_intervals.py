"""Tests for the interval helpers."""

from __future__ import annotations

from datetime import date, datetime, time, timedelta

import pytest

from session_scheduler.domain.errors import ErrorKind, InvalidRangeError
from session_scheduler.services.intervals import (
    combine,
    overlaps,
    validate_range,
    weekday_index,
)

_T = datetime(2026, 1, 5, 9, 0)


def test_combine_strings():
    assert combine("2026-01-05", "09:30") == datetime(2026, 1, 5, 9, 30)


def test_combine_zeroes_seconds():
    assert combine(date(2026, 1, 5), time(9, 30, 45, 123)) == datetime(2026, 1, 5, 9, 30)
    assert combine("2026-01-05", "09:30:59") == datetime(2026, 1, 5, 9, 30)


def test_combine_accepts_full_timestamp_as_date():
    assert combine("2026-01-05T23:00:00", "07:15") == datetime(2026, 1, 5, 7, 15)


@pytest.mark.parametrize(
    ("day", "clock"),
    [
        ("", "09:00"),
        ("2026-01-05", ""),
        (None, "09:00"),
        ("2026-01-05", None),
        ("   ", "09:00"),
        ("not-a-date", "09:00"),
        ("2026-13-40", "09:00"),
        ("2026-01-05", "25:00"),
        ("2026-01-05", "nine"),
    ],
)
def test_combine_returns_none_for_bad_input(day, clock):
    assert combine(day, clock) is None


def test_validate_range_rejects_equal_and_reversed():
    with pytest.raises(InvalidRangeError):
        validate_range(_T, _T)
    with pytest.raises(InvalidRangeError) as exc_info:
        validate_range(_T, _T - timedelta(minutes=1))
    assert exc_info.value.kind == ErrorKind.VALIDATION


def test_validate_range_accepts_forward_range():
    validate_range(_T, _T + timedelta(minutes=1))


def test_overlap_partial_and_contained():
    assert overlaps(_T, _T + timedelta(hours=1), _T + timedelta(minutes=30), _T + timedelta(hours=2))
    assert overlaps(_T, _T + timedelta(hours=3), _T + timedelta(hours=1), _T + timedelta(hours=2))


def test_touching_endpoints_do_not_overlap():
    """Half-open intervals: 09:00–10:00 and 10:00–11:00 can both be booked."""
    assert not overlaps(_T, _T + timedelta(hours=1), _T + timedelta(hours=1), _T + timedelta(hours=2))
    assert not overlaps(_T + timedelta(hours=1), _T + timedelta(hours=2), _T, _T + timedelta(hours=1))


def test_weekday_index_starts_on_sunday():
    assert weekday_index(date(2026, 1, 4)) == 0  # Sunday
    assert weekday_index(date(2026, 1, 5)) == 1  # Monday
    assert weekday_index(date(2026, 1, 10)) == 6  # Saturday
