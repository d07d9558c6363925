"""Service for expanding a weekly recurrence into the calendar dates it books."""

from __future__ import annotations

from datetime import date, datetime, timedelta

from dateutil.rrule import FR, MO, SA, SU, TH, TU, WE, WEEKLY, rrule

from session_scheduler.domain.errors import EmptyRecurrenceError
from session_scheduler.domain.models import RecurrenceRequest
from session_scheduler.services.intervals import weekday_index

# Index 0 is Sunday, matching the weekday numbers callers send.
_DAY_MAP = {0: SU, 1: MO, 2: TU, 3: WE, 4: TH, 5: FR, 6: SA}


def selected_weekdays(request: RecurrenceRequest) -> list[int]:
    """Return the request's weekdays, defaulting to the anchor's own weekday."""
    if not request.selected_weekdays:
        return [weekday_index(request.anchor_date)]
    return sorted(set(request.selected_weekdays))


def expand_recurrence(request: RecurrenceRequest) -> list[date]:
    """Expand *request* into the ordered dates that need an appointment.

    Weeks run Monday to Sunday, starting with the week that contains the
    anchor date, so a selected Sunday lands at the end of the anchor's week.
    Dates before the anchor are dropped. Raises ``EmptyRecurrenceError``
    when nothing is left.
    """
    weekdays = selected_weekdays(request)
    anchor = request.anchor_date

    week_start = anchor - timedelta(days=anchor.weekday())
    last_day = week_start + timedelta(weeks=request.weeks_to_repeat + 1, days=-1)

    rule = rrule(
        WEEKLY,
        dtstart=datetime.combine(week_start, datetime.min.time()),
        until=datetime.combine(last_day, datetime.min.time()),
        byweekday=[_DAY_MAP[d] for d in weekdays],
        wkst=MO,
    )

    dates = sorted({dt.date() for dt in rule if dt.date() >= anchor})
    if not dates:
        raise EmptyRecurrenceError()
    return dates
