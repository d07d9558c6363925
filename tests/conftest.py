"""Shared fixtures: fresh stores, a fake calendar and a wired scheduler."""

from __future__ import annotations

import itertools
from decimal import Decimal

import pytest

from session_scheduler.domain.errors import CalendarSyncError
from session_scheduler.domain.models import (
    BulkCreateResult,
    CreateAppointmentRequest,
    CreatedCalendarEvent,
)
from session_scheduler.repos.memory import AppointmentRepository
from session_scheduler.services.calendar_sync import CalendarSyncCoordinator
from session_scheduler.services.scheduler import AppointmentScheduler
from session_scheduler.services.transactions import SchedulingTransactionManager

# 2026-01-05 is a Monday.
MONDAY = "2026-01-05"


class FakeCalendarClient:
    """Records every call; failures are switched on per operation."""

    def __init__(self) -> None:
        self.events: dict[str, object] = {}
        self.calls: list[tuple[str, str | None]] = []
        self.fail_create = False
        self.fail_update = False
        self.fail_delete = False
        self.fail_bulk = False
        self.fail_bulk_indexes: set[int] = set()
        self._ids = itertools.count(1)

    def create_event(self, event):
        self.calls.append(("create", None))
        if self.fail_create:
            raise CalendarSyncError("calendar unavailable")
        event_id = f"evt_{next(self._ids)}"
        self.events[event_id] = event
        return CreatedCalendarEvent(id=event_id)

    def create_events_bulk(self, events):
        self.calls.append(("bulk", None))
        if self.fail_bulk:
            raise CalendarSyncError("bulk endpoint down")
        results = []
        for index, event in enumerate(events):
            if index in self.fail_bulk_indexes:
                results.append(BulkCreateResult(success=False, error="rejected"))
                continue
            event_id = f"evt_{next(self._ids)}"
            self.events[event_id] = event
            results.append(BulkCreateResult(success=True, id=event_id))
        return results

    def update_event(self, event_id, event):
        self.calls.append(("update", event_id))
        if self.fail_update:
            raise CalendarSyncError("calendar unavailable")
        self.events[event_id] = event

    def delete_event(self, event_id):
        self.calls.append(("delete", event_id))
        if self.fail_delete:
            raise CalendarSyncError("calendar unavailable")
        self.events.pop(event_id, None)


@pytest.fixture()
def store():
    return AppointmentRepository()


@pytest.fixture()
def calendar():
    return FakeCalendarClient()


@pytest.fixture()
def transactions(store):
    return SchedulingTransactionManager(store)


@pytest.fixture()
def scheduler(store, calendar, transactions):
    return AppointmentScheduler(
        transactions=transactions,
        sync=CalendarSyncCoordinator(store, calendar),
    )


def _make_request(**overrides) -> CreateAppointmentRequest:
    defaults = dict(
        subject_id=10,
        date=MONDAY,
        start_time="09:00",
        end_time="10:00",
        fee=Decimal("50.00"),
        notes=None,
        selected_days=[],
        weeks_to_repeat=0,
    )
    defaults.update(overrides)
    return CreateAppointmentRequest(**defaults)


@pytest.fixture()
def make_request():
    """Factory for a Monday 09:00–10:00 booking request for subject 10."""
    return _make_request
