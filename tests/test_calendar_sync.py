"""Tests for the calendar sync coordinator."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

import pytest

from session_scheduler.domain.models import AppointmentDraft
from session_scheduler.integrations.google_calendar import CalendarClient
from session_scheduler.services.calendar_sync import CalendarSyncCoordinator


@pytest.fixture()
def coordinator(store, calendar):
    return CalendarSyncCoordinator(store, calendar)


def _commit(store, days=(5,), notes=None):
    drafts = [
        AppointmentDraft(
            subject_id=10,
            start_time=datetime(2026, 1, d, 9),
            end_time=datetime(2026, 1, d, 10),
            fee=Decimal("30"),
            notes=notes,
        )
        for d in days
    ]
    return store.create_many(drafts)


def test_injected_client_satisfies_calendar_protocol(coordinator, calendar):
    assert isinstance(calendar, CalendarClient)
    assert coordinator.enabled is True
    assert isinstance(object(), CalendarClient) is False


# ---------------------------------------------------------------------------
# Batch path
# ---------------------------------------------------------------------------


def test_batch_sync_stores_every_reference(coordinator, store, calendar):
    created = _commit(store, days=(5, 7, 12))

    synced, status = coordinator.sync_created(created)

    assert status.success is True
    assert (status.success_count, status.failed_count, status.total_count) == (3, 0, 3)
    assert calendar.calls == [("bulk", None)]
    for appointment in synced:
        assert appointment.external_event_id is not None
        assert store.get(appointment.id).external_event_id == appointment.external_event_id


def test_batch_sync_counts_partial_failures(coordinator, store, calendar):
    calendar.fail_bulk_indexes = {1}
    created = _commit(store, days=(5, 7, 12))

    synced, status = coordinator.sync_created(created)

    assert status.success is False
    assert (status.success_count, status.failed_count, status.total_count) == (2, 1, 3)
    assert status.message == "1 out of 3 appointments failed to sync with the calendar"
    assert synced[1].external_event_id is None
    assert store.get(created[1].id).external_event_id is None
    assert store.get(created[0].id).external_event_id is not None


def test_bulk_call_that_raises_keeps_the_booking(coordinator, store, calendar):
    calendar.fail_bulk = True
    created = _commit(store, days=(5, 7))

    synced, status = coordinator.sync_created(created)

    assert status.success is False
    assert status.failed_count == 2
    assert [a.id for a in synced] == [a.id for a in created]
    assert all(store.get(a.id).external_event_id is None for a in created)


def test_batch_sync_disabled_without_client(store):
    created = _commit(store)
    synced, status = CalendarSyncCoordinator(store, None).sync_created(created)
    assert status.success is True
    assert synced == created


# ---------------------------------------------------------------------------
# Single-instance path
# ---------------------------------------------------------------------------


def test_sync_one_creates_then_updates(coordinator, store, calendar):
    appointment = _commit(store)[0]

    synced, status = coordinator.sync_one(appointment)
    assert status.success is True
    assert synced.external_event_id == "evt_1"

    _, status = coordinator.sync_one(store.get(appointment.id))
    assert status.success is True
    assert calendar.calls == [("create", None), ("update", "evt_1")]
    assert list(calendar.events) == ["evt_1"]


def test_sync_one_failure_is_reported_not_raised(coordinator, store, calendar):
    calendar.fail_create = True
    appointment = _commit(store)[0]

    synced, status = coordinator.sync_one(appointment)

    assert status.success is False
    assert "calendar unavailable" in status.message
    assert synced.external_event_id is None
    assert store.get(appointment.id).external_event_id is None


def test_event_description_carries_notes(coordinator, store):
    appointment = _commit(store, notes="Mobility focus")[0]
    event = coordinator.describe(appointment)
    assert event.title == "Training Session"
    assert "Mobility focus" in event.description
    assert event.start == appointment.start_time


def test_resync_twice_keeps_one_reference(coordinator, store, calendar):
    appointment = _commit(store)[0]

    first = coordinator.resync(store.get(appointment.id))
    second = coordinator.resync(store.get(appointment.id))

    assert first.success and second.success
    assert [call[0] for call in calendar.calls] == ["create", "update"]
    assert len(calendar.events) == 1
    assert store.get(appointment.id).external_event_id == "evt_1"


def test_resync_without_client_reports_not_configured(store):
    appointment = _commit(store)[0]
    result = CalendarSyncCoordinator(store, None).resync(appointment)
    assert result.success is False
    assert result.message == "Calendar sync is not configured"


# ---------------------------------------------------------------------------
# Delete path
# ---------------------------------------------------------------------------


def test_delete_without_reference_skips_calendar(coordinator, calendar):
    status = coordinator.sync_deleted(None)
    assert status.success is True
    assert calendar.calls == []


def test_delete_failure_is_reported(coordinator, calendar):
    calendar.fail_delete = True
    status = coordinator.sync_deleted("evt_9")
    assert status.success is False
    assert calendar.calls == [("delete", "evt_9")]
