"""Caller-facing scheduling operations.

Each operation first settles the booking (raising a ``SchedulingError`` if it
cannot be made) and only then asks the sync coordinator to mirror it. The
booking outcome and the calendar outcome are reported separately.
"""

from __future__ import annotations

from datetime import datetime

from session_scheduler.domain.errors import InvalidInputError, NotFoundError
from session_scheduler.domain.models import (
    Appointment,
    AppointmentDraft,
    CreateAppointmentRequest,
    CreateAppointmentResult,
    DeleteAppointmentResult,
    RecurrenceRequest,
    ResyncResult,
    UpdateAppointmentRequest,
    UpdateAppointmentResult,
)
from session_scheduler.services.calendar_sync import CalendarSyncCoordinator
from session_scheduler.services.intervals import combine, validate_range
from session_scheduler.services.recurrence import expand_recurrence
from session_scheduler.services.transactions import SchedulingTransactionManager


class AppointmentScheduler:
    def __init__(
        self,
        transactions: SchedulingTransactionManager,
        sync: CalendarSyncCoordinator,
    ) -> None:
        self.transactions = transactions
        self.sync = sync

    @property
    def store(self):
        return self.transactions.store

    def create_appointment(self, request: CreateAppointmentRequest) -> CreateAppointmentResult:
        """Book one session, or a weekly series, for a subject."""
        start = combine(request.date, request.start_time)
        end = combine(request.date, request.end_time)
        if start is None or end is None:
            raise InvalidInputError("Invalid date or time")
        validate_range(start, end)

        dates = expand_recurrence(
            RecurrenceRequest(
                anchor_date=start.date(),
                selected_weekdays=request.selected_days,
                weeks_to_repeat=request.weeks_to_repeat,
            )
        )

        drafts = []
        for day in dates:
            draft_start = combine(day, request.start_time)
            draft_end = combine(day, request.end_time)
            if draft_start is None or draft_end is None:
                raise InvalidInputError("Invalid repeating date")
            validate_range(draft_start, draft_end)
            drafts.append(
                AppointmentDraft(
                    subject_id=request.subject_id,
                    start_time=draft_start,
                    end_time=draft_end,
                    fee=request.fee,
                    notes=request.notes or None,
                )
            )

        created = self.transactions.create_batch(drafts)
        appointments, sync_status = self.sync.sync_created(created)
        return CreateAppointmentResult(appointments=appointments, sync_status=sync_status)

    def update_appointment(
        self, appointment_id: int, request: UpdateAppointmentRequest
    ) -> UpdateAppointmentResult:
        current = self.get_appointment(appointment_id)

        day = request.date or current.start_time.date()
        start = combine(day, request.start_time)
        end = combine(day, request.end_time)
        if start is None or end is None:
            raise InvalidInputError("Invalid date or time")

        updated = self.transactions.update_one(
            appointment_id,
            start,
            end,
            request.fee,
            request.notes,
            request.status,
        )
        appointment, sync_status = self.sync.sync_one(updated)
        return UpdateAppointmentResult(appointment=appointment, sync_status=sync_status)

    def delete_appointment(self, appointment_id: int) -> DeleteAppointmentResult:
        external_event_id = self.transactions.delete_one(appointment_id)
        sync_status = self.sync.sync_deleted(external_event_id)
        return DeleteAppointmentResult(success=True, sync_status=sync_status)

    def resync_appointment(self, appointment_id: int) -> ResyncResult:
        """Push an appointment to the calendar again; the recovery path after a failed sync."""
        return self.sync.resync(self.get_appointment(appointment_id))

    def get_appointment(self, appointment_id: int) -> Appointment:
        appointment = self.store.get(appointment_id)
        if appointment is None:
            raise NotFoundError(appointment_id)
        return appointment

    def list_appointments(
        self,
        subject_id: int | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[Appointment]:
        return self.store.list_all(subject_id=subject_id, start=start, end=end)
