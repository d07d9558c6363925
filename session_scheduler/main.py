"""FastAPI application: entry point for the session scheduling service."""

from __future__ import annotations

from datetime import datetime

from fastapi import Depends, FastAPI, HTTPException

from session_scheduler.config import Settings, configure_logging, load_settings
from session_scheduler.domain.errors import ErrorKind, SchedulingError
from session_scheduler.domain.models import (
    Appointment,
    CreateAppointmentRequest,
    CreateAppointmentResult,
    DeleteAppointmentResult,
    ResyncResult,
    UpdateAppointmentRequest,
    UpdateAppointmentResult,
)
from session_scheduler.integrations.google_calendar import (
    GoogleCalendarClient,
    service_account_credentials,
)
from session_scheduler.repos.memory import AppointmentRepository
from session_scheduler.repos.sql import create_sql_repository
from session_scheduler.services.calendar_sync import CalendarSyncCoordinator
from session_scheduler.services.scheduler import AppointmentScheduler
from session_scheduler.services.transactions import SchedulingTransactionManager

_STATUS_CODES = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.CONFLICT: 409,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.SYNC_FAILURE: 502,
}


def build_scheduler(settings: Settings) -> AppointmentScheduler:
    """Wire the store, the calendar client and the services from *settings*."""
    if settings.database_url:
        store = create_sql_repository(settings.database_url)
    else:
        store = AppointmentRepository()

    client = None
    if settings.calendar_configured:
        client = GoogleCalendarClient(
            calendar_id=settings.google_calendar_id,
            credentials=service_account_credentials(
                client_email=settings.google_service_account_email,
                private_key=settings.google_service_account_private_key,
                key_file=settings.google_service_account_file,
            ),
            time_zone=settings.calendar_time_zone,
            base_url=settings.calendar_api_base_url,
            timeout=settings.calendar_timeout_seconds,
            batch_size=settings.calendar_batch_size,
        )

    return AppointmentScheduler(
        transactions=SchedulingTransactionManager(store),
        sync=CalendarSyncCoordinator(store, client, event_title=settings.session_event_title),
    )


settings = load_settings()
configure_logging(settings.log_level)

app = FastAPI(title="Session Scheduling Service")

# ── Wiring (created at import time; override get_scheduler in tests) ──
scheduler = build_scheduler(settings)


def get_scheduler() -> AppointmentScheduler:
    return scheduler


def _http_error(exc: SchedulingError) -> HTTPException:
    return HTTPException(
        status_code=_STATUS_CODES.get(exc.kind, 400),
        detail={"kind": str(exc.kind), "message": exc.message},
    )


# ── Routes ────────────────────────────────────────────────────────────


@app.post("/appointments", response_model=CreateAppointmentResult, status_code=201)
def create_appointment(
    payload: CreateAppointmentRequest,
    service: AppointmentScheduler = Depends(get_scheduler),
) -> CreateAppointmentResult:
    """Book a session (or a weekly series) and mirror it to the calendar."""
    try:
        return service.create_appointment(payload)
    except SchedulingError as exc:
        raise _http_error(exc) from exc


@app.get("/appointments", response_model=list[Appointment])
def list_appointments(
    subject_id: int | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    service: AppointmentScheduler = Depends(get_scheduler),
) -> list[Appointment]:
    """Return appointments, newest first, optionally filtered by subject and range."""
    return service.list_appointments(subject_id=subject_id, start=start, end=end)


@app.get("/appointments/{appointment_id}", response_model=Appointment)
def get_appointment(
    appointment_id: int,
    service: AppointmentScheduler = Depends(get_scheduler),
) -> Appointment:
    try:
        return service.get_appointment(appointment_id)
    except SchedulingError as exc:
        raise _http_error(exc) from exc


@app.put("/appointments/{appointment_id}", response_model=UpdateAppointmentResult)
def update_appointment(
    appointment_id: int,
    payload: UpdateAppointmentRequest,
    service: AppointmentScheduler = Depends(get_scheduler),
) -> UpdateAppointmentResult:
    try:
        return service.update_appointment(appointment_id, payload)
    except SchedulingError as exc:
        raise _http_error(exc) from exc


@app.delete("/appointments/{appointment_id}", response_model=DeleteAppointmentResult)
def delete_appointment(
    appointment_id: int,
    service: AppointmentScheduler = Depends(get_scheduler),
) -> DeleteAppointmentResult:
    try:
        return service.delete_appointment(appointment_id)
    except SchedulingError as exc:
        raise _http_error(exc) from exc


@app.post("/appointments/{appointment_id}/sync", response_model=ResyncResult)
def resync_appointment(
    appointment_id: int,
    service: AppointmentScheduler = Depends(get_scheduler),
) -> ResyncResult:
    """Re-run calendar sync for one appointment (create or update its event)."""
    try:
        return service.resync_appointment(appointment_id)
    except SchedulingError as exc:
        raise _http_error(exc) from exc
