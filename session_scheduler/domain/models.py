"""Domain models for the session scheduling engine."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from enum import StrEnum
from typing import Annotated

from pydantic import BaseModel, Field, field_validator, model_validator

MAX_WEEKS_TO_REPEAT = 52

Weekday = Annotated[int, Field(ge=0, le=6)]
Fee = Annotated[Decimal, Field(ge=0, max_digits=10, decimal_places=2)]


class AttendanceStatus(StrEnum):
    NOT_ATTENDED = "NOT_ATTENDED"
    ATTENDED = "ATTENDED"


# ---------------------------------------------------------------------------
# Core domain models
# ---------------------------------------------------------------------------


class CandidateInterval(BaseModel):
    """A proposed, not-yet-persisted time range."""

    start: datetime
    end: datetime


class AppointmentDraft(BaseModel):
    subject_id: int
    start_time: datetime
    end_time: datetime
    fee: Fee = Decimal("0")
    notes: str | None = None
    status: AttendanceStatus = AttendanceStatus.NOT_ATTENDED

    @model_validator(mode="after")
    def _end_after_start(self) -> AppointmentDraft:
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


class Appointment(BaseModel):
    id: int
    subject_id: int
    start_time: datetime
    end_time: datetime
    fee: Fee = Decimal("0")
    notes: str | None = None
    status: AttendanceStatus = AttendanceStatus.NOT_ATTENDED
    external_event_id: str | None = None

    @model_validator(mode="after")
    def _end_after_start(self) -> Appointment:
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self


class RecurrenceRequest(BaseModel):
    """One weekly scheduling intent.

    ``selected_weekdays`` uses 0 = Sunday … 6 = Saturday. An empty set means
    "the anchor date's own weekday".
    """

    anchor_date: date
    selected_weekdays: list[Weekday] = Field(default_factory=list)
    weeks_to_repeat: int = Field(default=0, ge=0, le=MAX_WEEKS_TO_REPEAT)


# ---------------------------------------------------------------------------
# External calendar payloads
# ---------------------------------------------------------------------------


class CalendarEventDescription(BaseModel):
    title: str
    description: str = ""
    start: datetime
    end: datetime
    location: str | None = None


class CreatedCalendarEvent(BaseModel):
    id: str | None = None


class BulkCreateResult(BaseModel):
    success: bool
    id: str | None = None
    error: str | None = None


class SyncStatus(BaseModel):
    success: bool
    message: str | None = None
    success_count: int | None = None
    failed_count: int | None = None
    total_count: int | None = None


# ---------------------------------------------------------------------------
# Request / Response DTOs
# ---------------------------------------------------------------------------


class CreateAppointmentRequest(BaseModel):
    subject_id: int = Field(gt=0)
    date: str = Field(min_length=1)
    start_time: str = Field(min_length=1)
    end_time: str = Field(min_length=1)
    fee: Fee
    notes: str | None = None
    selected_days: list[Weekday] = Field(default_factory=list)
    weeks_to_repeat: int = Field(default=0, ge=0, le=MAX_WEEKS_TO_REPEAT)

    @field_validator("date", "start_time", "end_time")
    @classmethod
    def _strip(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("value is required")
        return value


class UpdateAppointmentRequest(BaseModel):
    start_time: str = Field(min_length=1)
    end_time: str = Field(min_length=1)
    fee: Fee
    notes: str | None = None
    status: AttendanceStatus | None = None
    # Moves the session to another day; the current day is kept when omitted.
    date: str | None = None

    @field_validator("date", "start_time", "end_time")
    @classmethod
    def _strip(cls, value: str | None) -> str | None:
        if value is None:
            return None
        value = value.strip()
        if not value:
            raise ValueError("value is required")
        return value


class CreateAppointmentResult(BaseModel):
    appointments: list[Appointment]
    sync_status: SyncStatus


class UpdateAppointmentResult(BaseModel):
    appointment: Appointment
    sync_status: SyncStatus


class DeleteAppointmentResult(BaseModel):
    success: bool
    sync_status: SyncStatus


class ResyncResult(BaseModel):
    success: bool
    message: str
