"""In-memory appointment store."""

from __future__ import annotations

import itertools
import threading
from datetime import datetime
from typing import Any, Sequence

from session_scheduler.domain.errors import NotFoundError, SchedulingConflictError
from session_scheduler.domain.models import Appointment, AppointmentDraft
from session_scheduler.services.intervals import overlaps


class AppointmentRepository:
    """Dict-backed store for Appointment instances, keyed by id.

    Every public method holds one re-entrant lock, so each call behaves like
    a serializable transaction. Stored instances are copied on the way in
    and out; callers never share a mutable row with the store.
    """

    def __init__(self) -> None:
        self._store: dict[int, Appointment] = {}
        self._ids = itertools.count(1)
        self._lock = threading.RLock()

    def get(self, appointment_id: int) -> Appointment | None:
        with self._lock:
            stored = self._store.get(appointment_id)
            return stored.model_copy() if stored else None

    def list_all(
        self,
        subject_id: int | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[Appointment]:
        with self._lock:
            rows = [
                a.model_copy()
                for a in self._store.values()
                if (subject_id is None or a.subject_id == subject_id)
                and (start is None or a.start_time >= start)
                and (end is None or a.end_time <= end)
            ]
        return sorted(rows, key=lambda a: a.start_time, reverse=True)

    def find_overlapping(
        self,
        subject_id: int,
        range_start: datetime,
        range_end: datetime,
        exclude_id: int | None = None,
    ) -> list[Appointment]:
        with self._lock:
            return [
                a.model_copy()
                for a in self._overlapping(subject_id, range_start, range_end)
                if a.id != exclude_id
            ]

    def create_many(self, drafts: Sequence[AppointmentDraft]) -> list[Appointment]:
        """Persist every draft or none of them."""
        with self._lock:
            pending: list[AppointmentDraft] = []
            for draft in drafts:
                clashes = [
                    a.id
                    for a in self._overlapping(
                        draft.subject_id, draft.start_time, draft.end_time
                    )
                ]
                if clashes or any(_same_slot(draft, other) for other in pending):
                    raise SchedulingConflictError(clashes)
                pending.append(draft)

            created = [
                Appointment(id=next(self._ids), **draft.model_dump()) for draft in pending
            ]
            for appointment in created:
                self._store[appointment.id] = appointment
            return [a.model_copy() for a in created]

    def update(self, appointment_id: int, **fields: Any) -> Appointment:
        with self._lock:
            stored = self._store.get(appointment_id)
            if stored is None:
                raise NotFoundError(appointment_id)

            updated = Appointment.model_validate({**stored.model_dump(), **fields})
            if (updated.start_time, updated.end_time) != (
                stored.start_time,
                stored.end_time,
            ):
                clashes = [
                    a.id
                    for a in self._overlapping(
                        updated.subject_id, updated.start_time, updated.end_time
                    )
                    if a.id != appointment_id
                ]
                if clashes:
                    raise SchedulingConflictError(clashes)

            self._store[appointment_id] = updated
            return updated.model_copy()

    def delete(self, appointment_id: int) -> Appointment | None:
        with self._lock:
            return self._store.pop(appointment_id, None)

    def set_external_event_ids(self, references: dict[int, str]) -> list[int]:
        """Annotate rows with their external references.

        Rows deleted in the meantime are skipped. Returns the ids annotated.
        """
        with self._lock:
            annotated = []
            for appointment_id, external_id in references.items():
                stored = self._store.get(appointment_id)
                if stored is None:
                    continue
                self._store[appointment_id] = stored.model_copy(
                    update={"external_event_id": external_id}
                )
                annotated.append(appointment_id)
            return annotated

    def _overlapping(
        self, subject_id: int, range_start: datetime, range_end: datetime
    ) -> list[Appointment]:
        return [
            a
            for a in self._store.values()
            if a.subject_id == subject_id
            and overlaps(range_start, range_end, a.start_time, a.end_time)
        ]


def _same_slot(a: AppointmentDraft, b: AppointmentDraft) -> bool:
    return a.subject_id == b.subject_id and overlaps(
        a.start_time, a.end_time, b.start_time, b.end_time
    )
