"""All-or-nothing persistence of appointments with conflict re-checks."""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from datetime import datetime
from decimal import Decimal
from typing import Iterator, Sequence

from session_scheduler.domain.errors import (
    InvalidStatusTransitionError,
    NotFoundError,
)
from session_scheduler.domain.models import (
    Appointment,
    AppointmentDraft,
    AttendanceStatus,
    CandidateInterval,
)
from session_scheduler.services.conflicts import (
    ensure_batch_is_free,
    ensure_slot_is_free,
)
from session_scheduler.services.intervals import validate_range

logger = logging.getLogger(__name__)

_ALLOWED_TRANSITIONS = {
    AttendanceStatus.NOT_ATTENDED: {
        AttendanceStatus.NOT_ATTENDED,
        AttendanceStatus.ATTENDED,
    },
    AttendanceStatus.ATTENDED: {AttendanceStatus.ATTENDED},
}


class SubjectLocks:
    """Per-subject locks so check-then-commit runs one request at a time.

    A lock lives only while some request holds or waits on it.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        # subject_id -> [lock, holders]
        self._locks: dict[int, list] = {}

    def __len__(self) -> int:
        return len(self._locks)

    @contextmanager
    def hold(self, subject_id: int) -> Iterator[None]:
        with self._guard:
            entry = self._locks.setdefault(subject_id, [threading.Lock(), 0])
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._locks[subject_id]


def ensure_status_transition(
    current: AttendanceStatus, requested: AttendanceStatus | None
) -> None:
    if requested is None:
        return
    if requested not in _ALLOWED_TRANSITIONS[current]:
        raise InvalidStatusTransitionError(
            f"Cannot change attendance from {current} to {requested}"
        )


class SchedulingTransactionManager:
    """Single entry point for every write to the appointment store."""

    def __init__(self, store, locks: SubjectLocks | None = None) -> None:
        self.store = store
        self.locks = locks if locks is not None else SubjectLocks()

    def create_batch(self, drafts: Sequence[AppointmentDraft]) -> list[Appointment]:
        """Persist every draft as one unit and return them in input order.

        The conflict check and the commit run under the subject's lock; the
        store re-verifies the schedule inside its own transaction as well.
        """
        if not drafts:
            raise ValueError("create_batch() needs at least one draft")
        subject_ids = {d.subject_id for d in drafts}
        if len(subject_ids) != 1:
            raise ValueError("create_batch() drafts must share one subject")
        subject_id = subject_ids.pop()

        candidates = []
        for draft in drafts:
            validate_range(draft.start_time, draft.end_time)
            candidates.append(CandidateInterval(start=draft.start_time, end=draft.end_time))

        with self.locks.hold(subject_id):
            ensure_batch_is_free(self.store, subject_id, candidates)
            created = self.store.create_many(list(drafts))

        logger.info(
            "Booked %d appointment(s) for subject %s", len(created), subject_id
        )
        return created

    def update_one(
        self,
        appointment_id: int,
        start: datetime,
        end: datetime,
        fee: Decimal,
        notes: str | None,
        status: AttendanceStatus | None = None,
    ) -> Appointment:
        current = self.store.get(appointment_id)
        if current is None:
            raise NotFoundError(appointment_id)

        validate_range(start, end)
        ensure_status_transition(current.status, status)

        fields = {"start_time": start, "end_time": end, "fee": fee, "notes": notes}
        if status is not None:
            fields["status"] = status

        with self.locks.hold(current.subject_id):
            ensure_slot_is_free(self.store, appointment_id, current.subject_id, start, end)
            updated = self.store.update(appointment_id, **fields)

        logger.info("Updated appointment %s", appointment_id)
        return updated

    def delete_one(self, appointment_id: int) -> str | None:
        """Delete the row and return the external reference it held."""
        current = self.store.get(appointment_id)
        if current is None:
            raise NotFoundError(appointment_id)

        with self.locks.hold(current.subject_id):
            deleted = self.store.delete(appointment_id)
        if deleted is None:
            raise NotFoundError(appointment_id)

        logger.info("Deleted appointment %s", appointment_id)
        return deleted.external_event_id
