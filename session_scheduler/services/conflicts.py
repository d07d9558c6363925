"""Service for detecting scheduling conflicts for a single subject."""

from __future__ import annotations

from datetime import datetime
from typing import Sequence

from session_scheduler.domain.errors import SchedulingConflictError
from session_scheduler.domain.models import Appointment, CandidateInterval
from session_scheduler.services.intervals import overlaps


def find_conflicts(
    new_start: datetime,
    new_end: datetime,
    existing: Sequence[Appointment],
) -> list[Appointment]:
    """Return existing appointments that overlap with the given time range.

    Overlap rule: conflict if new_start < existing.end_time AND
    new_end > existing.start_time. Exact boundary touches are NOT conflicts.
    """
    return [
        appointment
        for appointment in existing
        if overlaps(new_start, new_end, appointment.start_time, appointment.end_time)
    ]


def batch_span(candidates: Sequence[CandidateInterval]) -> tuple[datetime, datetime]:
    """Return ``(earliest start, latest end)`` across the candidates."""
    if not candidates:
        raise ValueError("batch_span() needs at least one candidate")
    return (
        min(c.start for c in candidates),
        max(c.end for c in candidates),
    )


def ensure_batch_is_free(
    store, subject_id: int, candidates: Sequence[CandidateInterval]
) -> None:
    """Reject the whole batch if any candidate overlaps an existing appointment.

    Existing appointments are fetched with one range query over the batch's
    overall span and compared pairwise in memory.
    """
    earliest_start, latest_end = batch_span(candidates)
    existing = store.find_overlapping(subject_id, earliest_start, latest_end)
    if not existing:
        return

    conflicting_ids: set[int] = set()
    for candidate in candidates:
        for appointment in find_conflicts(candidate.start, candidate.end, existing):
            conflicting_ids.add(appointment.id)

    if conflicting_ids:
        raise SchedulingConflictError(sorted(conflicting_ids))


def ensure_slot_is_free(
    store,
    appointment_id: int,
    subject_id: int,
    start: datetime,
    end: datetime,
) -> None:
    """Single-instance check that ignores the appointment being moved."""
    others = store.find_overlapping(subject_id, start, end, exclude_id=appointment_id)
    conflicts = find_conflicts(start, end, others)
    if conflicts:
        raise SchedulingConflictError([a.id for a in conflicts])
