"""Best-effort mirroring of committed appointments to an external calendar.

The appointment store is authoritative. Nothing in this module raises on a
calendar failure or rolls back a booking; failures are logged and reported
back as a ``SyncStatus``.
"""

from __future__ import annotations

import logging
from typing import Sequence

from session_scheduler.domain.models import (
    Appointment,
    CalendarEventDescription,
    ResyncResult,
    SyncStatus,
)
from session_scheduler.integrations.google_calendar import CalendarClient

logger = logging.getLogger(__name__)

DEFAULT_EVENT_TITLE = "Training Session"
SYNC_DISABLED = "Calendar sync is disabled"


class CalendarSyncCoordinator:
    def __init__(
        self,
        store,
        client: CalendarClient | None = None,
        event_title: str = DEFAULT_EVENT_TITLE,
    ) -> None:
        self.store = store
        self.client = client
        self.event_title = event_title

    @property
    def enabled(self) -> bool:
        return self.client is not None

    def describe(self, appointment: Appointment) -> CalendarEventDescription:
        lines = [f"Member #{appointment.subject_id}"]
        if appointment.notes:
            lines.append(appointment.notes)
        return CalendarEventDescription(
            title=self.event_title,
            description="\n".join(lines),
            start=appointment.start_time,
            end=appointment.end_time,
        )

    # ------------------------------------------------------------------
    # Batch path
    # ------------------------------------------------------------------

    def sync_created(
        self, appointments: Sequence[Appointment]
    ) -> tuple[list[Appointment], SyncStatus]:
        """Mirror a freshly committed batch with one bulk call.

        Returns the appointments (with any external ids filled in) and one
        status that is successful only if every item synced.
        """
        appointments = list(appointments)
        if not self.enabled:
            return appointments, SyncStatus(success=True, message=SYNC_DISABLED)

        total = len(appointments)
        try:
            results = self.client.create_events_bulk(
                [self.describe(a) for a in appointments]
            )
            references: dict[int, str] = {}
            for index, appointment in enumerate(appointments):
                result = results[index] if index < len(results) else None
                if result is not None and result.success and result.id:
                    references[appointment.id] = result.id

            if references:
                self.store.set_external_event_ids(references)
        except Exception:
            logger.exception("Error syncing %d appointment(s) with the calendar", total)
            return appointments, SyncStatus(
                success=False,
                message="Failed to sync with the calendar. Appointments were saved.",
                success_count=0,
                failed_count=total,
                total_count=total,
            )

        synced = [
            a.model_copy(update={"external_event_id": references[a.id]})
            if a.id in references
            else a
            for a in appointments
        ]
        success_count = len(references)
        failed_count = total - success_count

        if failed_count:
            logger.warning(
                "%d out of %d appointments failed to sync with the calendar",
                failed_count,
                total,
            )
            status = SyncStatus(
                success=False,
                message=f"{failed_count} out of {total} appointments failed to sync with the calendar",
                success_count=success_count,
                failed_count=failed_count,
                total_count=total,
            )
        else:
            logger.info("Synced all %d appointments to the calendar", total)
            status = SyncStatus(
                success=True,
                message=f"Successfully synced all {total} appointments to the calendar",
                success_count=success_count,
                failed_count=0,
                total_count=total,
            )
        return synced, status

    # ------------------------------------------------------------------
    # Single-instance path
    # ------------------------------------------------------------------

    def sync_one(self, appointment: Appointment) -> tuple[Appointment, SyncStatus]:
        """Update the mirrored event if there is one, otherwise create it."""
        if not self.enabled:
            return appointment, SyncStatus(success=True, message=SYNC_DISABLED)

        event = self.describe(appointment)
        try:
            if appointment.external_event_id:
                self.client.update_event(appointment.external_event_id, event)
                return appointment, SyncStatus(
                    success=True, message="Calendar event updated"
                )

            created = self.client.create_event(event)
            if not created.id:
                raise ValueError("Calendar did not return an event id")
            self.store.set_external_event_ids({appointment.id: created.id})
        except Exception as exc:
            logger.exception("Error syncing appointment %s with the calendar", appointment.id)
            return appointment, SyncStatus(
                success=False, message=f"Failed to sync with the calendar: {exc}"
            )

        synced = appointment.model_copy(update={"external_event_id": created.id})
        return synced, SyncStatus(success=True, message="Synced to the calendar")

    def resync(self, appointment: Appointment) -> ResyncResult:
        if not self.enabled:
            return ResyncResult(success=False, message="Calendar sync is not configured")
        _, status = self.sync_one(appointment)
        return ResyncResult(success=status.success, message=status.message or "")

    # ------------------------------------------------------------------
    # Delete path
    # ------------------------------------------------------------------

    def sync_deleted(self, external_event_id: str | None) -> SyncStatus:
        if not external_event_id:
            return SyncStatus(success=True)
        if not self.enabled:
            return SyncStatus(success=True, message=SYNC_DISABLED)

        try:
            self.client.delete_event(external_event_id)
        except Exception:
            logger.exception("Error deleting calendar event %s", external_event_id)
            return SyncStatus(
                success=False,
                message=(
                    "Failed to delete from the calendar. "
                    "Appointment was removed from the system."
                ),
            )
        return SyncStatus(success=True, message="Calendar event deleted")
