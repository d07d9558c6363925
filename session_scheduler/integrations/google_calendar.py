"""
Google Calendar client
Creates, updates and deletes mirrored session events over the Calendar v3 REST API
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Protocol, Sequence, runtime_checkable
from urllib.parse import quote

import httpx
from google.auth.credentials import Credentials
from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import Request
from google.oauth2 import service_account

from session_scheduler.domain.errors import CalendarSyncError
from session_scheduler.domain.models import (
    BulkCreateResult,
    CalendarEventDescription,
    CreatedCalendarEvent,
)

logger = logging.getLogger(__name__)

GOOGLE_CALENDAR_API = "https://www.googleapis.com/calendar/v3"
GOOGLE_TOKEN_URI = "https://oauth2.googleapis.com/token"
CALENDAR_SCOPES = ["https://www.googleapis.com/auth/calendar"]


@runtime_checkable
class CalendarClient(Protocol):
    """What the sync coordinator needs from an external calendar."""

    def create_event(self, event: CalendarEventDescription) -> CreatedCalendarEvent: ...

    def create_events_bulk(
        self, events: Sequence[CalendarEventDescription]
    ) -> list[BulkCreateResult]: ...

    def update_event(self, event_id: str, event: CalendarEventDescription) -> None: ...

    def delete_event(self, event_id: str) -> None: ...


class GoogleCalendarError(CalendarSyncError):
    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


def service_account_credentials(
    client_email: str | None = None,
    private_key: str | None = None,
    key_file: str | None = None,
) -> Credentials:
    """Credentials for a service account the calendar has been shared with.

    Either a JSON key file or the account email plus its PEM private key.
    Keys copied from env files often carry literal ``\\n`` sequences; those are
    turned back into newlines.
    """
    if key_file:
        return service_account.Credentials.from_service_account_file(
            key_file, scopes=CALENDAR_SCOPES
        )
    if not (client_email and private_key):
        raise ValueError("A service account email and private key are required")
    info = {
        "type": "service_account",
        "client_email": client_email,
        "private_key": private_key.replace("\\n", "\n"),
        "token_uri": GOOGLE_TOKEN_URI,
    }
    return service_account.Credentials.from_service_account_info(info, scopes=CALENDAR_SCOPES)


class GoogleCalendarClient:
    """Thin wrapper around the events endpoints of one Google calendar.

    Access tokens are taken from *credentials* and refreshed when they expire
    or when Google answers 401.
    """

    def __init__(
        self,
        calendar_id: str,
        credentials: Credentials,
        time_zone: str = "America/New_York",
        base_url: str = GOOGLE_CALENDAR_API,
        timeout: float = 10.0,
        batch_size: int = 10,
        http_client: httpx.Client | None = None,
        auth_request: Any = None,
    ) -> None:
        self.calendar_id = calendar_id
        self.time_zone = time_zone
        self.batch_size = max(1, batch_size)
        self._http = http_client or httpx.Client(timeout=timeout)
        self._events_url = f"{base_url.rstrip('/')}/calendars/{quote(calendar_id, safe='')}/events"
        self._credentials = credentials
        self._auth_request = auth_request or Request()
        self._auth_lock = threading.Lock()

    def close(self) -> None:
        self._http.close()

    # ------------------------------------------------------------------
    # CalendarClient
    # ------------------------------------------------------------------

    def create_event(self, event: CalendarEventDescription) -> CreatedCalendarEvent:
        data = self._request("POST", self._events_url, json=self._body(event))
        event_id = data.get("id")
        if not isinstance(event_id, str) or not event_id:
            raise GoogleCalendarError("Google Calendar returned no event id")
        return CreatedCalendarEvent(id=event_id)

    def create_events_bulk(
        self, events: Sequence[CalendarEventDescription]
    ) -> list[BulkCreateResult]:
        """Create events concurrently, ``batch_size`` at a time.

        A failed item is recorded and the rest still go out. The result list
        is aligned with *events*.
        """
        results: list[BulkCreateResult] = []
        with ThreadPoolExecutor(max_workers=self.batch_size) as pool:
            for offset in range(0, len(events), self.batch_size):
                chunk = events[offset : offset + self.batch_size]
                results.extend(pool.map(self._create_recording_failure, chunk))
        return results

    def update_event(self, event_id: str, event: CalendarEventDescription) -> None:
        self._request("PATCH", self._event_url(event_id), json=self._body(event))

    def delete_event(self, event_id: str) -> None:
        try:
            self._request("DELETE", self._event_url(event_id))
        except GoogleCalendarError as exc:
            if exc.status_code in (404, 410):
                logger.info(f"Google Calendar event {event_id} was already removed")
                return
            raise

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _create_recording_failure(self, event: CalendarEventDescription) -> BulkCreateResult:
        try:
            created = self.create_event(event)
        except Exception as exc:
            logger.error(f"Error adding event {event.title!r} to Google Calendar: {exc}")
            return BulkCreateResult(success=False, error=str(exc))
        return BulkCreateResult(success=True, id=created.id)

    def _event_url(self, event_id: str) -> str:
        return f"{self._events_url}/{quote(event_id, safe='')}"

    def _body(self, event: CalendarEventDescription) -> dict[str, Any]:
        return {
            "summary": event.title,
            "description": event.description or "",
            "location": event.location or "",
            "start": {"dateTime": event.start.isoformat(), "timeZone": self.time_zone},
            "end": {"dateTime": event.end.isoformat(), "timeZone": self.time_zone},
        }

    def _auth_headers(self, force_refresh: bool = False) -> dict[str, str]:
        with self._auth_lock:
            if force_refresh or not self._credentials.valid:
                try:
                    self._credentials.refresh(self._auth_request)
                except GoogleAuthError as exc:
                    raise GoogleCalendarError(
                        f"Could not refresh Google credentials: {exc}"
                    ) from exc
            return {"Authorization": f"Bearer {self._credentials.token}"}

    def _request(self, method: str, url: str, **kwargs: Any) -> dict[str, Any]:
        try:
            response = self._http.request(method, url, headers=self._auth_headers(), **kwargs)
            if response.status_code == 401:
                logger.warning("Google Calendar rejected the access token, refreshing")
                response = self._http.request(
                    method, url, headers=self._auth_headers(force_refresh=True), **kwargs
                )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise GoogleCalendarError(
                f"Google Calendar returned {exc.response.status_code} for {method} {url}",
                status_code=exc.response.status_code,
            ) from exc
        except httpx.HTTPError as exc:
            raise GoogleCalendarError(f"Google Calendar request failed: {exc}") from exc

        if not response.content:
            return {}
        try:
            data = response.json()
        except ValueError as exc:
            raise GoogleCalendarError(
                f"Google Calendar sent an unreadable body for {method} {url}",
                status_code=response.status_code,
            ) from exc
        if not isinstance(data, dict):
            raise GoogleCalendarError(
                f"Google Calendar sent an unexpected body for {method} {url}",
                status_code=response.status_code,
            )
        return data
