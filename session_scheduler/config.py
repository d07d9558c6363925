"""Runtime configuration read from the environment (and an optional .env file)."""

from __future__ import annotations

import logging
import os

from dotenv import load_dotenv
from pydantic import BaseModel, Field

from session_scheduler.integrations.google_calendar import GOOGLE_CALENDAR_API


def _get_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


class Settings(BaseModel):
    database_url: str | None = None
    google_calendar_id: str | None = None
    google_service_account_email: str | None = None
    google_service_account_private_key: str | None = None
    google_service_account_file: str | None = None
    calendar_sync_enabled: bool = True
    calendar_time_zone: str = "America/New_York"
    calendar_api_base_url: str = GOOGLE_CALENDAR_API
    calendar_timeout_seconds: float = Field(default=10.0, gt=0)
    calendar_batch_size: int = Field(default=10, ge=1)
    session_event_title: str = "Training Session"
    log_level: str = "INFO"

    @property
    def calendar_configured(self) -> bool:
        return bool(
            self.calendar_sync_enabled
            and self.google_calendar_id
            and (
                self.google_service_account_file
                or (self.google_service_account_email and self.google_service_account_private_key)
            )
        )


def load_settings() -> Settings:
    load_dotenv()
    values = {
        "database_url": os.getenv("DATABASE_URL"),
        "google_calendar_id": os.getenv("GOOGLE_CALENDAR_ID"),
        "google_service_account_email": os.getenv("GOOGLE_SERVICE_ACCOUNT_EMAIL"),
        "google_service_account_private_key": os.getenv("GOOGLE_SERVICE_ACCOUNT_PRIVATE_KEY"),
        "google_service_account_file": os.getenv("GOOGLE_SERVICE_ACCOUNT_FILE"),
        "calendar_sync_enabled": _get_bool(os.getenv("CALENDAR_SYNC_ENABLED"), default=True),
        "calendar_time_zone": os.getenv("CALENDAR_TIME_ZONE"),
        "calendar_api_base_url": os.getenv("CALENDAR_API_BASE_URL"),
        "calendar_timeout_seconds": os.getenv("CALENDAR_TIMEOUT_SECONDS"),
        "calendar_batch_size": os.getenv("CALENDAR_BATCH_SIZE"),
        "session_event_title": os.getenv("SESSION_EVENT_TITLE"),
        "log_level": os.getenv("LOG_LEVEL"),
    }
    return Settings(**{key: value for key, value in values.items() if value is not None})


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
