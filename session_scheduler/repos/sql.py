"""SQLAlchemy-backed appointment store."""

from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime
from typing import Any, Iterator, Sequence

from sqlalchemy import (
    Column,
    DateTime,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    create_engine,
    select,
    text,
)
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from session_scheduler.domain.errors import NotFoundError, SchedulingConflictError
from session_scheduler.domain.models import (
    Appointment,
    AppointmentDraft,
    AttendanceStatus,
)
from session_scheduler.services.intervals import overlaps

Base = declarative_base()


class AppointmentRow(Base):
    """Represents a persisted coaching session."""

    __tablename__ = "appointments"
    __table_args__ = (
        Index("idx_appointments_subject_range", "subject_id", "start_time", "end_time"),
    )

    id = Column(Integer, primary_key=True)
    subject_id = Column(Integer, nullable=False)
    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=False)
    fee = Column(Numeric(10, 2), nullable=False, default=0)
    notes = Column(Text)
    status = Column(String, nullable=False, default=AttendanceStatus.NOT_ATTENDED.value)
    external_event_id = Column(String)


def _to_model(row: AppointmentRow) -> Appointment:
    return Appointment.model_validate(row, from_attributes=True)


class SqlAppointmentRepository:
    """Appointment store over any SQLAlchemy engine.

    Each write runs in its own session transaction and re-checks the
    subject's schedule before committing. On PostgreSQL the re-check is
    guarded by a transaction-scoped advisory lock on the subject id, so two
    processes booking the same subject are serialized.
    """

    def __init__(self, session_factory: sessionmaker) -> None:
        self._session_factory = session_factory

    @contextmanager
    def _transaction(self) -> Iterator[Session]:
        with self._session_factory() as session:
            with session.begin():
                yield session

    def get(self, appointment_id: int) -> Appointment | None:
        with self._session_factory() as session:
            row = session.get(AppointmentRow, appointment_id)
            return _to_model(row) if row else None

    def list_all(
        self,
        subject_id: int | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[Appointment]:
        query = select(AppointmentRow)
        if subject_id is not None:
            query = query.where(AppointmentRow.subject_id == subject_id)
        if start is not None:
            query = query.where(AppointmentRow.start_time >= start)
        if end is not None:
            query = query.where(AppointmentRow.end_time <= end)
        query = query.order_by(AppointmentRow.start_time.desc())

        with self._session_factory() as session:
            return [_to_model(row) for row in session.scalars(query)]

    def find_overlapping(
        self,
        subject_id: int,
        range_start: datetime,
        range_end: datetime,
        exclude_id: int | None = None,
    ) -> list[Appointment]:
        with self._session_factory() as session:
            rows = self._overlapping(
                session, subject_id, range_start, range_end, exclude_id
            )
            return [_to_model(row) for row in rows]

    def create_many(self, drafts: Sequence[AppointmentDraft]) -> list[Appointment]:
        """Insert every draft in one transaction, or none of them."""
        with self._transaction() as session:
            for subject_id in sorted({d.subject_id for d in drafts}):
                self._lock_subject(session, subject_id)

            pending: list[AppointmentDraft] = []
            for draft in drafts:
                clashes = self._overlapping(
                    session, draft.subject_id, draft.start_time, draft.end_time
                )
                clash_in_batch = any(
                    other.subject_id == draft.subject_id
                    and overlaps(
                        draft.start_time, draft.end_time, other.start_time, other.end_time
                    )
                    for other in pending
                )
                if clashes or clash_in_batch:
                    raise SchedulingConflictError([row.id for row in clashes])
                pending.append(draft)

            rows = [AppointmentRow(**draft.model_dump()) for draft in pending]
            session.add_all(rows)
            session.flush()
            return [_to_model(row) for row in rows]

    def update(self, appointment_id: int, **fields: Any) -> Appointment:
        with self._transaction() as session:
            row = session.get(AppointmentRow, appointment_id)
            if row is None:
                raise NotFoundError(appointment_id)

            self._lock_subject(session, row.subject_id)
            updated = Appointment.model_validate({**_to_model(row).model_dump(), **fields})
            if (updated.start_time, updated.end_time) != (row.start_time, row.end_time):
                clashes = self._overlapping(
                    session,
                    row.subject_id,
                    updated.start_time,
                    updated.end_time,
                    exclude_id=appointment_id,
                )
                if clashes:
                    raise SchedulingConflictError([r.id for r in clashes])

            for name, value in updated.model_dump(exclude={"id"}).items():
                setattr(row, name, value)
            session.flush()
            return _to_model(row)

    def delete(self, appointment_id: int) -> Appointment | None:
        with self._transaction() as session:
            row = session.get(AppointmentRow, appointment_id)
            if row is None:
                return None
            deleted = _to_model(row)
            session.delete(row)
            return deleted

    def set_external_event_ids(self, references: dict[int, str]) -> list[int]:
        with self._transaction() as session:
            annotated = []
            for appointment_id, external_id in references.items():
                row = session.get(AppointmentRow, appointment_id)
                if row is None:
                    continue
                row.external_event_id = external_id
                annotated.append(appointment_id)
            return annotated

    def _overlapping(
        self,
        session: Session,
        subject_id: int,
        range_start: datetime,
        range_end: datetime,
        exclude_id: int | None = None,
    ) -> list[AppointmentRow]:
        query = select(AppointmentRow).where(
            AppointmentRow.subject_id == subject_id,
            AppointmentRow.start_time < range_end,
            AppointmentRow.end_time > range_start,
        )
        if exclude_id is not None:
            query = query.where(AppointmentRow.id != exclude_id)
        return list(session.scalars(query))

    @staticmethod
    def _lock_subject(session: Session, subject_id: int) -> None:
        if session.get_bind().dialect.name == "postgresql":
            session.execute(
                text("SELECT pg_advisory_xact_lock(:key)"), {"key": subject_id}
            )


def create_engine_for(database_url: str) -> Engine:
    if database_url.startswith("sqlite"):
        kwargs: dict[str, Any] = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in database_url or database_url in ("sqlite://", "sqlite:///"):
            kwargs["poolclass"] = StaticPool
        return create_engine(database_url, **kwargs)
    return create_engine(database_url)


def create_sql_repository(database_url: str) -> SqlAppointmentRepository:
    """Build an engine, create the schema if needed and wrap it in a repository."""
    engine = create_engine_for(database_url)
    Base.metadata.create_all(bind=engine)
    session_factory = sessionmaker(
        bind=engine, autoflush=False, expire_on_commit=False
    )
    return SqlAppointmentRepository(session_factory)
