from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Protocol, Sequence

from fastapi import Depends
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.db import get_db
from app.errors import OpenSessionConflict, StorageError
from app.models import ClockEntryRow, ClockEntryStatus, LeaveRequestRow, LeaveStatus, WorkLogRow
from app.records import ClockEntry, LeaveRequest, WorkLog, WorkLogFilters


class ClockEntryRepository(Protocol):
    def create(self, entry: ClockEntry) -> ClockEntry:
        raise NotImplementedError

    def find_open_for_user(self, user_id: int) -> ClockEntry | None:
        raise NotImplementedError

    def find_by_id(self, entry_id: int) -> ClockEntry | None:
        raise NotImplementedError

    def update(self, entry: ClockEntry) -> ClockEntry:
        raise NotImplementedError

    def list_for_user(self, user_id: int, start: datetime, end: datetime) -> Sequence[ClockEntry]:
        """Entries whose clock_in falls in [start, end), newest first."""

        raise NotImplementedError

    def list_all(self, start: datetime, end: datetime) -> Sequence[ClockEntry]:
        raise NotImplementedError


class WorkLogRepository(Protocol):
    def create(self, log: WorkLog) -> WorkLog:
        raise NotImplementedError

    def update(self, log: WorkLog) -> WorkLog:
        raise NotImplementedError

    def delete(self, log_id: int) -> None:
        raise NotImplementedError

    def find_by_id(self, log_id: int) -> WorkLog | None:
        raise NotImplementedError

    def list_for_user(self, user_id: int, start: date, end: date) -> Sequence[WorkLog]:
        raise NotImplementedError

    def list_for_task(self, task_id: int) -> Sequence[WorkLog]:
        raise NotImplementedError

    def list_for_project(
        self,
        project_id: int,
        start: date | None = None,
        end: date | None = None,
    ) -> Sequence[WorkLog]:
        raise NotImplementedError

    def list_filtered(self, filters: WorkLogFilters) -> Sequence[WorkLog]:
        raise NotImplementedError


class LeaveRequestRepository(Protocol):
    def create(self, request: LeaveRequest) -> LeaveRequest:
        raise NotImplementedError

    def update(self, request: LeaveRequest) -> LeaveRequest:
        raise NotImplementedError

    def find_by_id(self, request_id: int) -> LeaveRequest | None:
        raise NotImplementedError

    def list_for_user(self, user_id: int) -> Sequence[LeaveRequest]:
        """Newest first."""

        raise NotImplementedError

    def list_by_status(self, status: LeaveStatus) -> Sequence[LeaveRequest]:
        """Oldest first, so reviewers work through the queue in order."""

        raise NotImplementedError

    def list_for_user_by_status(self, user_id: int, status: LeaveStatus) -> Sequence[LeaveRequest]:
        raise NotImplementedError


def _as_utc(value: datetime | None) -> datetime | None:
    # SQLite drops tzinfo on round trip; stored values are always UTC.
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def clock_entry_from_row(row: ClockEntryRow) -> ClockEntry:
    return ClockEntry(
        id=row.id,
        user_id=row.user_id,
        clock_in=_as_utc(row.clock_in),
        clock_out=_as_utc(row.clock_out),
        expected_clock_in=row.expected_clock_in,
        is_late=row.is_late,
        late_minutes=row.late_minutes,
        duration_minutes=row.duration_minutes,
        is_overtime=row.is_overtime,
        overtime_minutes=row.overtime_minutes,
        status=row.status,
        notes=row.notes,
        reviewed_by=row.reviewed_by,
        reviewed_at=_as_utc(row.reviewed_at),
    )


def work_log_from_row(row: WorkLogRow) -> WorkLog:
    return WorkLog(
        id=row.id,
        user_id=row.user_id,
        task_id=row.task_id,
        project_id=row.project_id,
        work_date=row.work_date,
        hours=row.hours,
        description=row.description,
        is_billable=row.is_billable,
        work_type=row.work_type,
        created_at=_as_utc(row.created_at),
    )


def leave_request_from_row(row: LeaveRequestRow) -> LeaveRequest:
    return LeaveRequest(
        id=row.id,
        user_id=row.user_id,
        leave_type=row.leave_type,
        start_date=row.start_date,
        end_date=row.end_date,
        total_days=row.total_days,
        reason=row.reason,
        status=row.status,
        reviewed_by=row.reviewed_by,
        reviewed_at=_as_utc(row.reviewed_at),
        review_notes=row.review_notes,
        created_at=_as_utc(row.created_at),
    )


class SqlClockEntryRepository:
    def __init__(self, db: Session):
        self.db = db

    def create(self, entry: ClockEntry) -> ClockEntry:
        row = ClockEntryRow(
            user_id=entry.user_id,
            clock_in=entry.clock_in,
            clock_out=entry.clock_out,
            expected_clock_in=entry.expected_clock_in,
            is_late=entry.is_late,
            late_minutes=entry.late_minutes,
            duration_minutes=entry.duration_minutes,
            is_overtime=entry.is_overtime,
            overtime_minutes=entry.overtime_minutes,
            status=entry.status,
            notes=entry.notes,
        )
        self.db.add(row)
        try:
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            if entry.status == ClockEntryStatus.IN_PROGRESS:
                raise OpenSessionConflict(f"open clock entry already exists for user {entry.user_id}") from exc
            raise StorageError("clock entry insert rejected") from exc
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise StorageError("clock entry insert failed") from exc
        self.db.refresh(row)
        return clock_entry_from_row(row)

    def find_open_for_user(self, user_id: int) -> ClockEntry | None:
        row = self._scalar(
            select(ClockEntryRow).where(
                ClockEntryRow.user_id == user_id,
                ClockEntryRow.status == ClockEntryStatus.IN_PROGRESS,
            )
        )
        return clock_entry_from_row(row) if row is not None else None

    def find_by_id(self, entry_id: int) -> ClockEntry | None:
        try:
            row = self.db.get(ClockEntryRow, entry_id)
        except SQLAlchemyError as exc:
            raise StorageError("clock entry lookup failed") from exc
        return clock_entry_from_row(row) if row is not None else None

    def update(self, entry: ClockEntry) -> ClockEntry:
        try:
            row = self.db.get(ClockEntryRow, entry.id)
            if row is None:
                raise StorageError(f"clock entry {entry.id} vanished before update")
            row.clock_out = entry.clock_out
            row.duration_minutes = entry.duration_minutes
            row.is_overtime = entry.is_overtime
            row.overtime_minutes = entry.overtime_minutes
            row.status = entry.status
            row.notes = entry.notes
            row.reviewed_by = entry.reviewed_by
            row.reviewed_at = entry.reviewed_at
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise StorageError("clock entry update failed") from exc
        self.db.refresh(row)
        return clock_entry_from_row(row)

    def list_for_user(self, user_id: int, start: datetime, end: datetime) -> list[ClockEntry]:
        rows = self._scalars(
            select(ClockEntryRow)
            .where(
                ClockEntryRow.user_id == user_id,
                ClockEntryRow.clock_in >= start,
                ClockEntryRow.clock_in < end,
            )
            .order_by(ClockEntryRow.clock_in.desc(), ClockEntryRow.id.desc())
        )
        return [clock_entry_from_row(row) for row in rows]

    def list_all(self, start: datetime, end: datetime) -> list[ClockEntry]:
        rows = self._scalars(
            select(ClockEntryRow)
            .where(ClockEntryRow.clock_in >= start, ClockEntryRow.clock_in < end)
            .order_by(ClockEntryRow.clock_in.desc(), ClockEntryRow.id.desc())
        )
        return [clock_entry_from_row(row) for row in rows]

    def _scalar(self, statement):  # type: ignore[no-untyped-def]
        try:
            return self.db.scalar(statement)
        except SQLAlchemyError as exc:
            raise StorageError("clock entry query failed") from exc

    def _scalars(self, statement):  # type: ignore[no-untyped-def]
        try:
            return list(self.db.scalars(statement).all())
        except SQLAlchemyError as exc:
            raise StorageError("clock entry query failed") from exc


class SqlWorkLogRepository:
    def __init__(self, db: Session):
        self.db = db

    def create(self, log: WorkLog) -> WorkLog:
        row = WorkLogRow(
            user_id=log.user_id,
            task_id=log.task_id,
            project_id=log.project_id,
            work_date=log.work_date,
            hours=log.hours,
            description=log.description,
            is_billable=log.is_billable,
            work_type=log.work_type,
        )
        self.db.add(row)
        self._commit("work log insert failed")
        self.db.refresh(row)
        return work_log_from_row(row)

    def update(self, log: WorkLog) -> WorkLog:
        row = self._get(log.id)
        if row is None:
            raise StorageError(f"work log {log.id} vanished before update")
        row.work_date = log.work_date
        row.hours = log.hours
        row.description = log.description
        row.is_billable = log.is_billable
        row.work_type = log.work_type
        self._commit("work log update failed")
        self.db.refresh(row)
        return work_log_from_row(row)

    def delete(self, log_id: int) -> None:
        row = self._get(log_id)
        if row is None:
            return
        self.db.delete(row)
        self._commit("work log delete failed")

    def find_by_id(self, log_id: int) -> WorkLog | None:
        row = self._get(log_id)
        return work_log_from_row(row) if row is not None else None

    def list_for_user(self, user_id: int, start: date, end: date) -> list[WorkLog]:
        return self.list_filtered(WorkLogFilters(user_id=user_id, start_date=start, end_date=end))

    def list_for_task(self, task_id: int) -> list[WorkLog]:
        return self.list_filtered(WorkLogFilters(task_id=task_id))

    def list_for_project(
        self,
        project_id: int,
        start: date | None = None,
        end: date | None = None,
    ) -> list[WorkLog]:
        return self.list_filtered(WorkLogFilters(project_id=project_id, start_date=start, end_date=end))

    def list_filtered(self, filters: WorkLogFilters) -> list[WorkLog]:
        stmt = select(WorkLogRow)
        if filters.user_id is not None:
            stmt = stmt.where(WorkLogRow.user_id == filters.user_id)
        if filters.task_id is not None:
            stmt = stmt.where(WorkLogRow.task_id == filters.task_id)
        if filters.project_id is not None:
            stmt = stmt.where(WorkLogRow.project_id == filters.project_id)
        if filters.start_date is not None:
            stmt = stmt.where(WorkLogRow.work_date >= filters.start_date)
        if filters.end_date is not None:
            stmt = stmt.where(WorkLogRow.work_date <= filters.end_date)
        stmt = stmt.order_by(WorkLogRow.work_date.desc(), WorkLogRow.created_at.desc(), WorkLogRow.id.desc())
        try:
            rows = self.db.scalars(stmt).all()
        except SQLAlchemyError as exc:
            raise StorageError("work log query failed") from exc
        return [work_log_from_row(row) for row in rows]

    def _get(self, log_id: int | None) -> WorkLogRow | None:
        if log_id is None:
            return None
        try:
            return self.db.get(WorkLogRow, log_id)
        except SQLAlchemyError as exc:
            raise StorageError("work log lookup failed") from exc

    def _commit(self, message: str) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise StorageError(message) from exc


class SqlLeaveRequestRepository:
    def __init__(self, db: Session):
        self.db = db

    def create(self, request: LeaveRequest) -> LeaveRequest:
        row = LeaveRequestRow(
            user_id=request.user_id,
            leave_type=request.leave_type,
            start_date=request.start_date,
            end_date=request.end_date,
            total_days=request.total_days,
            reason=request.reason,
            status=request.status,
        )
        self.db.add(row)
        self._commit("leave request insert failed")
        self.db.refresh(row)
        return leave_request_from_row(row)

    def update(self, request: LeaveRequest) -> LeaveRequest:
        row = self._get(request.id)
        if row is None:
            raise StorageError(f"leave request {request.id} vanished before update")
        row.status = request.status
        row.reviewed_by = request.reviewed_by
        row.reviewed_at = request.reviewed_at
        row.review_notes = request.review_notes
        self._commit("leave request update failed")
        self.db.refresh(row)
        return leave_request_from_row(row)

    def find_by_id(self, request_id: int) -> LeaveRequest | None:
        row = self._get(request_id)
        return leave_request_from_row(row) if row is not None else None

    def list_for_user(self, user_id: int) -> list[LeaveRequest]:
        return self._list(
            select(LeaveRequestRow)
            .where(LeaveRequestRow.user_id == user_id)
            .order_by(LeaveRequestRow.created_at.desc(), LeaveRequestRow.id.desc())
        )

    def list_by_status(self, status: LeaveStatus) -> list[LeaveRequest]:
        return self._list(
            select(LeaveRequestRow)
            .where(LeaveRequestRow.status == status)
            .order_by(LeaveRequestRow.created_at.asc(), LeaveRequestRow.id.asc())
        )

    def list_for_user_by_status(self, user_id: int, status: LeaveStatus) -> list[LeaveRequest]:
        return self._list(
            select(LeaveRequestRow)
            .where(LeaveRequestRow.user_id == user_id, LeaveRequestRow.status == status)
            .order_by(LeaveRequestRow.start_date.asc(), LeaveRequestRow.id.asc())
        )

    def _list(self, statement):  # type: ignore[no-untyped-def]
        try:
            rows = self.db.scalars(statement).all()
        except SQLAlchemyError as exc:
            raise StorageError("leave request query failed") from exc
        return [leave_request_from_row(row) for row in rows]

    def _get(self, request_id: int | None) -> LeaveRequestRow | None:
        if request_id is None:
            return None
        try:
            return self.db.get(LeaveRequestRow, request_id)
        except SQLAlchemyError as exc:
            raise StorageError("leave request lookup failed") from exc

    def _commit(self, message: str) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise StorageError(message) from exc


def get_clock_entry_repository(db: Session = Depends(get_db)) -> ClockEntryRepository:
    return SqlClockEntryRepository(db)


def get_work_log_repository(db: Session = Depends(get_db)) -> WorkLogRepository:
    return SqlWorkLogRepository(db)


def get_leave_request_repository(db: Session = Depends(get_db)) -> LeaveRequestRepository:
    return SqlLeaveRequestRepository(db)
