from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time
from decimal import Decimal

from app.models import ClockEntryStatus, LeaveStatus, LeaveType, WorkLogType


@dataclass(frozen=True, slots=True)
class ClockEntry:
    id: int | None
    user_id: int
    clock_in: datetime
    expected_clock_in: time
    clock_out: datetime | None = None
    is_late: bool = False
    late_minutes: int = 0
    duration_minutes: int | None = None
    is_overtime: bool = False
    overtime_minutes: int = 0
    status: ClockEntryStatus = ClockEntryStatus.IN_PROGRESS
    notes: str | None = None
    reviewed_by: int | None = None
    reviewed_at: datetime | None = None

    @property
    def is_open(self) -> bool:
        return self.status == ClockEntryStatus.IN_PROGRESS


@dataclass(frozen=True, slots=True)
class WorkLog:
    id: int | None
    user_id: int
    work_date: date
    hours: Decimal
    task_id: int | None = None
    project_id: int | None = None
    description: str | None = None
    is_billable: bool = False
    work_type: WorkLogType = WorkLogType.REGULAR
    created_at: datetime | None = None


@dataclass(frozen=True, slots=True)
class WorkLogInput:
    work_date: date | None
    hours: Decimal | None
    user_id: int | None = None
    task_id: int | None = None
    project_id: int | None = None
    description: str | None = None
    is_billable: bool = False
    work_type: WorkLogType = WorkLogType.REGULAR


@dataclass(frozen=True, slots=True)
class WorkLogPatch:
    work_date: date | None = None
    hours: Decimal | None = None
    description: str | None = None
    is_billable: bool | None = None
    work_type: WorkLogType | None = None
    clear_description: bool = False


@dataclass(frozen=True, slots=True)
class WorkLogFilters:
    user_id: int | None = None
    task_id: int | None = None
    project_id: int | None = None
    start_date: date | None = None
    end_date: date | None = None


@dataclass(frozen=True, slots=True)
class LeaveRequest:
    id: int | None
    user_id: int
    leave_type: LeaveType
    start_date: date
    end_date: date
    total_days: int
    reason: str | None = None
    status: LeaveStatus = LeaveStatus.PENDING
    reviewed_by: int | None = None
    reviewed_at: datetime | None = None
    review_notes: str | None = None
    created_at: datetime | None = None

    def overlaps(self, start_date: date, end_date: date) -> bool:
        # Both ends inclusive.
        return self.start_date <= end_date and start_date <= self.end_date
