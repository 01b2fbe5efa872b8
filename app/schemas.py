from __future__ import annotations

from datetime import date, datetime, time
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from app.models import ClockEntryStatus, LeaveStatus, LeaveType, WorkLogType
from app.records import WorkLog
from app.services.aggregation import AttendanceStats, DailyWorkSummary, ProjectTimeStats, UserTimeStats
from app.services.leaves import LeaveBalance


class ClockInRequest(BaseModel):
    expected_clock_in: time | None = None
    notes: str | None = Field(default=None, max_length=2000)


class ClockOutRequest(BaseModel):
    notes: str | None = Field(default=None, max_length=2000)


class ClockEntryRead(BaseModel):
    id: int
    user_id: int
    clock_in: datetime
    clock_out: datetime | None
    expected_clock_in: time
    is_late: bool
    late_minutes: int
    duration_minutes: int | None
    is_overtime: bool
    overtime_minutes: int
    status: ClockEntryStatus
    notes: str | None = None
    reviewed_by: int | None = None
    reviewed_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class CurrentEntryResponse(BaseModel):
    is_clocked_in: bool
    entry: ClockEntryRead | None = None


class AttendanceStatsRead(BaseModel):
    start_date: date
    end_date: date
    total_hours: int
    total_minutes: int
    overtime_hours: int
    overtime_minutes: int
    worked_minutes: int
    overtime_minutes_total: int
    days_worked: int
    entries_count: int
    average_hours_per_day: float
    late_count: int
    late_minutes_total: int
    is_clocked_in: bool
    open_entry_id: int | None = None

    @classmethod
    def from_stats(cls, stats: AttendanceStats, *, start_date: date, end_date: date) -> AttendanceStatsRead:
        return cls(
            start_date=start_date,
            end_date=end_date,
            total_hours=stats.total_hours,
            total_minutes=stats.total_minutes,
            overtime_hours=stats.overtime_hours,
            overtime_minutes=stats.overtime_minutes,
            worked_minutes=stats.worked_minutes,
            overtime_minutes_total=stats.overtime_minutes_total,
            days_worked=stats.days_worked,
            entries_count=stats.entries_count,
            average_hours_per_day=float(stats.average_hours_per_day),
            late_count=stats.late_count,
            late_minutes_total=stats.late_minutes_total,
            is_clocked_in=stats.is_clocked_in,
            open_entry_id=stats.open_entry_id,
        )


# Work log inputs carry no constraints here: hours/work_date validation lives in
# the service so that every caller gets the same INVALID_WORK_LOG error.
class WorkLogCreate(BaseModel):
    user_id: int | None = None
    task_id: int | None = None
    project_id: int | None = None
    work_date: date | None = None
    hours: Decimal | None = None
    description: str | None = Field(default=None, max_length=5000)
    is_billable: bool = False
    work_type: WorkLogType = WorkLogType.REGULAR


class WorkLogUpdate(BaseModel):
    work_date: date | None = None
    hours: Decimal | None = None
    description: str | None = Field(default=None, max_length=5000)
    is_billable: bool | None = None
    work_type: WorkLogType | None = None


class WorkLogRead(BaseModel):
    id: int
    user_id: int
    task_id: int | None
    project_id: int | None
    work_date: date
    hours: float
    description: str | None
    is_billable: bool
    work_type: WorkLogType

    @classmethod
    def from_record(cls, log: WorkLog) -> WorkLogRead:
        return cls(
            id=log.id,
            user_id=log.user_id,
            task_id=log.task_id,
            project_id=log.project_id,
            work_date=log.work_date,
            hours=float(log.hours),
            description=log.description,
            is_billable=log.is_billable,
            work_type=log.work_type,
        )


class ProjectHoursRead(BaseModel):
    project_id: int
    project_name: str
    hours: float


class UserHoursRead(BaseModel):
    user_id: int
    user_name: str
    hours: float


class TaskHoursRead(BaseModel):
    task_id: int
    task_title: str
    hours: float


class UserTimeStatsRead(BaseModel):
    start_date: date
    end_date: date
    total_hours: float
    billable_hours: float
    non_billable_hours: float
    task_hours: float
    general_hours: float
    days_worked: int
    logs_count: int
    average_hours_per_day: float
    by_project: list[ProjectHoursRead]

    @classmethod
    def from_stats(cls, stats: UserTimeStats, *, start_date: date, end_date: date) -> UserTimeStatsRead:
        return cls(
            start_date=start_date,
            end_date=end_date,
            total_hours=float(stats.total_hours),
            billable_hours=float(stats.billable_hours),
            non_billable_hours=float(stats.non_billable_hours),
            task_hours=float(stats.task_hours),
            general_hours=float(stats.general_hours),
            days_worked=stats.days_worked,
            logs_count=stats.logs_count,
            average_hours_per_day=float(stats.average_hours_per_day),
            by_project=[
                ProjectHoursRead(project_id=bucket.id, project_name=bucket.name, hours=float(bucket.hours))
                for bucket in stats.by_project
            ],
        )


class ProjectTimeStatsRead(BaseModel):
    project_id: int
    project_name: str
    start_date: date
    end_date: date
    total_hours: float
    billable_hours: float
    non_billable_hours: float
    logs_count: int
    by_user: list[UserHoursRead]
    by_task: list[TaskHoursRead]

    @classmethod
    def from_stats(
        cls,
        stats: ProjectTimeStats,
        *,
        start_date: date,
        end_date: date,
    ) -> ProjectTimeStatsRead:
        return cls(
            project_id=stats.project_id,
            project_name=stats.project_name,
            start_date=start_date,
            end_date=end_date,
            total_hours=float(stats.total_hours),
            billable_hours=float(stats.billable_hours),
            non_billable_hours=float(stats.non_billable_hours),
            logs_count=stats.logs_count,
            by_user=[
                UserHoursRead(user_id=bucket.id, user_name=bucket.name, hours=float(bucket.hours))
                for bucket in stats.by_user
            ],
            by_task=[
                TaskHoursRead(task_id=bucket.id, task_title=bucket.name, hours=float(bucket.hours))
                for bucket in stats.by_task
            ],
        )


class DailyLogRead(BaseModel):
    id: int | None
    hours: float
    description: str | None
    task_title: str | None
    project_name: str | None


class DailyWorkSummaryRead(BaseModel):
    date: date
    total_hours: float
    logs: list[DailyLogRead]

    @classmethod
    def from_summary(cls, summary: DailyWorkSummary) -> DailyWorkSummaryRead:
        return cls(
            date=summary.date,
            total_hours=float(summary.total_hours),
            logs=[
                DailyLogRead(
                    id=item.id,
                    hours=float(item.hours),
                    description=item.description,
                    task_title=item.task_title,
                    project_name=item.project_name,
                )
                for item in summary.logs
            ],
        )


class LeaveRequestCreate(BaseModel):
    leave_type: LeaveType
    start_date: date
    end_date: date
    reason: str | None = Field(default=None, max_length=2000)


class LeaveReviewRequest(BaseModel):
    notes: str | None = Field(default=None, max_length=2000)


class LeaveRequestRead(BaseModel):
    id: int
    user_id: int
    leave_type: LeaveType
    start_date: date
    end_date: date
    total_days: int
    reason: str | None
    status: LeaveStatus
    reviewed_by: int | None = None
    reviewed_at: datetime | None = None
    review_notes: str | None = None
    created_at: datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class LeaveBalanceRead(BaseModel):
    year: int
    annual_leave: int
    used_days: int
    remaining: int

    @classmethod
    def from_balance(cls, balance: LeaveBalance) -> LeaveBalanceRead:
        return cls(
            year=balance.year,
            annual_leave=balance.annual_leave,
            used_days=balance.used_days,
            remaining=balance.remaining,
        )
