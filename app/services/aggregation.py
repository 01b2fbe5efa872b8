"""Rollups over already-fetched work logs and clock entries.

Everything here is a pure function of its inputs: callers fetch a date range,
resolve display names through the directory, and get fresh numbers on every
call. Nothing is cached or persisted.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from zoneinfo import ZoneInfo

from app.models import ClockEntryStatus
from app.records import ClockEntry, WorkLog
from app.services.directory import UNKNOWN_NAME
from app.services.time_calc import local_day

ZERO = Decimal("0")
CENT = Decimal("0.01")
COUNTED_ATTENDANCE_STATUSES = frozenset({ClockEntryStatus.COMPLETED, ClockEntryStatus.APPROVED})


@dataclass(frozen=True)
class HoursBucket:
    id: int
    name: str
    hours: Decimal


@dataclass(frozen=True)
class UserTimeStats:
    total_hours: Decimal
    billable_hours: Decimal
    non_billable_hours: Decimal
    task_hours: Decimal
    general_hours: Decimal
    days_worked: int
    logs_count: int
    average_hours_per_day: Decimal
    by_project: list[HoursBucket] = field(default_factory=list)


@dataclass(frozen=True)
class ProjectTimeStats:
    project_id: int
    project_name: str
    total_hours: Decimal
    billable_hours: Decimal
    non_billable_hours: Decimal
    logs_count: int
    by_user: list[HoursBucket] = field(default_factory=list)
    by_task: list[HoursBucket] = field(default_factory=list)


@dataclass(frozen=True)
class DailyLogSummary:
    id: int | None
    hours: Decimal
    description: str | None
    task_title: str | None
    project_name: str | None


@dataclass(frozen=True)
class DailyWorkSummary:
    date: date
    total_hours: Decimal
    logs: list[DailyLogSummary] = field(default_factory=list)


@dataclass(frozen=True)
class AttendanceStats:
    total_hours: int
    total_minutes: int
    overtime_hours: int
    overtime_minutes: int
    worked_minutes: int
    overtime_minutes_total: int
    days_worked: int
    entries_count: int
    average_hours_per_day: Decimal
    late_count: int
    late_minutes_total: int
    is_clocked_in: bool
    open_entry_id: int | None


def _sum_hours(logs: Iterable[WorkLog]) -> Decimal:
    return sum((log.hours for log in logs), ZERO)


def _average(total: Decimal, days: int) -> Decimal:
    return (total / max(1, days)).quantize(CENT, rounding=ROUND_HALF_UP)


def _grouped_hours(pairs: Iterable[tuple[int, Decimal]], names: Mapping[int, str]) -> list[HoursBucket]:
    totals: dict[int, Decimal] = defaultdict(lambda: ZERO)
    for key, hours in pairs:
        totals[key] += hours
    buckets = [HoursBucket(id=key, name=names.get(key, UNKNOWN_NAME), hours=hours) for key, hours in totals.items()]
    buckets.sort(key=lambda bucket: (-bucket.hours, bucket.id))
    return buckets


def user_time_stats(logs: Sequence[WorkLog], *, project_names: Mapping[int, str]) -> UserTimeStats:
    total = _sum_hours(logs)
    billable = _sum_hours(log for log in logs if log.is_billable)
    task_hours = _sum_hours(log for log in logs if log.task_id is not None)
    days_worked = len({log.work_date for log in logs})
    by_project = _grouped_hours(
        ((log.project_id, log.hours) for log in logs if log.project_id is not None),
        project_names,
    )
    return UserTimeStats(
        total_hours=total,
        billable_hours=billable,
        non_billable_hours=total - billable,
        task_hours=task_hours,
        general_hours=total - task_hours,
        days_worked=days_worked,
        logs_count=len(logs),
        average_hours_per_day=_average(total, days_worked),
        by_project=by_project,
    )


def project_time_stats(
    logs: Sequence[WorkLog],
    *,
    project_id: int,
    project_name: str | None,
    user_names: Mapping[int, str],
    task_titles: Mapping[int, str],
) -> ProjectTimeStats:
    total = _sum_hours(logs)
    billable = _sum_hours(log for log in logs if log.is_billable)
    return ProjectTimeStats(
        project_id=project_id,
        project_name=project_name or UNKNOWN_NAME,
        total_hours=total,
        billable_hours=billable,
        non_billable_hours=total - billable,
        logs_count=len(logs),
        by_user=_grouped_hours(((log.user_id, log.hours) for log in logs), user_names),
        by_task=_grouped_hours(
            ((log.task_id, log.hours) for log in logs if log.task_id is not None),
            task_titles,
        ),
    )


def daily_work_summary(
    logs: Sequence[WorkLog],
    *,
    project_names: Mapping[int, str],
    task_titles: Mapping[int, str],
) -> list[DailyWorkSummary]:
    """One row per date that has logs, newest date first; empty dates are omitted."""
    by_date: dict[date, list[WorkLog]] = defaultdict(list)
    for log in logs:
        by_date[log.work_date].append(log)

    summaries: list[DailyWorkSummary] = []
    for work_date in sorted(by_date, reverse=True):
        day_logs = by_date[work_date]
        summaries.append(
            DailyWorkSummary(
                date=work_date,
                total_hours=_sum_hours(day_logs),
                logs=[
                    DailyLogSummary(
                        id=log.id,
                        hours=log.hours,
                        description=log.description,
                        task_title=task_titles.get(log.task_id, UNKNOWN_NAME) if log.task_id is not None else None,
                        project_name=(
                            project_names.get(log.project_id, UNKNOWN_NAME) if log.project_id is not None else None
                        ),
                    )
                    for log in day_logs
                ],
            )
        )
    return summaries


def attendance_stats(
    entries: Sequence[ClockEntry],
    *,
    tz: ZoneInfo,
    current_entry: ClockEntry | None = None,
) -> AttendanceStats:
    counted = [
        entry
        for entry in entries
        if entry.status in COUNTED_ATTENDANCE_STATUSES and entry.duration_minutes is not None
    ]
    open_entry = current_entry or next((entry for entry in entries if entry.is_open), None)

    worked_minutes = sum(entry.duration_minutes or 0 for entry in counted)
    overtime_minutes = sum(entry.overtime_minutes for entry in counted)
    days_worked = len({local_day(entry.clock_in, tz) for entry in entries})
    late_entries = [entry for entry in entries if entry.is_late and entry.status != ClockEntryStatus.REJECTED]

    return AttendanceStats(
        total_hours=worked_minutes // 60,
        total_minutes=worked_minutes % 60,
        overtime_hours=overtime_minutes // 60,
        overtime_minutes=overtime_minutes % 60,
        worked_minutes=worked_minutes,
        overtime_minutes_total=overtime_minutes,
        days_worked=days_worked,
        entries_count=len(entries),
        average_hours_per_day=_average(Decimal(worked_minutes) / 60, days_worked),
        late_count=len(late_entries),
        late_minutes_total=sum(entry.late_minutes for entry in late_entries),
        is_clocked_in=open_entry is not None,
        open_entry_id=open_entry.id if open_entry is not None else None,
    )
