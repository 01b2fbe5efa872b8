from __future__ import annotations

from datetime import date

from app.repositories import ClockEntryRepository, WorkLogRepository
from app.services.aggregation import (
    AttendanceStats,
    DailyWorkSummary,
    ProjectTimeStats,
    UserTimeStats,
    attendance_stats,
    daily_work_summary,
    project_time_stats,
    user_time_stats,
)
from app.services.directory import Directory
from app.services.policy import PolicyConfig
from app.services.time_calc import local_day_bounds_utc


def get_user_time_stats(
    logs: WorkLogRepository,
    directory: Directory,
    *,
    user_id: int,
    start_date: date,
    end_date: date,
) -> UserTimeStats:
    fetched = list(logs.list_for_user(user_id, start_date, end_date))
    project_names = directory.project_names(log.project_id for log in fetched if log.project_id is not None)
    return user_time_stats(fetched, project_names=project_names)


def get_project_time_stats(
    logs: WorkLogRepository,
    directory: Directory,
    *,
    project_id: int,
    start_date: date | None,
    end_date: date | None,
) -> ProjectTimeStats:
    fetched = list(logs.list_for_project(project_id, start_date, end_date))
    return project_time_stats(
        fetched,
        project_id=project_id,
        project_name=directory.project_names([project_id]).get(project_id),
        user_names=directory.user_names(log.user_id for log in fetched),
        task_titles=directory.task_titles(log.task_id for log in fetched if log.task_id is not None),
    )


def get_daily_work_summary(
    logs: WorkLogRepository,
    directory: Directory,
    *,
    user_id: int,
    start_date: date,
    end_date: date,
) -> list[DailyWorkSummary]:
    fetched = list(logs.list_for_user(user_id, start_date, end_date))
    return daily_work_summary(
        fetched,
        project_names=directory.project_names(log.project_id for log in fetched if log.project_id is not None),
        task_titles=directory.task_titles(log.task_id for log in fetched if log.task_id is not None),
    )


def get_attendance_stats(
    entries: ClockEntryRepository,
    *,
    user_id: int,
    start_date: date,
    end_date: date,
    policy: PolicyConfig,
) -> AttendanceStats:
    start, end = local_day_bounds_utc(start_date, end_date, policy.tz)
    fetched = list(entries.list_for_user(user_id, start, end))
    return attendance_stats(
        fetched,
        tz=policy.tz,
        current_entry=entries.find_open_for_user(user_id),
    )
