from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, Query, Request, Response, status

from app.audit import AuditDispatcher, get_audit_dispatcher
from app.errors import Forbidden
from app.records import WorkLogFilters, WorkLogInput, WorkLogPatch
from app.repositories import WorkLogRepository, get_work_log_repository
from app.schemas import (
    DailyWorkSummaryRead,
    ProjectTimeStatsRead,
    UserTimeStatsRead,
    WorkLogCreate,
    WorkLogRead,
    WorkLogUpdate,
)
from app.security import Actor, require_user
from app.services.date_ranges import local_today, resolve_range, validate_optional_range
from app.services.directory import Directory, get_directory
from app.services.policy import PolicyProvider, get_policy_provider
from app.services.stats import get_daily_work_summary, get_project_time_stats, get_user_time_stats
from app.services.worklogs import (
    create_work_log,
    delete_work_log,
    get_work_log,
    list_task_work_logs,
    list_work_logs,
    update_work_log,
)

router = APIRouter(prefix="/api/work-logs", tags=["work-logs"])


def _request_id(request: Request) -> str | None:
    return getattr(request.state, "request_id", None)


@router.post("", response_model=WorkLogRead, status_code=status.HTTP_201_CREATED)
def create_work_log_endpoint(
    payload: WorkLogCreate,
    request: Request,
    actor: Actor = Depends(require_user),
    logs: WorkLogRepository = Depends(get_work_log_repository),
    directory: Directory = Depends(get_directory),
    audit: AuditDispatcher = Depends(get_audit_dispatcher),
) -> WorkLogRead:
    created = create_work_log(
        logs,
        actor=actor,
        payload=WorkLogInput(
            work_date=payload.work_date,
            hours=payload.hours,
            user_id=payload.user_id,
            task_id=payload.task_id,
            project_id=payload.project_id,
            description=payload.description,
            is_billable=payload.is_billable,
            work_type=payload.work_type,
        ),
        directory=directory,
        audit=audit,
        request_id=_request_id(request),
    )
    request.state.work_log_id = created.id
    return WorkLogRead.from_record(created)


@router.get("", response_model=list[WorkLogRead])
def list_work_logs_endpoint(
    user_id: int | None = Query(default=None, ge=1),
    task_id: int | None = Query(default=None, ge=1),
    project_id: int | None = Query(default=None, ge=1),
    start_date: date | None = Query(default=None),
    end_date: date | None = Query(default=None),
    actor: Actor = Depends(require_user),
    logs: WorkLogRepository = Depends(get_work_log_repository),
) -> list[WorkLogRead]:
    validate_optional_range(start_date, end_date)
    # Non-reviewers only ever see their own logs.
    if not actor.is_reviewer:
        if user_id is not None and user_id != actor.user_id:
            raise Forbidden("Not authorized to view other users' work logs.")
        user_id = actor.user_id
    filters = WorkLogFilters(
        user_id=user_id,
        task_id=task_id,
        project_id=project_id,
        start_date=start_date,
        end_date=end_date,
    )
    return [WorkLogRead.from_record(log) for log in list_work_logs(logs, filters=filters)]


@router.get("/my", response_model=list[WorkLogRead])
def list_my_work_logs_endpoint(
    start_date: date | None = Query(default=None),
    end_date: date | None = Query(default=None),
    actor: Actor = Depends(require_user),
    logs: WorkLogRepository = Depends(get_work_log_repository),
) -> list[WorkLogRead]:
    validate_optional_range(start_date, end_date)
    filters = WorkLogFilters(user_id=actor.user_id, start_date=start_date, end_date=end_date)
    return [WorkLogRead.from_record(log) for log in list_work_logs(logs, filters=filters)]


@router.get("/my/stats", response_model=UserTimeStatsRead)
def my_time_stats_endpoint(
    start_date: date | None = Query(default=None),
    end_date: date | None = Query(default=None),
    actor: Actor = Depends(require_user),
    logs: WorkLogRepository = Depends(get_work_log_repository),
    directory: Directory = Depends(get_directory),
    policies: PolicyProvider = Depends(get_policy_provider),
) -> UserTimeStatsRead:
    policy = policies.policy_for_user(actor.user_id)
    start, end = resolve_range(start_date, end_date, today=local_today(policy.tz))
    stats = get_user_time_stats(logs, directory, user_id=actor.user_id, start_date=start, end_date=end)
    return UserTimeStatsRead.from_stats(stats, start_date=start, end_date=end)


@router.get("/my/daily", response_model=list[DailyWorkSummaryRead])
def my_daily_summary_endpoint(
    start_date: date | None = Query(default=None),
    end_date: date | None = Query(default=None),
    actor: Actor = Depends(require_user),
    logs: WorkLogRepository = Depends(get_work_log_repository),
    directory: Directory = Depends(get_directory),
    policies: PolicyProvider = Depends(get_policy_provider),
) -> list[DailyWorkSummaryRead]:
    policy = policies.policy_for_user(actor.user_id)
    start, end = resolve_range(start_date, end_date, today=local_today(policy.tz))
    summaries = get_daily_work_summary(logs, directory, user_id=actor.user_id, start_date=start, end_date=end)
    return [DailyWorkSummaryRead.from_summary(summary) for summary in summaries]


@router.get("/projects/{project_id}/stats", response_model=ProjectTimeStatsRead)
def project_time_stats_endpoint(
    project_id: int,
    start_date: date | None = Query(default=None),
    end_date: date | None = Query(default=None),
    actor: Actor = Depends(require_user),
    logs: WorkLogRepository = Depends(get_work_log_repository),
    directory: Directory = Depends(get_directory),
    policies: PolicyProvider = Depends(get_policy_provider),
) -> ProjectTimeStatsRead:
    policy = policies.policy_for_user(actor.user_id)
    start, end = resolve_range(start_date, end_date, today=local_today(policy.tz))
    stats = get_project_time_stats(logs, directory, project_id=project_id, start_date=start, end_date=end)
    return ProjectTimeStatsRead.from_stats(stats, start_date=start, end_date=end)


@router.get("/tasks/{task_id}", response_model=list[WorkLogRead])
def task_work_logs_endpoint(
    task_id: int,
    _actor: Actor = Depends(require_user),
    logs: WorkLogRepository = Depends(get_work_log_repository),
) -> list[WorkLogRead]:
    return [WorkLogRead.from_record(log) for log in list_task_work_logs(logs, task_id=task_id)]


@router.get("/{log_id}", response_model=WorkLogRead)
def get_work_log_endpoint(
    log_id: int,
    actor: Actor = Depends(require_user),
    logs: WorkLogRepository = Depends(get_work_log_repository),
) -> WorkLogRead:
    log = get_work_log(logs, log_id=log_id)
    if log.user_id != actor.user_id and not actor.is_reviewer:
        raise Forbidden("Not authorized to view this work log.")
    return WorkLogRead.from_record(log)


@router.put("/{log_id}", response_model=WorkLogRead)
def update_work_log_endpoint(
    log_id: int,
    payload: WorkLogUpdate,
    request: Request,
    actor: Actor = Depends(require_user),
    logs: WorkLogRepository = Depends(get_work_log_repository),
    directory: Directory = Depends(get_directory),
    audit: AuditDispatcher = Depends(get_audit_dispatcher),
) -> WorkLogRead:
    patch = WorkLogPatch(
        work_date=payload.work_date,
        hours=payload.hours,
        description=payload.description,
        is_billable=payload.is_billable,
        work_type=payload.work_type,
        clear_description="description" in payload.model_fields_set and payload.description is None,
    )
    updated = update_work_log(
        logs,
        actor=actor,
        log_id=log_id,
        patch=patch,
        directory=directory,
        audit=audit,
        request_id=_request_id(request),
    )
    request.state.work_log_id = updated.id
    return WorkLogRead.from_record(updated)


@router.delete("/{log_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_work_log_endpoint(
    log_id: int,
    request: Request,
    actor: Actor = Depends(require_user),
    logs: WorkLogRepository = Depends(get_work_log_repository),
    directory: Directory = Depends(get_directory),
    audit: AuditDispatcher = Depends(get_audit_dispatcher),
) -> Response:
    delete_work_log(
        logs,
        actor=actor,
        log_id=log_id,
        directory=directory,
        audit=audit,
        request_id=_request_id(request),
    )
    request.state.work_log_id = log_id
    return Response(status_code=status.HTTP_204_NO_CONTENT)
