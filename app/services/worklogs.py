from __future__ import annotations

import logging
from dataclasses import replace
from decimal import Decimal, InvalidOperation
from typing import Callable

from app.audit import AuditEmitter, AuditEvent, emit_audit
from app.errors import Forbidden, InvalidWorkLog, NotFound
from app.records import WorkLog, WorkLogFilters, WorkLogInput, WorkLogPatch
from app.repositories import WorkLogRepository
from app.security import Actor
from app.services.directory import Directory

logger = logging.getLogger("app.worklogs")

MAX_HOURS_PER_LOG = Decimal("24")
HOURS_QUANTUM = Decimal("0.01")

OwnershipCheck = Callable[[Actor, WorkLog], bool]


def can_modify_work_log(actor: Actor, log: WorkLog) -> bool:
    return actor.is_admin or actor.user_id == log.user_id


def _normalize_hours(value: Decimal | int | float | str | None) -> Decimal:
    if value is None:
        raise InvalidWorkLog("hours is required.")
    try:
        hours = Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise InvalidWorkLog("hours must be a number.") from exc
    if not hours.is_finite():
        raise InvalidWorkLog("hours must be a number.")
    if hours <= 0 or hours > MAX_HOURS_PER_LOG:
        raise InvalidWorkLog("hours must be greater than 0 and at most 24.")
    if hours != hours.quantize(HOURS_QUANTUM):
        raise InvalidWorkLog("hours supports at most two decimal places.")
    return hours.quantize(HOURS_QUANTUM)


def _sync_task_hours(
    logs: WorkLogRepository,
    directory: Directory | None,
    task_id: int | None,
    request_id: str | None,
) -> None:
    if directory is None or task_id is None:
        return
    try:
        total = sum((log.hours for log in logs.list_for_task(task_id)), Decimal("0"))
        directory.update_task_actual_hours(task_id, total)
    except Exception:
        logger.exception("task_actual_hours_sync_failed", extra={"task_id": task_id, "request_id": request_id})


def _owned_log(
    logs: WorkLogRepository,
    actor: Actor,
    log_id: int,
    can_modify: OwnershipCheck,
) -> WorkLog:
    log = logs.find_by_id(log_id)
    if log is None:
        raise NotFound("Work log not found.")
    if not can_modify(actor, log):
        raise Forbidden("Not authorized to modify this work log.")
    return log


def create_work_log(
    logs: WorkLogRepository,
    *,
    actor: Actor,
    payload: WorkLogInput,
    directory: Directory | None = None,
    audit: AuditEmitter | None = None,
    request_id: str | None = None,
) -> WorkLog:
    if payload.work_date is None:
        raise InvalidWorkLog("work_date is required.")
    hours = _normalize_hours(payload.hours)

    owner_id = actor.user_id
    if payload.user_id is not None and payload.user_id != actor.user_id:
        if not actor.is_admin:
            raise Forbidden("Only admins can log time on behalf of another user.")
        owner_id = payload.user_id

    project_id = payload.project_id
    if payload.task_id is not None and project_id is None and directory is not None:
        try:
            project_id = directory.project_id_for_task(payload.task_id)
        except LookupError as exc:
            raise InvalidWorkLog("Task not found.") from exc

    created = logs.create(
        WorkLog(
            id=None,
            user_id=owner_id,
            task_id=payload.task_id,
            project_id=project_id,
            work_date=payload.work_date,
            hours=hours,
            description=payload.description,
            is_billable=payload.is_billable,
            work_type=payload.work_type,
        )
    )
    _sync_task_hours(logs, directory, created.task_id, request_id)

    logger.info(
        "work_log_created",
        extra={
            "request_id": request_id,
            "work_log_id": created.id,
            "user_id": created.user_id,
            "task_id": created.task_id,
            "project_id": created.project_id,
            "hours": created.hours,
        },
    )
    emit_audit(
        audit,
        AuditEvent(
            action="WORK_LOG_CREATED",
            actor_id=str(actor.user_id),
            entity_type="work_log",
            entity_id=str(created.id),
            details={
                "user_id": created.user_id,
                "task_id": created.task_id,
                "project_id": created.project_id,
                "hours": str(created.hours),
                "work_date": created.work_date.isoformat(),
            },
            request_id=request_id,
        ),
    )
    return created


def update_work_log(
    logs: WorkLogRepository,
    *,
    actor: Actor,
    log_id: int,
    patch: WorkLogPatch,
    directory: Directory | None = None,
    audit: AuditEmitter | None = None,
    can_modify: OwnershipCheck = can_modify_work_log,
    request_id: str | None = None,
) -> WorkLog:
    log = _owned_log(logs, actor, log_id, can_modify)

    changes: dict[str, object] = {}
    if patch.work_date is not None:
        changes["work_date"] = patch.work_date
    if patch.hours is not None:
        changes["hours"] = _normalize_hours(patch.hours)
    if patch.description is not None or patch.clear_description:
        changes["description"] = patch.description
    if patch.is_billable is not None:
        changes["is_billable"] = patch.is_billable
    if patch.work_type is not None:
        changes["work_type"] = patch.work_type

    if not changes:
        return log

    updated = logs.update(replace(log, **changes))
    if "hours" in changes and updated.hours != log.hours:
        _sync_task_hours(logs, directory, updated.task_id, request_id)

    logger.info(
        "work_log_updated",
        extra={
            "request_id": request_id,
            "work_log_id": updated.id,
            "user_id": updated.user_id,
            "fields": sorted(changes),
        },
    )
    emit_audit(
        audit,
        AuditEvent(
            action="WORK_LOG_UPDATED",
            actor_id=str(actor.user_id),
            entity_type="work_log",
            entity_id=str(updated.id),
            details={"fields": sorted(changes), "user_id": updated.user_id},
            request_id=request_id,
        ),
    )
    return updated


def delete_work_log(
    logs: WorkLogRepository,
    *,
    actor: Actor,
    log_id: int,
    directory: Directory | None = None,
    audit: AuditEmitter | None = None,
    can_modify: OwnershipCheck = can_modify_work_log,
    request_id: str | None = None,
) -> None:
    log = _owned_log(logs, actor, log_id, can_modify)
    logs.delete(log_id)
    _sync_task_hours(logs, directory, log.task_id, request_id)

    logger.info(
        "work_log_deleted",
        extra={"request_id": request_id, "work_log_id": log_id, "user_id": log.user_id},
    )
    emit_audit(
        audit,
        AuditEvent(
            action="WORK_LOG_DELETED",
            actor_id=str(actor.user_id),
            entity_type="work_log",
            entity_id=str(log_id),
            details={
                "user_id": log.user_id,
                "hours": str(log.hours),
                "work_date": log.work_date.isoformat(),
            },
            request_id=request_id,
        ),
    )


def get_work_log(logs: WorkLogRepository, *, log_id: int) -> WorkLog:
    log = logs.find_by_id(log_id)
    if log is None:
        raise NotFound("Work log not found.")
    return log


def list_work_logs(logs: WorkLogRepository, *, filters: WorkLogFilters) -> list[WorkLog]:
    return list(logs.list_filtered(filters))


def list_task_work_logs(logs: WorkLogRepository, *, task_id: int) -> list[WorkLog]:
    return list(logs.list_for_task(task_id))
