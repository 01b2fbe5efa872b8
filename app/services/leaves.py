from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import date, datetime, timezone

from app.audit import AuditEmitter, AuditEvent, emit_audit
from app.errors import Forbidden, InvalidLeaveRequest, InvalidTransition, LeaveOverlap, NotFound
from app.models import LeaveStatus, LeaveType, ReviewDecision
from app.records import LeaveRequest
from app.repositories import LeaveRequestRepository
from app.security import Actor
from app.settings import get_settings

logger = logging.getLogger("app.leaves")

MAX_LEAVE_DAYS = 366

REVIEW_TARGET_STATUS = {
    ReviewDecision.APPROVE: LeaveStatus.APPROVED,
    ReviewDecision.REJECT: LeaveStatus.REJECTED,
}
CANCELLABLE_STATUSES = frozenset({LeaveStatus.PENDING, LeaveStatus.APPROVED})


@dataclass(frozen=True, slots=True)
class LeaveBalance:
    year: int
    annual_leave: int
    used_days: int
    remaining: int


def inclusive_days(start_date: date, end_date: date) -> int:
    return (end_date - start_date).days + 1


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _ensure_no_approved_overlap(
    leaves: LeaveRequestRepository,
    *,
    user_id: int,
    start_date: date,
    end_date: date,
    ignore_id: int | None = None,
) -> None:
    for existing in leaves.list_for_user_by_status(user_id, LeaveStatus.APPROVED):
        if existing.id == ignore_id:
            continue
        if existing.overlaps(start_date, end_date):
            raise LeaveOverlap(
                "Leave request overlaps with approved leave from "
                f"{existing.start_date.isoformat()} to {existing.end_date.isoformat()}."
            )


def _emit(
    audit: AuditEmitter | None,
    *,
    action: str,
    actor_id: int,
    leave: LeaveRequest,
    request_id: str | None,
) -> None:
    emit_audit(
        audit,
        AuditEvent(
            action=action,
            actor_id=str(actor_id),
            entity_type="leave_request",
            entity_id=str(leave.id),
            details={
                "user_id": leave.user_id,
                "leave_type": leave.leave_type.value,
                "start_date": leave.start_date.isoformat(),
                "end_date": leave.end_date.isoformat(),
                "total_days": leave.total_days,
            },
            request_id=request_id,
        ),
    )


def create_leave_request(
    leaves: LeaveRequestRepository,
    *,
    user_id: int,
    leave_type: LeaveType,
    start_date: date,
    end_date: date,
    reason: str | None = None,
    audit: AuditEmitter | None = None,
    request_id: str | None = None,
) -> LeaveRequest:
    if end_date < start_date:
        raise InvalidLeaveRequest("end_date must be greater than or equal to start_date.")
    total_days = inclusive_days(start_date, end_date)
    if total_days > MAX_LEAVE_DAYS:
        raise InvalidLeaveRequest(f"A leave request may span at most {MAX_LEAVE_DAYS} days.")

    _ensure_no_approved_overlap(leaves, user_id=user_id, start_date=start_date, end_date=end_date)

    created = leaves.create(
        LeaveRequest(
            id=None,
            user_id=user_id,
            leave_type=leave_type,
            start_date=start_date,
            end_date=end_date,
            total_days=total_days,
            reason=reason,
        )
    )
    logger.info(
        "leave_requested",
        extra={
            "request_id": request_id,
            "leave_request_id": created.id,
            "user_id": user_id,
            "total_days": total_days,
        },
    )
    _emit(audit, action="LEAVE_REQUESTED", actor_id=user_id, leave=created, request_id=request_id)
    return created


def list_user_leave_requests(leaves: LeaveRequestRepository, *, user_id: int) -> list[LeaveRequest]:
    return list(leaves.list_for_user(user_id))


def list_pending_leave_requests(leaves: LeaveRequestRepository) -> list[LeaveRequest]:
    return list(leaves.list_by_status(LeaveStatus.PENDING))


def review_leave_request(
    leaves: LeaveRequestRepository,
    *,
    leave_id: int,
    decision: ReviewDecision,
    reviewer_id: int,
    notes: str | None = None,
    now: datetime | None = None,
    audit: AuditEmitter | None = None,
    request_id: str | None = None,
) -> LeaveRequest:
    leave = leaves.find_by_id(leave_id)
    if leave is None:
        raise NotFound("Leave request not found.")
    if leave.status != LeaveStatus.PENDING:
        raise InvalidTransition("Only pending leave requests can be reviewed.")
    if decision == ReviewDecision.APPROVE:
        _ensure_no_approved_overlap(
            leaves,
            user_id=leave.user_id,
            start_date=leave.start_date,
            end_date=leave.end_date,
            ignore_id=leave.id,
        )

    reviewed = leaves.update(
        replace(
            leave,
            status=REVIEW_TARGET_STATUS[decision],
            reviewed_by=reviewer_id,
            reviewed_at=now or _utcnow(),
            review_notes=notes,
        )
    )
    logger.info(
        "leave_reviewed",
        extra={
            "request_id": request_id,
            "leave_request_id": reviewed.id,
            "status": reviewed.status,
            "reviewer_id": reviewer_id,
        },
    )
    _emit(
        audit,
        action=f"LEAVE_{reviewed.status.value.upper()}",
        actor_id=reviewer_id,
        leave=reviewed,
        request_id=request_id,
    )
    return reviewed


def cancel_leave_request(
    leaves: LeaveRequestRepository,
    *,
    actor: Actor,
    leave_id: int,
    audit: AuditEmitter | None = None,
    request_id: str | None = None,
) -> LeaveRequest:
    leave = leaves.find_by_id(leave_id)
    if leave is None:
        raise NotFound("Leave request not found.")
    if leave.user_id != actor.user_id:
        raise Forbidden("Only the requester can cancel a leave request.")
    if leave.status not in CANCELLABLE_STATUSES:
        raise InvalidTransition(f"A {leave.status.value} leave request cannot be cancelled.")

    cancelled = leaves.update(replace(leave, status=LeaveStatus.CANCELLED))
    logger.info(
        "leave_cancelled",
        extra={"request_id": request_id, "leave_request_id": leave_id, "user_id": leave.user_id},
    )
    _emit(audit, action="LEAVE_CANCELLED", actor_id=actor.user_id, leave=cancelled, request_id=request_id)
    return cancelled


def get_leave_balance(
    leaves: LeaveRequestRepository,
    *,
    user_id: int,
    year: int,
    annual_leave: int | None = None,
) -> LeaveBalance:
    """Days of approved leave starting in ``year`` against the annual allowance.

    A leave crossing New Year counts in full against the year it starts in.
    """

    allowance = get_settings().annual_leave_days if annual_leave is None else annual_leave
    used_days = sum(
        leave.total_days
        for leave in leaves.list_for_user_by_status(user_id, LeaveStatus.APPROVED)
        if leave.start_date.year == year
    )
    return LeaveBalance(
        year=year,
        annual_leave=allowance,
        used_days=used_days,
        remaining=max(0, allowance - used_days),
    )
