from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request, status

from app.audit import AuditDispatcher, get_audit_dispatcher
from app.models import ReviewDecision
from app.repositories import LeaveRequestRepository, get_leave_request_repository
from app.schemas import LeaveBalanceRead, LeaveRequestCreate, LeaveRequestRead, LeaveReviewRequest
from app.security import Actor, require_reviewer, require_user
from app.services.date_ranges import local_today
from app.services.leaves import (
    cancel_leave_request,
    create_leave_request,
    get_leave_balance,
    list_pending_leave_requests,
    list_user_leave_requests,
    review_leave_request,
)
from app.services.policy import PolicyProvider, get_policy_provider

router = APIRouter(prefix="/api/time/leave", tags=["leave"])


def _request_id(request: Request) -> str | None:
    return getattr(request.state, "request_id", None)


@router.post("", response_model=LeaveRequestRead, status_code=status.HTTP_201_CREATED)
def create_leave_request_endpoint(
    payload: LeaveRequestCreate,
    request: Request,
    actor: Actor = Depends(require_user),
    leaves: LeaveRequestRepository = Depends(get_leave_request_repository),
    audit: AuditDispatcher = Depends(get_audit_dispatcher),
) -> LeaveRequestRead:
    leave = create_leave_request(
        leaves,
        user_id=actor.user_id,
        leave_type=payload.leave_type,
        start_date=payload.start_date,
        end_date=payload.end_date,
        reason=payload.reason,
        audit=audit,
        request_id=_request_id(request),
    )
    request.state.leave_request_id = leave.id
    return LeaveRequestRead.model_validate(leave)


@router.get("", response_model=list[LeaveRequestRead])
def list_my_leave_requests_endpoint(
    actor: Actor = Depends(require_user),
    leaves: LeaveRequestRepository = Depends(get_leave_request_repository),
) -> list[LeaveRequestRead]:
    return [LeaveRequestRead.model_validate(leave) for leave in list_user_leave_requests(leaves, user_id=actor.user_id)]


@router.get("/balance", response_model=LeaveBalanceRead)
def leave_balance_endpoint(
    year: int | None = Query(default=None, ge=1970, le=2100),
    actor: Actor = Depends(require_user),
    leaves: LeaveRequestRepository = Depends(get_leave_request_repository),
    policies: PolicyProvider = Depends(get_policy_provider),
) -> LeaveBalanceRead:
    if year is None:
        year = local_today(policies.policy_for_user(actor.user_id).tz).year
    return LeaveBalanceRead.from_balance(get_leave_balance(leaves, user_id=actor.user_id, year=year))


@router.get("/pending", response_model=list[LeaveRequestRead])
def list_pending_leave_requests_endpoint(
    _actor: Actor = Depends(require_reviewer),
    leaves: LeaveRequestRepository = Depends(get_leave_request_repository),
) -> list[LeaveRequestRead]:
    return [LeaveRequestRead.model_validate(leave) for leave in list_pending_leave_requests(leaves)]


def _review(
    request: Request,
    leave_id: int,
    decision: ReviewDecision,
    payload: LeaveReviewRequest | None,
    actor: Actor,
    leaves: LeaveRequestRepository,
    audit: AuditDispatcher,
) -> LeaveRequestRead:
    leave = review_leave_request(
        leaves,
        leave_id=leave_id,
        decision=decision,
        reviewer_id=actor.user_id,
        notes=payload.notes if payload is not None else None,
        audit=audit,
        request_id=_request_id(request),
    )
    request.state.leave_request_id = leave.id
    return LeaveRequestRead.model_validate(leave)


@router.put("/{leave_id}/approve", response_model=LeaveRequestRead)
def approve_leave_request_endpoint(
    leave_id: int,
    request: Request,
    payload: LeaveReviewRequest | None = None,
    actor: Actor = Depends(require_reviewer),
    leaves: LeaveRequestRepository = Depends(get_leave_request_repository),
    audit: AuditDispatcher = Depends(get_audit_dispatcher),
) -> LeaveRequestRead:
    return _review(request, leave_id, ReviewDecision.APPROVE, payload, actor, leaves, audit)


@router.put("/{leave_id}/reject", response_model=LeaveRequestRead)
def reject_leave_request_endpoint(
    leave_id: int,
    request: Request,
    payload: LeaveReviewRequest | None = None,
    actor: Actor = Depends(require_reviewer),
    leaves: LeaveRequestRepository = Depends(get_leave_request_repository),
    audit: AuditDispatcher = Depends(get_audit_dispatcher),
) -> LeaveRequestRead:
    return _review(request, leave_id, ReviewDecision.REJECT, payload, actor, leaves, audit)


@router.delete("/{leave_id}", response_model=LeaveRequestRead)
def cancel_leave_request_endpoint(
    leave_id: int,
    request: Request,
    actor: Actor = Depends(require_user),
    leaves: LeaveRequestRepository = Depends(get_leave_request_repository),
    audit: AuditDispatcher = Depends(get_audit_dispatcher),
) -> LeaveRequestRead:
    leave = cancel_leave_request(
        leaves,
        actor=actor,
        leave_id=leave_id,
        audit=audit,
        request_id=_request_id(request),
    )
    request.state.leave_request_id = leave.id
    return LeaveRequestRead.model_validate(leave)
