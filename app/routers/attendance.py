from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, Query, Request

from app.audit import AuditDispatcher, get_audit_dispatcher
from app.models import ReviewDecision
from app.repositories import ClockEntryRepository, get_clock_entry_repository
from app.schemas import (
    AttendanceStatsRead,
    ClockEntryRead,
    ClockInRequest,
    ClockOutRequest,
    CurrentEntryResponse,
)
from app.security import Actor, require_reviewer, require_user
from app.services.attendance import (
    clock_in,
    clock_out,
    get_current_entry,
    list_all_entries,
    list_user_entries,
    review_entry,
)
from app.services.date_ranges import local_today, resolve_range
from app.services.policy import PolicyProvider, get_policy_provider
from app.services.stats import get_attendance_stats

router = APIRouter(prefix="/api/time", tags=["time"])


def _request_id(request: Request) -> str | None:
    return getattr(request.state, "request_id", None)


@router.post("/clock-in", response_model=ClockEntryRead, status_code=201)
def clock_in_endpoint(
    request: Request,
    payload: ClockInRequest | None = None,
    actor: Actor = Depends(require_user),
    entries: ClockEntryRepository = Depends(get_clock_entry_repository),
    policies: PolicyProvider = Depends(get_policy_provider),
    audit: AuditDispatcher = Depends(get_audit_dispatcher),
) -> ClockEntryRead:
    body = payload or ClockInRequest()
    entry = clock_in(
        entries,
        user_id=actor.user_id,
        policy=policies.policy_for_user(actor.user_id),
        expected_clock_in=body.expected_clock_in,
        notes=body.notes,
        audit=audit,
        request_id=_request_id(request),
    )
    request.state.entry_id = entry.id
    return ClockEntryRead.model_validate(entry)


@router.post("/clock-out", response_model=ClockEntryRead)
def clock_out_endpoint(
    request: Request,
    payload: ClockOutRequest | None = None,
    actor: Actor = Depends(require_user),
    entries: ClockEntryRepository = Depends(get_clock_entry_repository),
    policies: PolicyProvider = Depends(get_policy_provider),
    audit: AuditDispatcher = Depends(get_audit_dispatcher),
) -> ClockEntryRead:
    body = payload or ClockOutRequest()
    entry = clock_out(
        entries,
        user_id=actor.user_id,
        policy=policies.policy_for_user(actor.user_id),
        notes=body.notes,
        audit=audit,
        request_id=_request_id(request),
    )
    request.state.entry_id = entry.id
    return ClockEntryRead.model_validate(entry)


@router.get("/current", response_model=CurrentEntryResponse)
def current_entry_endpoint(
    actor: Actor = Depends(require_user),
    entries: ClockEntryRepository = Depends(get_clock_entry_repository),
) -> CurrentEntryResponse:
    entry = get_current_entry(entries, user_id=actor.user_id)
    if entry is None:
        return CurrentEntryResponse(is_clocked_in=False, entry=None)
    return CurrentEntryResponse(is_clocked_in=True, entry=ClockEntryRead.model_validate(entry))


@router.get("/entries", response_model=list[ClockEntryRead])
def list_my_entries_endpoint(
    start_date: date | None = Query(default=None),
    end_date: date | None = Query(default=None),
    actor: Actor = Depends(require_user),
    entries: ClockEntryRepository = Depends(get_clock_entry_repository),
    policies: PolicyProvider = Depends(get_policy_provider),
) -> list[ClockEntryRead]:
    policy = policies.policy_for_user(actor.user_id)
    start, end = resolve_range(start_date, end_date, today=local_today(policy.tz))
    rows = list_user_entries(entries, user_id=actor.user_id, start_date=start, end_date=end, policy=policy)
    return [ClockEntryRead.model_validate(row) for row in rows]


@router.get("/entries/all", response_model=list[ClockEntryRead])
def list_all_entries_endpoint(
    start_date: date | None = Query(default=None),
    end_date: date | None = Query(default=None),
    actor: Actor = Depends(require_reviewer),
    entries: ClockEntryRepository = Depends(get_clock_entry_repository),
    policies: PolicyProvider = Depends(get_policy_provider),
) -> list[ClockEntryRead]:
    policy = policies.policy_for_user(actor.user_id)
    start, end = resolve_range(start_date, end_date, today=local_today(policy.tz))
    rows = list_all_entries(entries, start_date=start, end_date=end, policy=policy)
    return [ClockEntryRead.model_validate(row) for row in rows]


def _review(
    request: Request,
    entry_id: int,
    decision: ReviewDecision,
    actor: Actor,
    entries: ClockEntryRepository,
    audit: AuditDispatcher,
) -> ClockEntryRead:
    entry = review_entry(
        entries,
        entry_id=entry_id,
        decision=decision,
        reviewer_id=actor.user_id,
        audit=audit,
        request_id=_request_id(request),
    )
    request.state.entry_id = entry.id
    return ClockEntryRead.model_validate(entry)


@router.put("/entries/{entry_id}/approve", response_model=ClockEntryRead)
def approve_entry_endpoint(
    entry_id: int,
    request: Request,
    actor: Actor = Depends(require_reviewer),
    entries: ClockEntryRepository = Depends(get_clock_entry_repository),
    audit: AuditDispatcher = Depends(get_audit_dispatcher),
) -> ClockEntryRead:
    return _review(request, entry_id, ReviewDecision.APPROVE, actor, entries, audit)


@router.put("/entries/{entry_id}/reject", response_model=ClockEntryRead)
def reject_entry_endpoint(
    entry_id: int,
    request: Request,
    actor: Actor = Depends(require_reviewer),
    entries: ClockEntryRepository = Depends(get_clock_entry_repository),
    audit: AuditDispatcher = Depends(get_audit_dispatcher),
) -> ClockEntryRead:
    return _review(request, entry_id, ReviewDecision.REJECT, actor, entries, audit)


@router.get("/stats", response_model=AttendanceStatsRead)
def attendance_stats_endpoint(
    start_date: date | None = Query(default=None),
    end_date: date | None = Query(default=None),
    actor: Actor = Depends(require_user),
    entries: ClockEntryRepository = Depends(get_clock_entry_repository),
    policies: PolicyProvider = Depends(get_policy_provider),
) -> AttendanceStatsRead:
    policy = policies.policy_for_user(actor.user_id)
    start, end = resolve_range(start_date, end_date, today=local_today(policy.tz))
    stats = get_attendance_stats(entries, user_id=actor.user_id, start_date=start, end_date=end, policy=policy)
    return AttendanceStatsRead.from_stats(stats, start_date=start, end_date=end)
