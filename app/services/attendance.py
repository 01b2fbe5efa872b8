from __future__ import annotations

import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import replace
from datetime import date, datetime, time, timezone

from app.audit import AuditEmitter, AuditEvent, emit_audit
from app.errors import AlreadyClockedIn, InvalidTransition, NoOpenSession, NotFound, OpenSessionConflict
from app.models import ClockEntryStatus, ReviewDecision
from app.records import ClockEntry
from app.repositories import ClockEntryRepository
from app.services.policy import PolicyConfig
from app.services.time_calc import calculate_clock_out, calculate_lateness, local_day_bounds_utc

logger = logging.getLogger("app.attendance")

_LOCKS_GUARD = threading.Lock()
# user_id -> (lock, number of threads holding or waiting on it)
_USER_LOCKS: dict[int, tuple[threading.Lock, int]] = {}

REVIEW_TARGET_STATUS = {
    ReviewDecision.APPROVE: ClockEntryStatus.APPROVED,
    ReviewDecision.REJECT: ClockEntryStatus.REJECTED,
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _normalize_ts(ts_utc: datetime | None) -> datetime:
    if ts_utc is None:
        return _utcnow()
    if ts_utc.tzinfo is None:
        return ts_utc.replace(tzinfo=timezone.utc)
    return ts_utc.astimezone(timezone.utc)


@contextmanager
def user_clock_lock(user_id: int) -> Iterator[None]:
    # Serializes clock-in/clock-out per user within this process; the partial
    # unique index on clock_entries covers other processes.
    with _LOCKS_GUARD:
        lock, users = _USER_LOCKS.get(user_id, (None, 0))
        if lock is None:
            lock = threading.Lock()
        _USER_LOCKS[user_id] = (lock, users + 1)
    try:
        with lock:
            yield
    finally:
        with _LOCKS_GUARD:
            _, users = _USER_LOCKS[user_id]
            if users <= 1:
                del _USER_LOCKS[user_id]
            else:
                _USER_LOCKS[user_id] = (lock, users - 1)


def clock_in(
    entries: ClockEntryRepository,
    *,
    user_id: int,
    policy: PolicyConfig,
    expected_clock_in: time | None = None,
    notes: str | None = None,
    now: datetime | None = None,
    audit: AuditEmitter | None = None,
    request_id: str | None = None,
) -> ClockEntry:
    expected = expected_clock_in or policy.expected_clock_in
    with user_clock_lock(user_id):
        if entries.find_open_for_user(user_id) is not None:
            raise AlreadyClockedIn()

        clock_in_utc = _normalize_ts(now)
        lateness = calculate_lateness(clock_in_utc=clock_in_utc, expected=expected, tz=policy.tz)
        entry = ClockEntry(
            id=None,
            user_id=user_id,
            clock_in=clock_in_utc,
            expected_clock_in=expected,
            is_late=lateness.is_late,
            late_minutes=lateness.late_minutes,
            status=ClockEntryStatus.IN_PROGRESS,
            notes=notes,
        )
        try:
            created = entries.create(entry)
        except OpenSessionConflict as exc:
            raise AlreadyClockedIn() from exc

    logger.info(
        "clock_in",
        extra={
            "request_id": request_id,
            "user_id": user_id,
            "entry_id": created.id,
            "late_minutes": created.late_minutes,
        },
    )
    emit_audit(
        audit,
        AuditEvent(
            action="CLOCK_IN",
            actor_id=str(user_id),
            entity_type="clock_entry",
            entity_id=str(created.id),
            details={"late_minutes": created.late_minutes, "is_late": created.is_late},
            request_id=request_id,
        ),
    )
    return created


def clock_out(
    entries: ClockEntryRepository,
    *,
    user_id: int,
    policy: PolicyConfig,
    notes: str | None = None,
    now: datetime | None = None,
    audit: AuditEmitter | None = None,
    request_id: str | None = None,
) -> ClockEntry:
    with user_clock_lock(user_id):
        open_entry = entries.find_open_for_user(user_id)
        if open_entry is None:
            raise NoOpenSession()

        # clock_out >= clock_in even under clock skew between nodes.
        clock_out_utc = max(_normalize_ts(now), open_entry.clock_in)
        computed = calculate_clock_out(
            clock_in_utc=open_entry.clock_in,
            clock_out_utc=clock_out_utc,
            standard_daily_minutes=policy.standard_daily_minutes,
        )
        closed = replace(
            open_entry,
            clock_out=clock_out_utc,
            duration_minutes=computed.duration_minutes,
            overtime_minutes=computed.overtime_minutes,
            is_overtime=computed.is_overtime,
            status=ClockEntryStatus.COMPLETED,
            notes=notes or open_entry.notes,
        )
        updated = entries.update(closed)

    logger.info(
        "clock_out",
        extra={
            "request_id": request_id,
            "user_id": user_id,
            "entry_id": updated.id,
            "duration_minutes": updated.duration_minutes,
            "overtime_minutes": updated.overtime_minutes,
        },
    )
    emit_audit(
        audit,
        AuditEvent(
            action="CLOCK_OUT",
            actor_id=str(user_id),
            entity_type="clock_entry",
            entity_id=str(updated.id),
            details={
                "duration_minutes": updated.duration_minutes,
                "overtime_minutes": updated.overtime_minutes,
            },
            request_id=request_id,
        ),
    )
    return updated


def review_entry(
    entries: ClockEntryRepository,
    *,
    entry_id: int,
    decision: ReviewDecision,
    reviewer_id: int,
    now: datetime | None = None,
    audit: AuditEmitter | None = None,
    request_id: str | None = None,
) -> ClockEntry:
    entry = entries.find_by_id(entry_id)
    if entry is None:
        raise NotFound("Time entry not found.")
    if entry.status != ClockEntryStatus.COMPLETED:
        raise InvalidTransition()

    reviewed = entries.update(
        replace(
            entry,
            status=REVIEW_TARGET_STATUS[decision],
            reviewed_by=reviewer_id,
            reviewed_at=_normalize_ts(now),
        )
    )
    emit_audit(
        audit,
        AuditEvent(
            action=f"CLOCK_ENTRY_{reviewed.status.value.upper()}",
            actor_id=str(reviewer_id),
            entity_type="clock_entry",
            entity_id=str(reviewed.id),
            details={"user_id": reviewed.user_id},
            request_id=request_id,
        ),
    )
    return reviewed


def get_current_entry(entries: ClockEntryRepository, *, user_id: int) -> ClockEntry | None:
    return entries.find_open_for_user(user_id)


def list_user_entries(
    entries: ClockEntryRepository,
    *,
    user_id: int,
    start_date: date,
    end_date: date,
    policy: PolicyConfig,
) -> list[ClockEntry]:
    start, end = local_day_bounds_utc(start_date, end_date, policy.tz)
    return list(entries.list_for_user(user_id, start, end))


def list_all_entries(
    entries: ClockEntryRepository,
    *,
    start_date: date,
    end_date: date,
    policy: PolicyConfig,
) -> list[ClockEntry]:
    start, end = local_day_bounds_utc(start_date, end_date, policy.tz)
    return list(entries.list_all(start, end))
