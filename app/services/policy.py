from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import time
from functools import lru_cache
from typing import Protocol
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from fastapi import Depends
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.db import get_db
from app.errors import StorageError
from app.models import AttendancePolicy
from app.settings import get_settings

logger = logging.getLogger("app.policy")

FALLBACK_TIMEZONE = "Europe/Warsaw"


@dataclass(frozen=True)
class PolicyConfig:
    expected_clock_in: time
    standard_daily_minutes: int
    timezone_name: str

    @property
    def tz(self) -> ZoneInfo:
        return resolve_timezone(self.timezone_name)


class PolicyProvider(Protocol):
    def policy_for_user(self, user_id: int) -> PolicyConfig:
        raise NotImplementedError


def parse_hhmm(value: str) -> time:
    hour_str, minute_str = value.strip().split(":")
    hour = int(hour_str)
    minute = int(minute_str)
    if hour < 0 or hour > 23 or minute < 0 or minute > 59:
        raise ValueError(f"invalid HH:MM value: {value!r}")
    return time(hour=hour, minute=minute)


@lru_cache
def resolve_timezone(name: str | None) -> ZoneInfo:
    raw_name = (name or "").strip() or FALLBACK_TIMEZONE
    try:
        return ZoneInfo(raw_name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("policy_timezone_invalid", extra={"timezone": raw_name})
        return ZoneInfo(FALLBACK_TIMEZONE)


def default_policy() -> PolicyConfig:
    settings = get_settings()
    return PolicyConfig(
        expected_clock_in=parse_hhmm(settings.default_expected_clock_in),
        standard_daily_minutes=max(0, settings.standard_daily_minutes),
        timezone_name=settings.attendance_timezone,
    )


def policy_from_row(row: AttendancePolicy, fallback: PolicyConfig) -> PolicyConfig:
    return PolicyConfig(
        expected_clock_in=row.expected_clock_in,
        standard_daily_minutes=row.standard_daily_minutes,
        timezone_name=row.timezone or fallback.timezone_name,
    )


class SqlPolicyProvider:
    """User row first, then the organization row (user_id IS NULL), then settings."""

    def __init__(self, db: Session):
        self.db = db

    def policy_for_user(self, user_id: int) -> PolicyConfig:
        fallback = default_policy()
        try:
            user_row = self.db.scalar(select(AttendancePolicy).where(AttendancePolicy.user_id == user_id))
            if user_row is not None:
                return policy_from_row(user_row, fallback)
            org_row = self.db.scalar(select(AttendancePolicy).where(AttendancePolicy.user_id.is_(None)))
        except SQLAlchemyError as exc:
            raise StorageError("attendance policy lookup failed") from exc
        if org_row is not None:
            return policy_from_row(org_row, fallback)
        return fallback


def get_policy_provider(db: Session = Depends(get_db)) -> PolicyProvider:
    return SqlPolicyProvider(db)
