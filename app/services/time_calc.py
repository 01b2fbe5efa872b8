from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo


@dataclass(frozen=True)
class ClockOutComputation:
    duration_minutes: int
    overtime_minutes: int
    is_overtime: bool


@dataclass(frozen=True)
class LatenessComputation:
    late_minutes: int
    is_late: bool


def whole_minutes_between(start: datetime, end: datetime) -> int:
    """Floor of the elapsed minutes; never negative."""
    return max(0, int((end - start).total_seconds() // 60))


def expected_clock_in_utc(reference_utc: datetime, expected: time, tz: ZoneInfo) -> datetime:
    local_day = reference_utc.astimezone(tz).date()
    return datetime.combine(local_day, expected, tzinfo=tz).astimezone(timezone.utc)


def calculate_lateness(*, clock_in_utc: datetime, expected: time, tz: ZoneInfo) -> LatenessComputation:
    expected_utc = expected_clock_in_utc(clock_in_utc, expected, tz)
    late_minutes = whole_minutes_between(expected_utc, clock_in_utc)
    return LatenessComputation(late_minutes=late_minutes, is_late=late_minutes > 0)


def calculate_overtime(duration_minutes: int, standard_daily_minutes: int) -> int:
    return max(0, duration_minutes - max(0, standard_daily_minutes))


def calculate_clock_out(
    *,
    clock_in_utc: datetime,
    clock_out_utc: datetime,
    standard_daily_minutes: int,
) -> ClockOutComputation:
    duration_minutes = whole_minutes_between(clock_in_utc, clock_out_utc)
    overtime_minutes = calculate_overtime(duration_minutes, standard_daily_minutes)
    return ClockOutComputation(
        duration_minutes=duration_minutes,
        overtime_minutes=overtime_minutes,
        is_overtime=overtime_minutes > 0,
    )


def local_day_bounds_utc(start_day: date, end_day: date, tz: ZoneInfo) -> tuple[datetime, datetime]:
    """UTC instants covering local days start_day..end_day inclusive, as [start, end)."""
    local_start = datetime.combine(start_day, time.min, tzinfo=tz)
    local_end = datetime.combine(end_day + timedelta(days=1), time.min, tzinfo=tz)
    return local_start.astimezone(timezone.utc), local_end.astimezone(timezone.utc)


def local_day(ts_utc: datetime, tz: ZoneInfo) -> date:
    if ts_utc.tzinfo is None:
        ts_utc = ts_utc.replace(tzinfo=timezone.utc)
    return ts_utc.astimezone(tz).date()
