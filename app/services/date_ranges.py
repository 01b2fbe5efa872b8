from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

from app.errors import ApiError
from app.settings import get_settings


def _invalid_range(message: str) -> ApiError:
    return ApiError(status_code=422, code="INVALID_RANGE", message=message)


def local_today(tz: ZoneInfo, now_utc: datetime | None = None) -> date:
    current = now_utc or datetime.now(timezone.utc)
    return current.astimezone(tz).date()


def resolve_range(
    start_date: date | None,
    end_date: date | None,
    *,
    today: date,
    default_days: int | None = None,
    max_days: int | None = None,
) -> tuple[date, date]:
    """Fill in a missing bound and reject inverted or oversized ranges.

    Both bounds are inclusive local dates. With neither bound given the range is
    the last ``default_days`` days ending ``today``.
    """
    settings = get_settings()
    window = max(1, default_days if default_days is not None else settings.default_stats_range_days)
    limit = max_days if max_days is not None else settings.max_stats_range_days

    if end_date is None:
        end_date = today if start_date is None or start_date <= today else start_date
    if start_date is None:
        start_date = end_date - timedelta(days=window - 1)

    if start_date > end_date:
        raise _invalid_range("start_date must not be after end_date.")
    if (end_date - start_date).days + 1 > limit:
        raise _invalid_range(f"Date range must not exceed {limit} days.")
    return start_date, end_date


def validate_optional_range(start_date: date | None, end_date: date | None) -> None:
    if start_date is not None and end_date is not None and start_date > end_date:
        raise _invalid_range("start_date must not be after end_date.")
