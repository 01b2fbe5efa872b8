from __future__ import annotations

import unittest
from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

from app.errors import ApiError
from app.services.date_ranges import local_today, resolve_range, validate_optional_range

TODAY = date(2026, 3, 31)


class ResolveRangeTests(unittest.TestCase):
    def test_missing_range_defaults_to_last_days_ending_today(self) -> None:
        self.assertEqual(
            resolve_range(None, None, today=TODAY, default_days=30, max_days=366),
            (date(2026, 3, 2), TODAY),
        )

    def test_missing_start_counts_back_from_end(self) -> None:
        start, end = resolve_range(None, date(2026, 1, 31), today=TODAY, default_days=7, max_days=366)
        self.assertEqual((start, end), (date(2026, 1, 25), date(2026, 1, 31)))

    def test_missing_end_defaults_to_today(self) -> None:
        self.assertEqual(
            resolve_range(date(2026, 3, 1), None, today=TODAY, default_days=30, max_days=366),
            (date(2026, 3, 1), TODAY),
        )

    def test_future_start_without_end_is_a_single_day(self) -> None:
        self.assertEqual(
            resolve_range(date(2026, 4, 10), None, today=TODAY, default_days=30, max_days=366),
            (date(2026, 4, 10), date(2026, 4, 10)),
        )

    def test_inverted_range_is_rejected(self) -> None:
        with self.assertRaises(ApiError) as exc:
            resolve_range(date(2026, 3, 2), date(2026, 3, 1), today=TODAY, default_days=30, max_days=366)
        self.assertEqual(exc.exception.code, "INVALID_RANGE")
        self.assertEqual(exc.exception.status_code, 422)
        with self.assertRaises(ApiError):
            validate_optional_range(date(2026, 3, 2), date(2026, 3, 1))
        validate_optional_range(None, date(2026, 3, 1))

    def test_range_longer_than_limit_is_rejected(self) -> None:
        self.assertEqual(
            resolve_range(date(2026, 1, 1), date(2026, 1, 10), today=TODAY, default_days=30, max_days=10),
            (date(2026, 1, 1), date(2026, 1, 10)),
        )
        with self.assertRaises(ApiError) as exc:
            resolve_range(date(2026, 1, 1), date(2026, 1, 11), today=TODAY, default_days=30, max_days=10)
        self.assertEqual(exc.exception.code, "INVALID_RANGE")

    def test_local_today_uses_policy_timezone(self) -> None:
        now = datetime(2026, 3, 31, 22, 30, tzinfo=timezone.utc)
        self.assertEqual(local_today(ZoneInfo("Europe/Warsaw"), now), date(2026, 4, 1))
        self.assertEqual(local_today(ZoneInfo("UTC"), now), date(2026, 3, 31))


if __name__ == "__main__":
    unittest.main()
