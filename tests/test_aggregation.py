from __future__ import annotations

import random
import unittest
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from zoneinfo import ZoneInfo

from app.models import ClockEntryStatus
from app.records import ClockEntry, WorkLog
from app.security import Actor
from app.services.aggregation import (
    attendance_stats,
    daily_work_summary,
    project_time_stats,
    user_time_stats,
)
from app.services.stats import (
    get_attendance_stats,
    get_daily_work_summary,
    get_project_time_stats,
    get_user_time_stats,
)
from app.services.worklogs import delete_work_log
from tests.fakes import FakeDirectory, InMemoryClockEntries, InMemoryWorkLogs, warsaw_policy

WARSAW = ZoneInfo("Europe/Warsaw")


def _log(log_id: int, work_date: date, hours: str, **extra) -> WorkLog:  # type: ignore[no-untyped-def]
    return WorkLog(id=log_id, user_id=extra.pop("user_id", 5), work_date=work_date, hours=Decimal(hours), **extra)


def _entry(
    entry_id: int,
    clock_in: datetime,
    *,
    duration: int | None,
    overtime: int = 0,
    status: ClockEntryStatus = ClockEntryStatus.COMPLETED,
    late_minutes: int = 0,
) -> ClockEntry:
    return ClockEntry(
        id=entry_id,
        user_id=5,
        clock_in=clock_in,
        expected_clock_in=time(9, 0),
        clock_out=clock_in + timedelta(minutes=duration) if duration is not None else None,
        duration_minutes=duration,
        overtime_minutes=overtime,
        is_overtime=overtime > 0,
        is_late=late_minutes > 0,
        late_minutes=late_minutes,
        status=status,
    )


SCENARIO_A = [
    _log(1, date(2024, 1, 1), "3", is_billable=True),
    _log(2, date(2024, 1, 1), "2", is_billable=False),
    _log(3, date(2024, 1, 2), "5", is_billable=True),
]


class UserTimeStatsTests(unittest.TestCase):
    def test_totals_billable_split_and_average(self) -> None:
        stats = user_time_stats(SCENARIO_A, project_names={})
        self.assertEqual(stats.total_hours, Decimal("10"))
        self.assertEqual(stats.billable_hours, Decimal("8"))
        self.assertEqual(stats.non_billable_hours, Decimal("2"))
        self.assertEqual(stats.days_worked, 2)
        self.assertEqual(stats.average_hours_per_day, Decimal("5.00"))
        self.assertEqual(stats.logs_count, 3)

    def test_billable_plus_non_billable_equals_total(self) -> None:
        logs = [
            _log(1, date(2024, 1, 1), "1.25", is_billable=True),
            _log(2, date(2024, 1, 2), "0.10"),
            _log(3, date(2024, 1, 2), "7.33", is_billable=True),
        ]
        stats = user_time_stats(logs, project_names={})
        self.assertEqual(stats.billable_hours + stats.non_billable_hours, stats.total_hours)
        self.assertEqual(stats.task_hours + stats.general_hours, stats.total_hours)

    def test_order_of_logs_does_not_change_totals(self) -> None:
        shuffled = list(SCENARIO_A)
        random.Random(7).shuffle(shuffled)
        self.assertEqual(user_time_stats(shuffled, project_names={}), user_time_stats(SCENARIO_A, project_names={}))

    def test_no_logs_gives_zero_average(self) -> None:
        stats = user_time_stats([], project_names={})
        self.assertEqual(stats.total_hours, Decimal("0"))
        self.assertEqual(stats.days_worked, 0)
        self.assertEqual(stats.average_hours_per_day, Decimal("0.00"))
        self.assertEqual(stats.by_project, [])

    def test_average_rounds_half_up(self) -> None:
        logs = [_log(1, date(2024, 1, 1), "1"), _log(2, date(2024, 1, 2), "0.01")]
        # 1.01 / 2 = 0.505
        self.assertEqual(user_time_stats(logs, project_names={}).average_hours_per_day, Decimal("0.51"))

    def test_by_project_is_named_and_sorted_by_hours(self) -> None:
        logs = [
            _log(1, date(2024, 1, 1), "1", project_id=10, task_id=100),
            _log(2, date(2024, 1, 1), "4", project_id=11),
            _log(3, date(2024, 1, 2), "2", project_id=10),
            _log(4, date(2024, 1, 2), "1"),
        ]
        stats = user_time_stats(logs, project_names={10: "Apollo"})
        self.assertEqual([(b.id, b.name, b.hours) for b in stats.by_project], [(11, "Unknown", Decimal("4")), (10, "Apollo", Decimal("3"))])
        self.assertEqual(stats.task_hours, Decimal("1"))
        self.assertEqual(stats.general_hours, Decimal("7"))


class ProjectTimeStatsTests(unittest.TestCase):
    def test_groups_by_user_and_task(self) -> None:
        logs = [
            _log(1, date(2024, 1, 1), "2", project_id=10, task_id=100, user_id=5, is_billable=True),
            _log(2, date(2024, 1, 1), "3", project_id=10, task_id=101, user_id=6),
            _log(3, date(2024, 1, 2), "1.5", project_id=10, task_id=100, user_id=6, is_billable=True),
            _log(4, date(2024, 1, 2), "0.5", project_id=10, user_id=5),
        ]
        stats = project_time_stats(
            logs,
            project_id=10,
            project_name="Apollo",
            user_names={5: "Ada Lovelace", 6: "Alan Turing"},
            task_titles={100: "Design"},
        )
        self.assertEqual(stats.total_hours, Decimal("7.0"))
        self.assertEqual(stats.billable_hours, Decimal("3.5"))
        self.assertEqual(stats.non_billable_hours, Decimal("3.5"))
        self.assertEqual(stats.logs_count, 4)
        self.assertEqual([(b.id, b.name) for b in stats.by_user], [(6, "Alan Turing"), (5, "Ada Lovelace")])
        self.assertEqual([(b.id, b.name, b.hours) for b in stats.by_task], [(100, "Design", Decimal("3.5")), (101, "Unknown", Decimal("3"))])

    def test_unknown_project_name(self) -> None:
        stats = project_time_stats([], project_id=99, project_name=None, user_names={}, task_titles={})
        self.assertEqual(stats.project_name, "Unknown")
        self.assertEqual(stats.total_hours, Decimal("0"))


class DailyWorkSummaryTests(unittest.TestCase):
    def test_one_row_per_date_newest_first(self) -> None:
        logs = [
            _log(1, date(2024, 1, 1), "3", task_id=100, project_id=10),
            _log(2, date(2024, 1, 1), "2"),
            _log(3, date(2024, 1, 3), "5", project_id=11),
        ]
        summary = daily_work_summary(logs, project_names={10: "Apollo"}, task_titles={100: "Design"})

        self.assertEqual([row.date for row in summary], [date(2024, 1, 3), date(2024, 1, 1)])
        self.assertEqual(summary[1].total_hours, Decimal("5"))
        first_log = summary[1].logs[0]
        self.assertEqual((first_log.task_title, first_log.project_name), ("Design", "Apollo"))
        self.assertEqual((summary[1].logs[1].task_title, summary[1].logs[1].project_name), (None, None))
        self.assertEqual(summary[0].logs[0].project_name, "Unknown")

    def test_deleting_only_log_of_a_date_removes_the_date(self) -> None:
        logs = InMemoryWorkLogs(
            [
                WorkLog(id=None, user_id=5, work_date=date(2024, 1, 1), hours=Decimal("3")),
                WorkLog(id=None, user_id=5, work_date=date(2024, 1, 2), hours=Decimal("5")),
            ]
        )
        directory = FakeDirectory()
        before = get_daily_work_summary(logs, directory, user_id=5, start_date=date(2024, 1, 1), end_date=date(2024, 1, 31))
        self.assertEqual([row.date for row in before], [date(2024, 1, 2), date(2024, 1, 1)])

        delete_work_log(logs, actor=Actor(user_id=5), log_id=2)
        after = get_daily_work_summary(logs, directory, user_id=5, start_date=date(2024, 1, 1), end_date=date(2024, 1, 31))
        self.assertEqual([row.date for row in after], [date(2024, 1, 1)])


class AttendanceStatsTests(unittest.TestCase):
    def test_sums_cover_completed_and_approved_entries_only(self) -> None:
        day_one = datetime(2026, 1, 12, 8, 0, tzinfo=timezone.utc)
        entries = [
            _entry(1, day_one, duration=527, overtime=47, late_minutes=7),
            _entry(2, day_one + timedelta(days=1), duration=480, status=ClockEntryStatus.APPROVED),
            _entry(3, day_one + timedelta(days=2), duration=300, status=ClockEntryStatus.REJECTED, late_minutes=15),
            _entry(4, day_one + timedelta(days=3), duration=None, status=ClockEntryStatus.IN_PROGRESS, late_minutes=3),
        ]
        stats = attendance_stats(entries, tz=WARSAW)

        self.assertEqual(stats.worked_minutes, 1007)
        self.assertEqual((stats.total_hours, stats.total_minutes), (16, 47))
        self.assertEqual(stats.overtime_minutes_total, 47)
        self.assertEqual((stats.overtime_hours, stats.overtime_minutes), (0, 47))
        self.assertEqual(stats.days_worked, 4)
        self.assertEqual(stats.entries_count, 4)
        self.assertEqual(stats.average_hours_per_day, Decimal("4.20"))
        self.assertEqual(stats.late_count, 2)
        self.assertEqual(stats.late_minutes_total, 10)
        self.assertTrue(stats.is_clocked_in)
        self.assertEqual(stats.open_entry_id, 4)

    def test_days_worked_counts_every_entry_date(self) -> None:
        day_one = datetime(2026, 1, 12, 8, 0, tzinfo=timezone.utc)
        entries = [
            _entry(1, day_one, duration=480),
            _entry(2, day_one + timedelta(days=1), duration=None, status=ClockEntryStatus.IN_PROGRESS),
        ]
        stats = attendance_stats(entries, tz=WARSAW)

        self.assertEqual(stats.days_worked, 2)
        self.assertEqual(stats.worked_minutes, 480)
        self.assertEqual(stats.average_hours_per_day, Decimal("4.00"))

    def test_days_worked_uses_local_dates(self) -> None:
        # Both instants fall on 2026-01-13 in Warsaw.
        entries = [
            _entry(1, datetime(2026, 1, 12, 23, 30, tzinfo=timezone.utc), duration=60),
            _entry(2, datetime(2026, 1, 13, 12, 0, tzinfo=timezone.utc), duration=60),
        ]
        self.assertEqual(attendance_stats(entries, tz=WARSAW).days_worked, 1)

    def test_empty_range_gives_zeroes(self) -> None:
        stats = attendance_stats([], tz=WARSAW)
        self.assertEqual(stats.worked_minutes, 0)
        self.assertEqual(stats.average_hours_per_day, Decimal("0.00"))
        self.assertFalse(stats.is_clocked_in)
        self.assertIsNone(stats.open_entry_id)


class StatsServiceTests(unittest.TestCase):
    def test_user_and_project_stats_resolve_names_through_directory(self) -> None:
        logs = InMemoryWorkLogs(
            [
                WorkLog(id=None, user_id=5, work_date=date(2024, 1, 1), hours=Decimal("3"), project_id=10, task_id=100),
                WorkLog(id=None, user_id=6, work_date=date(2024, 1, 1), hours=Decimal("1"), project_id=10),
                WorkLog(id=None, user_id=5, work_date=date(2024, 2, 1), hours=Decimal("4"), project_id=10),
            ]
        )
        directory = FakeDirectory(projects={10: "Apollo"}, tasks={100: (10, "Design")}, users={5: "Ada Lovelace"})

        mine = get_user_time_stats(logs, directory, user_id=5, start_date=date(2024, 1, 1), end_date=date(2024, 1, 31))
        project = get_project_time_stats(logs, directory, project_id=10, start_date=None, end_date=None)

        self.assertEqual(mine.total_hours, Decimal("3"))
        self.assertEqual(mine.by_project[0].name, "Apollo")
        self.assertEqual(project.project_name, "Apollo")
        self.assertEqual(project.total_hours, Decimal("8"))
        self.assertEqual([(b.id, b.name) for b in project.by_user], [(5, "Ada Lovelace"), (6, "Unknown")])

    def test_attendance_stats_reports_current_open_entry_outside_range(self) -> None:
        entries = InMemoryClockEntries()
        entries.create(_entry(0, datetime(2026, 1, 12, 8, 0, tzinfo=timezone.utc), duration=480))
        open_entry = entries.create(
            _entry(0, datetime(2026, 2, 2, 8, 0, tzinfo=timezone.utc), duration=None, status=ClockEntryStatus.IN_PROGRESS)
        )

        stats = get_attendance_stats(
            entries,
            user_id=5,
            start_date=date(2026, 1, 1),
            end_date=date(2026, 1, 31),
            policy=warsaw_policy(),
        )

        self.assertEqual(stats.entries_count, 1)
        self.assertEqual(stats.worked_minutes, 480)
        self.assertTrue(stats.is_clocked_in)
        self.assertEqual(stats.open_entry_id, open_entry.id)


if __name__ == "__main__":
    unittest.main()
