from __future__ import annotations

import unittest
from datetime import date
from decimal import Decimal

from app.errors import Forbidden, InvalidWorkLog, NotFound
from app.models import WorkLogType
from app.records import WorkLog, WorkLogFilters, WorkLogInput, WorkLogPatch
from app.security import Actor
from app.services.worklogs import (
    can_modify_work_log,
    create_work_log,
    delete_work_log,
    get_work_log,
    list_task_work_logs,
    list_work_logs,
    update_work_log,
)
from tests.fakes import FakeDirectory, InMemoryWorkLogs, RecordingAudit

OWNER = Actor(user_id=5)
OTHER = Actor(user_id=6)
ADMIN = Actor(user_id=1, role="admin")


def _payload(**overrides) -> WorkLogInput:  # type: ignore[no-untyped-def]
    values = {"work_date": date(2026, 1, 15), "hours": Decimal("2.5")}
    values.update(overrides)
    return WorkLogInput(**values)


class CreateWorkLogTests(unittest.TestCase):
    def setUp(self) -> None:
        self.logs = InMemoryWorkLogs()
        self.directory = FakeDirectory(projects={10: "Apollo"}, tasks={100: (10, "Design"), 101: (None, "Loose")})
        self.audit = RecordingAudit()

    def test_create_defaults_owner_to_actor(self) -> None:
        created = create_work_log(self.logs, actor=OWNER, payload=_payload(), audit=self.audit)
        self.assertEqual(created.user_id, 5)
        self.assertEqual(created.hours, Decimal("2.50"))
        self.assertEqual(created.work_type, WorkLogType.REGULAR)
        self.assertFalse(created.is_billable)
        self.assertEqual(self.audit.actions, ["WORK_LOG_CREATED"])

    def test_task_fills_project_and_syncs_actual_hours(self) -> None:
        create_work_log(self.logs, actor=OWNER, payload=_payload(task_id=100), directory=self.directory)
        created = create_work_log(
            self.logs,
            actor=OWNER,
            payload=_payload(task_id=100, hours=Decimal("1.25")),
            directory=self.directory,
        )
        self.assertEqual(created.project_id, 10)
        self.assertEqual(self.directory.actual_hours[100], Decimal("3.75"))

    def test_explicit_project_is_kept(self) -> None:
        created = create_work_log(
            self.logs,
            actor=OWNER,
            payload=_payload(task_id=100, project_id=77),
            directory=self.directory,
        )
        self.assertEqual(created.project_id, 77)

    def test_unknown_task_is_rejected_before_persisting(self) -> None:
        with self.assertRaises(InvalidWorkLog):
            create_work_log(self.logs, actor=OWNER, payload=_payload(task_id=999), directory=self.directory)
        self.assertEqual(self.logs.rows, {})

    def test_invalid_hours_are_rejected(self) -> None:
        for hours in (None, Decimal("0"), Decimal("-1"), Decimal("24.01"), Decimal("1.234"), "abc", float("nan")):
            with self.subTest(hours=hours):
                with self.assertRaises(InvalidWorkLog) as exc:
                    create_work_log(self.logs, actor=OWNER, payload=_payload(hours=hours))
                self.assertEqual(exc.exception.code, "INVALID_WORK_LOG")
                self.assertEqual(exc.exception.status_code, 422)
        self.assertEqual(self.logs.rows, {})

    def test_boundary_hours_are_accepted(self) -> None:
        for hours in (Decimal("0.01"), Decimal("24")):
            with self.subTest(hours=hours):
                created = create_work_log(self.logs, actor=OWNER, payload=_payload(hours=hours))
                self.assertEqual(created.hours, hours)

    def test_missing_work_date_is_rejected(self) -> None:
        with self.assertRaises(InvalidWorkLog):
            create_work_log(self.logs, actor=OWNER, payload=_payload(work_date=None))

    def test_only_admin_can_log_for_another_user(self) -> None:
        with self.assertRaises(Forbidden):
            create_work_log(self.logs, actor=OWNER, payload=_payload(user_id=6))
        created = create_work_log(self.logs, actor=ADMIN, payload=_payload(user_id=6))
        self.assertEqual(created.user_id, 6)

    def test_sync_failure_does_not_fail_create(self) -> None:
        self.directory.fail_updates = True
        created = create_work_log(self.logs, actor=OWNER, payload=_payload(task_id=100), directory=self.directory)
        self.assertIsNotNone(created.id)


class UpdateDeleteWorkLogTests(unittest.TestCase):
    def setUp(self) -> None:
        self.directory = FakeDirectory(projects={10: "Apollo"}, tasks={100: (10, "Design")})
        self.logs = InMemoryWorkLogs()
        self.log = create_work_log(
            self.logs,
            actor=OWNER,
            payload=_payload(task_id=100, hours=Decimal("3"), description="draft"),
            directory=self.directory,
        )
        self.audit = RecordingAudit()

    def test_owner_updates_hours_and_task_total_follows(self) -> None:
        updated = update_work_log(
            self.logs,
            actor=OWNER,
            log_id=self.log.id,
            patch=WorkLogPatch(hours=Decimal("4.5")),
            directory=self.directory,
            audit=self.audit,
        )
        self.assertEqual(updated.hours, Decimal("4.50"))
        self.assertEqual(updated.description, "draft")
        self.assertEqual(self.directory.actual_hours[100], Decimal("4.50"))
        self.assertEqual(self.audit.actions, ["WORK_LOG_UPDATED"])

    def test_description_can_be_cleared(self) -> None:
        updated = update_work_log(
            self.logs,
            actor=OWNER,
            log_id=self.log.id,
            patch=WorkLogPatch(clear_description=True),
        )
        self.assertIsNone(updated.description)

    def test_empty_patch_is_a_no_op(self) -> None:
        updated = update_work_log(self.logs, actor=OWNER, log_id=self.log.id, patch=WorkLogPatch(), audit=self.audit)
        self.assertEqual(updated, self.log)
        self.assertEqual(self.audit.events, [])

    def test_update_rejects_invalid_hours(self) -> None:
        with self.assertRaises(InvalidWorkLog):
            update_work_log(self.logs, actor=OWNER, log_id=self.log.id, patch=WorkLogPatch(hours=Decimal("25")))
        self.assertEqual(self.logs.find_by_id(self.log.id).hours, Decimal("3.00"))

    def test_other_user_cannot_modify(self) -> None:
        with self.assertRaises(Forbidden):
            update_work_log(self.logs, actor=OTHER, log_id=self.log.id, patch=WorkLogPatch(hours=Decimal("1")))
        with self.assertRaises(Forbidden):
            delete_work_log(self.logs, actor=OTHER, log_id=self.log.id)
        self.assertIn(self.log.id, self.logs.rows)

    def test_admin_can_modify_any_log(self) -> None:
        self.assertTrue(can_modify_work_log(ADMIN, self.log))
        delete_work_log(self.logs, actor=ADMIN, log_id=self.log.id, directory=self.directory, audit=self.audit)
        self.assertNotIn(self.log.id, self.logs.rows)
        self.assertEqual(self.directory.actual_hours[100], Decimal("0"))
        self.assertEqual(self.audit.actions, ["WORK_LOG_DELETED"])

    def test_custom_ownership_rule_is_honoured(self) -> None:
        updated = update_work_log(
            self.logs,
            actor=OTHER,
            log_id=self.log.id,
            patch=WorkLogPatch(is_billable=True),
            can_modify=lambda actor, log: True,
        )
        self.assertTrue(updated.is_billable)

    def test_missing_log_is_not_found(self) -> None:
        with self.assertRaises(NotFound):
            update_work_log(self.logs, actor=OWNER, log_id=999, patch=WorkLogPatch(hours=Decimal("1")))
        with self.assertRaises(NotFound):
            delete_work_log(self.logs, actor=OWNER, log_id=999)
        with self.assertRaises(NotFound):
            get_work_log(self.logs, log_id=999)


class ListWorkLogTests(unittest.TestCase):
    def test_filters_and_task_listing(self) -> None:
        logs = InMemoryWorkLogs(
            [
                WorkLog(id=None, user_id=5, work_date=date(2026, 1, 1), hours=Decimal("1"), task_id=100, project_id=10),
                WorkLog(id=None, user_id=5, work_date=date(2026, 1, 3), hours=Decimal("2"), project_id=11),
                WorkLog(id=None, user_id=6, work_date=date(2026, 1, 2), hours=Decimal("3"), task_id=100, project_id=10),
            ]
        )

        mine = list_work_logs(logs, filters=WorkLogFilters(user_id=5))
        january_2 = list_work_logs(
            logs,
            filters=WorkLogFilters(start_date=date(2026, 1, 2), end_date=date(2026, 1, 2)),
        )
        task_logs = list_task_work_logs(logs, task_id=100)

        self.assertEqual([log.work_date for log in mine], [date(2026, 1, 3), date(2026, 1, 1)])
        self.assertEqual([log.user_id for log in january_2], [6])
        self.assertEqual(sorted(log.user_id for log in task_logs), [5, 6])


if __name__ == "__main__":
    unittest.main()
