from __future__ import annotations

import asyncio
import unittest
from unittest.mock import patch

from sqlalchemy import select

from app.audit import AuditDispatcher, AuditEvent, emit_audit, run_audit_worker, write_audit_event
from app.models import AuditActorType, AuditLog
from tests.fakes import RecordingAudit, sqlite_session_factory


def _event(action: str = "CLOCK_IN", **extra) -> AuditEvent:  # type: ignore[no-untyped-def]
    return AuditEvent(action=action, actor_id="5", entity_type="clock_entry", entity_id="1", **extra)


class AuditDispatcherTests(unittest.TestCase):
    def test_emit_drops_when_queue_is_full(self) -> None:
        dispatcher = AuditDispatcher(maxsize=1)
        with self.assertLogs("app.audit", level="WARNING") as logs:
            dispatcher.emit(_event("FIRST"))
            dispatcher.emit(_event("SECOND"))

        self.assertEqual(dispatcher.pending(), 1)
        self.assertTrue(any("audit_event_dropped" in line for line in logs.output))
        received: list[AuditEvent] = []
        self.assertEqual(dispatcher.process_pending(received.append), 1)
        self.assertEqual([event.action for event in received], ["FIRST"])

    def test_failing_sink_is_logged_and_next_event_still_delivered(self) -> None:
        dispatcher = AuditDispatcher(maxsize=10)
        dispatcher.emit(_event("BROKEN"))
        dispatcher.emit(_event("OK"))
        received: list[str] = []

        def sink(event: AuditEvent) -> None:
            if event.action == "BROKEN":
                raise RuntimeError("sink down")
            received.append(event.action)

        with self.assertLogs("app.audit", level="ERROR") as logs:
            delivered = dispatcher.process_pending(sink)

        self.assertEqual(delivered, 1)
        self.assertEqual(received, ["OK"])
        self.assertTrue(any("audit_sink_failed" in line for line in logs.output))

    def test_next_event_times_out_on_empty_queue(self) -> None:
        self.assertIsNone(AuditDispatcher().next_event(timeout=0.01))

    def test_emit_audit_swallows_emitter_errors(self) -> None:
        with self.assertLogs("app.audit", level="ERROR"):
            emit_audit(RecordingAudit(fail=True), _event())
        emit_audit(None, _event())


class AuditWorkerTests(unittest.TestCase):
    def test_worker_drains_pending_events_after_stop(self) -> None:
        dispatcher = AuditDispatcher(maxsize=10)
        received: list[str] = []
        for action in ("A", "B", "C"):
            dispatcher.emit(_event(action))

        async def scenario() -> None:
            stop_event = asyncio.Event()
            stop_event.set()
            await run_audit_worker(dispatcher, stop_event, sink=lambda event: received.append(event.action))

        asyncio.run(scenario())
        self.assertEqual(received, ["A", "B", "C"])
        self.assertEqual(dispatcher.pending(), 0)

    def test_worker_delivers_while_running(self) -> None:
        dispatcher = AuditDispatcher(maxsize=10)
        received: list[str] = []

        async def scenario() -> None:
            stop_event = asyncio.Event()
            task = asyncio.create_task(
                run_audit_worker(
                    dispatcher,
                    stop_event,
                    sink=lambda event: received.append(event.action),
                    poll_seconds=0.05,
                )
            )
            dispatcher.emit(_event("LIVE"))
            for _ in range(100):
                if received:
                    break
                await asyncio.sleep(0.02)
            stop_event.set()
            await asyncio.wait_for(task, timeout=2)

        asyncio.run(scenario())
        self.assertEqual(received, ["LIVE"])


class WriteAuditEventTests(unittest.TestCase):
    def test_event_is_persisted_to_audit_logs(self) -> None:
        session_factory = sqlite_session_factory()
        event = _event("WORK_LOG_CREATED", details={"hours": "2.50"}, request_id="req-1")

        with patch("app.audit.SessionLocal", session_factory):
            write_audit_event(event)

        with session_factory() as db:
            rows = db.scalars(select(AuditLog)).all()
        self.assertEqual(len(rows), 1)
        self.assertEqual(rows[0].action, "WORK_LOG_CREATED")
        self.assertEqual(rows[0].actor_type, AuditActorType.USER)
        self.assertEqual(rows[0].details, {"hours": "2.50"})


if __name__ == "__main__":
    unittest.main()
