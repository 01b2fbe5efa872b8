from __future__ import annotations

import asyncio
import logging
import queue
from dataclasses import dataclass, field
from datetime import datetime, timezone
from functools import lru_cache
from typing import Any, Callable, Protocol

from app.db import SessionLocal
from app.models import AuditActorType, AuditLog
from app.settings import get_settings

logger = logging.getLogger("app.audit")


@dataclass(frozen=True)
class AuditEvent:
    action: str
    actor_id: str
    actor_type: AuditActorType = AuditActorType.USER
    entity_type: str | None = None
    entity_id: str | None = None
    success: bool = True
    details: dict[str, Any] = field(default_factory=dict)
    request_id: str | None = None
    ts_utc: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class AuditEmitter(Protocol):
    def emit(self, event: AuditEvent) -> None:
        raise NotImplementedError


AuditSink = Callable[[AuditEvent], None]


class AuditDispatcher:
    """Bounded in-process channel between request handlers and the audit worker.

    emit() never blocks: when the worker falls behind, events are dropped and
    logged instead of delaying the caller.
    """

    def __init__(self, maxsize: int = 1000):
        self._queue: queue.Queue[AuditEvent] = queue.Queue(maxsize=max(1, maxsize))

    def emit(self, event: AuditEvent) -> None:
        try:
            self._queue.put_nowait(event)
        except queue.Full:
            logger.warning(
                "audit_event_dropped",
                extra={
                    "action": event.action,
                    "actor_id": event.actor_id,
                    "entity_type": event.entity_type,
                    "entity_id": event.entity_id,
                    "request_id": event.request_id,
                },
            )

    def pending(self) -> int:
        return self._queue.qsize()

    def next_event(self, timeout: float | None = None) -> AuditEvent | None:
        try:
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def deliver(self, event: AuditEvent, sink: AuditSink) -> bool:
        try:
            sink(event)
        except Exception:
            logger.exception(
                "audit_sink_failed",
                extra={"action": event.action, "request_id": event.request_id},
            )
            return False
        return True

    def process_pending(self, sink: AuditSink) -> int:
        delivered = 0
        while True:
            try:
                event = self._queue.get_nowait()
            except queue.Empty:
                return delivered
            if self.deliver(event, sink):
                delivered += 1


def emit_audit(emitter: AuditEmitter | None, event: AuditEvent) -> None:
    if emitter is None:
        return
    try:
        emitter.emit(event)
    except Exception:
        logger.exception("audit_emit_failed", extra={"action": event.action, "request_id": event.request_id})


def write_audit_event(event: AuditEvent) -> None:
    with SessionLocal() as db:
        db.add(
            AuditLog(
                ts_utc=event.ts_utc,
                actor_type=event.actor_type,
                actor_id=event.actor_id,
                action=event.action,
                entity_type=event.entity_type,
                entity_id=event.entity_id,
                success=event.success,
                details=event.details or {},
            )
        )
        try:
            db.commit()
        except Exception:
            db.rollback()
            logger.exception(
                "audit_log_write_failed",
                extra={
                    "request_id": event.request_id,
                    "action": event.action,
                    "actor_type": event.actor_type.value,
                    "actor_id": event.actor_id,
                    "success": event.success,
                },
            )
            return

    logger.info(
        "audit_event",
        extra={
            "request_id": event.request_id,
            "action": event.action,
            "actor_type": event.actor_type.value,
            "actor_id": event.actor_id,
            "entity_type": event.entity_type,
            "entity_id": event.entity_id,
            "success": event.success,
            "details": event.details or {},
        },
    )


async def run_audit_worker(
    dispatcher: AuditDispatcher,
    stop_event: asyncio.Event,
    sink: AuditSink = write_audit_event,
    poll_seconds: float = 1.0,
) -> None:
    while not stop_event.is_set():
        event = await asyncio.to_thread(dispatcher.next_event, poll_seconds)
        if event is None:
            continue
        await asyncio.to_thread(dispatcher.deliver, event, sink)
    # Drain events accepted before the stop signal.
    await asyncio.to_thread(dispatcher.process_pending, sink)


@lru_cache
def get_audit_dispatcher() -> AuditDispatcher:
    return AuditDispatcher(maxsize=get_settings().audit_queue_size)
