"""Audit logger that fans events out to multiple sinks."""

from __future__ import annotations

from datetime import datetime
from typing import Any

import structlog

from clinflow.audit.models import AuditEvent
from clinflow.audit.sinks import AuditSink
from clinflow.core.clock import Clock, SystemClock

logger = structlog.get_logger(__name__)


class AuditLogger:
    """Fan-out audit dispatcher.

    Sends each :class:`AuditEvent` to every registered
    :class:`AuditSink`.  Sink failures are logged but never propagated
    to the caller.

    Example::

        audit = AuditLogger()
        audit.add_sink(InMemoryAuditSink())
        await audit.record("task_created", {"task_id": task.id}, resource=f"task:{task.id}")
    """

    def __init__(
        self,
        sinks: list[AuditSink] | None = None,
        *,
        clock: Clock | None = None,
    ) -> None:
        self._sinks: list[AuditSink] = list(sinks) if sinks else []
        self._clock: Clock = clock or SystemClock()

    def add_sink(self, sink: AuditSink) -> AuditLogger:
        """Register a new sink.  Returns ``self`` for chaining."""
        self._sinks.append(sink)
        return self

    async def log(self, event: AuditEvent) -> None:
        """Dispatch *event* to all registered sinks."""
        for sink in self._sinks:
            try:
                await sink.write(event)
            except Exception:
                logger.warning(
                    "audit_sink_error",
                    sink=type(sink).__name__,
                    event_id=event.event_id,
                    exc_info=True,
                )

    async def record(
        self,
        action: str,
        data: dict[str, Any] | None = None,
        *,
        user_id: str | None = None,
        resource: str = "",
        success: bool = True,
        error: str | None = None,
    ) -> None:
        """Build an :class:`AuditEvent` for *action* and dispatch it."""
        event = AuditEvent(
            action=action,
            timestamp=self._clock.now(),
            user_id=user_id,
            resource=resource,
            details=data or {},
            success=success,
            error=error,
        )
        await self.log(event)

    async def query(
        self,
        action: str | None = None,
        resource: str | None = None,
        user_id: str | None = None,
        since: datetime | None = None,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Query all sinks and merge results, newest first."""
        seen_ids: set[str] = set()
        merged: list[AuditEvent] = []
        for sink in self._sinks:
            try:
                events = await sink.query(
                    action=action,
                    resource=resource,
                    user_id=user_id,
                    since=since,
                    limit=limit,
                )
            except Exception:
                logger.warning(
                    "audit_query_error",
                    sink=type(sink).__name__,
                    exc_info=True,
                )
                continue
            for ev in events:
                if ev.event_id not in seen_ids:
                    seen_ids.add(ev.event_id)
                    merged.append(ev)
        merged.sort(key=lambda e: e.timestamp, reverse=True)
        return merged[:limit]

    async def close(self) -> None:
        """Close all registered sinks."""
        for sink in self._sinks:
            try:
                await sink.close()
            except Exception:
                logger.warning(
                    "audit_sink_close_error",
                    sink=type(sink).__name__,
                    exc_info=True,
                )
