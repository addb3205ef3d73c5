"""Where audit events go.

Three sinks ship with the package:

* :class:`InMemoryAuditSink` keeps the most recent events for inspection.
* :class:`FileAuditSink` appends one JSON document per line to a file and
  can read the trail back.
* :class:`StructlogAuditSink` turns every event into a log record named
  after the audited action.

All sinks answer the same query: optional ``action``, ``resource``,
``user_id`` and ``since`` filters, newest event first, at most ``limit``.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from collections import deque
from datetime import datetime
from pathlib import Path

import structlog
from pydantic import ValidationError

from clinflow.audit.models import AuditEvent
from clinflow.core.clock import as_utc

logger = structlog.get_logger(__name__)


class AuditFilter:
    """Predicate built from the query arguments shared by every sink."""

    def __init__(
        self,
        action: str | None = None,
        resource: str | None = None,
        user_id: str | None = None,
        since: datetime | None = None,
    ) -> None:
        self.action = action
        self.resource = resource
        self.user_id = user_id
        self.since = as_utc(since) if since is not None else None

    def __call__(self, event: AuditEvent) -> bool:
        if self.action is not None and event.action != self.action:
            return False
        if self.resource is not None and event.resource != self.resource:
            return False
        if self.user_id is not None and event.user_id != self.user_id:
            return False
        return self.since is None or event.timestamp >= self.since


class AuditSink(ABC):
    """Destination for audit events.

    Managers only ever write; :meth:`query` is for operators and tests, and
    sinks that cannot read back return nothing.
    """

    @abstractmethod
    async def write(self, event: AuditEvent) -> None:
        """Record one event."""

    async def query(
        self,
        action: str | None = None,
        resource: str | None = None,
        user_id: str | None = None,
        since: datetime | None = None,
        limit: int = 100,
    ) -> list[AuditEvent]:
        return []

    async def close(self) -> None:
        """Release resources held by the sink."""


class InMemoryAuditSink(AuditSink):
    """Keeps the last *max_entries* events; older ones are dropped."""

    def __init__(self, max_entries: int = 10000) -> None:
        self._events: deque[AuditEvent] = deque(maxlen=max_entries)

    async def write(self, event: AuditEvent) -> None:
        self._events.append(event)

    async def query(
        self,
        action: str | None = None,
        resource: str | None = None,
        user_id: str | None = None,
        since: datetime | None = None,
        limit: int = 100,
    ) -> list[AuditEvent]:
        keep = AuditFilter(action, resource, user_id, since)
        return [ev for ev in reversed(self._events) if keep(ev)][:limit]

    @property
    def events(self) -> list[AuditEvent]:
        """All retained events, oldest first."""
        return list(self._events)

    def actions(self) -> list[str]:
        return [ev.action for ev in self._events]

    def trail(self, resource: str) -> list[AuditEvent]:
        """Every retained event for one entity, oldest first."""
        return [ev for ev in self._events if ev.resource == resource]


class FileAuditSink(AuditSink):
    """Append-only audit trail, one JSON document per line.

    Appends from concurrent writers are serialised so lines never
    interleave.  Blocking file access runs in :func:`asyncio.to_thread`.
    Lines that no longer parse as an :class:`AuditEvent` are skipped on
    read and logged.

    Args:
        path: Trail file; missing parent directories are created on the
            first write.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._lock = asyncio.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def _append(self, line: str) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with self._path.open("a", encoding="utf-8") as fh:
            fh.write(line + "\n")

    def _load(self) -> list[AuditEvent]:
        if not self._path.exists():
            return []
        events: list[AuditEvent] = []
        with self._path.open("r", encoding="utf-8") as fh:
            for lineno, raw in enumerate(fh, start=1):
                raw = raw.strip()
                if not raw:
                    continue
                try:
                    events.append(AuditEvent.model_validate_json(raw))
                except ValidationError:
                    logger.warning("audit_file_line_skipped", path=str(self._path), line=lineno)
        return events

    async def write(self, event: AuditEvent) -> None:
        line = event.model_dump_json()
        async with self._lock:
            await asyncio.to_thread(self._append, line)

    async def query(
        self,
        action: str | None = None,
        resource: str | None = None,
        user_id: str | None = None,
        since: datetime | None = None,
        limit: int = 100,
    ) -> list[AuditEvent]:
        keep = AuditFilter(action, resource, user_id, since)
        async with self._lock:
            events = await asyncio.to_thread(self._load)
        return [ev for ev in reversed(events) if keep(ev)][:limit]


class StructlogAuditSink(AuditSink):
    """Logs each event under its own action name.

    Successful operations are logged at *log_level*; failed ones at
    ``warning`` together with their error.
    """

    def __init__(self, log_level: str = "info", logger_name: str = "clinflow.audit") -> None:
        self._log_level = log_level
        self._logger = structlog.get_logger(logger_name)

    async def write(self, event: AuditEvent) -> None:
        log = self._logger.bind(
            audit_id=event.event_id,
            resource=event.resource or None,
            user_id=event.user_id,
        )
        if event.success:
            getattr(log, self._log_level, log.info)(event.action, details=event.details)
        else:
            log.warning(event.action, error=event.error, details=event.details)
