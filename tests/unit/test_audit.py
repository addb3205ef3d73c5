"""Tests for audit/ — AuditEvent, sinks, and AuditLogger."""
from __future__ import annotations

import asyncio
import json
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

from clinflow.audit.logger import AuditLogger
from clinflow.audit.models import AuditEvent
from clinflow.audit.sinks import (
    AuditSink,
    FileAuditSink,
    InMemoryAuditSink,
    StructlogAuditSink,
)
from clinflow.core.clock import ManualClock
from clinflow.core.engine import WorkflowEngine


# ---------------------------------------------------------------------------
# AuditEvent model
# ---------------------------------------------------------------------------


def test_audit_event_defaults() -> None:
    ev = AuditEvent(action="task_created")
    assert ev.action == "task_created"
    assert len(ev.event_id) == 16
    assert ev.success is True
    assert ev.user_id is None
    assert ev.details == {}
    assert ev.timestamp.tzinfo is not None


def test_audit_event_full() -> None:
    ev = AuditEvent(
        action="workflow_executed",
        user_id="nurse-1",
        resource="workflow:WF_1",
        details={"status": "failed"},
        success=False,
        error="task not found: TASK_x",
    )
    assert ev.resource == "workflow:WF_1"
    assert ev.success is False
    assert ev.error == "task not found: TASK_x"


# ---------------------------------------------------------------------------
# InMemoryAuditSink
# ---------------------------------------------------------------------------


async def test_in_memory_sink_write_and_query() -> None:
    sink = InMemoryAuditSink(max_entries=100)
    ev = AuditEvent(action="reminder_sent")
    await sink.write(ev)
    assert len(sink.events) == 1
    assert sink.events[0].event_id == ev.event_id
    assert sink.actions() == ["reminder_sent"]


async def test_in_memory_sink_circular_buffer() -> None:
    sink = InMemoryAuditSink(max_entries=3)
    for i in range(5):
        await sink.write(AuditEvent(action=str(i)))
    assert [e.action for e in sink.events] == ["2", "3", "4"]


async def test_in_memory_sink_query_filters() -> None:
    sink = InMemoryAuditSink()
    await sink.write(AuditEvent(action="task_created", resource="task:1"))
    await sink.write(AuditEvent(action="task_updated", resource="task:1"))
    await sink.write(AuditEvent(action="task_created", resource="task:2"))

    assert len(await sink.query(action="task_created")) == 2
    assert len(await sink.query(resource="task:1")) == 2
    assert len(await sink.query(action="task_created", resource="task:2")) == 1


async def test_in_memory_sink_query_since_and_order() -> None:
    sink = InMemoryAuditSink()
    old_ts = datetime(2024, 1, 1, tzinfo=timezone.utc)
    new_ts = datetime(2025, 6, 1, tzinfo=timezone.utc)
    await sink.write(AuditEvent(action="x", timestamp=old_ts))
    await sink.write(AuditEvent(action="x", timestamp=new_ts))

    results = await sink.query(since=datetime(2025, 1, 1, tzinfo=timezone.utc))
    assert [e.timestamp for e in results] == [new_ts]
    # Newest first.
    assert [e.timestamp for e in await sink.query()] == [new_ts, old_ts]


async def test_in_memory_sink_query_limit() -> None:
    sink = InMemoryAuditSink()
    for _ in range(10):
        await sink.write(AuditEvent(action="x"))
    assert len(await sink.query(limit=3)) == 3


async def test_in_memory_sink_filters_by_user_and_naive_since() -> None:
    sink = InMemoryAuditSink()
    for day, user in ((1, "dr-a"), (2, "dr-b")):
        await sink.write(
            AuditEvent(
                action="approval_processed",
                user_id=user,
                timestamp=datetime(2026, 3, day, tzinfo=timezone.utc),
            )
        )
    assert [e.user_id for e in await sink.query(user_id="dr-a")] == ["dr-a"]
    recent = await sink.query(since=datetime(2026, 3, 1, 12, 0))
    assert [e.user_id for e in recent] == ["dr-b"]


async def test_in_memory_sink_trail_per_entity() -> None:
    sink = InMemoryAuditSink()
    await sink.write(AuditEvent(action="task_created", resource="task:1"))
    await sink.write(AuditEvent(action="task_created", resource="task:2"))
    await sink.write(AuditEvent(action="task_updated", resource="task:1"))
    assert [e.action for e in sink.trail("task:1")] == ["task_created", "task_updated"]


# ---------------------------------------------------------------------------
# FileAuditSink
# ---------------------------------------------------------------------------


async def test_file_sink_writes_one_document_per_line(tmp_path: Path) -> None:
    path = tmp_path / "trail" / "audit.jsonl"
    sink = FileAuditSink(path)
    await sink.write(AuditEvent(action="approval_created", resource="approval:A", user_id="dr-a"))
    await sink.write(
        AuditEvent(
            action="approval_processed",
            resource="approval:A",
            user_id="dr-b",
            details={"status": "approved"},
        )
    )

    assert sink.path == path
    lines = path.read_text(encoding="utf-8").strip().split("\n")
    assert [json.loads(line)["action"] for line in lines] == [
        "approval_created",
        "approval_processed",
    ]
    assert json.loads(lines[1])["details"] == {"status": "approved"}


async def test_file_sink_query_newest_first_with_filters(tmp_path: Path) -> None:
    sink = FileAuditSink(tmp_path / "audit.jsonl")
    for i in range(4):
        await sink.write(
            AuditEvent(
                action="reminder_sent",
                resource=f"reminder:{i}",
                user_id="nurse-1" if i % 2 else "nurse-2",
                timestamp=datetime(2026, 3, 1, i, tzinfo=timezone.utc),
            )
        )

    assert [e.resource for e in await sink.query()] == [
        "reminder:3",
        "reminder:2",
        "reminder:1",
        "reminder:0",
    ]
    mine = await sink.query(user_id="nurse-1", limit=1)
    assert [e.resource for e in mine] == ["reminder:3"]
    since = await sink.query(since=datetime(2026, 3, 1, 2, tzinfo=timezone.utc))
    assert len(since) == 2


async def test_file_sink_skips_corrupt_lines(tmp_path: Path) -> None:
    path = tmp_path / "audit.jsonl"
    sink = FileAuditSink(path)
    await sink.write(AuditEvent(action="task_created"))
    with path.open("a", encoding="utf-8") as fh:
        fh.write("{not json\n\n")
    await sink.write(AuditEvent(action="task_updated"))

    assert [e.action for e in await sink.query()] == ["task_updated", "task_created"]


async def test_file_sink_concurrent_writes_keep_lines_whole(tmp_path: Path) -> None:
    path = tmp_path / "audit.jsonl"
    sink = FileAuditSink(path)
    await asyncio.gather(
        *(sink.write(AuditEvent(action="task_created", details={"n": i})) for i in range(20))
    )
    events = await sink.query(limit=50)
    assert sorted(e.details["n"] for e in events) == list(range(20))


async def test_file_sink_query_nonexistent(tmp_path: Path) -> None:
    sink = FileAuditSink(tmp_path / "no-such-file.jsonl")
    assert await sink.query() == []


# ---------------------------------------------------------------------------
# StructlogAuditSink
# ---------------------------------------------------------------------------


class _RecordingLogger:
    def __init__(self) -> None:
        self.bound: dict[str, Any] = {}
        self.records: list[tuple[str, str, dict[str, Any]]] = []

    def bind(self, **kwargs: Any) -> _RecordingLogger:
        self.bound = kwargs
        return self

    def info(self, event: str, **kwargs: Any) -> None:
        self.records.append(("info", event, kwargs))

    def warning(self, event: str, **kwargs: Any) -> None:
        self.records.append(("warning", event, kwargs))


async def test_structlog_sink_logs_under_action_name() -> None:
    sink = StructlogAuditSink()
    recorder = _RecordingLogger()
    sink._logger = recorder
    ev = AuditEvent(
        action="task_created",
        resource="task:TASK_1",
        user_id="nurse-1",
        details={"task_id": "TASK_1"},
    )
    await sink.write(ev)

    assert recorder.bound == {
        "audit_id": ev.event_id,
        "resource": "task:TASK_1",
        "user_id": "nurse-1",
    }
    assert recorder.records == [("info", "task_created", {"details": {"task_id": "TASK_1"}})]
    assert await sink.query() == []


async def test_structlog_sink_failures_are_warnings() -> None:
    sink = StructlogAuditSink(log_level="debug")
    recorder = _RecordingLogger()
    sink._logger = recorder
    await sink.write(
        AuditEvent(action="workflow_executed", success=False, error="task not found")
    )

    level, event, fields = recorder.records[0]
    assert (level, event) == ("warning", "workflow_executed")
    assert fields["error"] == "task not found"
    assert recorder.bound["resource"] is None


# ---------------------------------------------------------------------------
# AuditLogger
# ---------------------------------------------------------------------------


async def test_audit_logger_dispatches_to_all_sinks() -> None:
    sink1 = InMemoryAuditSink()
    sink2 = InMemoryAuditSink()
    audit = AuditLogger(sinks=[sink1, sink2])
    await audit.log(AuditEvent(action="x"))
    assert len(sink1.events) == 1
    assert len(sink2.events) == 1


async def test_audit_logger_add_sink_chaining() -> None:
    audit = AuditLogger()
    sink = InMemoryAuditSink()
    assert audit.add_sink(sink) is audit
    await audit.log(AuditEvent(action="x"))
    assert len(sink.events) == 1


async def test_record_uses_clock(clock: ManualClock) -> None:
    sink = InMemoryAuditSink()
    audit = AuditLogger([sink], clock=clock)
    await audit.record(
        "task_updated",
        {"task_id": "TASK_1"},
        user_id="u1",
        resource="task:TASK_1",
    )
    ev = sink.events[0]
    assert ev.timestamp == clock.now()
    assert ev.details == {"task_id": "TASK_1"}
    assert ev.user_id == "u1"
    assert ev.success is True


async def test_audit_logger_query_merges_sinks(clock: ManualClock) -> None:
    sink1 = InMemoryAuditSink()
    sink2 = InMemoryAuditSink()
    audit = AuditLogger(sinks=[sink1, sink2], clock=clock)
    await sink1.write(AuditEvent(action="a", timestamp=clock.now()))
    await sink2.write(AuditEvent(action="b", timestamp=clock.now() + timedelta(hours=1)))

    results = await audit.query()
    assert [e.action for e in results] == ["b", "a"]


async def test_audit_logger_sink_error_does_not_propagate() -> None:
    class BrokenSink(AuditSink):
        async def write(self, event: AuditEvent) -> None:
            raise RuntimeError("boom")

    good_sink = InMemoryAuditSink()
    audit = AuditLogger(sinks=[BrokenSink(), good_sink])
    await audit.record("x")
    assert len(good_sink.events) == 1
    await audit.close()


# ---------------------------------------------------------------------------
# Audit trail produced by the engine
# ---------------------------------------------------------------------------


async def test_engine_mutations_are_audited(
    engine: WorkflowEngine, audit_sink: InMemoryAuditSink, clock: ManualClock
) -> None:
    task = await engine.create_task({"title": "x", "created_by": "u1"})
    await engine.update_task_status(task.id, "completed", "u1")
    await engine.create_reminder({"title": "r", "trigger_at": clock.now()})
    await engine.process_reminders()
    approval = await engine.create_approval({"title": "a"})
    await engine.process_approval(approval.id, "approved", "u2")
    await engine.create_schedule({"name": "s"})
    await engine.process_schedules()

    assert audit_sink.actions() == [
        "task_created",
        "task_updated",
        "reminder_created",
        "reminder_sent",
        "approval_created",
        "approval_processed",
        "schedule_created",
        "schedule_executed",
    ]
    assert all(e.timestamp == clock.now() for e in audit_sink.events)
