"""Tests for core/engine.py — WorkflowEngine wiring, lifecycle and triggers."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from clinflow.core.clock import Clock, ManualClock, SystemClock
from clinflow.core.config import EngineConfig
from clinflow.core.constants import ExecutionStatus
from clinflow.core.engine import EngineStores, WorkflowEngine
from clinflow.core.exceptions import NotFoundError
from clinflow.notify.base import InMemoryNotifier
from clinflow.stores.base import InMemoryStore


# ---------------------------------------------------------------------------
# Lifecycle and seeding
# ---------------------------------------------------------------------------


async def test_initialize_is_idempotent(engine: WorkflowEngine) -> None:
    await engine.initialize()
    assert len(await engine.list_workflows()) == 2
    assert len(await engine.rules.list_rules()) == 1


async def test_builtins_can_be_disabled(clock: ManualClock) -> None:
    engine = WorkflowEngine(
        EngineConfig(load_builtin_templates=False, load_builtin_rules=False), clock=clock
    )
    await engine.initialize()
    assert await engine.list_workflows() == []
    with pytest.raises(NotFoundError):
        await engine.rules.get("critical_lab_alert")


async def test_context_manager_starts_and_stops(clock: ManualClock) -> None:
    async with WorkflowEngine(clock=clock) as engine:
        assert engine.scheduler.running is True
        assert len(await engine.list_workflows()) == 2
    assert engine.scheduler.running is False


async def test_injected_stores_are_used(clock: ManualClock) -> None:
    tasks: InMemoryStore = InMemoryStore()
    engine = WorkflowEngine(clock=clock, stores=EngineStores(tasks=tasks))
    await engine.create_task({"title": "x"})
    assert await tasks.count() == 1
    assert engine.tasks.store is tasks


# ---------------------------------------------------------------------------
# fire_trigger
# ---------------------------------------------------------------------------


async def test_fire_trigger_runs_rules(
    engine: WorkflowEngine, notifier: InMemoryNotifier
) -> None:
    report = await engine.fire_trigger("lab_result_added", {"critical": True, "user_id": "lab"})
    assert report.trigger == "lab_result_added"
    assert [o.rule_id for o in report.rules] == ["critical_lab_alert"]
    assert report.rules[0].executed is True
    assert report.executions == []
    assert len(notifier.of_type("alert")) == 1


async def test_fire_trigger_starts_listening_workflows(engine: WorkflowEngine) -> None:
    report = await engine.fire_trigger("patient_admitted", {"user_id": "nurse-1"})
    assert report.rules == []
    assert len(report.executions) == 1
    execution = report.executions[0]
    assert execution.workflow_id == "patient_admission"
    assert execution.status == ExecutionStatus.COMPLETED


async def test_fire_trigger_respects_workflow_conditions(engine: WorkflowEngine) -> None:
    wf = await engine.create_workflow(
        {
            "name": "icu admission",
            "triggers": ["patient_admitted"],
            "conditions": [{"field": "ward", "operator": "equals", "value": "ICU"}],
            "steps": [{"name": "Call intensivist", "type": "task"}],
        }
    )
    general = await engine.fire_trigger("patient_admitted", {"ward": "general"})
    assert [e.workflow_id for e in general.executions] == ["patient_admission"]

    icu = await engine.fire_trigger("patient_admitted", {"ward": "ICU"})
    assert sorted(e.workflow_id for e in icu.executions) == sorted(["patient_admission", wf.id])


async def test_fire_trigger_skips_unevaluable_workflow(engine: WorkflowEngine) -> None:
    await engine.create_workflow(
        {
            "name": "bad condition",
            "triggers": ["vitals_recorded"],
            "conditions": [{"field": "hr", "operator": "contains", "value": 1}],
        }
    )
    report = await engine.fire_trigger("vitals_recorded", {"hr": 80})
    assert report.executions == []


async def test_fire_trigger_ignores_inactive_workflows(engine: WorkflowEngine) -> None:
    await engine.update_workflow("patient_admission", {"status": "inactive"})
    report = await engine.fire_trigger("patient_admitted", {})
    assert report.executions == []


async def test_fire_unknown_trigger(engine: WorkflowEngine) -> None:
    report = await engine.fire_trigger("nothing_listens", {})
    assert report.rules == []
    assert report.executions == []


# ---------------------------------------------------------------------------
# Legacy unknown actions
# ---------------------------------------------------------------------------


async def test_legacy_mode_accepts_unknown_step(clock: ManualClock) -> None:
    engine = WorkflowEngine(EngineConfig(legacy_unknown_actions=True), clock=clock)
    wf = await engine.create_workflow({"name": "x", "steps": [{"name": "fax", "type": "fax"}]})
    execution = await engine.execute_workflow(wf.id)
    assert execution.status == ExecutionStatus.COMPLETED
    assert execution.results[0].result == {"success": True, "message": "Action executed"}


# ---------------------------------------------------------------------------
# Clocks
# ---------------------------------------------------------------------------


def test_manual_clock_moves_only_when_told() -> None:
    start = datetime(2026, 1, 1, tzinfo=timezone.utc)
    clock = ManualClock(start)
    assert clock.now() == start
    assert clock.advance(days=1, hours=2) == start + timedelta(days=1, hours=2)
    clock.set(start)
    assert clock.now() == start


def test_clocks_satisfy_protocol() -> None:
    assert isinstance(SystemClock(), Clock)
    assert isinstance(ManualClock(), Clock)
    assert SystemClock().now().tzinfo is not None
