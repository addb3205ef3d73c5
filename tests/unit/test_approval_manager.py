"""Tests for approvals/ — approval requests, decisions and post-decision actions."""
from __future__ import annotations

import pytest

from clinflow.approvals.manager import ApprovalManager
from clinflow.approvals.models import Approval
from clinflow.audit.sinks import InMemoryAuditSink
from clinflow.core.clock import ManualClock
from clinflow.core.constants import ApprovalStatus
from clinflow.core.engine import WorkflowEngine
from clinflow.core.exceptions import InvalidTransitionError, NotFoundError
from clinflow.notify.base import InMemoryNotifier, Notification


class _DeadNotifier(InMemoryNotifier):
    async def deliver(self, notification: Notification) -> None:
        raise RuntimeError("gateway unreachable")


def _make_manager(clock: ManualClock, notifier: InMemoryNotifier, audit=None) -> ApprovalManager:
    return ApprovalManager(notifier=notifier, audit=audit, clock=clock)


async def test_create_notifies_each_approver(
    clock: ManualClock, notifier: InMemoryNotifier
) -> None:
    mgr = _make_manager(clock, notifier)
    approval = await mgr.create(
        {"title": "Discharge P-1", "approvers": ["dr-1", "dr-2"], "requested_by": "nurse-1"}
    )
    assert approval.id.startswith("APP_")
    assert approval.status == ApprovalStatus.PENDING
    assert [n.user_id for n in notifier.sent] == ["dr-1", "dr-2"]
    first = notifier.sent[0]
    assert first.title == "Approval Required"
    assert first.message == "You have a pending approval: Discharge P-1"
    assert first.type == "approval"
    assert first.metadata == {"approval_id": approval.id}


async def test_create_survives_notifier_failure(clock: ManualClock) -> None:
    mgr = _make_manager(clock, _DeadNotifier())
    approval = await mgr.create({"title": "x", "approvers": ["dr-1"]})
    assert (await mgr.get(approval.id)).status == ApprovalStatus.PENDING


async def test_approve_records_decision(
    clock: ManualClock, notifier: InMemoryNotifier, audit, audit_sink: InMemoryAuditSink
) -> None:
    mgr = _make_manager(clock, notifier, audit)
    approval = await mgr.create({"title": "x", "approvers": ["dr-1"]})
    clock.advance(minutes=10)
    decided = await mgr.process(approval.id, "approved", "dr-1", "Looks fine")
    assert decided.status == ApprovalStatus.APPROVED
    assert decided.decided_by == "dr-1"
    assert decided.decided_at == clock.now()
    assert len(decided.comments) == 1
    assert decided.comments[0].comment == "Looks fine"
    events = await audit_sink.query(action="approval_processed")
    assert events[0].details["decision"] == "approved"


async def test_reject_without_comment(clock: ManualClock, notifier: InMemoryNotifier) -> None:
    mgr = _make_manager(clock, notifier)
    approval = await mgr.create({"title": "x"})
    decided = await mgr.process(approval.id, ApprovalStatus.REJECTED, "dr-1")
    assert decided.status == ApprovalStatus.REJECTED
    assert decided.comments == []


async def test_decision_is_final(clock: ManualClock, notifier: InMemoryNotifier) -> None:
    mgr = _make_manager(clock, notifier)
    approval = await mgr.create({"title": "x"})
    await mgr.process(approval.id, "approved", "dr-1")
    with pytest.raises(InvalidTransitionError):
        await mgr.process(approval.id, "rejected", "dr-2")
    assert (await mgr.get(approval.id)).decided_by == "dr-1"


async def test_invalid_decision(clock: ManualClock, notifier: InMemoryNotifier) -> None:
    mgr = _make_manager(clock, notifier)
    approval = await mgr.create({"title": "x"})
    with pytest.raises(InvalidTransitionError):
        await mgr.process(approval.id, "pending", "dr-1")
    with pytest.raises(InvalidTransitionError):
        await mgr.process(approval.id, "maybe", "dr-1")


async def test_process_missing(clock: ManualClock, notifier: InMemoryNotifier) -> None:
    with pytest.raises(NotFoundError):
        await _make_manager(clock, notifier).process("APP_nope", "approved", "dr-1")


async def test_listeners_receive_decided_approval(
    clock: ManualClock, notifier: InMemoryNotifier
) -> None:
    seen: list[Approval] = []

    async def listener(approval: Approval) -> None:
        seen.append(approval)

    mgr = _make_manager(clock, notifier).add_listener(listener)
    approval = await mgr.create({"title": "x"})
    await mgr.process(approval.id, "approved", "dr-1")
    assert [a.status for a in seen] == [ApprovalStatus.APPROVED]


async def test_list_pending_by_approver(clock: ManualClock, notifier: InMemoryNotifier) -> None:
    mgr = _make_manager(clock, notifier)
    mine = await mgr.create({"title": "a", "approvers": ["dr-1"]})
    await mgr.create({"title": "b", "approvers": ["dr-2"]})
    done = await mgr.create({"title": "c", "approvers": ["dr-1"]})
    await mgr.process(done.id, "approved", "dr-1")
    assert [a.id for a in await mgr.list_pending("dr-1")] == [mine.id]
    assert len(await mgr.list_pending()) == 2


# ---------------------------------------------------------------------------
# Post-decision actions through the engine
# ---------------------------------------------------------------------------


async def test_on_approved_actions_run(engine: WorkflowEngine) -> None:
    approval = await engine.create_approval(
        {
            "title": "Discharge",
            "approvers": ["dr-1"],
            "entity_id": "P-1",
            "on_approved": [{"type": "create_task", "data": {"title": "Prepare discharge"}}],
            "on_rejected": [{"type": "create_task", "data": {"title": "Inform family"}}],
        }
    )
    await engine.process_approval(approval.id, "approved", "dr-1")
    tasks = await engine.get_tasks()
    assert [t.title for t in tasks] == ["Prepare discharge"]
    assert tasks[0].created_by == "dr-1"


async def test_on_rejected_actions_run(engine: WorkflowEngine) -> None:
    approval = await engine.create_approval(
        {
            "title": "Discharge",
            "on_approved": [{"type": "create_task", "data": {"title": "Prepare discharge"}}],
            "on_rejected": [{"type": "create_task", "data": {"title": "Inform family"}}],
        }
    )
    await engine.process_approval(approval.id, "rejected", "dr-1", "Not yet")
    assert [t.title for t in await engine.get_tasks()] == ["Inform family"]


async def test_failing_post_action_does_not_undo_decision(engine: WorkflowEngine) -> None:
    approval = await engine.create_approval(
        {
            "title": "x",
            "on_approved": [
                {"type": "update_status", "data": {"entity_id": "TASK_missing", "status": "completed"}},
            ],
        }
    )
    decided = await engine.process_approval(approval.id, "approved", "dr-1")
    assert decided.status == ApprovalStatus.APPROVED
