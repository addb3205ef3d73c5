"""ApprovalManager -- approval requests and their one-time decision.

Typical lifecycle::

    approval = await approvals.create({"title": "Discharge", "approvers": ["dr-1"]})
    # every approver receives an ``approval`` notification
    approval = await approvals.process(approval.id, "approved", "dr-1", "Looks fine")
    # registered decision listeners run (the engine wires the approval's
    # on_approved / on_rejected actions here)
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable

import structlog

from clinflow.approvals.models import Approval, ApprovalComment
from clinflow.audit.logger import AuditLogger
from clinflow.core import ids
from clinflow.core.clock import Clock, SystemClock
from clinflow.core.constants import ApprovalStatus
from clinflow.core.exceptions import InvalidTransitionError, NotFoundError
from clinflow.notify.base import LogNotifier, Notification, Notifier
from clinflow.stores.base import EntityStore, InMemoryStore

logger = structlog.get_logger(__name__)

DecisionListener = Callable[[Approval], Awaitable[Any]]

_MANAGED_FIELDS = ("id", "status", "created_at", "decided_at", "decided_by", "comments")
_DECISIONS = (ApprovalStatus.APPROVED, ApprovalStatus.REJECTED)


class ApprovalManager:
    """Create approval requests and record decisions."""

    def __init__(
        self,
        store: EntityStore[Approval] | None = None,
        *,
        notifier: Notifier | None = None,
        audit: AuditLogger | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._store: EntityStore[Approval] = store if store is not None else InMemoryStore()
        self._notifier: Notifier = notifier or LogNotifier()
        self._audit = audit or AuditLogger()
        self._clock: Clock = clock or SystemClock()
        self._listeners: list[DecisionListener] = []

    @property
    def store(self) -> EntityStore[Approval]:
        return self._store

    def add_listener(self, listener: DecisionListener) -> ApprovalManager:
        """Register a coroutine called with each decided approval."""
        self._listeners.append(listener)
        return self

    async def create(self, data: dict[str, Any]) -> Approval:
        """Create a pending approval and notify every approver."""
        fields = {k: v for k, v in data.items() if k not in _MANAGED_FIELDS}
        approval = Approval(
            id=ids.new_id(ids.APPROVAL),
            created_at=self._clock.now(),
            **fields,
        )
        await self._store.put(approval)
        await self._notify_approvers(approval)
        await self._audit.record(
            "approval_created",
            {"approval_id": approval.id, "type": approval.type},
            user_id=approval.requested_by,
            resource=f"approval:{approval.id}",
        )
        return approval

    async def get(self, approval_id: str) -> Approval:
        approval = await self._store.get(approval_id)
        if approval is None:
            raise NotFoundError("approval", approval_id)
        return approval

    async def process(
        self,
        approval_id: str,
        decision: ApprovalStatus | str,
        user_id: str | None,
        comments: str = "",
    ) -> Approval:
        """Record *decision* (``approved`` or ``rejected``) on a pending approval.

        Raises:
            NotFoundError: If the approval does not exist.
            InvalidTransitionError: If the decision is not a valid outcome or
                the approval was already decided.
        """
        approval = await self.get(approval_id)
        if decision not in _DECISIONS:
            raise InvalidTransitionError(
                f"Invalid approval decision: {decision}",
                details={"approval_id": approval_id},
            )
        if approval.status != ApprovalStatus.PENDING:
            raise InvalidTransitionError(
                f"Approval {approval_id} is already {approval.status.value}",
                details={"approval_id": approval_id, "status": approval.status.value},
            )

        now = self._clock.now()
        approval.status = ApprovalStatus(decision)
        approval.decided_by = user_id
        approval.decided_at = now
        if comments:
            approval.comments.append(
                ApprovalComment(user_id=user_id, comment=comments, timestamp=now)
            )
        await self._store.put(approval)
        logger.info(
            "approval_processed",
            approval_id=approval_id,
            decision=approval.status.value,
            user_id=user_id,
        )

        for listener in self._listeners:
            await listener(approval)

        await self._audit.record(
            "approval_processed",
            {"approval_id": approval_id, "decision": approval.status.value},
            user_id=user_id,
            resource=f"approval:{approval_id}",
        )
        return approval

    async def list_pending(self, approver: str | None = None) -> list[Approval]:
        return await self._store.find(
            lambda a: a.status == ApprovalStatus.PENDING
            and (approver is None or approver in a.approvers)
        )

    async def _notify_approvers(self, approval: Approval) -> None:
        for approver in approval.approvers:
            try:
                await self._notifier.send(
                    Notification(
                        user_id=approver,
                        title="Approval Required",
                        message=f"You have a pending approval: {approval.title}",
                        type="approval",
                        metadata={"approval_id": approval.id},
                    )
                )
            except Exception as exc:
                logger.warning(
                    "approval_notify_failed",
                    approval_id=approval.id,
                    approver=approver,
                    error=str(exc),
                )
