"""Approval data models."""
from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from clinflow.actions.models import Action
from clinflow.core.clock import UtcDatetime
from clinflow.core.constants import ApprovalStatus, TaskPriority


class ApprovalComment(BaseModel):
    user_id: str | None = None
    comment: str
    timestamp: datetime


class Approval(BaseModel):
    """A request for sign-off from one of ``approvers``.

    ``status`` moves ``pending -> approved | rejected`` exactly once.
    ``on_approved`` / ``on_rejected`` actions run after the decision.
    """

    id: str
    title: str
    description: str = ""
    type: str | None = None
    entity_id: str | None = None
    entity_type: str | None = None
    requested_by: str | None = None
    approvers: list[str] = Field(default_factory=list)
    status: ApprovalStatus = ApprovalStatus.PENDING
    priority: TaskPriority = TaskPriority.MEDIUM
    due_date: UtcDatetime | None = None
    created_at: datetime
    decided_at: datetime | None = None
    decided_by: str | None = None
    comments: list[ApprovalComment] = Field(default_factory=list)
    on_approved: list[Action] = Field(default_factory=list)
    on_rejected: list[Action] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)
