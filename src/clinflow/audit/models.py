"""Audit event data models."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, Field


class AuditEvent(BaseModel):
    """An immutable record of a create or transition operation.

    Emitted after every workflow, task, reminder, approval, rule and
    schedule mutation and dispatched to one or more
    :class:`~clinflow.audit.sinks.AuditSink` implementations.
    """

    event_id: str = Field(default_factory=lambda: uuid4().hex[:16])
    action: str
    """What happened, e.g. ``"workflow_executed"`` or ``"reminder_sent"``."""
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    user_id: str | None = None
    resource: str = ""
    """``<entity_type>:<entity_id>`` of the entity the action touched."""
    details: dict[str, Any] = Field(default_factory=dict)
    success: bool = True
    error: str | None = None
