"""Reminder data model."""
from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from clinflow.core.clock import UtcDatetime
from clinflow.core.constants import ReminderStatus


class Reminder(BaseModel):
    """A one-off notification due at ``trigger_at``.

    ``status`` only ever moves ``pending -> sent``.
    """

    id: str
    title: str
    message: str = ""
    type: str | None = None
    user_id: str | None = None
    entity_id: str | None = None
    entity_type: str | None = None
    trigger_at: UtcDatetime
    status: ReminderStatus = ReminderStatus.PENDING
    created_at: datetime
    sent_at: datetime | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
