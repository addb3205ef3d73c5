"""Schedule data model."""
from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from clinflow.actions.models import Action
from clinflow.core.clock import UtcDatetime
from clinflow.core.constants import Frequency, ScheduleStatus
from clinflow.reminders.models import Reminder
from clinflow.tasks.models import Task


class Schedule(BaseModel):
    """A recurring trigger.

    Each firing stamps ``last_run``, increments ``run_count`` and moves
    ``next_run`` forward from the firing time by the ``frequency`` offset
    (daily 1 day, weekly 7 days, monthly 30 days, anything else 1 day).

    What a firing does is chosen by, in order: an explicit ``action``, a
    handler registered for ``type``, the built-in ``reminder``, ``cleanup``
    and ``backup`` types, then a generic success result.
    """

    id: str
    name: str
    description: str = ""
    type: str | None = None
    frequency: str = Frequency.DAILY
    start_at: UtcDatetime | None = None
    end_at: UtcDatetime | None = None
    next_run: UtcDatetime
    status: ScheduleStatus = ScheduleStatus.ACTIVE
    action: Action | None = None
    created_by: str | None = None
    created_at: datetime
    last_run: datetime | None = None
    run_count: int = 0
    last_result: Any = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class BackupSnapshot(BaseModel):
    """Point-in-time copy of the reminder and task stores."""

    taken_at: datetime
    reminders: list[Reminder] = Field(default_factory=list)
    tasks: list[Task] = Field(default_factory=list)
