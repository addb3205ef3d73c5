"""Task data model."""
from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from clinflow.core.clock import UtcDatetime
from clinflow.core.constants import TaskPriority, TaskStatus


class Task(BaseModel):
    """A unit of work assigned to a user, created directly or by a step/action."""

    id: str
    title: str
    description: str = ""
    type: str | None = None
    priority: TaskPriority = TaskPriority.MEDIUM
    status: TaskStatus = TaskStatus.PENDING
    assigned_to: str | None = None
    created_by: str | None = None
    due_date: UtcDatetime | None = None
    created_at: datetime
    updated_at: datetime
    completed_at: datetime | None = None
    tags: list[str] = Field(default_factory=list)
    dependencies: list[str] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)
