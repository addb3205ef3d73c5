from __future__ import annotations

from datetime import timedelta
from enum import StrEnum


class WorkflowStatus(StrEnum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class ExecutionStatus(StrEnum):
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class TaskStatus(StrEnum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    ON_HOLD = "on_hold"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class TaskPriority(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class ReminderStatus(StrEnum):
    PENDING = "pending"
    SENT = "sent"


class ApprovalStatus(StrEnum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class RuleStatus(StrEnum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class ScheduleStatus(StrEnum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    COMPLETED = "completed"


class Frequency(StrEnum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


FREQUENCY_OFFSETS: dict[str, timedelta] = {
    Frequency.DAILY: timedelta(days=1),
    Frequency.WEEKLY: timedelta(days=7),
    Frequency.MONTHLY: timedelta(days=30),
}

DEFAULT_FREQUENCY_OFFSET = timedelta(days=1)


def frequency_offset(frequency: str | None) -> timedelta:
    """Return the recurrence offset for *frequency* (unknown values recur daily)."""
    if frequency is None:
        return DEFAULT_FREQUENCY_OFFSET
    return FREQUENCY_OFFSETS.get(frequency, DEFAULT_FREQUENCY_OFFSET)
