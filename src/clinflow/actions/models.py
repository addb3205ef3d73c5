"""Action data models — the unit of side effect shared by steps and rules."""
from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field


class ActionType(StrEnum):
    """Every action type the dispatcher knows how to execute."""

    CREATE_TASK = "create_task"
    SEND_NOTIFICATION = "send_notification"
    SEND_EMAIL = "send_email"
    UPDATE_STATUS = "update_status"
    # Workflow step types
    TASK = "task"
    APPROVAL = "approval"
    REMINDER = "reminder"
    NOTIFICATION = "notification"
    EMAIL = "email"
    SMS = "sms"


KNOWN_ACTION_TYPES: frozenset[str] = frozenset(t.value for t in ActionType)


class Action(BaseModel):
    """A named side effect: ``{type, data}``.

    ``type`` is kept as a plain string so definitions loaded with
    ``legacy_unknown_actions`` enabled can carry types the dispatcher does
    not recognise; strict engines reject them when the definition is
    created.
    """

    type: str
    data: dict[str, Any] = Field(default_factory=dict)
    name: str | None = None

    @property
    def is_known(self) -> bool:
        return self.type in KNOWN_ACTION_TYPES

    @property
    def label(self) -> str:
        return self.name or self.type


class ActionOutcome(BaseModel):
    """Per-action record of a fan-out run (rule actions, approval follow-ups)."""

    action: str
    result: Any = None
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.error is None
