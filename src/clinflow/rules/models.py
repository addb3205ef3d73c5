"""Automation rule data models."""
from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from clinflow.actions.models import Action, ActionOutcome
from clinflow.core.constants import RuleStatus
from clinflow.rules.conditions import Condition


class AutomationRule(BaseModel):
    """A condition set plus an action set, evaluated on demand.

    All ``conditions`` must hold (logical AND) for ``actions`` to run.
    """

    id: str
    name: str
    description: str = ""
    trigger: str | None = None
    conditions: list[Condition] = Field(default_factory=list)
    actions: list[Action] = Field(default_factory=list)
    status: RuleStatus = RuleStatus.ACTIVE
    created_by: str | None = None
    created_at: datetime
    last_executed: datetime | None = None
    execution_count: int = 0
    metadata: dict[str, Any] = Field(default_factory=dict)


class RuleOutcome(BaseModel):
    """Result of :meth:`RuleEngine.evaluate_and_run`.

    Attributes:
        executed: Whether the actions ran.
        results: Per-action outcomes when ``executed`` is ``True``.
        reason: Why the actions did not run.
        error: The evaluation error message when a condition could not be
            evaluated.
    """

    rule_id: str
    executed: bool
    results: list[ActionOutcome] | None = None
    reason: str | None = None
    error: str | None = None
