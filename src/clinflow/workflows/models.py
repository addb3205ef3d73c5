"""Workflow data models — definitions, steps, and executions."""
from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from clinflow.actions.models import Action
from clinflow.core.constants import ExecutionStatus, WorkflowStatus
from clinflow.rules.conditions import Condition


class WorkflowStep(Action):
    """One step of a workflow: an :class:`Action` with an optional name.

    The step ``type`` selects the side effect (``task``, ``approval``,
    ``reminder``, ``notification``, ``email``, ``sms``, or any rule action
    type) and ``data`` is its payload.  Unnamed steps are recorded in
    results and errors under their ``type``.
    """


class Workflow(BaseModel):
    """A named, ordered list of steps with optional triggers and conditions.

    ``triggers`` name the events that start the workflow automatically;
    ``conditions`` must all hold against the event context for it to start.
    """

    id: str
    name: str
    description: str = ""
    type: str | None = None
    status: WorkflowStatus = WorkflowStatus.ACTIVE
    steps: list[WorkflowStep] = Field(default_factory=list)
    triggers: list[str] = Field(default_factory=list)
    conditions: list[Condition] = Field(default_factory=list)
    created_by: str | None = None
    created_at: datetime
    updated_at: datetime
    version: int = 1
    metadata: dict[str, Any] = Field(default_factory=dict)


class StepResult(BaseModel):
    step_index: int
    step_name: str
    result: Any = None
    timestamp: datetime


class StepError(BaseModel):
    step_index: int
    step_name: str
    error: str
    timestamp: datetime


class WorkflowExecution(BaseModel):
    """One pass through one workflow's steps.

    ``results`` and ``errors`` are append-only and ordered by step index.
    The execution is terminal once ``status`` leaves ``running``.

    Attributes:
        current_step: Index of the next step to run; equals the number of
            steps that succeeded.
        end_time: Stamped once when the run finishes, whatever the outcome.
    """

    id: str
    workflow_id: str
    context: dict[str, Any] = Field(default_factory=dict)
    status: ExecutionStatus = ExecutionStatus.RUNNING
    current_step: int = 0
    results: list[StepResult] = Field(default_factory=list)
    errors: list[StepError] = Field(default_factory=list)
    start_time: datetime
    end_time: datetime | None = None

    @property
    def succeeded(self) -> bool:
        return self.status == ExecutionStatus.COMPLETED
