"""Workflow executor — runs a workflow's steps as a fail-fast pipeline.

Steps run strictly in order; step *i+1* never starts before step *i*
finishes.  The first failing step ends the execution with ``status=failed``.
Steps that already ran are not compensated or rolled back.
"""
from __future__ import annotations

import asyncio
from typing import Any

import structlog

from clinflow.actions.dispatcher import ActionDispatcher
from clinflow.audit.logger import AuditLogger
from clinflow.core import ids
from clinflow.core.cancellation import CancellationToken
from clinflow.core.clock import Clock, SystemClock
from clinflow.core.constants import ExecutionStatus, WorkflowStatus
from clinflow.core.exceptions import NotFoundError, WorkflowError
from clinflow.stores.base import EntityStore, InMemoryStore
from clinflow.utils.async_helpers import with_timeout
from clinflow.workflows.manager import WorkflowManager
from clinflow.workflows.models import StepError, StepResult, WorkflowExecution

logger = structlog.get_logger(__name__)


class WorkflowExecutor:
    """Runs workflows and keeps their executions.

    Args:
        workflows: Source of workflow definitions.
        dispatcher: Executes each step.
        store: Execution store.
        step_timeout_seconds: Optional deadline per step; a step that
            exceeds it fails the execution like any other step failure.

    Example::

        execution = await executor.run("patient_admission", {"user_id": "nurse-1"})
        if execution.status == ExecutionStatus.FAILED:
            print(execution.errors[0].error)
    """

    def __init__(
        self,
        workflows: WorkflowManager,
        dispatcher: ActionDispatcher,
        store: EntityStore[WorkflowExecution] | None = None,
        *,
        audit: AuditLogger | None = None,
        clock: Clock | None = None,
        step_timeout_seconds: float | None = None,
    ) -> None:
        self._workflows = workflows
        self._dispatcher = dispatcher
        self._store: EntityStore[WorkflowExecution] = (
            store if store is not None else InMemoryStore()
        )
        self._audit = audit or AuditLogger()
        self._clock: Clock = clock or SystemClock()
        self._step_timeout = step_timeout_seconds

    @property
    def store(self) -> EntityStore[WorkflowExecution]:
        return self._store

    async def run(
        self,
        workflow_id: str,
        context: dict[str, Any] | None = None,
        *,
        cancel_token: CancellationToken | None = None,
    ) -> WorkflowExecution:
        """Execute the workflow once against *context*.

        Step failures do not raise: they are recorded in ``errors`` and the
        execution is returned with ``status=failed``.

        Raises:
            NotFoundError: If the workflow does not exist.
            WorkflowError: If the workflow is inactive.
        """
        workflow = await self._workflows.get(workflow_id)
        if workflow.status != WorkflowStatus.ACTIVE:
            raise WorkflowError(
                f"Workflow {workflow_id} is {workflow.status.value}",
                details={"workflow_id": workflow_id},
            )

        execution = WorkflowExecution(
            id=ids.new_id(ids.EXECUTION),
            workflow_id=workflow_id,
            context=dict(context or {}),
            start_time=self._clock.now(),
        )
        await self._store.put(execution)
        log = logger.bind(workflow_id=workflow_id, execution_id=execution.id)
        log.debug("workflow_execution_started", steps=len(workflow.steps))

        for index, step in enumerate(workflow.steps):
            if cancel_token is not None and cancel_token.cancelled:
                execution.status = ExecutionStatus.CANCELLED
                log.info("workflow_execution_cancelled", step=index, reason=cancel_token.reason)
                break

            try:
                result = await with_timeout(
                    self._dispatcher.execute(step, execution.context),
                    self._step_timeout,
                )
            except Exception as exc:
                message = self._error_message(exc)
                execution.errors.append(
                    StepError(
                        step_index=index,
                        step_name=step.label,
                        error=message,
                        timestamp=self._clock.now(),
                    )
                )
                execution.status = ExecutionStatus.FAILED
                log.error(
                    "workflow_step_failed",
                    step=index,
                    step_name=step.label,
                    error=message,
                )
                break

            execution.results.append(
                StepResult(
                    step_index=index,
                    step_name=step.label,
                    result=result,
                    timestamp=self._clock.now(),
                )
            )
            execution.current_step = index + 1
            log.debug("workflow_step_completed", step=index, step_name=step.label)

        if execution.status == ExecutionStatus.RUNNING:
            execution.status = ExecutionStatus.COMPLETED
        execution.end_time = self._clock.now()
        await self._store.put(execution)

        log.info(
            "workflow_executed",
            status=execution.status.value,
            results=len(execution.results),
            errors=len(execution.errors),
        )
        await self._audit.record(
            "workflow_executed",
            {
                "workflow_id": workflow_id,
                "execution_id": execution.id,
                "status": execution.status.value,
            },
            user_id=execution.context.get("user_id"),
            resource=f"workflow:{workflow_id}",
            success=execution.status == ExecutionStatus.COMPLETED,
            error=execution.errors[0].error if execution.errors else None,
        )
        return execution

    async def get_execution(self, execution_id: str) -> WorkflowExecution:
        execution = await self._store.get(execution_id)
        if execution is None:
            raise NotFoundError("workflow execution", execution_id)
        return execution

    async def list_executions(
        self, workflow_id: str | None = None
    ) -> list[WorkflowExecution]:
        return await self._store.find(
            lambda e: workflow_id is None or e.workflow_id == workflow_id
        )

    def _error_message(self, exc: Exception) -> str:
        if isinstance(exc, asyncio.TimeoutError):
            return f"Step timed out after {self._step_timeout}s"
        return str(exc) or type(exc).__name__
