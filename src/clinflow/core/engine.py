"""WorkflowEngine — the caller-facing facade over the execution core.

Wires the entity managers, the action dispatcher, the workflow executor,
the rule engine and the scheduler around one clock, one notifier and one
audit logger.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import structlog
from pydantic import BaseModel, Field

from clinflow.actions.dispatcher import ActionDispatcher
from clinflow.actions.models import ActionOutcome
from clinflow.approvals.manager import ApprovalManager
from clinflow.approvals.models import Approval
from clinflow.audit.logger import AuditLogger
from clinflow.core.cancellation import CancellationToken
from clinflow.core.clock import Clock, SystemClock
from clinflow.core.config import EngineConfig
from clinflow.core.constants import ApprovalStatus, TaskStatus, WorkflowStatus
from clinflow.core.exceptions import EvaluationError
from clinflow.notify.base import LogNotifier, Notifier
from clinflow.reminders.manager import ReminderManager
from clinflow.reminders.models import Reminder
from clinflow.rules.conditions import evaluate_all
from clinflow.rules.engine import RuleEngine
from clinflow.rules.models import AutomationRule, RuleOutcome
from clinflow.rules.presets import builtin_rules
from clinflow.scheduling.manager import ScheduleManager
from clinflow.scheduling.models import Schedule
from clinflow.scheduling.scheduler import Scheduler
from clinflow.stores.base import EntityStore, InMemoryStore
from clinflow.tasks.manager import TaskManager
from clinflow.tasks.models import Task
from clinflow.utils.logging import configure_logging
from clinflow.workflows.executor import WorkflowExecutor
from clinflow.workflows.manager import WorkflowManager
from clinflow.workflows.models import Workflow, WorkflowExecution
from clinflow.workflows.presets import builtin_templates

logger = structlog.get_logger(__name__)


@dataclass
class EngineStores:
    """One store per entity kind.  Defaults to in-memory stores."""

    workflows: EntityStore[Workflow] = field(default_factory=InMemoryStore)
    executions: EntityStore[WorkflowExecution] = field(default_factory=InMemoryStore)
    tasks: EntityStore[Task] = field(default_factory=InMemoryStore)
    reminders: EntityStore[Reminder] = field(default_factory=InMemoryStore)
    approvals: EntityStore[Approval] = field(default_factory=InMemoryStore)
    rules: EntityStore[AutomationRule] = field(default_factory=InMemoryStore)
    schedules: EntityStore[Schedule] = field(default_factory=InMemoryStore)


class TriggerReport(BaseModel):
    """Everything a :meth:`WorkflowEngine.fire_trigger` call started."""

    trigger: str
    rules: list[RuleOutcome] = Field(default_factory=list)
    executions: list[WorkflowExecution] = Field(default_factory=list)


class WorkflowEngine:
    """Single-process, in-memory workflow and automation core.

    Example::

        async with WorkflowEngine(notifier=LogNotifier()) as engine:
            wf = await engine.create_workflow({
                "name": "Discharge",
                "steps": [{"name": "Prepare summary", "type": "task"}],
            })
            execution = await engine.execute_workflow(wf.id, {"user_id": "nurse-1"})

    Entering the context seeds the built-in templates and rules and starts
    the periodic sweeps; leaving it stops them.
    """

    def __init__(
        self,
        config: EngineConfig | None = None,
        *,
        notifier: Notifier | None = None,
        audit: AuditLogger | None = None,
        clock: Clock | None = None,
        stores: EngineStores | None = None,
    ) -> None:
        self._config = config or EngineConfig()
        self._clock: Clock = clock or SystemClock()
        self._notifier: Notifier = notifier or LogNotifier()
        self._audit = audit or AuditLogger(clock=self._clock)
        stores = stores or EngineStores()
        self._seeded = False

        common: dict[str, Any] = {"audit": self._audit, "clock": self._clock}
        self._tasks = TaskManager(stores.tasks, **common)
        self._reminders = ReminderManager(
            stores.reminders,
            notifier=self._notifier,
            timers=self._config.reminder_timers,
            **common,
        )
        self._approvals = ApprovalManager(stores.approvals, notifier=self._notifier, **common)
        self._dispatcher = ActionDispatcher(
            tasks=self._tasks,
            approvals=self._approvals,
            reminders=self._reminders,
            notifier=self._notifier,
            legacy_unknown_actions=self._config.legacy_unknown_actions,
        )
        self._workflows = WorkflowManager(self._dispatcher, stores.workflows, **common)
        self._executor = WorkflowExecutor(
            self._workflows,
            self._dispatcher,
            stores.executions,
            step_timeout_seconds=self._config.step_timeout_seconds,
            **common,
        )
        self._rules = RuleEngine(
            self._dispatcher,
            stores.rules,
            count_unmatched_evaluations=self._config.count_unmatched_evaluations,
            **common,
        )
        self._schedules = ScheduleManager(
            self._dispatcher,
            self._reminders,
            self._tasks,
            stores.schedules,
            cleanup_retention_days=self._config.cleanup_retention_days,
            **common,
        )
        self._scheduler = Scheduler(
            self._reminders,
            self._schedules,
            reminder_interval=self._config.reminder_sweep_seconds,
            schedule_ratio=self._config.schedule_sweep_ratio,
        )
        self._approvals.add_listener(self._run_post_approval_actions)

    def __repr__(self) -> str:
        return f"WorkflowEngine(running={self._scheduler.running})"

    @classmethod
    def from_env(cls, **kwargs: Any) -> WorkflowEngine:
        """Build an engine from ``CLINFLOW_*`` variables and configure logging."""
        config = EngineConfig.from_env()
        configure_logging(config.log_level, json=config.log_json)
        return cls(config, **kwargs)

    # ------------------------------------------------------------------ #
    # Components
    # ------------------------------------------------------------------ #

    @property
    def config(self) -> EngineConfig:
        return self._config

    @property
    def clock(self) -> Clock:
        return self._clock

    @property
    def audit(self) -> AuditLogger:
        return self._audit

    @property
    def dispatcher(self) -> ActionDispatcher:
        return self._dispatcher

    @property
    def tasks(self) -> TaskManager:
        return self._tasks

    @property
    def reminders(self) -> ReminderManager:
        return self._reminders

    @property
    def approvals(self) -> ApprovalManager:
        return self._approvals

    @property
    def workflows(self) -> WorkflowManager:
        return self._workflows

    @property
    def executor(self) -> WorkflowExecutor:
        return self._executor

    @property
    def rules(self) -> RuleEngine:
        return self._rules

    @property
    def schedules(self) -> ScheduleManager:
        return self._schedules

    @property
    def scheduler(self) -> Scheduler:
        return self._scheduler

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    async def initialize(self) -> None:
        """Seed the built-in workflow templates and automation rules once."""
        if self._seeded:
            return
        now = self._clock.now()
        if self._config.load_builtin_templates:
            await self._workflows.seed(builtin_templates(now))
        if self._config.load_builtin_rules:
            await self._rules.seed(builtin_rules(now))
        self._seeded = True
        logger.info("workflow_engine_initialized")

    async def start(self) -> None:
        await self.initialize()
        await self._scheduler.start()

    async def close(self) -> None:
        await self._scheduler.stop()
        await self._reminders.close()
        await self._audit.close()

    async def __aenter__(self) -> WorkflowEngine:
        await self.start()
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()

    # ------------------------------------------------------------------ #
    # Workflows
    # ------------------------------------------------------------------ #

    async def create_workflow(self, data: dict[str, Any]) -> Workflow:
        return await self._workflows.create(data)

    async def create_workflow_from_template(
        self, template_id: str, **overrides: Any
    ) -> Workflow:
        return await self._workflows.create_from_template(template_id, **overrides)

    async def get_workflow(self, workflow_id: str) -> Workflow:
        return await self._workflows.get(workflow_id)

    async def list_workflows(self, **filters: Any) -> list[Workflow]:
        return await self._workflows.list_workflows(**filters)

    async def update_workflow(
        self, workflow_id: str, changes: dict[str, Any], user_id: str | None = None
    ) -> Workflow:
        return await self._workflows.update(workflow_id, changes, user_id)

    async def execute_workflow(
        self,
        workflow_id: str,
        context: dict[str, Any] | None = None,
        *,
        cancel_token: CancellationToken | None = None,
    ) -> WorkflowExecution:
        return await self._executor.run(workflow_id, context, cancel_token=cancel_token)

    async def get_execution(self, execution_id: str) -> WorkflowExecution:
        return await self._executor.get_execution(execution_id)

    # ------------------------------------------------------------------ #
    # Tasks
    # ------------------------------------------------------------------ #

    async def create_task(self, data: dict[str, Any]) -> Task:
        return await self._tasks.create(data)

    async def update_task_status(
        self, task_id: str, status: TaskStatus | str, user_id: str | None = None
    ) -> Task:
        return await self._tasks.update_status(task_id, status, user_id)

    async def get_tasks(self, **filters: Any) -> list[Task]:
        return await self._tasks.list_tasks(**filters)

    # ------------------------------------------------------------------ #
    # Reminders
    # ------------------------------------------------------------------ #

    async def create_reminder(self, data: dict[str, Any]) -> Reminder:
        return await self._reminders.create(data)

    async def process_reminders(
        self, cancel_token: CancellationToken | None = None
    ) -> list[Reminder]:
        return await self._reminders.process_due(cancel_token)

    # ------------------------------------------------------------------ #
    # Approvals
    # ------------------------------------------------------------------ #

    async def create_approval(self, data: dict[str, Any]) -> Approval:
        return await self._approvals.create(data)

    async def process_approval(
        self,
        approval_id: str,
        decision: ApprovalStatus | str,
        user_id: str | None,
        comments: str = "",
    ) -> Approval:
        return await self._approvals.process(approval_id, decision, user_id, comments)

    async def _run_post_approval_actions(self, approval: Approval) -> list[ActionOutcome]:
        actions = (
            approval.on_approved
            if approval.status == ApprovalStatus.APPROVED
            else approval.on_rejected
        )
        if not actions:
            return []
        context = {
            "user_id": approval.decided_by,
            "approval_id": approval.id,
            "entity_id": approval.entity_id,
            "entity_type": approval.entity_type,
        }
        outcomes = await self._dispatcher.execute_all(actions, context)
        logger.info(
            "post_approval_actions_executed",
            approval_id=approval.id,
            decision=approval.status.value,
            actions=len(outcomes),
            failures=sum(1 for o in outcomes if not o.succeeded),
        )
        return outcomes

    # ------------------------------------------------------------------ #
    # Automation rules
    # ------------------------------------------------------------------ #

    async def create_rule(self, data: dict[str, Any]) -> AutomationRule:
        return await self._rules.create(data)

    async def execute_rule(self, rule_id: str, context: dict[str, Any]) -> RuleOutcome:
        return await self._rules.evaluate_and_run(rule_id, context)

    async def fire_trigger(self, trigger: str, context: dict[str, Any]) -> TriggerReport:
        """Run every active rule and workflow listening on *trigger*.

        A workflow starts only if all of its ``conditions`` hold against
        *context*; one that cannot be evaluated is logged and skipped.
        """
        report = TriggerReport(trigger=trigger)
        report.rules = await self._rules.handle_trigger(trigger, context)

        workflows = await self._workflows.list_workflows(
            trigger=trigger, status=WorkflowStatus.ACTIVE
        )
        for workflow in workflows:
            try:
                matched = evaluate_all(workflow.conditions, context)
            except EvaluationError as exc:
                logger.warning(
                    "workflow_trigger_evaluation_failed",
                    workflow_id=workflow.id,
                    trigger=trigger,
                    error=str(exc),
                )
                continue
            if matched:
                report.executions.append(await self._executor.run(workflow.id, context))
        return report

    # ------------------------------------------------------------------ #
    # Schedules
    # ------------------------------------------------------------------ #

    async def create_schedule(self, data: dict[str, Any]) -> Schedule:
        return await self._schedules.create(data)

    async def process_schedules(
        self, cancel_token: CancellationToken | None = None
    ) -> list[Schedule]:
        return await self._schedules.process_due(cancel_token)
