"""clinflow — workflow and automation execution core."""

from clinflow.__version__ import __version__

from clinflow.actions.dispatcher import ActionDispatcher
from clinflow.actions.models import Action, ActionOutcome, ActionType
from clinflow.approvals.manager import ApprovalManager
from clinflow.approvals.models import Approval, ApprovalComment
from clinflow.audit.logger import AuditLogger
from clinflow.audit.models import AuditEvent
from clinflow.audit.sinks import (
    AuditSink,
    FileAuditSink,
    InMemoryAuditSink,
    StructlogAuditSink,
)
from clinflow.core.cancellation import CancellationToken
from clinflow.core.clock import Clock, ManualClock, SystemClock
from clinflow.core.config import EngineConfig
from clinflow.core.constants import (
    ApprovalStatus,
    ExecutionStatus,
    Frequency,
    ReminderStatus,
    RuleStatus,
    ScheduleStatus,
    TaskPriority,
    TaskStatus,
    WorkflowStatus,
)
from clinflow.core.engine import EngineStores, TriggerReport, WorkflowEngine
from clinflow.core.exceptions import (
    ActionError,
    ClinflowError,
    ConfigurationError,
    DispatchError,
    EvaluationError,
    ExecutionCancelledError,
    InvalidTransitionError,
    NotFoundError,
    UnknownActionError,
    WorkflowError,
)
from clinflow.notify.base import (
    Channel,
    InMemoryNotifier,
    LogNotifier,
    Notification,
    Notifier,
    WebhookNotifier,
)
from clinflow.reminders.manager import ReminderManager
from clinflow.reminders.models import Reminder
from clinflow.rules.conditions import Condition, Operator
from clinflow.rules.engine import RuleEngine
from clinflow.rules.models import AutomationRule, RuleOutcome
from clinflow.scheduling.manager import ScheduleManager
from clinflow.scheduling.models import BackupSnapshot, Schedule
from clinflow.scheduling.scheduler import Scheduler
from clinflow.stores.base import EntityStore, InMemoryStore
from clinflow.tasks.manager import TaskManager
from clinflow.tasks.models import Task
from clinflow.utils.logging import configure_logging
from clinflow.workflows.executor import WorkflowExecutor
from clinflow.workflows.manager import WorkflowManager
from clinflow.workflows.models import (
    StepError,
    StepResult,
    Workflow,
    WorkflowExecution,
    WorkflowStep,
)

__all__ = [
    "__version__",
    "Action",
    "ActionDispatcher",
    "ActionError",
    "ActionOutcome",
    "ActionType",
    "Approval",
    "ApprovalComment",
    "ApprovalManager",
    "ApprovalStatus",
    "AuditEvent",
    "AuditLogger",
    "AuditSink",
    "AutomationRule",
    "BackupSnapshot",
    "CancellationToken",
    "Channel",
    "ClinflowError",
    "Clock",
    "Condition",
    "ConfigurationError",
    "DispatchError",
    "EngineConfig",
    "EngineStores",
    "EntityStore",
    "EvaluationError",
    "ExecutionCancelledError",
    "ExecutionStatus",
    "FileAuditSink",
    "Frequency",
    "InMemoryAuditSink",
    "InMemoryNotifier",
    "InMemoryStore",
    "InvalidTransitionError",
    "LogNotifier",
    "ManualClock",
    "NotFoundError",
    "Notification",
    "Notifier",
    "Operator",
    "Reminder",
    "ReminderManager",
    "ReminderStatus",
    "RuleEngine",
    "RuleOutcome",
    "RuleStatus",
    "Schedule",
    "ScheduleManager",
    "ScheduleStatus",
    "Scheduler",
    "StepError",
    "StepResult",
    "StructlogAuditSink",
    "SystemClock",
    "Task",
    "TaskManager",
    "TaskPriority",
    "TaskStatus",
    "TriggerReport",
    "UnknownActionError",
    "WebhookNotifier",
    "Workflow",
    "WorkflowEngine",
    "WorkflowError",
    "WorkflowExecution",
    "WorkflowExecutor",
    "WorkflowManager",
    "WorkflowStatus",
    "WorkflowStep",
    "configure_logging",
]
