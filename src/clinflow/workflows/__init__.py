"""Workflows — definitions, built-in templates and the step executor."""
from clinflow.workflows.executor import WorkflowExecutor
from clinflow.workflows.manager import WorkflowManager
from clinflow.workflows.models import (
    StepError,
    StepResult,
    Workflow,
    WorkflowExecution,
    WorkflowStep,
)
from clinflow.workflows.presets import (
    TEMPLATES,
    builtin_templates,
    lab_result_review,
    patient_admission,
)

__all__ = [
    "StepError",
    "StepResult",
    "TEMPLATES",
    "Workflow",
    "WorkflowExecution",
    "WorkflowExecutor",
    "WorkflowManager",
    "WorkflowStep",
    "builtin_templates",
    "lab_result_review",
    "patient_admission",
]
