"""Built-in workflow templates."""
from __future__ import annotations

from datetime import datetime
from typing import Callable

from clinflow.actions.models import ActionType
from clinflow.workflows.models import Workflow, WorkflowStep


def patient_admission(now: datetime) -> Workflow:
    """Admit a patient.

    Steps:
        1. **Create Patient Record** (task)
        2. **Assign Room** (task)
        3. **Notify Staff** (notification)
        4. **Schedule Initial Assessment** (task)
    """
    return Workflow(
        id="patient_admission",
        name="Patient Admission Workflow",
        type="patient_care",
        steps=[
            WorkflowStep(name="Create Patient Record", type=ActionType.TASK),
            WorkflowStep(name="Assign Room", type=ActionType.TASK),
            WorkflowStep(
                name="Notify Staff",
                type=ActionType.NOTIFICATION,
                data={"message": "A new patient has been admitted", "type": "admission"},
            ),
            WorkflowStep(name="Schedule Initial Assessment", type=ActionType.TASK),
        ],
        triggers=["patient_admitted"],
        created_at=now,
        updated_at=now,
    )


def lab_result_review(now: datetime) -> Workflow:
    """Review a lab result.

    Steps:
        1. **Review Results** (task)
        2. **Notify Physician** (notification)
        3. **Update Patient Record** (task)
    """
    return Workflow(
        id="lab_result_review",
        name="Lab Result Review Workflow",
        type="clinical",
        steps=[
            WorkflowStep(name="Review Results", type=ActionType.TASK),
            WorkflowStep(
                name="Notify Physician",
                type=ActionType.NOTIFICATION,
                data={"message": "Lab results are ready for review", "type": "lab_result"},
            ),
            WorkflowStep(name="Update Patient Record", type=ActionType.TASK),
        ],
        created_at=now,
        updated_at=now,
    )


TEMPLATES: dict[str, Callable[[datetime], Workflow]] = {
    "patient_admission": patient_admission,
    "lab_result_review": lab_result_review,
}


def builtin_templates(now: datetime) -> list[Workflow]:
    return [factory(now) for factory in TEMPLATES.values()]
