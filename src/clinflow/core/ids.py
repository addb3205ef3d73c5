from __future__ import annotations

from uuid import uuid4

WORKFLOW = "WF"
EXECUTION = "EXEC"
TASK = "TASK"
REMINDER = "REM"
APPROVAL = "APP"
RULE = "RULE"
SCHEDULE = "SCHED"


def new_id(prefix: str) -> str:
    """Return a unique identifier such as ``TASK_3f2a...``."""
    return f"{prefix}_{uuid4().hex}"
