from clinflow.tasks.manager import TaskManager
from clinflow.tasks.models import Task

__all__ = ["Task", "TaskManager"]
