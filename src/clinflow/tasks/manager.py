from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any

import structlog

from clinflow.audit.logger import AuditLogger
from clinflow.core import ids
from clinflow.core.clock import Clock, SystemClock, as_utc
from clinflow.core.constants import TaskStatus
from clinflow.core.exceptions import InvalidTransitionError, NotFoundError
from clinflow.stores.base import EntityStore, InMemoryStore
from clinflow.tasks.models import Task

logger = structlog.get_logger(__name__)

_MANAGED_FIELDS = ("id", "status", "created_at", "updated_at", "completed_at")


class TaskManager:
    """Creates, updates and lists tasks."""

    def __init__(
        self,
        store: EntityStore[Task] | None = None,
        *,
        audit: AuditLogger | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._store: EntityStore[Task] = store if store is not None else InMemoryStore()
        self._audit = audit or AuditLogger()
        self._clock: Clock = clock or SystemClock()

    @property
    def store(self) -> EntityStore[Task]:
        return self._store

    async def create(self, data: dict[str, Any]) -> Task:
        """Create a pending task from *data*.

        Raises:
            pydantic.ValidationError: If *data* is malformed (e.g. no title).
        """
        now = self._clock.now()
        fields = {k: v for k, v in data.items() if k not in _MANAGED_FIELDS}
        task = Task(
            id=ids.new_id(ids.TASK),
            created_at=now,
            updated_at=now,
            **fields,
        )
        await self._store.put(task)
        logger.debug("task_created", task_id=task.id, title=task.title)
        await self._audit.record(
            "task_created",
            {"task_id": task.id, "title": task.title, "assigned_to": task.assigned_to},
            user_id=task.created_by,
            resource=f"task:{task.id}",
        )
        return task

    async def get(self, task_id: str) -> Task:
        task = await self._store.get(task_id)
        if task is None:
            raise NotFoundError("task", task_id)
        return task

    async def update_status(
        self,
        task_id: str,
        status: TaskStatus | str,
        user_id: str | None = None,
    ) -> Task:
        """Set a task's status; completing it stamps ``completed_at``."""
        task = await self.get(task_id)
        try:
            new_status = TaskStatus(status)
        except ValueError as exc:
            raise InvalidTransitionError(
                f"Unknown task status: {status}",
                details={"task_id": task_id},
            ) from exc

        now = self._clock.now()
        task.status = new_status
        task.updated_at = now
        if new_status == TaskStatus.COMPLETED:
            task.completed_at = now
        await self._store.put(task)
        await self._audit.record(
            "task_updated",
            {"task_id": task_id, "status": new_status.value},
            user_id=user_id,
            resource=f"task:{task_id}",
        )
        return task

    async def list_tasks(
        self,
        *,
        assigned_to: str | None = None,
        created_by: str | None = None,
        status: str | None = None,
        priority: str | None = None,
        type: str | None = None,
        due_from: datetime | None = None,
        due_to: datetime | None = None,
    ) -> list[Task]:
        """Return tasks matching every given filter, ordered by due date.

        ``assigned_to`` takes precedence over ``created_by``.  Tasks without
        a due date sort last and are excluded by the due-date bounds.
        """
        if due_from is not None:
            due_from = as_utc(due_from)
        if due_to is not None:
            due_to = as_utc(due_to)

        def _keep(task: Task) -> bool:
            if assigned_to is not None:
                if task.assigned_to != assigned_to:
                    return False
            elif created_by is not None and task.created_by != created_by:
                return False
            if status is not None and task.status != status:
                return False
            if priority is not None and task.priority != priority:
                return False
            if type is not None and task.type != type:
                return False
            if due_from is not None and (task.due_date is None or task.due_date < due_from):
                return False
            if due_to is not None and (task.due_date is None or task.due_date > due_to):
                return False
            return True

        tasks = await self._store.find(_keep)
        return sorted(tasks, key=lambda t: (t.due_date is None, t.due_date or t.created_at))

    async def purge_completed(self, older_than: timedelta) -> int:
        """Delete completed tasks finished before ``now - older_than``."""
        cutoff = self._clock.now() - older_than
        stale = await self._store.find(
            lambda t: t.status == TaskStatus.COMPLETED
            and t.completed_at is not None
            and t.completed_at < cutoff
        )
        for task in stale:
            await self._store.delete(task.id)
        return len(stale)
