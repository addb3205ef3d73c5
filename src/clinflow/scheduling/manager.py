from __future__ import annotations

from datetime import timedelta
from typing import Any, Awaitable, Callable

import structlog

from clinflow.actions.dispatcher import ActionDispatcher
from clinflow.audit.logger import AuditLogger
from clinflow.core import ids
from clinflow.core.cancellation import CancellationToken
from clinflow.core.clock import Clock, SystemClock
from clinflow.core.constants import ScheduleStatus, frequency_offset
from clinflow.core.exceptions import NotFoundError
from clinflow.reminders.manager import ReminderManager
from clinflow.scheduling.models import BackupSnapshot, Schedule
from clinflow.stores.base import EntityStore, InMemoryStore
from clinflow.tasks.manager import TaskManager

logger = structlog.get_logger(__name__)

ScheduleHandler = Callable[[Schedule], Awaitable[Any]]

GENERIC_RESULT: dict[str, Any] = {"success": True, "message": "Scheduled action executed"}

_MANAGED_FIELDS = ("id", "created_at", "last_run", "run_count", "last_result")


class ScheduleManager:
    """Creates schedules and fires the ones that are due.

    Args:
        dispatcher: Runs a schedule's explicit ``action``.
        reminders: Swept by ``reminder`` schedules; purged by ``cleanup``.
        tasks: Purged by ``cleanup``.
        cleanup_retention_days: Age past which ``cleanup`` deletes sent
            reminders and completed tasks.
    """

    def __init__(
        self,
        dispatcher: ActionDispatcher,
        reminders: ReminderManager,
        tasks: TaskManager,
        store: EntityStore[Schedule] | None = None,
        *,
        audit: AuditLogger | None = None,
        clock: Clock | None = None,
        cleanup_retention_days: int = 30,
    ) -> None:
        self._dispatcher = dispatcher
        self._reminders = reminders
        self._tasks = tasks
        self._store: EntityStore[Schedule] = store if store is not None else InMemoryStore()
        self._audit = audit or AuditLogger()
        self._clock: Clock = clock or SystemClock()
        self._retention = timedelta(days=cleanup_retention_days)
        self._handlers: dict[str, ScheduleHandler] = {}
        self._last_backup: BackupSnapshot | None = None

    @property
    def store(self) -> EntityStore[Schedule]:
        return self._store

    @property
    def last_backup(self) -> BackupSnapshot | None:
        """The snapshot taken by the most recent ``backup`` firing."""
        return self._last_backup

    def register_handler(self, schedule_type: str, handler: ScheduleHandler) -> ScheduleManager:
        """Run *handler* whenever a schedule of *schedule_type* fires."""
        self._handlers[schedule_type] = handler
        return self

    async def create(self, data: dict[str, Any]) -> Schedule:
        """Create a schedule, active unless ``status`` says otherwise.

        ``next_run`` defaults to ``start_at``, or to now when neither is given.

        Raises:
            ConfigurationError: If the schedule's action type is unknown
                (strict mode).
        """
        now = self._clock.now()
        fields = {k: v for k, v in data.items() if k not in _MANAGED_FIELDS}
        if fields.get("next_run") is None:
            fields["next_run"] = fields.get("start_at") or now
        schedule = Schedule(id=ids.new_id(ids.SCHEDULE), created_at=now, **fields)
        if schedule.action is not None:
            self._dispatcher.validate([schedule.action])
        await self._store.put(schedule)
        await self._audit.record(
            "schedule_created",
            {
                "schedule_id": schedule.id,
                "name": schedule.name,
                "frequency": schedule.frequency,
            },
            user_id=schedule.created_by,
            resource=f"schedule:{schedule.id}",
        )
        return schedule

    async def get(self, schedule_id: str) -> Schedule:
        schedule = await self._store.get(schedule_id)
        if schedule is None:
            raise NotFoundError("schedule", schedule_id)
        return schedule

    async def list_schedules(
        self, status: ScheduleStatus | str | None = None
    ) -> list[Schedule]:
        return await self._store.find(lambda s: status is None or s.status == status)

    async def due(self) -> list[Schedule]:
        now = self._clock.now()
        return await self._store.find(
            lambda s: s.status == ScheduleStatus.ACTIVE and s.next_run <= now
        )

    async def execute(self, schedule: Schedule) -> Schedule:
        """Fire *schedule* once and move ``next_run`` forward.

        If the action raises, the schedule is left untouched so the next
        sweep retries it.
        """
        result = await self._run_action(schedule)

        now = self._clock.now()
        schedule.last_run = now
        schedule.run_count += 1
        schedule.last_result = result
        schedule.next_run = now + frequency_offset(schedule.frequency)
        if schedule.end_at is not None and schedule.next_run > schedule.end_at:
            schedule.status = ScheduleStatus.COMPLETED
        await self._store.put(schedule)

        logger.info(
            "schedule_executed",
            schedule_id=schedule.id,
            run_count=schedule.run_count,
            next_run=schedule.next_run.isoformat(),
            status=schedule.status.value,
        )
        await self._audit.record(
            "schedule_executed",
            {"schedule_id": schedule.id, "run_count": schedule.run_count},
            resource=f"schedule:{schedule.id}",
        )
        return schedule

    async def process_due(
        self, cancel_token: CancellationToken | None = None
    ) -> list[Schedule]:
        """Sweep: fire every active schedule whose ``next_run`` has passed.

        A failing schedule is logged and skipped; the rest still fire.
        Returns the schedules fired by this sweep.
        """
        now = self._clock.now()
        active = await self._store.find(lambda s: s.status == ScheduleStatus.ACTIVE)
        fired: list[Schedule] = []
        for schedule in active:
            if cancel_token is not None and cancel_token.cancelled:
                logger.info("schedule_sweep_cancelled", reason=cancel_token.reason)
                break
            try:
                if schedule.next_run > now:
                    continue
                fired.append(await self.execute(schedule))
            except Exception as exc:
                logger.error(
                    "schedule_sweep_item_failed",
                    schedule_id=schedule.id,
                    error=str(exc),
                    exc_info=True,
                )
        return fired

    async def _run_action(self, schedule: Schedule) -> Any:
        if schedule.action is not None:
            return await self._dispatcher.execute(
                schedule.action, {"schedule_id": schedule.id, "user_id": schedule.created_by}
            )
        if schedule.type in self._handlers:
            return await self._handlers[schedule.type](schedule)
        if schedule.type == "reminder":
            delivered = await self._reminders.process_due()
            return {"success": True, "reminders_sent": len(delivered)}
        if schedule.type == "cleanup":
            reminders_purged = await self._reminders.purge_sent(self._retention)
            tasks_purged = await self._tasks.purge_completed(self._retention)
            return {
                "success": True,
                "reminders_purged": reminders_purged,
                "tasks_purged": tasks_purged,
            }
        if schedule.type == "backup":
            return await self._backup()
        return dict(GENERIC_RESULT)

    async def _backup(self) -> dict[str, Any]:
        snapshot = BackupSnapshot(
            taken_at=self._clock.now(),
            reminders=[r.model_copy(deep=True) for r in await self._reminders.store.values()],
            tasks=[t.model_copy(deep=True) for t in await self._tasks.store.values()],
        )
        self._last_backup = snapshot
        logger.info(
            "schedule_backup_performed",
            reminders=len(snapshot.reminders),
            tasks=len(snapshot.tasks),
        )
        return {
            "success": True,
            "backup": "completed",
            "reminders": len(snapshot.reminders),
            "tasks": len(snapshot.tasks),
        }
