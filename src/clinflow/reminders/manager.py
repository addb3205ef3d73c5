"""ReminderManager -- reminder creation and at-most-once dispatch.

A reminder can be dispatched from two places: the one-shot timer armed when
it is created, and the periodic sweep (:meth:`ReminderManager.process_due`)
which acts as catch-up for reminders whose timer never fired (created while
no event loop was running, timers disabled, delivery failed).  Both paths
go through :meth:`ReminderManager.send`, which claims the reminder before
its first suspension point so the notifier is never invoked twice for the
same reminder.
"""

from __future__ import annotations

import asyncio
from datetime import timedelta
from typing import Any

import structlog

from clinflow.audit.logger import AuditLogger
from clinflow.core import ids
from clinflow.core.cancellation import CancellationToken
from clinflow.core.clock import Clock, SystemClock
from clinflow.core.constants import ReminderStatus
from clinflow.core.exceptions import NotFoundError
from clinflow.notify.base import LogNotifier, Notification, Notifier
from clinflow.reminders.models import Reminder
from clinflow.stores.base import EntityStore, InMemoryStore

logger = structlog.get_logger(__name__)

_MANAGED_FIELDS = ("id", "status", "created_at", "sent_at")


class ReminderManager:
    """Create reminders and deliver them exactly when due, at most once."""

    def __init__(
        self,
        store: EntityStore[Reminder] | None = None,
        *,
        notifier: Notifier | None = None,
        audit: AuditLogger | None = None,
        clock: Clock | None = None,
        timers: bool = True,
    ) -> None:
        self._store: EntityStore[Reminder] = store if store is not None else InMemoryStore()
        self._notifier: Notifier = notifier or LogNotifier()
        self._audit = audit or AuditLogger()
        self._clock: Clock = clock or SystemClock()
        self._timers_enabled = timers
        self._timers: dict[str, asyncio.Task[bool]] = {}
        self._in_flight: set[str] = set()

    @property
    def store(self) -> EntityStore[Reminder]:
        return self._store

    @property
    def pending_timers(self) -> int:
        return len(self._timers)

    async def create(self, data: dict[str, Any]) -> Reminder:
        """Create a pending reminder and arm its one-shot timer."""
        fields = {k: v for k, v in data.items() if k not in _MANAGED_FIELDS}
        reminder = Reminder(
            id=ids.new_id(ids.REMINDER),
            created_at=self._clock.now(),
            **fields,
        )
        await self._store.put(reminder)
        self._arm_timer(reminder)
        await self._audit.record(
            "reminder_created",
            {"reminder_id": reminder.id, "trigger_at": reminder.trigger_at.isoformat()},
            user_id=reminder.user_id,
            resource=f"reminder:{reminder.id}",
        )
        return reminder

    async def get(self, reminder_id: str) -> Reminder:
        reminder = await self._store.get(reminder_id)
        if reminder is None:
            raise NotFoundError("reminder", reminder_id)
        return reminder

    async def send(self, reminder_id: str) -> bool:
        """Dispatch the reminder if it is still pending.

        Returns ``True`` if this call delivered it.  A notifier failure is
        logged and leaves the reminder pending for the next sweep.
        """
        reminder = await self.get(reminder_id)
        # Check-and-claim happens with no await in between.
        if reminder.status != ReminderStatus.PENDING or reminder_id in self._in_flight:
            return False
        self._in_flight.add(reminder_id)
        try:
            try:
                await self._notifier.send(
                    Notification(
                        user_id=reminder.user_id,
                        title=reminder.title,
                        message=reminder.message,
                        type="reminder",
                        metadata={
                            "reminder_id": reminder.id,
                            "entity_id": reminder.entity_id,
                            "entity_type": reminder.entity_type,
                        },
                    )
                )
            except Exception as exc:
                logger.warning(
                    "reminder_send_failed",
                    reminder_id=reminder_id,
                    error=str(exc),
                    exc_info=True,
                )
                return False

            reminder.status = ReminderStatus.SENT
            reminder.sent_at = self._clock.now()
            await self._store.put(reminder)
        finally:
            self._in_flight.discard(reminder_id)

        self._disarm_timer(reminder_id)
        logger.info("reminder_sent", reminder_id=reminder_id, user_id=reminder.user_id)
        await self._audit.record(
            "reminder_sent",
            {"reminder_id": reminder_id},
            user_id=reminder.user_id,
            resource=f"reminder:{reminder_id}",
        )
        return True

    async def due(self) -> list[Reminder]:
        now = self._clock.now()
        return await self._store.find(
            lambda r: r.status == ReminderStatus.PENDING and r.trigger_at <= now
        )

    async def process_due(
        self, cancel_token: CancellationToken | None = None
    ) -> list[Reminder]:
        """Sweep: dispatch every pending reminder whose trigger time has passed.

        One reminder's failure never stops the sweep.  Returns the reminders
        this sweep delivered.
        """
        now = self._clock.now()
        pending = await self._store.find(lambda r: r.status == ReminderStatus.PENDING)
        delivered: list[Reminder] = []
        for reminder in pending:
            if cancel_token is not None and cancel_token.cancelled:
                logger.info("reminder_sweep_cancelled", reason=cancel_token.reason)
                break
            try:
                if reminder.trigger_at > now:
                    continue
                if await self.send(reminder.id):
                    delivered.append(reminder)
            except Exception:
                logger.error(
                    "reminder_sweep_item_failed",
                    reminder_id=reminder.id,
                    exc_info=True,
                )
        return delivered

    async def purge_sent(self, older_than: timedelta) -> int:
        """Delete reminders sent before ``now - older_than``."""
        cutoff = self._clock.now() - older_than
        stale = await self._store.find(
            lambda r: r.status == ReminderStatus.SENT
            and r.sent_at is not None
            and r.sent_at < cutoff
        )
        for reminder in stale:
            await self._store.delete(reminder.id)
        return len(stale)

    async def close(self) -> None:
        """Cancel all armed one-shot timers."""
        timers = list(self._timers.values())
        self._timers.clear()
        for timer in timers:
            timer.cancel()
        if timers:
            await asyncio.gather(*timers, return_exceptions=True)

    # ------------------------------------------------------------------ #
    # One-shot timers
    # ------------------------------------------------------------------ #

    def _arm_timer(self, reminder: Reminder) -> None:
        if not self._timers_enabled:
            return
        delay = (reminder.trigger_at - self._clock.now()).total_seconds()
        if delay <= 0:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        timer = loop.create_task(self._fire_later(reminder.id, delay))
        self._timers[reminder.id] = timer

    def _disarm_timer(self, reminder_id: str) -> None:
        timer = self._timers.pop(reminder_id, None)
        if timer is not None and timer is not asyncio.current_task():
            timer.cancel()

    async def _fire_later(self, reminder_id: str, delay: float) -> bool:
        await asyncio.sleep(delay)
        try:
            return await self.send(reminder_id)
        except NotFoundError:
            return False
        finally:
            self._timers.pop(reminder_id, None)
