"""Scheduler — the two periodic sweeps that initiate work on their own.

The reminder sweep runs every ``reminder_interval`` seconds and the
schedule sweep every ``reminder_interval * schedule_ratio`` seconds.  Each
tick gets its own :class:`CancellationToken`; :meth:`Scheduler.stop`
cancels the running ticks and the loops.
"""
from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable

import structlog

from clinflow.core.cancellation import CancellationToken
from clinflow.reminders.manager import ReminderManager
from clinflow.reminders.models import Reminder
from clinflow.scheduling.manager import ScheduleManager
from clinflow.scheduling.models import Schedule

logger = structlog.get_logger(__name__)

_Tick = Callable[[CancellationToken | None], Awaitable[list[Any]]]


class Scheduler:
    """Drives :meth:`ReminderManager.process_due` and
    :meth:`ScheduleManager.process_due` on fixed intervals.

    Use as an async context manager::

        async with Scheduler(reminders, schedules, reminder_interval=60):
            ...
    """

    def __init__(
        self,
        reminders: ReminderManager,
        schedules: ScheduleManager,
        *,
        reminder_interval: float = 60.0,
        schedule_ratio: int = 5,
    ) -> None:
        self._reminders = reminders
        self._schedules = schedules
        self._reminder_interval = reminder_interval
        self._schedule_interval = reminder_interval * schedule_ratio
        self._loops: list[asyncio.Task[None]] = []
        self._tick_tokens: set[CancellationToken] = set()

    def __repr__(self) -> str:
        return (
            f"Scheduler(reminder_interval={self._reminder_interval}, "
            f"schedule_interval={self._schedule_interval}, running={self.running})"
        )

    @property
    def running(self) -> bool:
        return any(not loop.done() for loop in self._loops)

    @property
    def schedule_interval(self) -> float:
        return self._schedule_interval

    async def reminder_tick(
        self, cancel_token: CancellationToken | None = None
    ) -> list[Reminder]:
        """Run one reminder sweep."""
        return await self._reminders.process_due(cancel_token)

    async def schedule_tick(
        self, cancel_token: CancellationToken | None = None
    ) -> list[Schedule]:
        """Run one schedule sweep."""
        return await self._schedules.process_due(cancel_token)

    async def start(self) -> None:
        if self.running:
            return
        self._loops = [
            asyncio.create_task(
                self._loop("reminders", self._reminder_interval, self.reminder_tick)
            ),
            asyncio.create_task(
                self._loop("schedules", self._schedule_interval, self.schedule_tick)
            ),
        ]
        logger.info(
            "scheduler_started",
            reminder_interval=self._reminder_interval,
            schedule_interval=self._schedule_interval,
        )

    async def stop(self) -> None:
        for token in list(self._tick_tokens):
            token.cancel("scheduler stopped")
        loops, self._loops = self._loops, []
        for loop in loops:
            loop.cancel()
        if loops:
            await asyncio.gather(*loops, return_exceptions=True)
            logger.info("scheduler_stopped")

    async def __aenter__(self) -> Scheduler:
        await self.start()
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.stop()

    async def _loop(self, name: str, interval: float, tick: _Tick) -> None:
        while True:
            await asyncio.sleep(interval)
            token = CancellationToken()
            self._tick_tokens.add(token)
            try:
                handled = await tick(token)
                if handled:
                    logger.debug("sweep_completed", sweep=name, handled=len(handled))
            except Exception:
                logger.error("sweep_failed", sweep=name, exc_info=True)
            finally:
                self._tick_tokens.discard(token)
