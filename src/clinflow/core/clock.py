"""Injectable time sources.

Every component that compares due dates or stamps timestamps asks a
:class:`Clock` for "now" so the scheduler can be driven deterministically
in tests with :class:`ManualClock`.
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Annotated, Protocol, runtime_checkable

from pydantic import AfterValidator


@runtime_checkable
class Clock(Protocol):
    def now(self) -> datetime: ...


class SystemClock:
    """Wall-clock time in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class ManualClock:
    """A clock that only moves when told to.

    Example::

        clock = ManualClock(datetime(2026, 1, 1, tzinfo=timezone.utc))
        clock.advance(days=1)
    """

    def __init__(self, start: datetime | None = None) -> None:
        self._now = start or datetime.now(timezone.utc)

    def now(self) -> datetime:
        return self._now

    def set(self, value: datetime) -> None:
        self._now = value

    def advance(self, **kwargs: float) -> datetime:
        """Move forward by ``timedelta(**kwargs)`` and return the new time."""
        self._now = self._now + timedelta(**kwargs)
        return self._now


def as_utc(value: datetime) -> datetime:
    """Return *value* as an aware UTC datetime; naive values are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# Model field type for any timestamp compared against a Clock.
UtcDatetime = Annotated[datetime, AfterValidator(as_utc)]
