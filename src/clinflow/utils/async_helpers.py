from __future__ import annotations

import asyncio
from typing import Any, Coroutine, TypeVar

T = TypeVar("T")


async def with_timeout(coro: Coroutine[Any, Any, T], seconds: float | None) -> T:
    """Await *coro*, raising ``asyncio.TimeoutError`` after *seconds*.

    ``None`` means no deadline.
    """
    if seconds is None:
        return await coro
    return await asyncio.wait_for(coro, timeout=seconds)
