from __future__ import annotations

from clinflow.core.exceptions import ExecutionCancelledError


class CancellationToken:
    """Cooperative cancellation flag checked between steps and sweep items."""

    def __init__(self) -> None:
        self._cancelled = False
        self._reason = ""

    def __repr__(self) -> str:
        return f"CancellationToken(cancelled={self._cancelled})"

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def reason(self) -> str:
        return self._reason

    def cancel(self, reason: str = "cancelled") -> None:
        self._cancelled = True
        self._reason = reason

    def raise_if_cancelled(self) -> None:
        if self._cancelled:
            raise ExecutionCancelledError(self._reason, code="CANCELLED")
