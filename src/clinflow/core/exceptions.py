from __future__ import annotations

from typing import Any


class ClinflowError(Exception):
    """Base exception for all clinflow errors.

    Attributes:
        code: Optional machine-readable error code (e.g. ``"NOT_FOUND"``).
        details: Arbitrary key/value context about the error.
    """

    def __init__(
        self,
        message: str,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.details = details or {}


class ConfigurationError(ClinflowError): ...


class NotFoundError(ClinflowError):
    """A referenced entity does not exist in its store."""

    def __init__(self, entity_type: str, entity_id: str) -> None:
        super().__init__(
            f"{entity_type} not found: {entity_id}",
            code="NOT_FOUND",
            details={"entity_type": entity_type, "entity_id": entity_id},
        )
        self.entity_type = entity_type
        self.entity_id = entity_id


class EvaluationError(ClinflowError):
    """A condition operator cannot be applied to the field's value."""


class ActionError(ClinflowError):
    """An action's side effect failed."""


class UnknownActionError(ActionError): ...


class DispatchError(ClinflowError):
    """The notifier failed to deliver a notification."""


class InvalidTransitionError(ClinflowError): ...


class WorkflowError(ClinflowError): ...


class ExecutionCancelledError(ClinflowError): ...
