"""Actions — typed side effects and the dispatcher that executes them."""
from clinflow.actions.dispatcher import ActionDispatcher
from clinflow.actions.models import KNOWN_ACTION_TYPES, Action, ActionOutcome, ActionType

__all__ = [
    "Action",
    "ActionDispatcher",
    "ActionOutcome",
    "ActionType",
    "KNOWN_ACTION_TYPES",
]
