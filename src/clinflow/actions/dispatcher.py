"""Action dispatcher — maps each action type to exactly one side effect."""
from __future__ import annotations

from typing import TYPE_CHECKING, Any, Awaitable, Callable, Iterable

import structlog
from pydantic import ValidationError

from clinflow.actions.models import Action, ActionOutcome, ActionType
from clinflow.core.exceptions import (
    ActionError,
    ConfigurationError,
    DispatchError,
    UnknownActionError,
)
from clinflow.notify.base import Notification, Notifier

if TYPE_CHECKING:
    from clinflow.approvals.manager import ApprovalManager
    from clinflow.reminders.manager import ReminderManager
    from clinflow.tasks.manager import TaskManager

logger = structlog.get_logger(__name__)

_Handler = Callable[[Action, dict[str, Any]], Awaitable[Any]]

LEGACY_RESULT: dict[str, Any] = {"success": True, "message": "Action executed"}


class ActionDispatcher:
    """Executes ``{type, data}`` actions against the entity managers and notifier.

    Args:
        tasks: Target of ``create_task`` / ``task`` / ``update_status``.
        approvals: Target of ``approval``.
        reminders: Target of ``reminder``.
        notifier: Target of the notification, email and SMS types.
        legacy_unknown_actions: When ``True`` an unknown type returns a
            generic success result instead of raising
            :class:`UnknownActionError`.
    """

    def __init__(
        self,
        *,
        tasks: TaskManager,
        approvals: ApprovalManager,
        reminders: ReminderManager,
        notifier: Notifier,
        legacy_unknown_actions: bool = False,
    ) -> None:
        self._tasks = tasks
        self._approvals = approvals
        self._reminders = reminders
        self._notifier = notifier
        self._legacy = legacy_unknown_actions
        self._handlers: dict[str, _Handler] = {
            ActionType.CREATE_TASK: self._create_task,
            ActionType.TASK: self._create_task,
            ActionType.APPROVAL: self._create_approval,
            ActionType.REMINDER: self._create_reminder,
            ActionType.SEND_NOTIFICATION: self._notify,
            ActionType.NOTIFICATION: self._notify,
            ActionType.SEND_EMAIL: self._email,
            ActionType.EMAIL: self._email,
            ActionType.SMS: self._sms,
            ActionType.UPDATE_STATUS: self._update_status,
        }

    @property
    def legacy_unknown_actions(self) -> bool:
        return self._legacy

    def validate(self, actions: Iterable[Action]) -> None:
        """Reject unknown action types at definition time.

        Raises:
            ConfigurationError: If any action type is unknown and legacy
                mode is off.
        """
        if self._legacy:
            return
        unknown = sorted({a.type for a in actions if not a.is_known})
        if unknown:
            raise ConfigurationError(
                f"Unknown action type(s): {', '.join(unknown)}",
                code="UNKNOWN_ACTION",
                details={"types": unknown},
            )

    async def execute(self, action: Action, context: dict[str, Any]) -> Any:
        """Run one action and return its result.

        Raises:
            UnknownActionError: Unknown type with legacy mode off.
            ActionError: The action's data is malformed or its target refused it.
            DispatchError: The notifier failed.
        """
        handler = self._handlers.get(action.type)
        if handler is None:
            if self._legacy:
                logger.debug("action_unknown_type_passthrough", type=action.type)
                return dict(LEGACY_RESULT)
            raise UnknownActionError(
                f"Unknown action type: {action.type}",
                code="UNKNOWN_ACTION",
                details={"type": action.type},
            )
        try:
            return await handler(action, context)
        except ValidationError as exc:
            raise ActionError(
                f"Invalid data for {action.type} action: {exc.error_count()} error(s)",
                details={"type": action.type, "errors": exc.errors(include_url=False)},
            ) from exc

    async def execute_all(
        self, actions: Iterable[Action], context: dict[str, Any]
    ) -> list[ActionOutcome]:
        """Run every action independently; a failure is recorded, not raised."""
        outcomes: list[ActionOutcome] = []
        for action in actions:
            try:
                result = await self.execute(action, context)
            except Exception as exc:
                logger.warning(
                    "action_failed",
                    action=action.label,
                    type=action.type,
                    error=str(exc),
                )
                outcomes.append(ActionOutcome(action=action.label, error=str(exc)))
            else:
                outcomes.append(ActionOutcome(action=action.label, result=result))
        return outcomes

    # ------------------------------------------------------------------ #
    # Handlers
    # ------------------------------------------------------------------ #

    async def _create_task(self, action: Action, context: dict[str, Any]) -> Any:
        data = dict(action.data)
        if "title" not in data and action.name:
            data["title"] = action.name
        data.setdefault("created_by", context.get("user_id"))
        return await self._tasks.create(data)

    async def _create_approval(self, action: Action, context: dict[str, Any]) -> Any:
        data = dict(action.data)
        if "title" not in data and action.name:
            data["title"] = action.name
        data.setdefault("requested_by", context.get("user_id"))
        return await self._approvals.create(data)

    async def _create_reminder(self, action: Action, context: dict[str, Any]) -> Any:
        data = dict(action.data)
        if "title" not in data and action.name:
            data["title"] = action.name
        data.setdefault("user_id", context.get("user_id"))
        return await self._reminders.create(data)

    async def _notify(self, action: Action, context: dict[str, Any]) -> Any:
        notification = self._notification(action, context)
        await self._deliver(self._notifier.send, notification)
        return {"delivered": True, "channel": "in_app"}

    async def _email(self, action: Action, context: dict[str, Any]) -> Any:
        notification = self._notification(action, context)
        await self._deliver(self._notifier.send_email, notification)
        return {"delivered": True, "channel": "email"}

    async def _sms(self, action: Action, context: dict[str, Any]) -> Any:
        notification = self._notification(action, context)
        await self._deliver(self._notifier.send_sms, notification)
        return {"delivered": True, "channel": "sms"}

    async def _update_status(self, action: Action, context: dict[str, Any]) -> Any:
        entity_type = action.data.get("entity_type", "task")
        entity_id = action.data.get("entity_id") or action.data.get("task_id")
        status = action.data.get("status")
        if entity_type != "task":
            raise ActionError(
                f"update_status does not support entity type: {entity_type}",
                details={"entity_type": entity_type},
            )
        if not entity_id or not status:
            raise ActionError("update_status requires entity_id and status")
        return await self._tasks.update_status(
            entity_id, status, action.data.get("user_id") or context.get("user_id")
        )

    @staticmethod
    def _notification(action: Action, context: dict[str, Any]) -> Notification:
        data = dict(action.data)
        if "title" not in data and action.name:
            data["title"] = action.name
        data.setdefault("user_id", context.get("user_id"))
        return Notification.from_data(data)

    @staticmethod
    async def _deliver(
        send: Callable[[Notification], Awaitable[None]], notification: Notification
    ) -> None:
        try:
            await send(notification)
        except DispatchError:
            raise
        except Exception as exc:
            raise DispatchError(f"Notification delivery failed: {exc}") from exc
