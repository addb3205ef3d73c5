"""Predefined automation rules loaded at engine start."""
from __future__ import annotations

from datetime import datetime

from clinflow.actions.models import Action, ActionType
from clinflow.rules.conditions import Condition, Operator
from clinflow.rules.models import AutomationRule


def critical_lab_alert(now: datetime) -> AutomationRule:
    """Alert and open a review task when a critical lab result arrives.

    Trigger ``lab_result_added``; fires when ``critical`` equals ``True``.
    """
    return AutomationRule(
        id="critical_lab_alert",
        name="Critical Lab Result Alert",
        trigger="lab_result_added",
        conditions=[Condition(field="critical", operator=Operator.EQUALS, value=True)],
        actions=[
            Action(
                type=ActionType.SEND_NOTIFICATION,
                data={
                    "title": "Critical Lab Result",
                    "type": "alert",
                    "priority": "high",
                },
            ),
            Action(
                type=ActionType.CREATE_TASK,
                data={"title": "Review Critical Lab Result", "priority": "high"},
            ),
        ],
        created_at=now,
    )


def builtin_rules(now: datetime) -> list[AutomationRule]:
    return [critical_lab_alert(now)]
