"""Automation rule engine — evaluate conditions, then fan out actions.

Unlike the workflow executor's fail-fast pipeline, rule actions are
independent side effects: each failure is recorded next to its action and
the remaining actions still run.
"""
from __future__ import annotations

from typing import Any

import structlog

from clinflow.actions.dispatcher import ActionDispatcher
from clinflow.audit.logger import AuditLogger
from clinflow.core import ids
from clinflow.core.clock import Clock, SystemClock
from clinflow.core.constants import RuleStatus
from clinflow.core.exceptions import EvaluationError, NotFoundError
from clinflow.rules.conditions import evaluate_all
from clinflow.rules.models import AutomationRule, RuleOutcome
from clinflow.stores.base import EntityStore, InMemoryStore

logger = structlog.get_logger(__name__)

CONDITIONS_NOT_MET = "Conditions not met"
EVALUATION_FAILED = "Condition evaluation failed"
RULE_INACTIVE = "Rule inactive"

_MANAGED_FIELDS = ("id", "created_at", "last_executed", "execution_count")


class RuleEngine:
    """Stores automation rules and runs them against a context.

    Args:
        store: Rule store.
        dispatcher: Executes rule actions.
        count_unmatched_evaluations: Also bump ``execution_count`` and
            ``last_executed`` when the conditions are not met.
    """

    def __init__(
        self,
        dispatcher: ActionDispatcher,
        store: EntityStore[AutomationRule] | None = None,
        *,
        audit: AuditLogger | None = None,
        clock: Clock | None = None,
        count_unmatched_evaluations: bool = False,
    ) -> None:
        self._dispatcher = dispatcher
        self._store: EntityStore[AutomationRule] = (
            store if store is not None else InMemoryStore()
        )
        self._audit = audit or AuditLogger()
        self._clock: Clock = clock or SystemClock()
        self._count_unmatched = count_unmatched_evaluations

    @property
    def store(self) -> EntityStore[AutomationRule]:
        return self._store

    async def create(self, data: dict[str, Any]) -> AutomationRule:
        """Create an active rule.

        Raises:
            ConfigurationError: If an action type is unknown (strict mode).
        """
        fields = {k: v for k, v in data.items() if k not in _MANAGED_FIELDS}
        rule = AutomationRule(
            id=ids.new_id(ids.RULE),
            created_at=self._clock.now(),
            **fields,
        )
        self._dispatcher.validate(rule.actions)
        await self._store.put(rule)
        await self._audit.record(
            "automation_rule_created",
            {"rule_id": rule.id, "name": rule.name},
            user_id=rule.created_by,
            resource=f"rule:{rule.id}",
        )
        return rule

    async def seed(self, rules: list[AutomationRule]) -> None:
        """Store predefined rules under their fixed ids."""
        for rule in rules:
            self._dispatcher.validate(rule.actions)
            await self._store.put(rule)

    async def get(self, rule_id: str) -> AutomationRule:
        rule = await self._store.get(rule_id)
        if rule is None:
            raise NotFoundError("automation rule", rule_id)
        return rule

    async def list_rules(
        self,
        *,
        trigger: str | None = None,
        status: RuleStatus | str | None = None,
    ) -> list[AutomationRule]:
        return await self._store.find(
            lambda r: (trigger is None or r.trigger == trigger)
            and (status is None or r.status == status)
        )

    async def evaluate_and_run(
        self, rule_id: str, context: dict[str, Any]
    ) -> RuleOutcome:
        """Run the rule's actions if all of its conditions hold.

        Raises:
            NotFoundError: If the rule does not exist.
        """
        rule = await self.get(rule_id)
        if rule.status != RuleStatus.ACTIVE:
            return RuleOutcome(rule_id=rule_id, executed=False, reason=RULE_INACTIVE)

        try:
            matched = evaluate_all(rule.conditions, context)
        except EvaluationError as exc:
            logger.warning("rule_evaluation_failed", rule_id=rule_id, error=str(exc))
            await self._audit.record(
                "automation_rule_evaluation_failed",
                {"rule_id": rule_id, "details": exc.details},
                user_id=context.get("user_id"),
                resource=f"rule:{rule_id}",
                success=False,
                error=str(exc),
            )
            return RuleOutcome(
                rule_id=rule_id,
                executed=False,
                reason=EVALUATION_FAILED,
                error=str(exc),
            )

        if not matched:
            if self._count_unmatched:
                await self._record_run(rule)
            logger.debug("rule_conditions_not_met", rule_id=rule_id)
            return RuleOutcome(rule_id=rule_id, executed=False, reason=CONDITIONS_NOT_MET)

        results = await self._dispatcher.execute_all(rule.actions, context)
        await self._record_run(rule)
        failures = sum(1 for r in results if not r.succeeded)
        logger.info(
            "rule_executed",
            rule_id=rule_id,
            actions=len(results),
            failures=failures,
        )
        await self._audit.record(
            "automation_rule_executed",
            {
                "rule_id": rule_id,
                "context": context,
                "results": [r.model_dump(mode="json", exclude={"result"}) for r in results],
            },
            user_id=context.get("user_id"),
            resource=f"rule:{rule_id}",
            success=failures == 0,
        )
        return RuleOutcome(rule_id=rule_id, executed=True, results=results)

    async def handle_trigger(
        self, trigger: str, context: dict[str, Any]
    ) -> list[RuleOutcome]:
        """Evaluate every active rule listening on *trigger*."""
        rules = await self.list_rules(trigger=trigger, status=RuleStatus.ACTIVE)
        return [await self.evaluate_and_run(rule.id, context) for rule in rules]

    async def _record_run(self, rule: AutomationRule) -> None:
        rule.last_executed = self._clock.now()
        rule.execution_count += 1
        await self._store.put(rule)
