"""Condition evaluator — a single predicate checked against a context map."""
from __future__ import annotations

from enum import StrEnum
from typing import Any, Iterable

import structlog
from pydantic import BaseModel

from clinflow.core.exceptions import EvaluationError

logger = structlog.get_logger(__name__)


class Operator(StrEnum):
    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    CONTAINS = "contains"


class Condition(BaseModel):
    """``{field, operator, value}``: compare ``context[field]`` against ``value``."""

    field: str
    operator: str
    value: Any = None


def _equals(actual: Any, expected: Any) -> bool:
    # True must not match 1 and False must not match 0.
    if isinstance(actual, bool) or isinstance(expected, bool):
        return type(actual) is type(expected) and actual == expected
    return bool(actual == expected)


def evaluate(condition: Condition, context: dict[str, Any]) -> bool:
    """Evaluate *condition* against *context*.

    Ordering operators treat a missing field as not matching.  An unknown
    operator evaluates to ``False``.

    Raises:
        EvaluationError: If the operator cannot be applied to the field's
            value, e.g. ``contains`` on a number or ``greater_than``
            between a string and an int.
    """
    actual = context.get(condition.field)
    expected = condition.value
    op = condition.operator
    try:
        if op == Operator.EQUALS:
            return _equals(actual, expected)
        if op == Operator.NOT_EQUALS:
            return not _equals(actual, expected)
        if op == Operator.GREATER_THAN:
            return actual is not None and bool(actual > expected)
        if op == Operator.LESS_THAN:
            return actual is not None and bool(actual < expected)
        if op == Operator.CONTAINS:
            return bool(expected in actual)
    except TypeError as exc:
        raise EvaluationError(
            f"Operator {op!r} cannot be applied to field {condition.field!r}: {exc}",
            code="EVALUATION_ERROR",
            details={
                "field": condition.field,
                "operator": op,
                "value_type": type(actual).__name__,
            },
        ) from exc

    logger.debug("condition_unknown_operator", operator=op, field=condition.field)
    return False


def evaluate_all(conditions: Iterable[Condition], context: dict[str, Any]) -> bool:
    """AND of every condition, stopping at the first ``False``."""
    for condition in conditions:
        if not evaluate(condition, context):
            return False
    return True
