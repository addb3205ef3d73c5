"""Automation rules — conditions, actions and the engine that runs them."""
from clinflow.rules.conditions import Condition, Operator, evaluate, evaluate_all
from clinflow.rules.engine import RuleEngine
from clinflow.rules.models import AutomationRule, RuleOutcome
from clinflow.rules.presets import builtin_rules, critical_lab_alert

__all__ = [
    "AutomationRule",
    "Condition",
    "Operator",
    "RuleEngine",
    "RuleOutcome",
    "builtin_rules",
    "critical_lab_alert",
    "evaluate",
    "evaluate_all",
]
