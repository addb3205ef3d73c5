from __future__ import annotations

import os
from typing import Any, Literal

from pydantic import BaseModel, Field


def _env_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


class EngineConfig(BaseModel):
    reminder_sweep_seconds: float = Field(default=60.0, gt=0)
    schedule_sweep_ratio: int = Field(default=5, ge=1)
    """The schedule sweep runs every ``reminder_sweep_seconds * schedule_sweep_ratio``."""
    reminder_timers: bool = True
    """Arm a one-shot timer per reminder; the sweep then only catches up."""
    step_timeout_seconds: float | None = Field(default=None, gt=0)
    legacy_unknown_actions: bool = False
    """Dispatch unknown action types as a generic success instead of rejecting them."""
    count_unmatched_evaluations: bool = False
    """Bump rule statistics even when the rule's conditions are not met."""
    load_builtin_templates: bool = True
    load_builtin_rules: bool = True
    cleanup_retention_days: int = Field(default=30, ge=0)
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_json: bool = True

    @property
    def schedule_sweep_seconds(self) -> float:
        return self.reminder_sweep_seconds * self.schedule_sweep_ratio

    @classmethod
    def from_env(cls) -> EngineConfig:
        """Create an :class:`EngineConfig` from ``CLINFLOW_*`` environment variables.

        Reads the following env vars (all optional):

        * ``CLINFLOW_REMINDER_SWEEP_SECONDS`` → ``reminder_sweep_seconds``
        * ``CLINFLOW_SCHEDULE_SWEEP_RATIO`` → ``schedule_sweep_ratio``
        * ``CLINFLOW_REMINDER_TIMERS`` → ``reminder_timers``
        * ``CLINFLOW_STEP_TIMEOUT_SECONDS`` → ``step_timeout_seconds``
        * ``CLINFLOW_LEGACY_UNKNOWN_ACTIONS`` → ``legacy_unknown_actions``
        * ``CLINFLOW_COUNT_UNMATCHED_EVALUATIONS`` → ``count_unmatched_evaluations``
        * ``CLINFLOW_CLEANUP_RETENTION_DAYS`` → ``cleanup_retention_days``
        * ``CLINFLOW_LOG_LEVEL`` → ``log_level``
        * ``CLINFLOW_LOG_JSON`` → ``log_json``

        Any variable that is not set or is empty is left at its default value.
        """
        kwargs: dict[str, Any] = {}

        sweep = os.environ.get("CLINFLOW_REMINDER_SWEEP_SECONDS")
        if sweep:
            kwargs["reminder_sweep_seconds"] = float(sweep)

        ratio = os.environ.get("CLINFLOW_SCHEDULE_SWEEP_RATIO")
        if ratio:
            kwargs["schedule_sweep_ratio"] = int(ratio)

        timers = os.environ.get("CLINFLOW_REMINDER_TIMERS")
        if timers:
            kwargs["reminder_timers"] = _env_bool(timers)

        step_timeout = os.environ.get("CLINFLOW_STEP_TIMEOUT_SECONDS")
        if step_timeout:
            kwargs["step_timeout_seconds"] = float(step_timeout)

        legacy = os.environ.get("CLINFLOW_LEGACY_UNKNOWN_ACTIONS")
        if legacy:
            kwargs["legacy_unknown_actions"] = _env_bool(legacy)

        count_misses = os.environ.get("CLINFLOW_COUNT_UNMATCHED_EVALUATIONS")
        if count_misses:
            kwargs["count_unmatched_evaluations"] = _env_bool(count_misses)

        retention = os.environ.get("CLINFLOW_CLEANUP_RETENTION_DAYS")
        if retention:
            kwargs["cleanup_retention_days"] = int(retention)

        log_level = os.environ.get("CLINFLOW_LOG_LEVEL")
        if log_level:
            kwargs["log_level"] = log_level.upper()

        log_json = os.environ.get("CLINFLOW_LOG_JSON")
        if log_json:
            kwargs["log_json"] = _env_bool(log_json)

        return cls(**kwargs)
