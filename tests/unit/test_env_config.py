"""Tests for EngineConfig.from_env() and WorkflowEngine.from_env()."""
from __future__ import annotations

import logging

import pytest
from pydantic import ValidationError

from clinflow.core.config import EngineConfig
from clinflow.core.engine import WorkflowEngine

_VARS = (
    "CLINFLOW_REMINDER_SWEEP_SECONDS",
    "CLINFLOW_SCHEDULE_SWEEP_RATIO",
    "CLINFLOW_REMINDER_TIMERS",
    "CLINFLOW_STEP_TIMEOUT_SECONDS",
    "CLINFLOW_LEGACY_UNKNOWN_ACTIONS",
    "CLINFLOW_COUNT_UNMATCHED_EVALUATIONS",
    "CLINFLOW_CLEANUP_RETENTION_DAYS",
    "CLINFLOW_LOG_LEVEL",
    "CLINFLOW_LOG_JSON",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _VARS:
        monkeypatch.delenv(name, raising=False)


# ---------------------------------------------------------------------------
# from_env() tests
# ---------------------------------------------------------------------------


def test_from_env_defaults_when_not_set() -> None:
    config = EngineConfig.from_env()
    assert config == EngineConfig()
    assert config.reminder_sweep_seconds == 60
    assert config.schedule_sweep_seconds == 300
    assert config.step_timeout_seconds is None
    assert config.legacy_unknown_actions is False
    assert config.count_unmatched_evaluations is False


def test_from_env_reads_sweep_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CLINFLOW_REMINDER_SWEEP_SECONDS", "10")
    monkeypatch.setenv("CLINFLOW_SCHEDULE_SWEEP_RATIO", "3")
    config = EngineConfig.from_env()
    assert config.reminder_sweep_seconds == 10.0
    assert config.schedule_sweep_seconds == 30.0


@pytest.mark.parametrize("raw", ["1", "true", "YES", "on"])
def test_from_env_truthy_flags(monkeypatch: pytest.MonkeyPatch, raw: str) -> None:
    monkeypatch.setenv("CLINFLOW_LEGACY_UNKNOWN_ACTIONS", raw)
    monkeypatch.setenv("CLINFLOW_COUNT_UNMATCHED_EVALUATIONS", raw)
    config = EngineConfig.from_env()
    assert config.legacy_unknown_actions is True
    assert config.count_unmatched_evaluations is True


def test_from_env_falsy_flags(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CLINFLOW_REMINDER_TIMERS", "false")
    monkeypatch.setenv("CLINFLOW_LOG_JSON", "0")
    config = EngineConfig.from_env()
    assert config.reminder_timers is False
    assert config.log_json is False


def test_from_env_reads_numbers(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CLINFLOW_STEP_TIMEOUT_SECONDS", "2.5")
    monkeypatch.setenv("CLINFLOW_CLEANUP_RETENTION_DAYS", "7")
    config = EngineConfig.from_env()
    assert config.step_timeout_seconds == 2.5
    assert config.cleanup_retention_days == 7
    assert isinstance(config.cleanup_retention_days, int)


def test_from_env_uppercases_log_level(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CLINFLOW_LOG_LEVEL", "debug")
    assert EngineConfig.from_env().log_level == "DEBUG"


def test_from_env_rejects_invalid_values(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CLINFLOW_REMINDER_SWEEP_SECONDS", "0")
    with pytest.raises(ValidationError):
        EngineConfig.from_env()


def test_invalid_log_level_rejected() -> None:
    with pytest.raises(ValidationError):
        EngineConfig(log_level="TRACE")  # type: ignore[arg-type]


# ---------------------------------------------------------------------------
# WorkflowEngine.from_env()
# ---------------------------------------------------------------------------


async def test_engine_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CLINFLOW_LEGACY_UNKNOWN_ACTIONS", "true")
    monkeypatch.setenv("CLINFLOW_LOG_LEVEL", "WARNING")
    engine = WorkflowEngine.from_env()
    assert engine.config.legacy_unknown_actions is True
    assert engine.dispatcher.legacy_unknown_actions is True
    assert logging.getLogger().level == logging.WARNING
    await engine.close()
