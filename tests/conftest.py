"""Shared test fixtures."""
from __future__ import annotations

from collections.abc import AsyncGenerator
from datetime import datetime, timezone

import pytest

from clinflow.audit.logger import AuditLogger
from clinflow.audit.sinks import InMemoryAuditSink
from clinflow.core.clock import ManualClock
from clinflow.core.config import EngineConfig
from clinflow.core.engine import WorkflowEngine
from clinflow.notify.base import InMemoryNotifier

T0 = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock(T0)


@pytest.fixture
def notifier() -> InMemoryNotifier:
    return InMemoryNotifier()


@pytest.fixture
def audit_sink() -> InMemoryAuditSink:
    return InMemoryAuditSink()


@pytest.fixture
def audit(audit_sink: InMemoryAuditSink, clock: ManualClock) -> AuditLogger:
    return AuditLogger([audit_sink], clock=clock)


@pytest.fixture
def config() -> EngineConfig:
    return EngineConfig()


@pytest.fixture
async def engine(
    config: EngineConfig,
    notifier: InMemoryNotifier,
    audit: AuditLogger,
    clock: ManualClock,
) -> AsyncGenerator[WorkflowEngine, None]:
    eng = WorkflowEngine(config, notifier=notifier, audit=audit, clock=clock)
    await eng.initialize()
    yield eng
    await eng.close()
