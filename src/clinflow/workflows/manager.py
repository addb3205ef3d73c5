from __future__ import annotations

from typing import Any

import structlog

from clinflow.actions.dispatcher import ActionDispatcher
from clinflow.audit.logger import AuditLogger
from clinflow.core import ids
from clinflow.core.clock import Clock, SystemClock
from clinflow.core.constants import WorkflowStatus
from clinflow.core.exceptions import NotFoundError
from clinflow.stores.base import EntityStore, InMemoryStore
from clinflow.workflows.models import Workflow
from clinflow.workflows.presets import TEMPLATES

logger = structlog.get_logger(__name__)

_MANAGED_FIELDS = ("id", "created_at", "updated_at", "version")


class WorkflowManager:
    """Workflow definitions: create, look up, re-save, instantiate templates."""

    def __init__(
        self,
        dispatcher: ActionDispatcher,
        store: EntityStore[Workflow] | None = None,
        *,
        audit: AuditLogger | None = None,
        clock: Clock | None = None,
    ) -> None:
        self._dispatcher = dispatcher
        self._store: EntityStore[Workflow] = store if store is not None else InMemoryStore()
        self._audit = audit or AuditLogger()
        self._clock: Clock = clock or SystemClock()

    @property
    def store(self) -> EntityStore[Workflow]:
        return self._store

    async def create(self, data: dict[str, Any]) -> Workflow:
        """Create an active workflow.

        Raises:
            ConfigurationError: If a step type is unknown (strict mode).
        """
        now = self._clock.now()
        fields = {k: v for k, v in data.items() if k not in _MANAGED_FIELDS}
        workflow = Workflow(
            id=ids.new_id(ids.WORKFLOW),
            created_at=now,
            updated_at=now,
            **fields,
        )
        self._dispatcher.validate(workflow.steps)
        await self._store.put(workflow)
        logger.info("workflow_created", workflow_id=workflow.id, steps=len(workflow.steps))
        await self._audit.record(
            "workflow_created",
            {"workflow_id": workflow.id, "name": workflow.name, "type": workflow.type},
            user_id=workflow.created_by,
            resource=f"workflow:{workflow.id}",
        )
        return workflow

    async def create_from_template(
        self, template_id: str, **overrides: Any
    ) -> Workflow:
        """Create a new workflow copied from a built-in template.

        Raises:
            NotFoundError: If *template_id* is not a built-in template.
        """
        factory = TEMPLATES.get(template_id)
        if factory is None:
            raise NotFoundError("workflow template", template_id)
        template = factory(self._clock.now())
        data = template.model_dump(exclude=set(_MANAGED_FIELDS))
        data["metadata"] = {**data["metadata"], "template_id": template_id}
        data.update(overrides)
        return await self.create(data)

    async def seed(self, workflows: list[Workflow]) -> None:
        """Store predefined workflows under their fixed ids."""
        for workflow in workflows:
            self._dispatcher.validate(workflow.steps)
            await self._store.put(workflow)

    async def get(self, workflow_id: str) -> Workflow:
        workflow = await self._store.get(workflow_id)
        if workflow is None:
            raise NotFoundError("workflow", workflow_id)
        return workflow

    async def list_workflows(
        self,
        *,
        type: str | None = None,
        status: WorkflowStatus | str | None = None,
        trigger: str | None = None,
    ) -> list[Workflow]:
        return await self._store.find(
            lambda w: (type is None or w.type == type)
            and (status is None or w.status == status)
            and (trigger is None or trigger in w.triggers)
        )

    async def update(
        self,
        workflow_id: str,
        changes: dict[str, Any],
        user_id: str | None = None,
    ) -> Workflow:
        """Re-save a workflow with *changes* applied; bumps ``version``."""
        current = await self.get(workflow_id)
        data = current.model_dump()
        data.update({k: v for k, v in changes.items() if k not in _MANAGED_FIELDS})
        data["version"] = current.version + 1
        data["updated_at"] = self._clock.now()
        workflow = Workflow.model_validate(data)
        self._dispatcher.validate(workflow.steps)
        await self._store.put(workflow)
        await self._audit.record(
            "workflow_updated",
            {"workflow_id": workflow_id, "version": workflow.version},
            user_id=user_id,
            resource=f"workflow:{workflow_id}",
        )
        return workflow
