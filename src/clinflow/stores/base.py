"""Entity store abstraction.

Provides :class:`EntityStore` (abstract base) and :class:`InMemoryStore`
(default implementation backed by a plain dict).  Stores are injected into
every manager so tests get isolated state and production deployments can
swap in a persistent backend.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Callable, Generic, Protocol, TypeVar


class _HasId(Protocol):
    id: str


E = TypeVar("E", bound=_HasId)


class EntityStore(ABC, Generic[E]):
    """Keyed collection of entities of one kind.

    Subclass this to plug in a database or any other backend.  There is no
    locking: concurrent writers to the same entity race and the last write
    wins.
    """

    @abstractmethod
    async def get(self, entity_id: str) -> E | None:
        """Return the entity, or ``None`` when absent."""

    @abstractmethod
    async def put(self, entity: E) -> E:
        """Insert or replace *entity* under its ``id``."""

    @abstractmethod
    async def delete(self, entity_id: str) -> bool:
        """Remove the entity.  Returns ``True`` if it existed."""

    @abstractmethod
    async def values(self) -> list[E]:
        """Return every stored entity in insertion order."""

    async def find(self, predicate: Callable[[E], bool]) -> list[E]:
        """Return the entities for which *predicate* holds."""
        return [entity for entity in await self.values() if predicate(entity)]

    async def count(self) -> int:
        return len(await self.values())


class InMemoryStore(EntityStore[E]):
    """Process-local store.  Entities are kept by reference, not copied."""

    def __init__(self) -> None:
        self._items: dict[str, E] = {}

    def __repr__(self) -> str:
        return f"InMemoryStore(items={len(self._items)})"

    async def get(self, entity_id: str) -> E | None:
        return self._items.get(entity_id)

    async def put(self, entity: E) -> E:
        self._items[entity.id] = entity
        return entity

    async def delete(self, entity_id: str) -> bool:
        return self._items.pop(entity_id, None) is not None

    async def values(self) -> list[E]:
        return list(self._items.values())

    async def count(self) -> int:
        return len(self._items)
