"""Entity stores — pluggable keyed collections for every entity kind."""
from clinflow.stores.base import EntityStore, InMemoryStore

__all__ = ["EntityStore", "InMemoryStore"]
