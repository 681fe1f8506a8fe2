"""Backend implementations."""

from entity_graph.backends.memory import InMemoryBackend
from entity_graph.backends.sqlite import SQLiteBackend

__all__ = ["InMemoryBackend", "SQLiteBackend"]
