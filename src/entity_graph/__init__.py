"""Typed entities and links over a pluggable store."""

from entity_graph.allocator import IdAllocator
from entity_graph.backend import StorageBackend
from entity_graph.errors import (
    EntityGraphError,
    EntityNotFoundError,
    IdentifierCollisionError,
    InconsistentDeleteError,
    StorageBackendError,
)
from entity_graph.models import Entity, EntityRef, Link
from entity_graph.store import EntityStore

__all__ = [
    "Entity",
    "EntityGraphError",
    "EntityNotFoundError",
    "EntityRef",
    "EntityStore",
    "IdAllocator",
    "IdentifierCollisionError",
    "InconsistentDeleteError",
    "Link",
    "StorageBackend",
    "StorageBackendError",
]
