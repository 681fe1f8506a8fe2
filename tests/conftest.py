"""Shared fixtures: every store test runs against each backend."""

from pathlib import Path

import pytest

from entity_graph.backend import StorageBackend
from entity_graph.backends import InMemoryBackend, SQLiteBackend
from entity_graph.store import EntityStore


@pytest.fixture(params=["memory", "sqlite"])
def backend(request: pytest.FixtureRequest, tmp_path: Path) -> StorageBackend:
    """Create each kind of backend in turn."""
    if request.param == "memory":
        return InMemoryBackend()
    return SQLiteBackend(tmp_path / "entities.db")


@pytest.fixture
def store(backend: StorageBackend) -> EntityStore:
    """Create a store over the parametrized backend."""
    return EntityStore(backend)
