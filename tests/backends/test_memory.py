"""Tests for the in-memory backend."""

import pytest

from entity_graph.backend import StorageBackend
from entity_graph.backends.memory import InMemoryBackend
from entity_graph.errors import EntityNotFoundError
from entity_graph.models import EntityRef, Link


def test_backend_is_abstract() -> None:
    """Test that the interface cannot be used directly."""
    with pytest.raises(TypeError):
        StorageBackend()  # type: ignore[abstract]


def test_values_are_copied() -> None:
    """Test that callers cannot mutate stored state through returned values."""
    backend = InMemoryBackend()
    ref = EntityRef("Team", "t1")
    values = {"name": "Alpha", "tags": ["a"]}
    backend.write_record(ref, values)

    values["tags"].append("b")
    read = backend.read_record(ref)
    assert read == {"name": "Alpha", "tags": ["a"]}
    read["name"] = "Beta"
    assert backend.list_records("Team") == [("t1", {"name": "Alpha", "tags": ["a"]})]


def test_link_index_is_bidirectional() -> None:
    """Test that one link is indexed under both endpoints."""
    backend = InMemoryBackend()
    team = EntityRef("Team", "t1")
    person = EntityRef("Person", "p1")
    backend.write_record(team, {"name": "Alpha"})
    backend.write_record(person, {"name": "Ada"})

    assert backend.add_link(team, person) is True
    assert backend.add_link(person, team) is False
    assert backend.list_links(team) == [Link(team, person)]
    assert backend.list_links(person) == [Link(team, person)]
    assert backend.linked_records(person, "Team") == [("t1", {"name": "Alpha"})]


def test_delete_missing_record() -> None:
    """Test that deleting nothing reports None."""
    assert InMemoryBackend().delete_record(EntityRef("Team", "t1")) is None


def test_delete_returns_stored_fields() -> None:
    """Test that a delete hands back the fields that were removed."""
    backend = InMemoryBackend()
    backend.write_record(EntityRef("Team", "t1"), {"name": "Alpha"})
    assert backend.delete_record(EntityRef("Team", "t1")) == {"name": "Alpha"}
    assert backend.read_record(EntityRef("Team", "t1")) is None


def test_add_link_requires_both_records() -> None:
    """Test that the backend refuses a link to a missing record."""
    backend = InMemoryBackend()
    team = EntityRef("Team", "t1")
    backend.write_record(team, {"name": "Alpha"})
    with pytest.raises(EntityNotFoundError):
        backend.add_link(team, EntityRef("Person", "p404"))
    assert backend.list_links(team) == []
