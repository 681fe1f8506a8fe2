"""Tests for the entity store against every backend."""

from concurrent.futures import ThreadPoolExecutor

import pytest

from entity_graph.errors import EntityNotFoundError
from entity_graph.models import EntityRef, Link
from entity_graph.schema import Person, Team
from entity_graph.store import EntityStore


def test_put_assigns_fresh_id(store: EntityStore) -> None:
    """Test that a record without id receives a new one."""
    team = Team("Alpha")
    saved = store.put(team)
    assert saved.id
    assert team.id == saved.id
    other = store.put(Team("Beta"))
    assert other.id != saved.id


def test_put_returns_copy(store: EntityStore) -> None:
    """Test that mutating the returned record does not change the store."""
    saved = store.put(Team("Alpha"))
    saved.name = "Changed"
    assert store.get(Team, saved.id).name == "Alpha"


def test_get_missing_returns_none(store: EntityStore) -> None:
    """Test that absence is a value, not an exception."""
    assert store.get(Team, "nope") is None


def test_get_is_scoped_by_type(store: EntityStore) -> None:
    """Test that the same id under another type is a different record."""
    store.put(Team("Alpha", id="x"))
    assert store.get(Person, "x") is None


def test_put_honours_chosen_id(store: EntityStore) -> None:
    """Test the create-with-chosen-id path."""
    saved = store.put(Team("Gamma", id="t9"))
    assert saved == Team("Gamma", id="t9")
    assert store.query(Team) == [Team("Gamma", id="t9")]


def test_put_overwrites_existing(store: EntityStore) -> None:
    """Test that a put with an existing id replaces the fields."""
    store.put(Team("Alpha", id="t1"))
    store.put(Team("Beta", id="t1"))
    assert store.get(Team, "t1") == Team("Beta", id="t1")
    assert len(store.query(Team)) == 1


def test_put_is_idempotent(store: EntityStore) -> None:
    """Test that writing the same record twice equals writing it once."""
    record = Team("Alpha", id="t1")
    store.put(record)
    first = store.query(Team)
    store.put(record)
    assert store.query(Team) == first


def test_query_in_creation_order(store: EntityStore) -> None:
    """Test that query lists records in creation order, updates keep their place."""
    for name, team_id in [("A", "t3"), ("B", "t1"), ("C", "t2")]:
        store.put(Team(name, id=team_id))
    store.put(Team("A2", id="t3"))
    assert [team.id for team in store.query(Team)] == ["t3", "t1", "t2"]
    assert store.query(Person) == []


def test_fields_round_trip(store: EntityStore) -> None:
    """Test that declared fields survive storage unchanged."""
    person = store.put(Person("Zoë 🐕", "AVOID", id="p1"))
    assert store.get(Person, "p1") == person


def test_delete_removes_record(store: EntityStore) -> None:
    """Test deleting a record."""
    team = store.put(Team("Alpha"))
    removed = store.delete(team)
    assert removed == team
    assert store.get(Team, team.id) is None


def test_delete_returns_stored_record(store: EntityStore) -> None:
    """Test that deleting through a stale copy returns what was actually stored."""
    stale = store.put(Team("Alpha", id="t1"))
    store.put(Team("Beta", id="t1"))
    removed = store.delete(stale)
    assert removed == Team("Beta", id="t1")
    assert removed is not stale


def test_delete_missing_raises(store: EntityStore) -> None:
    """Test that deleting an absent record is not a silent success."""
    with pytest.raises(EntityNotFoundError):
        store.delete(Team("Ghost", id="t404"))


def test_get_links_traverses_both_directions(store: EntityStore) -> None:
    """Test that a link is visible from either endpoint."""
    team = store.put(Team("Alpha", id="t1"))
    person = store.put(Person("Ada", id="p1"))
    link = store.link(team, person)

    assert link == Link(source=EntityRef("Team", "t1"), target=EntityRef("Person", "p1"))
    assert store.get_links(team, Person) == [person]
    assert store.get_links(person, Team) == [team]
    assert store.get_links(team, Team) == []


def test_get_links_without_links_is_empty(store: EntityStore) -> None:
    """Test that an unlinked entity yields an empty list."""
    team = store.put(Team("Alpha"))
    assert store.get_links(team, Person) == []


def test_get_links_reflects_current_state(store: EntityStore) -> None:
    """Test that linked records are read fresh on every call."""
    team = store.put(Team("Alpha"))
    person = store.put(Person("Ada"))
    store.link(team, person)
    person.name = "Ada L."
    store.put(person)
    assert store.get_links(team, Person)[0].name == "Ada L."


def test_relinking_does_not_duplicate(store: EntityStore) -> None:
    """Test set semantics for links, whatever the direction."""
    team = store.put(Team("Alpha"))
    person = store.put(Person("Ada"))
    store.link(team, person)
    store.link(team, person)
    store.link(person, team)
    assert store.get_links(team, Person) == [person]
    assert len(store.list_links(team)) == 1


def test_link_requires_existing_endpoints(store: EntityStore) -> None:
    """Test that links can only join stored entities."""
    team = store.put(Team("Alpha"))
    with pytest.raises(EntityNotFoundError):
        store.link(team, Person("Ghost", id="p404"))
    with pytest.raises(ValueError):
        store.link(team, team)


def test_unlink(store: EntityStore) -> None:
    """Test removing a link from either side."""
    team = store.put(Team("Alpha"))
    person = store.put(Person("Ada"))
    store.link(team, person)
    assert store.unlink(person, team) is True
    assert store.unlink(person, team) is False
    assert store.get_links(team, Person) == []


def test_cascade_delete_removes_links(store: EntityStore) -> None:
    """Test that a cascading delete removes every link of the entity."""
    team = store.put(Team("Alpha", id="t1"))
    ada = store.put(Person("Ada", id="p1"))
    bob = store.put(Person("Bob", id="p2"))
    store.link(team, ada)
    store.link(bob, team)

    store.delete(team, cascade=True)

    assert store.get(Team, "t1") is None
    assert store.get_links(ada, Team) == []
    assert store.get_links(bob, Team) == []
    assert store.list_links(ada) == []
    # recreating the id does not bring old links back
    store.put(Team("Alpha", id="t1"))
    assert store.get_links(ada, Team) == []


def test_delete_without_cascade_filters_on_read(store: EntityStore) -> None:
    """Test that dangling links stay stored but are hidden from traversal."""
    team = store.put(Team("Alpha", id="t1"))
    ada = store.put(Person("Ada", id="p1"))
    store.link(team, ada)

    store.delete(team, cascade=False)

    assert store.get_links(ada, Team) == []
    assert len(store.list_links(ada)) == 1
    # the dangling link resurfaces when the id is reused
    store.put(Team("Alpha again", id="t1"))
    assert store.get_links(ada, Team) == [Team("Alpha again", id="t1")]


def test_prune_links(store: EntityStore) -> None:
    """Test eager removal of dangling links."""
    team = store.put(Team("Alpha", id="t1"))
    ada = store.put(Person("Ada", id="p1"))
    bob = store.put(Person("Bob", id="p2"))
    store.link(team, ada)
    store.link(team, bob)
    store.delete(ada, cascade=False)

    assert store.prune_links() == 1
    assert store.prune_links() == 0
    assert store.get_links(team, Person) == [bob]
    store.put(Person("Ada", id="p1"))
    assert store.get_links(team, Person) == [bob]


def test_unlink_dangling_by_ref(store: EntityStore) -> None:
    """Test removing a link whose endpoint is already gone."""
    team = store.put(Team("Alpha", id="t1"))
    ada = store.put(Person("Ada", id="p1"))
    store.link(team, ada)
    store.delete(team, cascade=False)
    assert store.unlink(EntityRef("Team", "t1"), ada) is True
    assert store.list_links(ada) == []


def test_concurrent_creates_get_distinct_ids(store: EntityStore) -> None:
    """Test that parallel creates all land with distinct ids."""
    with ThreadPoolExecutor(max_workers=8) as pool:
        saved = list(pool.map(lambda i: store.put(Team(f"Team {i}")), range(40)))

    ids = {team.id for team in saved}
    assert len(ids) == 40
    assert {team.id for team in store.query(Team)} == ids


def test_concurrent_links_and_deletes_stay_consistent(store: EntityStore) -> None:
    """Test that links never point at an entity deleted with cascade."""
    team = store.put(Team("Alpha", id="t1"))
    members = [store.put(Person(f"P{i}", id=f"p{i}")) for i in range(20)]

    def link(person: Person) -> None:
        try:
            store.link(team, person)
        except EntityNotFoundError:
            pass

    with ThreadPoolExecutor(max_workers=8) as pool:
        futures = [pool.submit(link, person) for person in members]
        futures.append(pool.submit(store.delete, team, True))
        for future in futures:
            future.result()

    for person in members:
        assert store.list_links(person) == []


def test_invalid_lock_stripes(store: EntityStore) -> None:
    """Test that a store needs at least one lock stripe."""
    with pytest.raises(ValueError):
        EntityStore(store.backend, lock_stripes=0)
