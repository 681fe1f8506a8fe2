"""Entity types and the operations callers run against the store.

Every handler takes the store as its first argument; nothing here keeps a
process-wide store.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, TypeVar

import structlog

from entity_graph.errors import EntityNotFoundError, InconsistentDeleteError
from entity_graph.models import Entity, EntityRef
from entity_graph.store import EntityStore

logger = structlog.get_logger()

E = TypeVar("E", bound=Entity)


class DogStatus(str, Enum):
    """How a person relates to dogs in the office."""

    LIKE = "LIKE"
    HAVE = "HAVE"
    AVOID = "AVOID"


@dataclass
class Team(Entity):
    """A named group of people."""

    name: str


@dataclass
class Person(Entity):
    """Someone who needs a desk."""

    name: str
    dog_status: DogStatus = DogStatus.LIKE

    def __post_init__(self) -> None:
        # stored records come back as plain strings
        self.dog_status = DogStatus(self.dog_status)


def upsert(store: EntityStore, entity_type: type[E], entity_id: str | None, **values: Any) -> E:
    """Update the record with ``entity_id`` if it exists, otherwise create it.

    A supplied id that does not exist yet is used for the new record rather
    than rejected. Without an id a fresh one is allocated.
    """
    with store.locked(entity_type, entity_id):
        if entity_id is not None:
            existing = store.get(entity_type, entity_id)
            if existing is not None:
                for key, value in values.items():
                    setattr(existing, key, value)
                logger.debug("Updating existing entity", entity_type=entity_type.type_name(), entity_id=entity_id)
                return store.put(existing)

        entity = entity_type(**values)
        entity.id = entity_id if entity_id is not None else store.new_id()
        logger.debug("Creating entity", entity_type=entity_type.type_name(), entity_id=entity.id)
        return store.put(entity)


def delete_by_id(store: EntityStore, entity_type: type[E], entity_id: str) -> E:
    """Delete a record and all its links.

    Raises:
        InconsistentDeleteError: If no record has this id
    """
    with store.locked(entity_type, entity_id):
        entity = store.get(entity_type, entity_id)
        if entity is None:
            logger.warning("Delete of missing entity", entity_type=entity_type.type_name(), entity_id=entity_id)
            raise InconsistentDeleteError(entity_type.type_name(), entity_id)
        return store.delete(entity, cascade=True)


def _fetch(store: EntityStore, entity_type: type[E], entity_id: str) -> E:
    entity = store.get(entity_type, entity_id)
    if entity is None:
        raise EntityNotFoundError(entity_type.type_name(), entity_id)
    return entity


def teams(store: EntityStore) -> list[Team]:
    """List all teams."""
    return store.query(Team)


def put_team(store: EntityStore, name: str, team_id: str | None = None) -> Team:
    """Create a team or rename an existing one."""
    return upsert(store, Team, team_id, name=name)


def delete_team(store: EntityStore, team_id: str) -> Team:
    """Delete a team; its people stay but lose their membership."""
    return delete_by_id(store, Team, team_id)


def team_members(store: EntityStore, team: Team) -> list[Person]:
    return store.get_links(team, Person)


def people(store: EntityStore) -> list[Person]:
    """List all people."""
    return store.query(Person)


def person_team(store: EntityStore, person: Person) -> Team | None:
    """Return the team a person belongs to, if any."""
    linked = store.get_links(person, Team)
    return linked[0] if linked else None


def _assign_team(store: EntityStore, person: Person, team: Team) -> None:
    # a person belongs to at most one team; link first so a failed link leaves the old team
    with store.locked_refs(person.ref(), team.ref()):
        store.link(team, person)
        for current in store.get_links(person, Team):
            if current.id != team.id:
                store.unlink(person, current)


def put_person(
    store: EntityStore,
    name: str,
    dog_status: DogStatus | str = DogStatus.LIKE,
    person_id: str | None = None,
    team_id: str | None = None,
) -> Person:
    """Create or update a person, optionally moving them to a team.

    Raises:
        EntityNotFoundError: If ``team_id`` names a team that does not exist
        ValueError: If ``dog_status`` is not a known status
    """
    status = DogStatus(dog_status)
    if team_id is None:
        return upsert(store, Person, person_id, name=name, dog_status=status)

    person_id = person_id if person_id is not None else store.new_id()
    with store.locked_refs(EntityRef(Person.type_name(), person_id), EntityRef(Team.type_name(), team_id)):
        team = _fetch(store, Team, team_id)
        person = upsert(store, Person, person_id, name=name, dog_status=status)
        _assign_team(store, person, team)
    return person


def delete_person(store: EntityStore, person_id: str) -> Person:
    return delete_by_id(store, Person, person_id)


def add_member(store: EntityStore, team_id: str, person_id: str) -> Person:
    """Move a person into a team, leaving any previous team."""
    with store.locked_refs(EntityRef(Team.type_name(), team_id), EntityRef(Person.type_name(), person_id)):
        team = _fetch(store, Team, team_id)
        person = _fetch(store, Person, person_id)
        _assign_team(store, person, team)
    logger.info("Added team member", team_id=team_id, person_id=person_id)
    return person


def remove_member(store: EntityStore, team_id: str, person_id: str) -> bool:
    """Take a person out of a team. Returns False if they were not a member."""
    team = _fetch(store, Team, team_id)
    person = _fetch(store, Person, person_id)
    return store.unlink(team, person)


ENTITY_TYPES: dict[str, type[Entity]] = {cls.type_name(): cls for cls in (Team, Person)}


def parse_address(value: str) -> EntityRef:
    """Parse a ``Type:id`` reference without touching the store.

    Raises:
        ValueError: If the reference is malformed or names an unknown type
    """
    type_name, sep, entity_id = value.partition(":")
    if not sep or not entity_id:
        raise ValueError(f"Expected Type:id, got {value!r}")
    if type_name not in ENTITY_TYPES:
        raise ValueError(f"Unknown entity type {type_name!r}, expected one of {sorted(ENTITY_TYPES)}")
    return EntityRef(type_name, entity_id)


def parse_ref(store: EntityStore, value: str) -> Entity:
    """Resolve a ``Type:id`` reference to its stored entity.

    Raises:
        ValueError: If the reference is malformed or names an unknown type
        EntityNotFoundError: If no such entity is stored
    """
    ref = parse_address(value)
    return _fetch(store, ENTITY_TYPES[ref.type_name], ref.id)
