"""Registration table exposing store operations under a name.

A transport layer resolves an incoming operation name here, builds the
declared parameter struct from raw values and calls the handler with the
store it was given. Nothing is discovered by scanning; operations are
registered explicitly.
"""

from collections.abc import Callable
from dataclasses import dataclass, fields
from enum import Enum
from typing import Any

import structlog

from entity_graph import layout, schema
from entity_graph.store import EntityStore

logger = structlog.get_logger()


class OperationKind(str, Enum):
    QUERY = "query"
    MUTATION = "mutation"


@dataclass(frozen=True)
class Operation:
    """A named operation with its parameter struct and handler."""

    name: str
    kind: OperationKind
    handler: Callable[[EntityStore, Any], Any]
    params: type | None = None

    def param_names(self) -> list[str]:
        return [f.name for f in fields(self.params)] if self.params else []


class OperationRegistry:
    """Maps operation names to handlers."""

    def __init__(self) -> None:
        self._operations: dict[str, Operation] = {}

    def register(self, name: str, kind: OperationKind, handler: Callable, params: type | None = None) -> Operation:
        if name in self._operations:
            raise ValueError(f"Operation already registered: {name}")
        operation = Operation(name=name, kind=kind, handler=handler, params=params)
        self._operations[name] = operation
        logger.debug("Registered operation", name=name, kind=kind.value)
        return operation

    def query(self, name: str, params: type | None = None) -> Callable[[Callable], Callable]:
        """Decorator registering a read operation."""

        def decorator(handler: Callable) -> Callable:
            self.register(name, OperationKind.QUERY, handler, params)
            return handler

        return decorator

    def mutation(self, name: str, params: type | None = None) -> Callable[[Callable], Callable]:
        """Decorator registering a write operation."""

        def decorator(handler: Callable) -> Callable:
            self.register(name, OperationKind.MUTATION, handler, params)
            return handler

        return decorator

    def get(self, name: str) -> Operation:
        try:
            return self._operations[name]
        except KeyError:
            raise KeyError(f"Unknown operation: {name}") from None

    def operations(self) -> list[Operation]:
        return list(self._operations.values())

    def call(self, name: str, store: EntityStore, /, **params: Any) -> Any:
        """Invoke an operation with the store injected.

        Parameter names are free to overlap the leading arguments, e.g. ``name``.

        Raises:
            KeyError: If no operation has this name
            ValueError: If the parameters do not match the declared struct
        """
        operation = self.get(name)
        logger.info("Calling operation", operation=name, kind=operation.kind.value)
        if operation.params is None:
            if params:
                raise ValueError(f"{name} takes no parameters")
            return operation.handler(store, None)
        try:
            bound = operation.params(**params)
        except TypeError as e:
            raise ValueError(f"Bad parameters for {name}: {e}") from e
        return operation.handler(store, bound)


@dataclass
class PutTeamParams:
    name: str
    id: str | None = None


@dataclass
class IdParams:
    id: str


@dataclass
class PutPersonParams:
    name: str
    dog_status: str = schema.DogStatus.LIKE.value
    id: str | None = None
    team_id: str | None = None


def default_registry() -> OperationRegistry:
    """Build a registry with the team, person and layout operations."""
    registry = OperationRegistry()

    @registry.query("teams")
    def _teams(store: EntityStore, params: None) -> list[schema.Team]:
        return schema.teams(store)

    @registry.mutation("putTeam", PutTeamParams)
    def _put_team(store: EntityStore, params: PutTeamParams) -> schema.Team:
        return schema.put_team(store, params.name, team_id=params.id)

    @registry.mutation("deleteTeam", IdParams)
    def _delete_team(store: EntityStore, params: IdParams) -> schema.Team:
        return schema.delete_team(store, params.id)

    @registry.query("teamMembers", IdParams)
    def _team_members(store: EntityStore, params: IdParams) -> list[schema.Person]:
        team = store.get(schema.Team, params.id)
        return schema.team_members(store, team) if team else []

    @registry.query("people")
    def _people(store: EntityStore, params: None) -> list[schema.Person]:
        return schema.people(store)

    @registry.mutation("putPerson", PutPersonParams)
    def _put_person(store: EntityStore, params: PutPersonParams) -> schema.Person:
        return schema.put_person(
            store,
            params.name,
            dog_status=params.dog_status,
            person_id=params.id,
            team_id=params.team_id,
        )

    @registry.mutation("deletePerson", IdParams)
    def _delete_person(store: EntityStore, params: IdParams) -> schema.Person:
        return schema.delete_person(store, params.id)

    @registry.query("deskLayout")
    def _desk_layout(store: EntityStore, params: None) -> list[layout.Seat]:
        return layout.desk_layout(store)

    return registry
