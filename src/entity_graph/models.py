"""Data models for entity graph."""

from dataclasses import dataclass, fields as dataclass_fields, replace
from typing import Any, NamedTuple, TypeVar

E = TypeVar("E", bound="Entity")


class EntityRef(NamedTuple):
    """Address of a persisted entity: its type tag and identifier."""

    type_name: str
    id: str

    def __str__(self) -> str:
        return f"{self.type_name}:{self.id}"


@dataclass(kw_only=True)
class Entity:
    """Base for every persisted record.

    Subclasses are dataclasses declaring scalar fields. Equality is the
    dataclass one: same class, same id and same declared fields.
    """

    id: str | None = None

    @classmethod
    def type_name(cls) -> str:
        """Type tag used to address records of this class in storage."""
        return cls.__name__

    @classmethod
    def from_fields(cls: type[E], entity_id: str, values: dict[str, Any]) -> E:
        """Rebuild a record from its stored attribute map.

        Keys that are not declared fields are ignored, missing ones take the
        dataclass default.
        """
        declared = {f.name for f in dataclass_fields(cls) if f.name != "id"}
        return cls(id=entity_id, **{k: v for k, v in values.items() if k in declared})

    def fields(self) -> dict[str, Any]:
        """Declared fields without the identifier, as a flat attribute map."""
        return {f.name: getattr(self, f.name) for f in dataclass_fields(self) if f.name != "id"}

    def ref(self) -> EntityRef:
        """Return the storage address of this record."""
        if not self.id:
            raise ValueError(f"{self.type_name()} has no id yet")
        return EntityRef(self.type_name(), self.id)

    def copy(self: E) -> E:
        return replace(self)


@dataclass(frozen=True)
class Link:
    """Represents a link between two entities."""

    source: EntityRef
    target: EntityRef

    def other(self, ref: EntityRef) -> EntityRef:
        """Return the endpoint opposite to ``ref``."""
        return self.target if ref == self.source else self.source
