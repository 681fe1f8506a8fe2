"""Exceptions raised by the entity store."""


class EntityGraphError(Exception):
    """Base class for entity graph errors."""


class EntityNotFoundError(EntityGraphError, KeyError):
    """A referenced entity has no persisted record."""

    def __init__(self, type_name: str, entity_id: str | None) -> None:
        self.type_name = type_name
        self.entity_id = entity_id
        super().__init__(f"{type_name} {entity_id!r} not found")

    def __str__(self) -> str:
        # KeyError would quote the message
        return str(self.args[0])


class InconsistentDeleteError(EntityNotFoundError):
    """Delete was requested for an id that does not exist."""


class IdentifierCollisionError(EntityGraphError):
    """The allocator produced an identifier that is already in use."""


class StorageBackendError(EntityGraphError):
    """The storage medium failed; the operation was not applied."""
