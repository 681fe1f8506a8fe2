"""Storage backend interface for the entity store."""

from abc import ABC, abstractmethod
from typing import Any

from entity_graph.models import EntityRef, Link

# A stored record as the backend sees it: identifier plus flat attribute map
StoredRecord = tuple[str, dict[str, Any]]


class StorageBackend(ABC):
    """Abstract base class for the durable medium behind an entity store.

    Each method is atomic on its own: a concurrent reader observes either the
    state before or after a call, never a partially applied one. Values handed
    in or out are copies, the caller may mutate them freely.
    """

    @abstractmethod
    def read_record(self, ref: EntityRef) -> dict[str, Any] | None:
        """Return the attribute map stored under ``ref``, or None."""
        pass

    @abstractmethod
    def list_records(self, type_name: str) -> list[StoredRecord]:
        """List every record of a type, in creation order."""
        pass

    @abstractmethod
    def write_record(self, ref: EntityRef, values: dict[str, Any]) -> bool:
        """Create or fully overwrite a record.

        Returns:
            True if the record was created, False if it replaced an existing one
        """
        pass

    @abstractmethod
    def delete_record(self, ref: EntityRef, cascade: bool = True) -> dict[str, Any] | None:
        """Remove a record, and with ``cascade`` every link touching it.

        Returns:
            The attribute map that was removed, or None if there was no record
        """
        pass

    @abstractmethod
    def contains_id(self, entity_id: str) -> bool:
        """Check whether any record of any type uses ``entity_id``."""
        pass

    @abstractmethod
    def add_link(self, source: EntityRef, target: EntityRef) -> bool:
        """Store a link between two endpoints.

        A pair is stored at most once regardless of direction. Both records
        must exist at the moment the link is written.

        Raises:
            EntityNotFoundError: If either endpoint has no record

        Returns:
            True if a new link was stored
        """
        pass

    @abstractmethod
    def remove_link(self, source: EntityRef, target: EntityRef) -> bool:
        """Remove the link between two endpoints in either direction."""
        pass

    @abstractmethod
    def linked_records(self, ref: EntityRef, target_type: str) -> list[StoredRecord]:
        """Return existing records of ``target_type`` linked to ``ref``.

        Links whose far endpoint has no record are skipped.
        """
        pass

    @abstractmethod
    def list_links(self, ref: EntityRef) -> list[Link]:
        """List every stored link touching ``ref``, dangling ones included."""
        pass

    @abstractmethod
    def prune_links(self) -> int:
        """Remove links with a missing endpoint and return how many went."""
        pass

    def close(self) -> None:
        """Release resources held by the backend."""
        pass
