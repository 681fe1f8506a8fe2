"""Entity store: identity assignment, upsert, link traversal and delete."""

import threading
from collections.abc import Iterator
from contextlib import ExitStack, contextmanager
from typing import TypeVar

import structlog

from entity_graph.allocator import IdAllocator
from entity_graph.backend import StorageBackend
from entity_graph.errors import EntityNotFoundError, IdentifierCollisionError
from entity_graph.models import Entity, EntityRef, Link

logger = structlog.get_logger()

E = TypeVar("E", bound=Entity)

DEFAULT_LOCK_STRIPES = 64


class EntityStore:
    """Database manager composing an allocator, a storage backend and its link index.

    The store is the only writer of persisted state. Reads return copies:
    mutate the copy and submit it again with :meth:`put`.

    Writes to the same id are serialized through a fixed set of lock stripes
    keyed by ``(type, id)``, so unrelated entities rarely contend. Callers that
    read then write one entity (upsert patterns) hold :meth:`locked` around
    both steps.

    Dangling links left by ``delete(..., cascade=False)`` are filtered when
    read and removed only by :meth:`prune_links`.

    Example:
        >>> store = EntityStore(InMemoryBackend())
        >>> team = store.put(Team("Alpha"))
        >>> store.get(Team, team.id) == team
        True
    """

    def __init__(
        self,
        backend: StorageBackend,
        allocator: IdAllocator | None = None,
        lock_stripes: int = DEFAULT_LOCK_STRIPES,
    ) -> None:
        if lock_stripes < 1:
            raise ValueError("lock_stripes must be at least 1")
        self.backend = backend
        self._allocator = allocator if allocator is not None else IdAllocator()
        self._stripes = [threading.RLock() for _ in range(lock_stripes)]

    def _stripe_index(self, type_name: str, entity_id: str) -> int:
        return hash((type_name, entity_id)) % len(self._stripes)

    def _stripe(self, type_name: str, entity_id: str) -> threading.RLock:
        return self._stripes[self._stripe_index(type_name, entity_id)]

    @contextmanager
    def locked(self, entity_type: type[Entity], entity_id: str | None) -> Iterator[None]:
        """Hold the write lock for one id across several store calls.

        Without an id there is nothing to contend on, so no lock is taken.
        """
        if entity_id is None:
            yield
            return
        with self._stripe(entity_type.type_name(), entity_id):
            yield

    @contextmanager
    def locked_refs(self, *refs: EntityRef) -> Iterator[None]:
        """Hold the write locks of several entities at once.

        Stripes are taken in index order, so two callers locking overlapping
        sets cannot deadlock.
        """
        indexes = sorted({self._stripe_index(*ref) for ref in refs})
        with ExitStack() as stack:
            for index in indexes:
                stack.enter_context(self._stripes[index])
            yield

    def new_id(self) -> str:
        """Allocate an identifier unused by any record in the backend.

        Raises:
            IdentifierCollisionError: If the allocator hands out an id already in use
        """
        new_id = self._allocator.new_id()
        if self.backend.contains_id(new_id):
            logger.error("Allocated id already in use", entity_id=new_id)
            raise IdentifierCollisionError(f"Allocated id {new_id!r} is already in use")
        return new_id

    def get(self, entity_type: type[E], entity_id: str) -> E | None:
        """Return the persisted record, or None when it does not exist."""
        values = self.backend.read_record(EntityRef(entity_type.type_name(), entity_id))
        logger.debug("Get entity", entity_type=entity_type.type_name(), entity_id=entity_id, found=values is not None)
        if values is None:
            return None
        return entity_type.from_fields(entity_id, values)

    def query(self, entity_type: type[E]) -> list[E]:
        """Return every record of a type, in creation order."""
        records = self.backend.list_records(entity_type.type_name())
        logger.debug("Query entities", entity_type=entity_type.type_name(), count=len(records))
        return [entity_type.from_fields(entity_id, values) for entity_id, values in records]

    def get_links(self, entity: Entity, target_type: type[E]) -> list[E]:
        """Return every existing entity of ``target_type`` linked to ``entity``."""
        records = self.backend.linked_records(entity.ref(), target_type.type_name())
        logger.debug(
            "Get links",
            entity_type=entity.type_name(),
            entity_id=entity.id,
            target_type=target_type.type_name(),
            count=len(records),
        )
        return [target_type.from_fields(entity_id, values) for entity_id, values in records]

    def list_links(self, entity: Entity) -> list[Link]:
        """Return every stored link touching ``entity``, including dangling ones."""
        return self.backend.list_links(entity.ref())

    def put(self, entity: E) -> E:
        """Create or fully overwrite a record keyed by its id.

        An unset id is allocated first and written back onto ``entity``. A set
        id that has no record yet is honoured as chosen by the caller.

        Returns:
            A copy of the persisted record
        """
        if not entity.id:
            entity.id = self.new_id()
        ref = entity.ref()
        with self._stripe(*ref):
            created = self.backend.write_record(ref, entity.fields())
        logger.info("Put entity", entity_type=ref.type_name, entity_id=ref.id, created=created)
        return entity.copy()

    def delete(self, entity: E, cascade: bool = True) -> E:
        """Remove a record, and with ``cascade`` every link touching it.

        Raises:
            EntityNotFoundError: If the record does not exist

        Returns:
            The record as it was stored when removed, which may differ from ``entity``
        """
        ref = entity.ref()
        with self._stripe(*ref):
            removed = self.backend.delete_record(ref, cascade=cascade)
        if removed is None:
            raise EntityNotFoundError(ref.type_name, ref.id)
        logger.info("Deleted entity", entity_type=ref.type_name, entity_id=ref.id, cascade=cascade)
        return type(entity).from_fields(ref.id, removed)

    def exists(self, ref: EntityRef) -> bool:
        """Check whether a record is stored under ``ref``."""
        return self.backend.read_record(ref) is not None

    def _require(self, entity: Entity) -> EntityRef:
        ref = entity.ref()
        if not self.exists(ref):
            raise EntityNotFoundError(ref.type_name, ref.id)
        return ref

    def link(self, source: Entity, target: Entity) -> Link:
        """Link two existing entities. Linking an already linked pair is a no-op.

        Raises:
            EntityNotFoundError: If either endpoint has no record
            ValueError: If both endpoints are the same entity
        """
        if source.ref() == target.ref():
            raise ValueError(f"Cannot link {source.ref()} to itself")
        # both endpoints stay locked so an in-process delete cannot interleave;
        # the backend re-checks existence for writers in other processes
        with self.locked_refs(source.ref(), target.ref()):
            source_ref = self._require(source)
            target_ref = self._require(target)
            created = self.backend.add_link(source_ref, target_ref)
        logger.info("Linked entities", source=str(source_ref), target=str(target_ref), created=created)
        return Link(source=source_ref, target=target_ref)

    def unlink(self, source: Entity | EntityRef, target: Entity | EntityRef) -> bool:
        """Remove the link between two endpoints, in whichever direction it was made.

        Endpoints may be given as bare refs so links to deleted entities can be removed.
        """
        source_ref = source.ref() if isinstance(source, Entity) else source
        target_ref = target.ref() if isinstance(target, Entity) else target
        removed = self.backend.remove_link(source_ref, target_ref)
        logger.info("Unlinked entities", source=str(source_ref), target=str(target_ref), removed=removed)
        return removed

    def prune_links(self) -> int:
        """Drop links whose endpoints no longer exist."""
        count = self.backend.prune_links()
        logger.info("Pruned links", count=count)
        return count

    def close(self) -> None:
        self.backend.close()
