"""Identifier allocation for new entities."""

import threading
import uuid
from collections import deque
from collections.abc import Callable

import structlog

from entity_graph.errors import IdentifierCollisionError

logger = structlog.get_logger()

DEFAULT_HISTORY = 10_000


def random_id() -> str:
    """Default identifier source: a random UUID4 in hex form."""
    return uuid.uuid4().hex


class IdAllocator:
    """Hands out identifiers that are unique for the lifetime of a store.

    The most recent ``history`` values are remembered so a misbehaving source
    is detected instead of silently reusing an id. Older values fall out of
    the window; the store still rejects any id already held by a record.
    """

    def __init__(self, factory: Callable[[], str] | None = None, history: int = DEFAULT_HISTORY) -> None:
        if history < 0:
            raise ValueError("history must not be negative")
        self._factory = factory or random_id
        self._history = history
        self._recent: deque[str] = deque()
        self._recent_set: set[str] = set()
        self._issued = 0
        self._lock = threading.Lock()

    @property
    def issued(self) -> int:
        """How many identifiers this allocator has handed out."""
        return self._issued

    @property
    def remembered(self) -> int:
        """How many recent identifiers are kept for duplicate detection."""
        return len(self._recent)

    def new_id(self) -> str:
        """Return a fresh identifier.

        Raises:
            IdentifierCollisionError: If the source repeats a recent value
        """
        with self._lock:
            new_id = self._factory()
            if not new_id or new_id in self._recent_set:
                logger.error("Identifier source repeated a value", entity_id=new_id)
                raise IdentifierCollisionError(f"Allocator produced duplicate id {new_id!r}")
            self._issued += 1
            if self._history:
                self._recent.append(new_id)
                self._recent_set.add(new_id)
                if len(self._recent) > self._history:
                    self._recent_set.discard(self._recent.popleft())
        logger.debug("Allocated id", entity_id=new_id)
        return new_id
