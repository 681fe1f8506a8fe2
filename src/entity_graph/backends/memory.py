"""In-memory backend keeping records and links in dictionaries."""

import copy
import threading
from typing import Any

import structlog

from entity_graph.backend import StorageBackend, StoredRecord
from entity_graph.errors import EntityNotFoundError
from entity_graph.models import EntityRef, Link

logger = structlog.get_logger()


class InMemoryBackend(StorageBackend):
    """Process-local backend, mainly for tests and short-lived sessions.

    Links are indexed from both endpoints so traversal works in either
    direction. One lock guards all state, which makes every method atomic.
    """

    def __init__(self) -> None:
        self._records: dict[str, dict[str, dict[str, Any]]] = {}
        self._adjacency: dict[EntityRef, dict[EntityRef, Link]] = {}
        self._lock = threading.RLock()
        logger.debug("Initialized in-memory backend")

    def read_record(self, ref: EntityRef) -> dict[str, Any] | None:
        with self._lock:
            values = self._records.get(ref.type_name, {}).get(ref.id)
            return copy.deepcopy(values) if values is not None else None

    def list_records(self, type_name: str) -> list[StoredRecord]:
        with self._lock:
            return [(entity_id, copy.deepcopy(values)) for entity_id, values in self._records.get(type_name, {}).items()]

    def write_record(self, ref: EntityRef, values: dict[str, Any]) -> bool:
        with self._lock:
            bucket = self._records.setdefault(ref.type_name, {})
            created = ref.id not in bucket
            bucket[ref.id] = copy.deepcopy(values)
            return created

    def delete_record(self, ref: EntityRef, cascade: bool = True) -> dict[str, Any] | None:
        with self._lock:
            removed = self._records.get(ref.type_name, {}).pop(ref.id, None)
            if removed is not None and cascade:
                for other in self._adjacency.pop(ref, {}):
                    self._adjacency.get(other, {}).pop(ref, None)
            return removed

    def contains_id(self, entity_id: str) -> bool:
        with self._lock:
            return any(entity_id in bucket for bucket in self._records.values())

    def add_link(self, source: EntityRef, target: EntityRef) -> bool:
        with self._lock:
            for ref in (source, target):
                if not self._exists(ref):
                    raise EntityNotFoundError(ref.type_name, ref.id)
            if target in self._adjacency.get(source, {}):
                return False
            link = Link(source=source, target=target)
            self._adjacency.setdefault(source, {})[target] = link
            self._adjacency.setdefault(target, {})[source] = link
            return True

    def remove_link(self, source: EntityRef, target: EntityRef) -> bool:
        with self._lock:
            if target not in self._adjacency.get(source, {}):
                return False
            del self._adjacency[source][target]
            del self._adjacency[target][source]
            return True

    def _exists(self, ref: EntityRef) -> bool:
        return ref.id in self._records.get(ref.type_name, {})

    def linked_records(self, ref: EntityRef, target_type: str) -> list[StoredRecord]:
        with self._lock:
            bucket = self._records.get(target_type, {})
            return [
                (other.id, copy.deepcopy(bucket[other.id]))
                for other in self._adjacency.get(ref, {})
                if other.type_name == target_type and other.id in bucket
            ]

    def list_links(self, ref: EntityRef) -> list[Link]:
        with self._lock:
            return list(self._adjacency.get(ref, {}).values())

    def prune_links(self) -> int:
        with self._lock:
            dangling = {
                link
                for links in self._adjacency.values()
                for link in links.values()
                if not (self._exists(link.source) and self._exists(link.target))
            }
            for link in dangling:
                self._adjacency[link.source].pop(link.target, None)
                self._adjacency[link.target].pop(link.source, None)
            logger.debug("Pruned dangling links", count=len(dangling))
            return len(dangling)
