"""SQLite backend storing records and links in two tables.

Table schema:
    records:
        - entity_type TEXT
        - entity_id TEXT
        - fields_json TEXT (flat attribute map)
        - created_at INTEGER (Unix ms)
        - updated_at INTEGER (Unix ms)
        - PRIMARY KEY (entity_type, entity_id)

    links:
        - source_type TEXT
        - source_id TEXT
        - target_type TEXT
        - target_id TEXT
        - created_at INTEGER (Unix ms)
        - PRIMARY KEY (source_type, source_id, target_type, target_id)

A pair of endpoints is stored in one row, in the direction it was first
linked. Readers match both directions.

Every write runs in a single ``BEGIN IMMEDIATE`` transaction and is rolled
back on failure, so a cascade delete is either fully applied or not at all.
"""

import json
import sqlite3
import time
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

import structlog

from entity_graph.backend import StorageBackend, StoredRecord
from entity_graph.errors import EntityNotFoundError, StorageBackendError
from entity_graph.models import EntityRef, Link

logger = structlog.get_logger()

SCHEMA = """
CREATE TABLE IF NOT EXISTS records (
    entity_type TEXT NOT NULL,
    entity_id TEXT NOT NULL,
    fields_json TEXT NOT NULL DEFAULT '{}',
    created_at INTEGER NOT NULL,
    updated_at INTEGER NOT NULL,
    PRIMARY KEY (entity_type, entity_id)
);

CREATE INDEX IF NOT EXISTS idx_records_id ON records(entity_id);

CREATE TABLE IF NOT EXISTS links (
    source_type TEXT NOT NULL,
    source_id TEXT NOT NULL,
    target_type TEXT NOT NULL,
    target_id TEXT NOT NULL,
    created_at INTEGER NOT NULL,
    PRIMARY KEY (source_type, source_id, target_type, target_id)
);

CREATE INDEX IF NOT EXISTS idx_links_target ON links(target_type, target_id);
"""

LINKED_RECORDS_SQL = """
SELECT r.entity_id, r.fields_json
FROM links l
JOIN records r ON r.entity_type = :target_type AND (
    (l.source_type = :type AND l.source_id = :id
        AND l.target_type = :target_type AND r.entity_id = l.target_id)
    OR (l.target_type = :type AND l.target_id = :id
        AND l.source_type = :target_type AND r.entity_id = l.source_id)
)
ORDER BY l.rowid
"""

DANGLING_CONDITION = """
NOT EXISTS (SELECT 1 FROM records r
            WHERE r.entity_type = links.source_type AND r.entity_id = links.source_id)
OR NOT EXISTS (SELECT 1 FROM records r
               WHERE r.entity_type = links.target_type AND r.entity_id = links.target_id)
"""


def _now_ms() -> int:
    return int(time.time() * 1000)


class SQLiteBackend(StorageBackend):
    """On-disk backend using one SQLite database file.

    A connection is opened per operation, so one instance can be shared by
    many threads. SQLite serializes writers; WAL mode lets readers proceed
    alongside a writer.
    """

    def __init__(self, path: str | Path, busy_timeout_ms: int = 5000, wal_mode: bool = True) -> None:
        """Initialize SQLite backend.

        Args:
            path: Database file, created with its parent directory if missing
            busy_timeout_ms: How long a writer waits for the database lock
            wal_mode: Enable SQLite WAL journal mode
        """
        self.path = Path(path)
        self.busy_timeout_ms = busy_timeout_ms
        self.wal_mode = wal_mode

        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self._connect() as conn:
            try:
                conn.executescript(SCHEMA)
            except sqlite3.Error as e:
                logger.error("Failed to create schema", path=str(self.path), error=str(e))
                raise StorageBackendError(f"Failed to initialize {self.path}: {e}") from e
        logger.info("SQLite backend initialized", path=str(self.path))

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        """Open a configured connection in autocommit mode."""
        try:
            conn = sqlite3.connect(
                str(self.path),
                timeout=self.busy_timeout_ms / 1000.0,
                isolation_level=None,  # explicit transactions only
            )
            conn.execute(f"PRAGMA busy_timeout = {int(self.busy_timeout_ms)}")
            if self.wal_mode:
                conn.execute("PRAGMA journal_mode = WAL")
            conn.execute("PRAGMA synchronous = NORMAL")
        except sqlite3.Error as e:
            logger.error("Failed to open database", path=str(self.path), error=str(e))
            raise StorageBackendError(f"Failed to open {self.path}: {e}") from e

        try:
            yield conn
        finally:
            conn.close()

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        """Run the enclosed statements as one write transaction."""
        with self._connect() as conn:
            try:
                conn.execute("BEGIN IMMEDIATE")
            except sqlite3.Error as e:
                logger.error("Failed to begin transaction", path=str(self.path), error=str(e))
                raise StorageBackendError(f"Failed to begin transaction: {e}") from e
            try:
                yield conn
                conn.execute("COMMIT")
            except sqlite3.Error as e:
                # SQLite may already have rolled back on its own, e.g. RAISE(ROLLBACK) or a full disk
                if conn.in_transaction:
                    conn.execute("ROLLBACK")
                logger.error("Transaction rolled back", path=str(self.path), error=str(e))
                raise StorageBackendError(f"Storage write failed: {e}") from e
            except BaseException:
                if conn.in_transaction:
                    conn.execute("ROLLBACK")
                raise

    def _query(self, sql: str, params: Any = ()) -> list[tuple]:
        with self._connect() as conn:
            try:
                return conn.execute(sql, params).fetchall()
            except sqlite3.Error as e:
                logger.error("Query failed", path=str(self.path), error=str(e))
                raise StorageBackendError(f"Storage read failed: {e}") from e

    def read_record(self, ref: EntityRef) -> dict[str, Any] | None:
        rows = self._query(
            "SELECT fields_json FROM records WHERE entity_type = ? AND entity_id = ?",
            (ref.type_name, ref.id),
        )
        return json.loads(rows[0][0]) if rows else None

    def list_records(self, type_name: str) -> list[StoredRecord]:
        rows = self._query(
            "SELECT entity_id, fields_json FROM records WHERE entity_type = ? ORDER BY rowid",
            (type_name,),
        )
        return [(entity_id, json.loads(fields_json)) for entity_id, fields_json in rows]

    def write_record(self, ref: EntityRef, values: dict[str, Any]) -> bool:
        now = _now_ms()
        with self._transaction() as conn:
            existing = conn.execute(
                "SELECT 1 FROM records WHERE entity_type = ? AND entity_id = ?",
                (ref.type_name, ref.id),
            ).fetchone()
            conn.execute(
                """
                INSERT INTO records (entity_type, entity_id, fields_json, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT (entity_type, entity_id)
                DO UPDATE SET fields_json = excluded.fields_json, updated_at = excluded.updated_at
                """,
                (ref.type_name, ref.id, json.dumps(values), now, now),
            )
        return existing is None

    def delete_record(self, ref: EntityRef, cascade: bool = True) -> dict[str, Any] | None:
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT fields_json FROM records WHERE entity_type = ? AND entity_id = ?",
                (ref.type_name, ref.id),
            ).fetchone()
            if row is None:
                return None
            conn.execute(
                "DELETE FROM records WHERE entity_type = ? AND entity_id = ?",
                (ref.type_name, ref.id),
            )
            if cascade:
                conn.execute(
                    """
                    DELETE FROM links
                    WHERE (source_type = ? AND source_id = ?) OR (target_type = ? AND target_id = ?)
                    """,
                    (ref.type_name, ref.id, ref.type_name, ref.id),
                )
            return json.loads(row[0])

    def contains_id(self, entity_id: str) -> bool:
        return bool(self._query("SELECT 1 FROM records WHERE entity_id = ? LIMIT 1", (entity_id,)))

    def add_link(self, source: EntityRef, target: EntityRef) -> bool:
        with self._transaction() as conn:
            existing = conn.execute(
                """
                SELECT 1 FROM links
                WHERE (source_type = ? AND source_id = ? AND target_type = ? AND target_id = ?)
                   OR (source_type = ? AND source_id = ? AND target_type = ? AND target_id = ?)
                """,
                (*source, *target, *target, *source),
            ).fetchone()
            if existing:
                return False
            # endpoints are checked in the same transaction, another process may have deleted one
            cursor = conn.execute(
                """
                INSERT INTO links (source_type, source_id, target_type, target_id, created_at)
                SELECT ?, ?, ?, ?, ?
                WHERE EXISTS (SELECT 1 FROM records WHERE entity_type = ? AND entity_id = ?)
                  AND EXISTS (SELECT 1 FROM records WHERE entity_type = ? AND entity_id = ?)
                """,
                (*source, *target, _now_ms(), *source, *target),
            )
            if cursor.rowcount == 0:
                for ref in (source, target):
                    if conn.execute(
                        "SELECT 1 FROM records WHERE entity_type = ? AND entity_id = ?", (*ref,)
                    ).fetchone() is None:
                        raise EntityNotFoundError(ref.type_name, ref.id)
            return True

    def remove_link(self, source: EntityRef, target: EntityRef) -> bool:
        with self._transaction() as conn:
            cursor = conn.execute(
                """
                DELETE FROM links
                WHERE (source_type = ? AND source_id = ? AND target_type = ? AND target_id = ?)
                   OR (source_type = ? AND source_id = ? AND target_type = ? AND target_id = ?)
                """,
                (*source, *target, *target, *source),
            )
            return cursor.rowcount > 0

    def linked_records(self, ref: EntityRef, target_type: str) -> list[StoredRecord]:
        rows = self._query(
            LINKED_RECORDS_SQL,
            {"type": ref.type_name, "id": ref.id, "target_type": target_type},
        )
        return [(entity_id, json.loads(fields_json)) for entity_id, fields_json in rows]

    def list_links(self, ref: EntityRef) -> list[Link]:
        rows = self._query(
            """
            SELECT source_type, source_id, target_type, target_id FROM links
            WHERE (source_type = ? AND source_id = ?) OR (target_type = ? AND target_id = ?)
            ORDER BY rowid
            """,
            (*ref, *ref),
        )
        return [Link(source=EntityRef(row[0], row[1]), target=EntityRef(row[2], row[3])) for row in rows]

    def prune_links(self) -> int:
        with self._transaction() as conn:
            cursor = conn.execute(f"DELETE FROM links WHERE {DANGLING_CONDITION}")
            count = cursor.rowcount
        logger.debug("Pruned dangling links", count=count)
        return count
