"""
SQLite Record Store

DESIGN DECISION: SQLite is the default backend because:
1. It is durable on a single device with no server (offline-first)
2. Real transactions: BEGIN IMMEDIATE ... COMMIT/ROLLBACK gives us the
   all-or-nothing batch semantics the services rely on
3. JSON1 expression indexes let us keep records as plain JSON documents
   while still querying by date, job and owning entry

Each collection is one table of (id, data) where data is the record's
JSON. Secondary indexes are built over json_extract() of the indexed field.

TRADEOFFS:
- A single connection guarded by a lock (single logical writer assumed)
- Booleans are stored by SQLite's JSON as 1/0, so by-active lookups
  translate True/False to integers
"""

import json
import sqlite3
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterable, Iterator, Optional, Sequence, Union

import structlog

from craftlog.exceptions import StorageIOError
from craftlog.services.storage.interface import (
    COLLECTIONS,
    INDEXES,
    ClearOp,
    DeleteOp,
    Operation,
    PutOp,
    Record,
    RecordStore,
    check_collection,
    check_operations,
    index_field,
)

logger = structlog.get_logger(__name__)

SCHEMA_VERSION = 1


def _encode(record: Record) -> str:
    return json.dumps(record, separators=(",", ":"), ensure_ascii=False, allow_nan=False)


def _index_value(value: Any) -> Any:
    if isinstance(value, bool):
        return int(value)
    return value


class SQLiteRecordStore(RecordStore):
    """
    Durable record store backed by a single SQLite database file.

    Pass ``":memory:"`` as db_path for a throwaway database.
    """

    def __init__(self, db_path: Union[str, Path]):
        """
        Open (and if needed create) the database.

        Args:
            db_path: Database file path; parent directories are created
        """
        self.db_path = str(db_path)
        self._lock = threading.RLock()

        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

        try:
            self._conn = sqlite3.connect(
                self.db_path,
                timeout=30.0,
                isolation_level=None,  # Autocommit mode, we handle transactions manually
                check_same_thread=False,
            )
            if self.db_path != ":memory:":
                self._conn.execute("PRAGMA journal_mode=WAL")
            self._conn.execute("PRAGMA synchronous=FULL")
            self._init_db()
        except sqlite3.Error as e:
            logger.error("sqlite_init_failed", db_path=self.db_path, error=str(e))
            raise StorageIOError(f"Database initialization failed: {e}") from e

        logger.info("sqlite_store_opened", db_path=self.db_path)

    def _init_db(self) -> None:
        """Create one table per collection plus the secondary indexes."""
        statements = [
            "CREATE TABLE IF NOT EXISTS schema_info (key TEXT PRIMARY KEY, value TEXT)",
        ]
        for collection in COLLECTIONS:
            statements.append(
                f'CREATE TABLE IF NOT EXISTS "{collection}" '
                "(id TEXT PRIMARY KEY, data TEXT NOT NULL)"
            )
            for index, field in INDEXES[collection].items():
                statements.append(
                    f'CREATE INDEX IF NOT EXISTS "idx_{collection}_{index}" '
                    f"ON \"{collection}\"(json_extract(data, '$.{field}'))"
                )

        with self._transaction():
            for statement in statements:
                self._conn.execute(statement)
            self._conn.execute(
                "INSERT OR IGNORE INTO schema_info (key, value) VALUES (?, ?)",
                ("version", str(SCHEMA_VERSION)),
            )

    @contextmanager
    def _transaction(self, mode: str = "IMMEDIATE") -> Iterator[sqlite3.Connection]:
        """BEGIN ... COMMIT, rolling back on any exception."""
        with self._lock:
            self._conn.execute(f"BEGIN {mode}")
            try:
                yield self._conn
            except BaseException:
                self._conn.execute("ROLLBACK")
                raise
            else:
                self._conn.execute("COMMIT")

    def _select(self, sql: str, params: Sequence[Any] = ()) -> list[Record]:
        try:
            with self._lock:
                rows = self._conn.execute(sql, params).fetchall()
        except sqlite3.Error as e:
            raise StorageIOError(f"Read failed: {e}") from e
        return [json.loads(row[0]) for row in rows]

    @staticmethod
    def _apply(conn: sqlite3.Connection, op: Operation) -> None:
        if isinstance(op, PutOp):
            conn.execute(
                f'INSERT OR REPLACE INTO "{op.collection}" (id, data) VALUES (?, ?)',
                (op.record["id"], _encode(op.record)),
            )
        elif isinstance(op, DeleteOp):
            conn.execute(f'DELETE FROM "{op.collection}" WHERE id = ?', (op.id,))
        elif isinstance(op, ClearOp):
            conn.execute(f'DELETE FROM "{op.collection}"')
        else:
            raise StorageIOError(f"Unsupported operation: {op!r}")

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    async def put(self, collection: str, record: Record) -> None:
        await self.run_transaction([collection], [PutOp(collection, record)])

    async def delete(self, collection: str, record_id: str) -> None:
        await self.run_transaction([collection], [DeleteOp(collection, record_id)])

    async def run_transaction(
        self,
        collections: Sequence[str],
        ops: Iterable[Operation],
    ) -> None:
        batch = check_operations(collections, ops)
        try:
            with self._transaction() as conn:
                for op in batch:
                    self._apply(conn, op)
        except (sqlite3.Error, ValueError, TypeError) as e:
            logger.error(
                "transaction_aborted",
                collections=list(collections),
                op_count=len(batch),
                error=str(e),
            )
            raise StorageIOError(f"Transaction aborted: {e}") from e

        logger.debug("transaction_committed", collections=list(collections), op_count=len(batch))

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def get(self, collection: str, record_id: str) -> Optional[Record]:
        check_collection(collection)
        rows = self._select(f'SELECT data FROM "{collection}" WHERE id = ?', (record_id,))
        return rows[0] if rows else None

    async def get_all(self, collection: str) -> list[Record]:
        check_collection(collection)
        return self._select(f'SELECT data FROM "{collection}" ORDER BY id')

    async def get_range(
        self,
        collection: str,
        index: str,
        lower: Any,
        upper: Any,
    ) -> list[Record]:
        field = index_field(collection, index)
        expr = f"json_extract(data, '$.{field}')"
        return self._select(
            f'SELECT data FROM "{collection}" WHERE {expr} BETWEEN ? AND ? ORDER BY {expr}, id',
            (_index_value(lower), _index_value(upper)),
        )

    async def get_by_index(self, collection: str, index: str, value: Any) -> list[Record]:
        field = index_field(collection, index)
        expr = f"json_extract(data, '$.{field}')"
        return self._select(
            f'SELECT data FROM "{collection}" WHERE {expr} = ? ORDER BY id',
            (_index_value(value),),
        )

    async def snapshot(self, collections: Sequence[str]) -> dict[str, list[Record]]:
        for collection in collections:
            check_collection(collection)
        result: dict[str, list[Record]] = {}
        try:
            with self._transaction("DEFERRED") as conn:
                for collection in collections:
                    rows = conn.execute(
                        f'SELECT data FROM "{collection}" ORDER BY id'
                    ).fetchall()
                    result[collection] = [json.loads(row[0]) for row in rows]
        except sqlite3.Error as e:
            raise StorageIOError(f"Snapshot read failed: {e}") from e
        return result

    def close(self) -> None:
        with self._lock:
            self._conn.close()
        logger.info("sqlite_store_closed", db_path=self.db_path)
