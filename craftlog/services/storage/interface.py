"""
Abstract Record Store Interface

DESIGN DECISION: We define an abstract interface for record storage.
This allows us to:
1. Keep the durable SQLite store as the default backend
2. Use in-memory storage for testing
3. Keep business logic decoupled from the storage engine

The store is deliberately generic: it knows collections, ids and four
secondary indexes, nothing about totals or ownership. Records are
JSON-compatible dicts in the external camelCase shape.

The one guarantee everything else relies on is run_transaction(): a batch
of puts/deletes/clears across one or more collections either becomes
visible as a whole or not at all.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional, Sequence, Union

from craftlog.exceptions import StorageIOError

Record = dict[str, Any]

JOBS = "jobs"
WORK_ENTRIES = "workEntries"
EXPENSES = "expenses"

COLLECTIONS: tuple[str, ...] = (JOBS, WORK_ENTRIES, EXPENSES)

# index name -> record field, per collection
INDEXES: dict[str, dict[str, str]] = {
    JOBS: {"by-active": "active"},
    WORK_ENTRIES: {"by-date": "date", "by-jobId": "jobId"},
    EXPENSES: {"by-workEntryId": "workEntryId"},
}


@dataclass(frozen=True)
class PutOp:
    """Insert or overwrite a record by its id."""
    collection: str
    record: Record = field(hash=False)


@dataclass(frozen=True)
class DeleteOp:
    """Delete a record by id (no-op if absent)."""
    collection: str
    id: str


@dataclass(frozen=True)
class ClearOp:
    """Remove every record of a collection."""
    collection: str


Operation = Union[PutOp, DeleteOp, ClearOp]


def check_collection(collection: str) -> None:
    if collection not in COLLECTIONS:
        raise StorageIOError(f"Unknown collection: {collection}")


def index_field(collection: str, index: str) -> str:
    """Record field backing an index."""
    check_collection(collection)
    try:
        return INDEXES[collection][index]
    except KeyError:
        raise StorageIOError(f"Unknown index {index!r} on {collection}") from None


def check_operations(collections: Sequence[str], ops: Iterable[Operation]) -> list[Operation]:
    """
    Validate a batch before it touches the engine.

    Every op must target a declared collection and every put must carry
    a non-empty string id.
    """
    declared = set(collections)
    for name in declared:
        check_collection(name)

    checked = []
    for op in ops:
        if op.collection not in declared:
            raise StorageIOError(
                f"Operation on {op.collection!r} outside transaction scope {sorted(declared)}"
            )
        if isinstance(op, PutOp):
            record_id = op.record.get("id")
            if not isinstance(record_id, str) or not record_id:
                raise StorageIOError(f"Record in {op.collection} has no id")
        checked.append(op)
    return checked


class RecordStore(ABC):
    """
    Abstract interface for keyed record storage.

    Any storage implementation (SQLite, in-memory, ...) must implement
    these methods.
    """

    @abstractmethod
    async def put(self, collection: str, record: Record) -> None:
        """
        Insert or overwrite a record by id.

        Raises:
            StorageIOError: If the write fails
        """
        pass

    @abstractmethod
    async def delete(self, collection: str, record_id: str) -> None:
        """Delete a record by id. Deleting a missing id is not an error."""
        pass

    @abstractmethod
    async def get(self, collection: str, record_id: str) -> Optional[Record]:
        """
        Retrieve a record by id.

        Returns:
            The record if found, None otherwise
        """
        pass

    @abstractmethod
    async def get_all(self, collection: str) -> list[Record]:
        """All records of a collection."""
        pass

    @abstractmethod
    async def get_range(
        self,
        collection: str,
        index: str,
        lower: Any,
        upper: Any,
    ) -> list[Record]:
        """
        Records whose indexed value lies in [lower, upper] (inclusive).

        Raises:
            StorageIOError: If the collection or index is unknown
        """
        pass

    @abstractmethod
    async def get_by_index(self, collection: str, index: str, value: Any) -> list[Record]:
        """Records whose indexed value equals value."""
        pass

    @abstractmethod
    async def run_transaction(
        self,
        collections: Sequence[str],
        ops: Iterable[Operation],
    ) -> None:
        """
        Execute a batch of operations atomically.

        Either the whole batch is visible afterwards or none of it is.
        Failure of any single op aborts the batch.

        Raises:
            StorageIOError: If the batch could not be committed
        """
        pass

    @abstractmethod
    async def snapshot(self, collections: Sequence[str]) -> dict[str, list[Record]]:
        """
        Read several collections inside one read transaction.

        No write can be observed half-applied across the returned lists.
        """
        pass

    def close(self) -> None:
        """Release engine resources (no-op by default)."""
        return None
