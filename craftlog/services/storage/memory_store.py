"""
In-Memory Record Store

Dict-backed implementation of RecordStore for tests and throwaway
sessions. Transactions are applied to a copy of the data and swapped in
only when every operation succeeded, so a failing batch leaves the
previous state untouched, exactly like the SQLite backend.
"""

import copy
import math
from typing import Any, Iterable, Optional, Sequence

from craftlog.exceptions import StorageIOError
from craftlog.services.storage.interface import (
    COLLECTIONS,
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


def _check_finite(value: Any) -> None:
    """Mirror the JSON encoder of the durable store: no NaN/Infinity."""
    if isinstance(value, float) and not math.isfinite(value):
        raise ValueError(f"Out of range float value: {value}")
    if isinstance(value, dict):
        for item in value.values():
            _check_finite(item)
    elif isinstance(value, list):
        for item in value:
            _check_finite(item)


class InMemoryRecordStore(RecordStore):
    """Non-durable RecordStore keeping deep copies of every record."""

    def __init__(self):
        self._data: dict[str, dict[str, Record]] = {name: {} for name in COLLECTIONS}

    def _apply(self, data: dict[str, dict[str, Record]], op: Operation) -> None:
        """Apply one op to a working copy. Subclasses may override to inject faults."""
        if isinstance(op, PutOp):
            _check_finite(op.record)
            data[op.collection][op.record["id"]] = copy.deepcopy(op.record)
        elif isinstance(op, DeleteOp):
            data[op.collection].pop(op.id, None)
        elif isinstance(op, ClearOp):
            data[op.collection].clear()
        else:
            raise StorageIOError(f"Unsupported operation: {op!r}")

    @staticmethod
    def _sorted(records: Iterable[Record]) -> list[Record]:
        return [copy.deepcopy(r) for r in sorted(records, key=lambda r: r["id"])]

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
        working = {name: dict(self._data[name]) for name in collections}
        try:
            for op in batch:
                self._apply(working, op)
        except StorageIOError:
            raise
        except Exception as e:
            raise StorageIOError(f"Transaction aborted: {e}") from e
        self._data.update(working)

    async def get(self, collection: str, record_id: str) -> Optional[Record]:
        check_collection(collection)
        record = self._data[collection].get(record_id)
        return copy.deepcopy(record) if record is not None else None

    async def get_all(self, collection: str) -> list[Record]:
        check_collection(collection)
        return self._sorted(self._data[collection].values())

    async def get_range(
        self,
        collection: str,
        index: str,
        lower: Any,
        upper: Any,
    ) -> list[Record]:
        field = index_field(collection, index)
        matches = [
            r for r in self._data[collection].values()
            if field in r and lower <= r[field] <= upper
        ]
        return [
            copy.deepcopy(r)
            for r in sorted(matches, key=lambda r: (r[field], r["id"]))
        ]

    async def get_by_index(self, collection: str, index: str, value: Any) -> list[Record]:
        field = index_field(collection, index)
        return self._sorted(
            r for r in self._data[collection].values()
            if field in r and r[field] == value
        )

    async def snapshot(self, collections: Sequence[str]) -> dict[str, list[Record]]:
        for collection in collections:
            check_collection(collection)
        return {name: self._sorted(self._data[name].values()) for name in collections}
