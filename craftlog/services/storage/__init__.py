"""
Storage Services Package

Provides the abstract record store interface and its implementations.
SQLite is the durable default; the in-memory store backs tests.
"""

from craftlog.services.storage.interface import (
    COLLECTIONS,
    EXPENSES,
    INDEXES,
    JOBS,
    WORK_ENTRIES,
    ClearOp,
    DeleteOp,
    Operation,
    PutOp,
    Record,
    RecordStore,
)
from craftlog.services.storage.memory_store import InMemoryRecordStore
from craftlog.services.storage.sqlite_store import SQLiteRecordStore

__all__ = [
    # Interface
    "RecordStore",
    "Record",
    "Operation",
    "PutOp",
    "DeleteOp",
    "ClearOp",
    # Collections and indexes
    "COLLECTIONS",
    "INDEXES",
    "JOBS",
    "WORK_ENTRIES",
    "EXPENSES",
    # Implementations
    "InMemoryRecordStore",
    "SQLiteRecordStore",
]
