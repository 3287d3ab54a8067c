"""
Shared fixtures for craftlog tests.

Service methods are async; tests drive them with asyncio.run() so no
async test plugin is needed.
"""

import asyncio
from typing import Any, Callable, Optional

import pytest

from craftlog.audit import AuditLogger
from craftlog.exceptions import ReceiptStorageError
from craftlog.models.records import Job, JobCreate
from craftlog.repositories import JobRepository
from craftlog.services.backup import BackupService
from craftlog.services.entries import EntryService
from craftlog.services.receipts import LocalReceiptStorage
from craftlog.services.storage import InMemoryRecordStore, Operation, SQLiteRecordStore

OWNER = "owner-1"

# 08:00 -> 14:00 at +02:00, 500/h, 20 km x 5, one 150 expense
SCENARIO_ENTRY = {
    "date": "2025-06-15",
    "startTime": "2025-06-15T08:00:00+02:00",
    "endTime": "2025-06-15T14:00:00+02:00",
    "hourlyRateUsed": 500,
    "kilometers": 20,
    "kmRateUsed": 5,
}

# Not a decodable image; the receipt extension falls back to jpg
RECEIPT_BYTES = b"receipt scan bytes"


def run(coro):
    """Run a coroutine to completion."""
    return asyncio.run(coro)


class FailingStore(InMemoryRecordStore):
    """In-memory store whose transactions fail on a chosen operation."""

    def __init__(self, fail_on: Optional[Callable[[Operation], bool]] = None):
        super().__init__()
        self.fail_on = fail_on

    def _apply(self, data, op: Operation) -> None:
        if self.fail_on is not None and self.fail_on(op):
            raise RuntimeError("simulated write failure")
        super()._apply(data, op)


class FlakyReceiptStorage(LocalReceiptStorage):
    """Local receipt storage with switchable upload/delete failures."""

    def __init__(self, root_dir, fail_upload_at: Optional[int] = None):
        super().__init__(root_dir)
        self.fail_upload_at = fail_upload_at
        self.fail_delete = False
        self.upload_calls = 0
        self.deleted: list[str] = []

    async def upload(self, path: str, data: bytes) -> str:
        index = self.upload_calls
        self.upload_calls += 1
        if self.fail_upload_at is not None and index == self.fail_upload_at:
            raise ReceiptStorageError(f"simulated upload failure ({path})")
        return await super().upload(path, data)

    async def delete(self, paths) -> None:
        if self.fail_delete:
            raise ReceiptStorageError("simulated delete failure")
        self.deleted.extend(paths)
        await super().delete(paths)


@pytest.fixture(params=["memory", "sqlite"])
def store(request, tmp_path):
    """Each store-level test runs against both backends."""
    if request.param == "memory":
        yield InMemoryRecordStore()
        return
    sqlite_store = SQLiteRecordStore(tmp_path / "craftlog.db")
    yield sqlite_store
    sqlite_store.close()


@pytest.fixture
def memory_store():
    return InMemoryRecordStore()


@pytest.fixture
def failing_store():
    return FailingStore()


@pytest.fixture
def receipts(tmp_path):
    return FlakyReceiptStorage(tmp_path / "receipts")


@pytest.fixture
def audit():
    return AuditLogger(keep_history=True)


@pytest.fixture
def entry_service(store, receipts, audit):
    return EntryService(store, receipts, owner_id=OWNER, audit_logger=audit, default_km_rate=5.0)


@pytest.fixture
def backup_service(store, audit):
    return BackupService(store, audit_logger=audit)


@pytest.fixture
def job(store) -> Job:
    return run(JobRepository(store).create(
        JobCreate(name="Kitchen refit", client="Novak", default_hourly_rate=500)
    ))


def entry_input(job_id: str, **overrides: Any) -> dict[str, Any]:
    """The scenario entry for a job, with field overrides (camelCase keys)."""
    data = dict(SCENARIO_ENTRY, jobId=job_id)
    data.update(overrides)
    return data
