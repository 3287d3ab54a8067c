"""
Raw WorkEntry / Expense Repositories

LOW-LEVEL ACCESS. These repositories read and write records exactly as
given: they do NOT compute totals, do NOT keep a WorkEntry and its
Expenses consistent, and do NOT touch receipt files.

The sanctioned write path for entries is EntryService
(craftlog.services.entries). These classes exist for bulk data generation,
maintenance scripts and tests, and are intentionally not exported from the
top-level craftlog package.
"""

from typing import Optional

from craftlog.exceptions import NotFoundError
from craftlog.models.records import Expense, WorkEntry
from craftlog.services.storage import EXPENSES, WORK_ENTRIES, RecordStore


class WorkEntryRepository:
    """Raw CRUD for work entries plus date/job lookups."""

    def __init__(self, store: RecordStore):
        self._store = store

    async def create(self, entry: WorkEntry) -> WorkEntry:
        """Store an entry as-is, totals included."""
        await self._store.put(WORK_ENTRIES, entry.to_record())
        return entry

    async def update(self, entry: WorkEntry) -> WorkEntry:
        """
        Overwrite an existing entry as-is.

        Raises:
            NotFoundError: If the entry does not exist
        """
        if await self._store.get(WORK_ENTRIES, entry.id) is None:
            raise NotFoundError(f"WorkEntry not found: {entry.id}")
        await self._store.put(WORK_ENTRIES, entry.to_record())
        return entry

    async def remove(self, entry_id: str) -> None:
        """Delete only the entry; its expenses are left behind."""
        await self._store.delete(WORK_ENTRIES, entry_id)

    async def get_by_id(self, entry_id: str) -> Optional[WorkEntry]:
        record = await self._store.get(WORK_ENTRIES, entry_id)
        return WorkEntry.model_validate(record) if record is not None else None

    async def get_all(self) -> list[WorkEntry]:
        return [WorkEntry.model_validate(r) for r in await self._store.get_all(WORK_ENTRIES)]

    async def get_by_date_range(self, date_from: str, date_to: str) -> list[WorkEntry]:
        """
        Entries whose ``date`` lies in [date_from, date_to] inclusive.

        Both bounds are YYYY-MM-DD strings; results are ordered by date.
        """
        records = await self._store.get_range(WORK_ENTRIES, "by-date", date_from, date_to)
        return [WorkEntry.model_validate(r) for r in records]

    async def get_by_job_id(self, job_id: str) -> list[WorkEntry]:
        records = await self._store.get_by_index(WORK_ENTRIES, "by-jobId", job_id)
        return [WorkEntry.model_validate(r) for r in records]


class ExpenseRepository:
    """Raw CRUD for expenses plus the by-owner lookup."""

    def __init__(self, store: RecordStore):
        self._store = store

    async def create(self, expense: Expense) -> Expense:
        """Store an expense as-is. The owning entry's totals are NOT updated."""
        await self._store.put(EXPENSES, expense.to_record())
        return expense

    async def update(self, expense: Expense) -> Expense:
        if await self._store.get(EXPENSES, expense.id) is None:
            raise NotFoundError(f"Expense not found: {expense.id}")
        await self._store.put(EXPENSES, expense.to_record())
        return expense

    async def remove(self, expense_id: str) -> None:
        await self._store.delete(EXPENSES, expense_id)

    async def get_by_id(self, expense_id: str) -> Optional[Expense]:
        record = await self._store.get(EXPENSES, expense_id)
        return Expense.model_validate(record) if record is not None else None

    async def get_all(self) -> list[Expense]:
        return [Expense.model_validate(r) for r in await self._store.get_all(EXPENSES)]

    async def get_by_work_entry_id(self, work_entry_id: str) -> list[Expense]:
        """
        All expenses owned by one work entry.

        Expenses have no date of their own; to query by date, fetch entries
        by date range first.
        """
        records = await self._store.get_by_index(EXPENSES, "by-workEntryId", work_entry_id)
        return [Expense.model_validate(r) for r in records]
