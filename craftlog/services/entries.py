"""
Entry Service

The ONLY sanctioned path for creating, updating and deleting a WorkEntry
together with its Expenses.

GUARANTEES:
1. Totals are computed from raw input, never taken from the caller
2. All validation happens before any I/O
3. All ids are generated up front, before any I/O
4. A WorkEntry and its Expenses are always written in ONE transaction
5. Receipts are uploaded BEFORE the transaction; if the transaction fails,
   the uploaded files are deleted again (compensating rollback)

The record store and the receipt storage are not one atomic resource.
Because uploads happen first, the only inconsistency a crash can leave
behind is a receipt file nothing references, which is harmless.

Callers must not run overlapping operations on the same entry id.
"""

from typing import Any, Optional, Sequence, Union
from uuid import uuid4

import structlog

from craftlog.audit import AuditLogger
from craftlog.calculations import EntryTotals, entry_totals
from craftlog.exceptions import NotFoundError, ValidationError
from craftlog.models.records import (
    EntryWithExpenses,
    Expense,
    ExpenseInput,
    UpdateResult,
    WorkEntry,
    WorkEntryInput,
    coerce_input,
)
from craftlog.repositories import JobRepository
from craftlog.repositories.raw import ExpenseRepository, WorkEntryRepository
from craftlog.services.receipts import (
    ReceiptStorageInterface,
    ReceiptUpload,
    receipt_extension,
    receipt_path,
)
from craftlog.services.storage import (
    EXPENSES,
    WORK_ENTRIES,
    DeleteOp,
    Operation,
    PutOp,
    RecordStore,
)
from craftlog.timeutils import now_local_iso

logger = structlog.get_logger(__name__)

EntryInputLike = Union[WorkEntryInput, dict[str, Any]]
ExpenseInputLike = Union[ExpenseInput, dict[str, Any]]


class EntryService:
    """
    Orchestrates work entry writes.

    Flow (create/update):
    1. Validate raw input and compute totals (no I/O yet)
    2. Generate ids
    3. Upload receipts as one all-or-nothing batch
    4. Commit entry + expenses in one transaction
    5. On commit failure, delete the receipts uploaded in step 3
    """

    def __init__(
        self,
        store: RecordStore,
        receipts: ReceiptStorageInterface,
        owner_id: str,
        audit_logger: Optional[AuditLogger] = None,
        default_km_rate: float = 0.0,
    ):
        """
        Initialize the entry service.

        Args:
            store: Record store all writes go to
            receipts: Receipt file storage
            owner_id: Owner segment of receipt paths
            audit_logger: Audit event sink (a plain one is created if None)
            default_km_rate: Km rate used by draft_input() when none is given
        """
        if not owner_id:
            raise ValueError("owner_id is required")
        self._store = store
        self._receipts = receipts
        self._owner_id = owner_id
        self._audit = audit_logger or AuditLogger()
        self._default_km_rate = default_km_rate
        self._entries = WorkEntryRepository(store)
        self._expenses = ExpenseRepository(store)
        self._jobs = JobRepository(store)

    # -------------------------------------------------------------------------
    # Validation and totals (pure, no I/O)
    # -------------------------------------------------------------------------

    @staticmethod
    def _validate(
        raw_input: EntryInputLike,
        expense_inputs: Sequence[ExpenseInputLike],
    ) -> tuple[WorkEntryInput, list[ExpenseInput], EntryTotals]:
        entry_input = coerce_input(WorkEntryInput, raw_input, "workEntry")
        expenses = [
            coerce_input(ExpenseInput, expense, "expenses", index)
            for index, expense in enumerate(expense_inputs)
        ]
        totals = entry_totals(
            entry_input.start_time,
            entry_input.end_time,
            entry_input.hourly_rate_used,
            entry_input.kilometers,
            entry_input.km_rate_used,
            [expense.amount for expense in expenses],
        )
        return entry_input, expenses, totals

    @staticmethod
    def _build_entry(
        entry_id: str,
        entry_input: WorkEntryInput,
        totals: EntryTotals,
        created_at: str,
    ) -> WorkEntry:
        return WorkEntry(
            id=entry_id,
            date=entry_input.date,
            start_time=entry_input.start_time,
            end_time=entry_input.end_time,
            job_id=entry_input.job_id,
            hourly_rate_used=entry_input.hourly_rate_used,
            kilometers=entry_input.kilometers,
            km_rate_used=entry_input.km_rate_used,
            labor_total=totals.labor_total,
            km_total=totals.km_total,
            expenses_total=totals.expenses_total,
            grand_total=totals.grand_total,
            created_at=created_at,
        )

    # -------------------------------------------------------------------------
    # Receipt helpers
    # -------------------------------------------------------------------------

    def _plan_receipts(
        self,
        entry_id: str,
        expense_ids: list[str],
        expenses: list[ExpenseInput],
    ) -> tuple[list[ReceiptUpload], list[str]]:
        """
        Decide the receipt path of every expense.

        Returns (uploads to perform, receipt path per expense).
        """
        uploads = []
        paths = []
        for expense_id, expense in zip(expense_ids, expenses):
            if expense.receipt is not None:
                ext = receipt_extension(expense.receipt.data, expense.receipt.filename)
                path = receipt_path(self._owner_id, entry_id, expense_id, ext)
                uploads.append(ReceiptUpload(path=path, data=expense.receipt.data))
                paths.append(path)
            else:
                paths.append(expense.receipt_path)
        return uploads, paths

    async def _rollback_uploads(self, entry_id: str, uploaded: list[str]) -> None:
        """Delete files uploaded for a write that did not commit. Never raises."""
        if not uploaded:
            return
        try:
            await self._receipts.delete(uploaded)
        except Exception as e:
            logger.error(
                "receipt_rollback_failed",
                entry_id=entry_id,
                paths=uploaded,
                error=str(e),
            )
            self._audit.log_receipt_rollback_failed(entry_id, uploaded, str(e))

    async def _upload(self, entry_id: str, uploads: list[ReceiptUpload]) -> list[str]:
        if not uploads:
            return []
        uploaded = await self._receipts.upload_batch(uploads)
        self._audit.log_receipts_uploaded(entry_id, uploaded)
        return uploaded

    # -------------------------------------------------------------------------
    # Create
    # -------------------------------------------------------------------------

    async def create_entry(
        self,
        raw_input: EntryInputLike,
        expense_inputs: Sequence[ExpenseInputLike] = (),
    ) -> EntryWithExpenses:
        """
        Create a work entry and its expenses as one unit.

        Raises:
            ValidationError: On bad input (before any I/O)
            ReceiptStorageError: If a receipt upload fails (batch rolled back)
            StorageIOError: If the transaction fails (uploads rolled back)
        """
        entry_input, expense_models, totals = self._validate(raw_input, expense_inputs)

        # Ids first, so nothing can ever point at an id that was not reserved
        entry_id = str(uuid4())
        expense_ids = [str(uuid4()) for _ in expense_models]
        created_at = now_local_iso()

        uploads, paths = self._plan_receipts(entry_id, expense_ids, expense_models)
        uploaded = await self._upload(entry_id, uploads)

        entry = self._build_entry(entry_id, entry_input, totals, created_at)
        expenses = [
            Expense(
                id=expense_id,
                work_entry_id=entry_id,
                amount=expense.amount,
                category=expense.category,
                receipt_image_url=path,
                created_at=created_at,
            )
            for expense_id, expense, path in zip(expense_ids, expense_models, paths)
        ]

        ops: list[Operation] = [PutOp(WORK_ENTRIES, entry.to_record())]
        ops.extend(PutOp(EXPENSES, expense.to_record()) for expense in expenses)

        try:
            await self._store.run_transaction([WORK_ENTRIES, EXPENSES], ops)
        except Exception as e:
            self._audit.log_entry_save_failed(entry_id, "create", str(e))
            await self._rollback_uploads(entry_id, uploaded)
            raise

        self._audit.log_entry_created(entry_id, entry.grand_total, len(expenses))
        return EntryWithExpenses(entry=entry, expenses=expenses)

    # -------------------------------------------------------------------------
    # Update
    # -------------------------------------------------------------------------

    async def update_entry(
        self,
        entry_id: str,
        raw_input: EntryInputLike,
        expense_inputs: Sequence[ExpenseInputLike] = (),
    ) -> UpdateResult:
        """
        Replace a work entry's data and its full expense list.

        Expenses that pass ``receipt_path`` keep that existing receipt;
        every other previous receipt is deleted after the commit
        (best-effort, reported in UpdateResult.warnings).

        Raises:
            ValidationError: On bad input (before any write)
            NotFoundError: If the entry does not exist
            ReceiptStorageError / StorageIOError: As for create_entry
        """
        entry_input, expense_models, totals = self._validate(raw_input, expense_inputs)
        expense_ids = [str(uuid4()) for _ in expense_models]

        existing = await self._entries.get_by_id(entry_id)
        if existing is None:
            raise NotFoundError(f"WorkEntry not found: {entry_id}")

        old_expenses = await self._expenses.get_by_work_entry_id(entry_id)
        old_paths = [e.receipt_image_url for e in old_expenses if e.receipt_image_url]
        kept_paths = self._check_kept_receipts(expense_models, old_paths)

        uploads, paths = self._plan_receipts(entry_id, expense_ids, expense_models)
        uploaded = await self._upload(entry_id, uploads)

        updated_at = now_local_iso()
        entry = self._build_entry(entry_id, entry_input, totals, existing.created_at)
        expenses = [
            Expense(
                id=expense_id,
                work_entry_id=entry_id,
                amount=expense.amount,
                category=expense.category,
                receipt_image_url=path,
                created_at=updated_at,
            )
            for expense_id, expense, path in zip(expense_ids, expense_models, paths)
        ]

        ops: list[Operation] = [DeleteOp(EXPENSES, old.id) for old in old_expenses]
        ops.extend(PutOp(EXPENSES, expense.to_record()) for expense in expenses)
        ops.append(PutOp(WORK_ENTRIES, entry.to_record()))

        try:
            await self._store.run_transaction([WORK_ENTRIES, EXPENSES], ops)
        except Exception as e:
            self._audit.log_entry_save_failed(entry_id, "update", str(e))
            await self._rollback_uploads(entry_id, uploaded)
            raise

        # Committed. Superseded receipts are now unreferenced.
        superseded = [path for path in old_paths if path not in kept_paths]
        warnings = await self._cleanup_superseded(entry_id, superseded)

        self._audit.log_entry_updated(entry_id, entry.grand_total, len(expenses), warnings)
        return UpdateResult(entry=entry, expenses=expenses, warnings=warnings)

    @staticmethod
    def _check_kept_receipts(
        expenses: list[ExpenseInput],
        old_paths: list[str],
    ) -> set[str]:
        """
        An update may only keep receipts this entry already owns, each once.
        """
        kept: set[str] = set()
        for index, expense in enumerate(expenses):
            path = expense.receipt_path
            if not path or expense.receipt is not None:
                continue
            if path not in old_paths:
                raise ValidationError(
                    f"expenses[{index}].receiptPath: {path!r} is not a receipt of this entry",
                    kind="expenses",
                    index=index,
                    field="receiptPath",
                )
            if path in kept:
                raise ValidationError(
                    f"expenses[{index}].receiptPath: {path!r} is kept twice",
                    kind="expenses",
                    index=index,
                    field="receiptPath",
                )
            kept.add(path)
        return kept

    async def _cleanup_superseded(self, entry_id: str, paths: list[str]) -> list[str]:
        """
        Delete receipts no longer referenced after a committed update.

        Non-fatal: the store is already consistent, a leftover file only
        costs space. Failures come back as warnings.
        """
        if not paths:
            return []
        try:
            await self._receipts.delete(paths)
        except Exception as e:
            logger.warning(
                "superseded_receipt_cleanup_failed",
                entry_id=entry_id,
                paths=paths,
                error=str(e),
            )
            self._audit.log_receipt_cleanup_failed(entry_id, paths, str(e))
            return [f"Old receipt files could not be deleted: {e}"]
        return []

    # -------------------------------------------------------------------------
    # Delete
    # -------------------------------------------------------------------------

    async def delete_entry(self, entry_id: str) -> None:
        """
        Delete a work entry, its expenses and their receipt files.

        Files go first; then expenses and entry are removed in ONE
        transaction, so records are never half-deleted.

        Raises:
            NotFoundError: If the entry does not exist
            ReceiptStorageError: If receipt deletion fails (records untouched)
            StorageIOError: If the transaction fails
        """
        existing = await self._entries.get_by_id(entry_id)
        if existing is None:
            raise NotFoundError(f"WorkEntry not found: {entry_id}")

        expenses = await self._expenses.get_by_work_entry_id(entry_id)
        paths = [e.receipt_image_url for e in expenses if e.receipt_image_url]

        if paths:
            await self._receipts.delete(paths)

        ops: list[Operation] = [DeleteOp(EXPENSES, e.id) for e in expenses]
        ops.append(DeleteOp(WORK_ENTRIES, entry_id))
        try:
            await self._store.run_transaction([WORK_ENTRIES, EXPENSES], ops)
        except Exception as e:
            self._audit.log_entry_save_failed(entry_id, "delete", str(e))
            raise

        self._audit.log_entry_deleted(entry_id, len(expenses), len(paths))

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def get_entry(self, entry_id: str) -> EntryWithExpenses:
        """
        Raises:
            NotFoundError: If the entry does not exist
        """
        entry = await self._entries.get_by_id(entry_id)
        if entry is None:
            raise NotFoundError(f"WorkEntry not found: {entry_id}")
        expenses = await self._expenses.get_by_work_entry_id(entry_id)
        return EntryWithExpenses(entry=entry, expenses=expenses)

    async def list_entries(self, date_from: str, date_to: str) -> list[WorkEntry]:
        """Entries dated within [date_from, date_to], YYYY-MM-DD inclusive."""
        return await self._entries.get_by_date_range(date_from, date_to)

    async def list_entries_for_job(self, job_id: str) -> list[WorkEntry]:
        return await self._entries.get_by_job_id(job_id)

    async def draft_input(
        self,
        job_id: str,
        date: str,
        start_time: str,
        end_time: str,
        kilometers: float = 0.0,
        km_rate: Optional[float] = None,
    ) -> WorkEntryInput:
        """
        Build a WorkEntryInput with rates snapshotted from the job.

        The job's current default hourly rate is copied into the input;
        later edits to the job never reach the stored entry.

        Raises:
            NotFoundError: If the job does not exist
        """
        job = await self._jobs.get_by_id(job_id)
        if job is None:
            raise NotFoundError(f"Job not found: {job_id}")
        return coerce_input(
            WorkEntryInput,
            {
                "date": date,
                "startTime": start_time,
                "endTime": end_time,
                "jobId": job.id,
                "hourlyRateUsed": job.default_hourly_rate,
                "kilometers": kilometers,
                "kmRateUsed": self._default_km_rate if km_rate is None else km_rate,
            },
            "workEntry",
        )
