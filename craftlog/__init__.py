"""
craftlog - offline-durable record store for a craftsman's time and
expense tracker.

Jobs, work entries with snapshotted totals, expenses with receipt files,
and full-dataset backup/restore.

Raw WorkEntry/Expense repositories live in craftlog.repositories.raw and
are deliberately not exported here; write entries through EntryService.
"""

from craftlog.exceptions import (
    BackupValidationError,
    CraftlogError,
    DuplicateIdError,
    InvalidInputError,
    NegativeInputError,
    NotFoundError,
    OrderingViolationError,
    ReceiptStorageError,
    ReferentialIntegrityError,
    StorageIOError,
    TotalsMismatchError,
    UnsupportedVersionError,
    ValidationError,
)
from craftlog.models import (
    EntryWithExpenses,
    Expense,
    ExpenseInput,
    FullBackup,
    Job,
    JobCreate,
    MonthlySummary,
    ReceiptFile,
    UpdateResult,
    WorkEntry,
    WorkEntryInput,
)
from craftlog.repositories import JobRepository
from craftlog.services.backup import BackupService
from craftlog.services.entries import EntryService
from craftlog.services.summary import SummaryService
from craftlog.bootstrap import Services, build_services

__version__ = "1.0.0"

__all__ = [
    # Services
    "BackupService",
    "EntryService",
    "JobRepository",
    "Services",
    "SummaryService",
    "build_services",
    # Models
    "EntryWithExpenses",
    "Expense",
    "ExpenseInput",
    "FullBackup",
    "Job",
    "JobCreate",
    "MonthlySummary",
    "ReceiptFile",
    "UpdateResult",
    "WorkEntry",
    "WorkEntryInput",
    # Errors
    "BackupValidationError",
    "CraftlogError",
    "DuplicateIdError",
    "InvalidInputError",
    "NegativeInputError",
    "NotFoundError",
    "OrderingViolationError",
    "ReceiptStorageError",
    "ReferentialIntegrityError",
    "StorageIOError",
    "TotalsMismatchError",
    "UnsupportedVersionError",
    "ValidationError",
]
