"""
Data Models Package

This package contains all Pydantic models used in craftlog.
All data written to the store must conform to these schemas.
"""

from craftlog.models.records import (
    EntryWithExpenses,
    Expense,
    ExpenseInput,
    Job,
    JobCreate,
    ReceiptFile,
    UpdateResult,
    WorkEntry,
    WorkEntryInput,
    coerce_input,
)
from craftlog.models.backup import BACKUP_VERSION, FullBackup
from craftlog.models.summary import JobSummary, MonthlySummary
from craftlog.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Record models
    "EntryWithExpenses",
    "Expense",
    "ExpenseInput",
    "Job",
    "JobCreate",
    "ReceiptFile",
    "UpdateResult",
    "WorkEntry",
    "WorkEntryInput",
    "coerce_input",
    # Backup
    "BACKUP_VERSION",
    "FullBackup",
    # Summary
    "JobSummary",
    "MonthlySummary",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
