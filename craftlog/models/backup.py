"""
Backup Document Model

The portable JSON representation of the entire store. Only version 1
exists; there is no migration path between versions.

This model is used AFTER the backup service's hand-written validation
has passed: it rehydrates plain JSON into typed records and serializes
exports in the exact stored shape.
"""

from typing import Any, Literal

from pydantic import Field

from craftlog.models.records import Expense, Job, RecordModel, Timestamp, WorkEntry

BACKUP_VERSION = 1

# Keys a backup document carries, in export order
BACKUP_KEYS = ("version", "exportedAt", "jobs", "workEntries", "expenses")


class FullBackup(RecordModel):
    """A complete, versioned snapshot of jobs, work entries and expenses."""

    version: Literal[1] = BACKUP_VERSION
    exported_at: Timestamp
    jobs: list[Job] = Field(default_factory=list)
    work_entries: list[WorkEntry] = Field(default_factory=list)
    expenses: list[Expense] = Field(default_factory=list)

    def to_document(self) -> dict[str, Any]:
        """The JSON-compatible document written to disk."""
        return self.to_record()

    @property
    def record_counts(self) -> dict[str, int]:
        return {
            "jobs": len(self.jobs),
            "workEntries": len(self.work_entries),
            "expenses": len(self.expenses),
        }
