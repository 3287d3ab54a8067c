"""
Audit Models for craftlog

Every significant write to the record store is logged for audit purposes.
This provides:
1. Traceability of entry creation, edits and deletions
2. Debugging information when a receipt rollback or cleanup fails
3. A record of every backup export, restore and rejected restore

DESIGN DECISION: Audit events are append-only structured log records.
They describe what happened; they are never used to reconstruct state.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Work entries
    ENTRY_CREATED = "entry_created"
    ENTRY_UPDATED = "entry_updated"
    ENTRY_DELETED = "entry_deleted"
    ENTRY_SAVE_FAILED = "entry_save_failed"

    # Receipt files
    RECEIPTS_UPLOADED = "receipts_uploaded"
    RECEIPT_ROLLBACK_FAILED = "receipt_rollback_failed"
    RECEIPT_CLEANUP_FAILED = "receipt_cleanup_failed"

    # Backup
    BACKUP_EXPORTED = "backup_exported"
    BACKUP_RESTORED = "backup_restored"
    BACKUP_REJECTED = "backup_rejected"

    # System events
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class AuditEvent(BaseModel):
    """A single audit event."""

    event_id: UUID = Field(default_factory=uuid4)
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the event occurred (UTC)",
    )

    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'work_entry', 'backup')",
    )
    entity_id: Optional[str] = None

    description: str = Field(..., max_length=500)
    details: dict[str, Any] = Field(default_factory=dict)

    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """Convert to a dictionary suitable for structured logging."""
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.entry_created(entry_id, grand_total, 2)
    """

    @staticmethod
    def entry_created(
        entry_id: str,
        grand_total: float,
        expense_count: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ENTRY_CREATED,
            entity_type="work_entry",
            entity_id=entry_id,
            description=f"Work entry created: grand total {grand_total:.2f}",
            details={
                "grand_total": grand_total,
                "expense_count": expense_count,
            },
        )

    @staticmethod
    def entry_updated(
        entry_id: str,
        grand_total: float,
        expense_count: int,
        warnings: list[str],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ENTRY_UPDATED,
            severity=AuditSeverity.WARNING if warnings else AuditSeverity.INFO,
            entity_type="work_entry",
            entity_id=entry_id,
            description=f"Work entry updated: grand total {grand_total:.2f}",
            details={
                "grand_total": grand_total,
                "expense_count": expense_count,
                "warnings": warnings,
            },
        )

    @staticmethod
    def entry_deleted(
        entry_id: str,
        expense_count: int,
        receipt_count: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ENTRY_DELETED,
            entity_type="work_entry",
            entity_id=entry_id,
            description="Work entry deleted with its expenses",
            details={
                "expense_count": expense_count,
                "receipt_count": receipt_count,
            },
        )

    @staticmethod
    def entry_save_failed(
        entry_id: str,
        operation: str,
        error_message: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ENTRY_SAVE_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="work_entry",
            entity_id=entry_id,
            description=f"Work entry {operation} failed",
            error_message=error_message,
            details={"operation": operation},
        )

    @staticmethod
    def receipts_uploaded(entry_id: str, paths: list[str]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECEIPTS_UPLOADED,
            entity_type="work_entry",
            entity_id=entry_id,
            description=f"{len(paths)} receipt(s) uploaded",
            details={"paths": paths},
        )

    @staticmethod
    def receipt_rollback_failed(
        entry_id: Optional[str],
        paths: list[str],
        error_message: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECEIPT_ROLLBACK_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="work_entry",
            entity_id=entry_id,
            description="Rollback of uploaded receipts failed; files are orphaned",
            error_message=error_message,
            details={"paths": paths},
        )

    @staticmethod
    def receipt_cleanup_failed(
        entry_id: str,
        paths: list[str],
        error_message: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECEIPT_CLEANUP_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="work_entry",
            entity_id=entry_id,
            description="Superseded receipt files could not be deleted",
            error_message=error_message,
            details={"paths": paths},
        )

    @staticmethod
    def backup_exported(record_counts: dict[str, int]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BACKUP_EXPORTED,
            entity_type="backup",
            description="Full backup exported",
            details={"record_counts": record_counts},
        )

    @staticmethod
    def backup_restored(record_counts: dict[str, int]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BACKUP_RESTORED,
            entity_type="backup",
            description="Full backup restored; previous data replaced",
            details={"record_counts": record_counts},
        )

    @staticmethod
    def backup_rejected(error_type: str, error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BACKUP_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="backup",
            description=f"Backup restore rejected: {error_type}",
            error_message=error_message,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
        )
