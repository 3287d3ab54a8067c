"""
Audit Logger

DESIGN DECISION: Every write that changes the record store or the receipt
storage is logged as a structured audit event. This provides:
1. Traceability of entry edits and backup restores
2. Visibility of orphaned receipt files (failed rollback/cleanup)
3. Debugging capability without a debugger attached

The audit logger:
- Never raises: a logging failure must not turn a committed write into
  an error for the caller
- Logs through structlog so the output is JSON (or console) with ISO
  timestamps
"""

import logging
import sys
from typing import Optional

import structlog

from craftlog.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity


def configure_logging(level: str = "INFO", json_logs: bool = True) -> None:
    """
    Configure stdlib logging and structlog for the process.

    Call once at startup (craftlog.bootstrap does this).
    """
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, level.upper(), logging.INFO),
    )

    renderer = (
        structlog.processors.JSONRenderer()
        if json_logs
        else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


class AuditLogger:
    """Central audit logging service."""

    def __init__(self, keep_history: bool = False):
        """
        Initialize audit logger.

        Args:
            keep_history: Also keep every event in ``events`` (for tests
                          and for showing recent activity)
        """
        self._logger = structlog.get_logger("craftlog.audit")
        self._keep_history = keep_history
        self.events: list[AuditEvent] = []

    def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Returns True if the event was written, False if logging failed.
        """
        try:
            log_dict = event.to_log_dict()
            if event.severity == AuditSeverity.ERROR:
                self._logger.error("audit_event", **log_dict)
            elif event.severity == AuditSeverity.WARNING:
                self._logger.warning("audit_event", **log_dict)
            else:
                self._logger.info("audit_event", **log_dict)
        except Exception:
            return False
        finally:
            if self._keep_history:
                self.events.append(event)
        return True

    def log_entry_created(self, entry_id: str, grand_total: float, expense_count: int) -> None:
        self.log(AuditEventBuilder.entry_created(entry_id, grand_total, expense_count))

    def log_entry_updated(
        self,
        entry_id: str,
        grand_total: float,
        expense_count: int,
        warnings: list[str],
    ) -> None:
        self.log(AuditEventBuilder.entry_updated(entry_id, grand_total, expense_count, warnings))

    def log_entry_deleted(self, entry_id: str, expense_count: int, receipt_count: int) -> None:
        self.log(AuditEventBuilder.entry_deleted(entry_id, expense_count, receipt_count))

    def log_entry_save_failed(self, entry_id: str, operation: str, error_message: str) -> None:
        self.log(AuditEventBuilder.entry_save_failed(entry_id, operation, error_message))

    def log_receipts_uploaded(self, entry_id: str, paths: list[str]) -> None:
        self.log(AuditEventBuilder.receipts_uploaded(entry_id, paths))

    def log_receipt_rollback_failed(
        self,
        entry_id: Optional[str],
        paths: list[str],
        error_message: str,
    ) -> None:
        self.log(AuditEventBuilder.receipt_rollback_failed(entry_id, paths, error_message))

    def log_receipt_cleanup_failed(self, entry_id: str, paths: list[str], error_message: str) -> None:
        self.log(AuditEventBuilder.receipt_cleanup_failed(entry_id, paths, error_message))

    def log_backup_exported(self, record_counts: dict[str, int]) -> None:
        self.log(AuditEventBuilder.backup_exported(record_counts))

    def log_backup_restored(self, record_counts: dict[str, int]) -> None:
        self.log(AuditEventBuilder.backup_restored(record_counts))

    def log_backup_rejected(self, error_type: str, error_message: str) -> None:
        self.log(AuditEventBuilder.backup_rejected(error_type, error_message))

    def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
    ) -> None:
        self.log(AuditEventBuilder.system_error(error_type, error_message, details))
