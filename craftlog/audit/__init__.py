"""Audit logging package."""

from craftlog.audit.logger import AuditLogger, configure_logging

__all__ = ["AuditLogger", "configure_logging"]
