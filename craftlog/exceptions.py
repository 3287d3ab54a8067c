"""
Exception hierarchy for craftlog.

DESIGN DECISION: Every failure the library can raise derives from
CraftlogError, so a caller (a form, a restore screen) can catch the whole
family with one clause and still branch on the specific subclass.

Validation errors carry the record kind, its index and the field that
failed. The message is always safe to show verbatim to the user.
"""

from typing import Any, Optional


class CraftlogError(Exception):
    """Base exception for all craftlog errors."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        return self.message


class ValidationError(CraftlogError):
    """
    Bad shape, type or range in user input or a backup document.

    Raised before any I/O is attempted.
    """

    def __init__(
        self,
        message: str,
        kind: Optional[str] = None,
        index: Optional[int] = None,
        field: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        self.kind = kind
        self.index = index
        self.field = field
        super().__init__(message, details)

    @property
    def location(self) -> str:
        """Location label such as ``workEntries[3].kmRateUsed``."""
        label = self.kind or ""
        if self.index is not None:
            label = f"{label}[{self.index}]"
        if self.field:
            label = f"{label}.{self.field}" if label else self.field
        return label


class InvalidInputError(ValidationError):
    """A value could not be parsed (e.g. a malformed timestamp)."""
    pass


class OrderingViolationError(ValidationError):
    """End time is not after start time."""
    pass


class NegativeInputError(ValidationError):
    """A quantity that must be >= 0 was negative."""
    pass


class BackupValidationError(ValidationError):
    """A backup document failed validation. Nothing was written."""
    pass


class UnsupportedVersionError(BackupValidationError):
    """Backup document version is not 1."""
    pass


class DuplicateIdError(BackupValidationError):
    """The same id appears twice inside one collection of a backup."""
    pass


class ReferentialIntegrityError(BackupValidationError):
    """A backup record points at an id that does not exist in the document."""
    pass


class TotalsMismatchError(BackupValidationError):
    """Stored totals differ from their recomputation."""
    pass


class NotFoundError(CraftlogError):
    """Referenced record does not exist."""
    pass


class StorageIOError(CraftlogError):
    """A store transaction or a file operation failed."""
    pass


class ReceiptStorageError(StorageIOError):
    """Upload or deletion of a receipt file failed."""
    pass
