"""
Backup Service

Full-dataset export and all-or-nothing restore.

Export: one snapshot read of all collections -> a version 1 document.
Restore: validate the document completely, then clear and rewrite every
collection inside ONE transaction. If anything fails, the store keeps its
previous contents.

Validation order (fail fast, first problem wins):
1. Document shape (exactly the known top-level keys) and version
2. Every record: fields present, exact primitive types, finite numbers,
   parseable timestamps, end after start
3. Duplicate ids per collection
4. Referential integrity (jobId -> jobs, workEntryId -> workEntries)
5. Stored totals equal their recomputation
6. Rehydrate records and commit
"""

import json
import math
from collections import defaultdict
from datetime import date
from pathlib import Path
from typing import Any, Callable, Optional, Union

import structlog
from pydantic import ValidationError as PydanticValidationError

from craftlog.audit import AuditLogger
from craftlog.calculations import entry_totals, round2
from craftlog.exceptions import (
    BackupValidationError,
    DuplicateIdError,
    InvalidInputError,
    ReferentialIntegrityError,
    TotalsMismatchError,
    UnsupportedVersionError,
    ValidationError,
)
from craftlog.models.backup import BACKUP_KEYS, BACKUP_VERSION, FullBackup
from craftlog.services.storage import (
    COLLECTIONS,
    EXPENSES,
    JOBS,
    WORK_ENTRIES,
    ClearOp,
    Operation,
    PutOp,
    RecordStore,
)
from craftlog.timeutils import now_local_iso, parse_calendar_date, parse_timestamp

logger = structlog.get_logger(__name__)


# =============================================================================
# Field checks
# =============================================================================
# Each check returns a problem description, or None when the value is fine.

def _fail(label: str, problem: str, kind: Optional[str], index: Optional[int], field: Optional[str]):
    raise BackupValidationError(f"{label}: {problem}", kind=kind, index=index, field=field)


def _type_name(value: Any) -> str:
    return "null" if value is None else type(value).__name__


def _check_string(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return f"expected string, got {_type_name(value)}"
    if not value.strip():
        return "empty string"
    return None


def _check_optional_string(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return f"expected string, got {_type_name(value)}"
    return None


def _check_number(value: Any) -> Optional[str]:
    # bool is an int subclass; true/false is never a number here
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return f"expected number, got {_type_name(value)}"
    try:
        number = float(value)
    except OverflowError:
        # JSON integers are unbounded
        return "value is -Infinity" if value < 0 else "value is Infinity"
    if math.isnan(number):
        return "value is NaN"
    if math.isinf(number):
        return "value is -Infinity" if number < 0 else "value is Infinity"
    if number < 0:
        return f"must be >= 0, got {value}"
    return None


def _check_bool(value: Any) -> Optional[str]:
    if not isinstance(value, bool):
        return f"expected boolean, got {_type_name(value)}"
    return None


def _check_timestamp(value: Any) -> Optional[str]:
    problem = _check_string(value)
    if problem:
        return problem
    try:
        parse_timestamp(value)
    except InvalidInputError:
        return f'invalid timestamp "{value}"'
    return None


def _check_date(value: Any) -> Optional[str]:
    problem = _check_string(value)
    if problem:
        return problem
    try:
        parse_calendar_date(value)
    except InvalidInputError:
        return f'invalid date "{value}", expected YYYY-MM-DD'
    return None


Check = Callable[[Any], Optional[str]]

# field -> check, in the order fields are validated
RECORD_SCHEMAS: dict[str, dict[str, Check]] = {
    JOBS: {
        "id": _check_string,
        "name": _check_string,
        "client": _check_string,
        "defaultHourlyRate": _check_number,
        "active": _check_bool,
        "createdAt": _check_timestamp,
    },
    WORK_ENTRIES: {
        "id": _check_string,
        "jobId": _check_string,
        "date": _check_date,
        "startTime": _check_timestamp,
        "endTime": _check_timestamp,
        "createdAt": _check_timestamp,
        "hourlyRateUsed": _check_number,
        "kilometers": _check_number,
        "kmRateUsed": _check_number,
        "laborTotal": _check_number,
        "kmTotal": _check_number,
        "expensesTotal": _check_number,
        "grandTotal": _check_number,
    },
    EXPENSES: {
        "id": _check_string,
        "workEntryId": _check_string,
        "category": _check_string,
        "amount": _check_number,
        "receiptImageUrl": _check_optional_string,
        "createdAt": _check_timestamp,
    },
}

OPTIONAL_FIELDS = {(EXPENSES, "receiptImageUrl")}

TOTAL_FIELDS = ("laborTotal", "kmTotal", "expensesTotal", "grandTotal")


# =============================================================================
# Validation steps
# =============================================================================

def _validate_shape(document: Any) -> None:
    if not isinstance(document, dict):
        raise BackupValidationError("Invalid backup: not a JSON object")

    version = document.get("version", None)
    if isinstance(version, bool) or not isinstance(version, int) or version != BACKUP_VERSION:
        shown = "missing" if "version" not in document else json.dumps(version, default=str)
        raise UnsupportedVersionError(
            f"Unsupported backup version: {shown}. Expected: {BACKUP_VERSION}",
            field="version",
        )

    unknown = sorted(str(key) for key in document if key not in BACKUP_KEYS)
    if unknown:
        raise BackupValidationError(f"Invalid backup: unknown keys {', '.join(unknown)}")

    problem = _check_timestamp(document.get("exportedAt"))
    if problem:
        _fail("exportedAt", problem, kind=None, index=None, field="exportedAt")

    for collection in COLLECTIONS:
        if not isinstance(document.get(collection), list):
            raise BackupValidationError(
                f"Invalid backup: {collection} is not a list",
                kind=collection,
            )


def _validate_record(collection: str, index: int, record: Any) -> None:
    prefix = f"{collection}[{index}]"
    if not isinstance(record, dict):
        raise BackupValidationError(f"{prefix}: not an object", kind=collection, index=index)

    for field, check in RECORD_SCHEMAS[collection].items():
        if field not in record:
            if (collection, field) in OPTIONAL_FIELDS:
                continue
            _fail(f"{prefix}.{field}", "missing", collection, index, field)
        problem = check(record[field])
        if problem:
            _fail(f"{prefix}.{field}", problem, collection, index, field)

    if collection == WORK_ENTRIES:
        start = parse_timestamp(record["startTime"])
        end = parse_timestamp(record["endTime"])
        if end <= start:
            _fail(
                f"{prefix}.endTime",
                f"endTime ({record['endTime']}) must be after startTime ({record['startTime']})",
                collection,
                index,
                "endTime",
            )


def _validate_unique_ids(collection: str, records: list[dict]) -> None:
    seen: set[str] = set()
    for index, record in enumerate(records):
        record_id = record["id"]
        if record_id in seen:
            raise DuplicateIdError(
                f"Duplicate id in {collection}: {record_id}",
                kind=collection,
                index=index,
                field="id",
                details={"id": record_id},
            )
        seen.add(record_id)


def _validate_references(document: dict) -> None:
    job_ids = {job["id"] for job in document[JOBS]}
    entry_ids = {entry["id"] for entry in document[WORK_ENTRIES]}

    for index, entry in enumerate(document[WORK_ENTRIES]):
        if entry["jobId"] not in job_ids:
            raise ReferentialIntegrityError(
                f'{WORK_ENTRIES}[{index}].jobId: "{entry["jobId"]}" references a missing job',
                kind=WORK_ENTRIES,
                index=index,
                field="jobId",
            )

    for index, expense in enumerate(document[EXPENSES]):
        if expense["workEntryId"] not in entry_ids:
            raise ReferentialIntegrityError(
                f'{EXPENSES}[{index}].workEntryId: "{expense["workEntryId"]}" '
                "references a missing work entry",
                kind=EXPENSES,
                index=index,
                field="workEntryId",
            )


def _validate_totals(document: dict) -> None:
    amounts_by_entry: dict[str, list[float]] = defaultdict(list)
    for expense in document[EXPENSES]:
        amounts_by_entry[expense["workEntryId"]].append(expense["amount"])

    for index, entry in enumerate(document[WORK_ENTRIES]):
        try:
            computed = entry_totals(
                entry["startTime"],
                entry["endTime"],
                entry["hourlyRateUsed"],
                entry["kilometers"],
                entry["kmRateUsed"],
                amounts_by_entry.get(entry["id"], []),
            )
        except ValidationError as e:
            # Finite inputs whose product or sum overflows
            _fail(f"{WORK_ENTRIES}[{index}].{e.field}", e.message, WORK_ENTRIES, index, e.field)
        expected = {
            "laborTotal": computed.labor_total,
            "kmTotal": computed.km_total,
            "expensesTotal": computed.expenses_total,
            "grandTotal": computed.grand_total,
        }
        for field in TOTAL_FIELDS:
            stored = entry[field]
            if round2(stored) != expected[field]:
                raise TotalsMismatchError(
                    f"{WORK_ENTRIES}[{index}].{field}: {field} mismatch for record "
                    f"{entry['id']}. Stored: {stored}, computed: {expected[field]}",
                    kind=WORK_ENTRIES,
                    index=index,
                    field=field,
                    details={
                        "id": entry["id"],
                        "stored": stored,
                        "computed": expected[field],
                    },
                )


def validate_backup(document: Any) -> FullBackup:
    """
    Run every validation step and return the rehydrated backup.

    Raises:
        BackupValidationError (or a subclass): On the first problem found
    """
    _validate_shape(document)

    for collection in COLLECTIONS:
        for index, record in enumerate(document[collection]):
            _validate_record(collection, index, record)

    for collection in COLLECTIONS:
        _validate_unique_ids(collection, document[collection])

    _validate_references(document)
    _validate_totals(document)

    try:
        return FullBackup.model_validate(document)
    except PydanticValidationError as e:
        error = e.errors()[0]
        location = ".".join(str(part) for part in error["loc"])
        raise BackupValidationError(f"{location}: {error['msg']}") from None


# =============================================================================
# File helpers
# =============================================================================

def backup_filename(today: Optional[date] = None, app_slug: str = "craftlog") -> str:
    """``<app>-backup-YYYY-MM-DD.json`` for the given (default: current local) day."""
    today = today or date.today()
    return f"{app_slug}-backup-{today.isoformat()}.json"


def dumps_backup(document: dict[str, Any]) -> str:
    """Serialize a backup document the way it is written to disk."""
    return json.dumps(document, ensure_ascii=False, indent=2, allow_nan=False)


# =============================================================================
# Service
# =============================================================================

class BackupService:
    """Export and restore the complete record store."""

    def __init__(
        self,
        store: RecordStore,
        audit_logger: Optional[AuditLogger] = None,
        app_slug: str = "craftlog",
    ):
        self._store = store
        self._audit = audit_logger or AuditLogger()
        self._app_slug = app_slug

    async def export_full_backup(self) -> dict[str, Any]:
        """
        Export all jobs, work entries and expenses.

        All three collections are read inside one read transaction, so a
        concurrent write is either fully in the export or not at all.
        """
        data = await self._store.snapshot(list(COLLECTIONS))
        document = {
            "version": BACKUP_VERSION,
            "exportedAt": now_local_iso(),
            JOBS: data[JOBS],
            WORK_ENTRIES: data[WORK_ENTRIES],
            EXPENSES: data[EXPENSES],
        }
        counts = {name: len(data[name]) for name in COLLECTIONS}
        logger.info("backup_exported", **counts)
        self._audit.log_backup_exported(counts)
        return document

    async def restore_full_backup(self, document: Any) -> FullBackup:
        """
        Replace the entire store with the contents of a backup document.

        Nothing is written unless the whole document validates, and the
        write itself is one transaction.

        Raises:
            BackupValidationError (or a subclass): Document rejected
            StorageIOError: Commit failed (store unchanged)
        """
        try:
            backup = validate_backup(document)
        except BackupValidationError as e:
            logger.warning("backup_rejected", error_type=type(e).__name__, error=str(e))
            self._audit.log_backup_rejected(type(e).__name__, str(e))
            raise

        ops: list[Operation] = [ClearOp(name) for name in COLLECTIONS]
        ops.extend(PutOp(JOBS, job.to_record()) for job in backup.jobs)
        ops.extend(PutOp(WORK_ENTRIES, entry.to_record()) for entry in backup.work_entries)
        ops.extend(PutOp(EXPENSES, expense.to_record()) for expense in backup.expenses)

        try:
            await self._store.run_transaction(list(COLLECTIONS), ops)
        except Exception as e:
            self._audit.log_error(type(e).__name__, str(e), {"operation": "restore"})
            raise

        logger.info("backup_restored", **backup.record_counts)
        self._audit.log_backup_restored(backup.record_counts)
        return backup

    def backup_filename(self, today: Optional[date] = None) -> str:
        return backup_filename(today, self._app_slug)

    async def write_backup_file(self, directory: Union[str, Path]) -> Path:
        """
        Export and write ``<app>-backup-YYYY-MM-DD.json`` into directory.

        Returns:
            Path of the written file
        """
        document = await self.export_full_backup()
        directory = Path(directory)
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / self.backup_filename()
        path.write_text(dumps_backup(document), encoding="utf-8")
        return path

    async def restore_from_file(self, path: Union[str, Path]) -> FullBackup:
        """
        Restore from a backup file on disk.

        Raises:
            BackupValidationError: If the file is not valid UTF-8 JSON, or
                                   the document is rejected
        """
        try:
            text = Path(path).read_text(encoding="utf-8")
            # NaN/Infinity literals are not JSON
            document = json.loads(text, parse_constant=_reject_constant)
        except ValueError as e:
            error = BackupValidationError(f"Invalid backup file: {e}")
            self._audit.log_backup_rejected(type(error).__name__, str(error))
            raise error from e
        return await self.restore_full_backup(document)


def _reject_constant(name: str) -> Any:
    raise ValueError(f"{name} is not allowed in a backup")

