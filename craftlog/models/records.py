"""
Core Record Models for craftlog

These models define the strict schemas for the three stored collections
(jobs, workEntries, expenses) and for the raw input the entry service
accepts. They are designed to:
1. Enforce type safety at runtime
2. Serialize with the external camelCase field names used by the store
   and by backup documents
3. Reject NaN/Infinity and negative money at the edge

DESIGN DECISION: Derived totals exist ONLY on WorkEntry, never on
WorkEntryInput. Callers cannot hand us totals; extra keys are ignored and
the entry service recomputes everything from raw fields.

Timestamps are kept as the ISO strings they were written with (local
offset included). Re-serializing them would change the bytes of a backup
on every round trip.
"""

from datetime import datetime
from typing import Annotated, Any, Optional, TypeVar, Union

from pydantic import (
    AfterValidator,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError as PydanticValidationError,
    ValidationInfo,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from craftlog.exceptions import (
    InvalidInputError,
    NegativeInputError,
    OrderingViolationError,
    ValidationError,
)
from craftlog.timeutils import (
    is_valid_timestamp,
    parse_calendar_date,
    parse_timestamp,
)


def _check_timestamp(value: str) -> str:
    if not is_valid_timestamp(value):
        raise ValueError(f'invalid timestamp "{value}"')
    return value


def _check_calendar_date(value: str) -> str:
    try:
        parse_calendar_date(value)
    except InvalidInputError:
        raise ValueError(f'invalid calendar date "{value}", expected YYYY-MM-DD') from None
    return value


Timestamp = Annotated[str, AfterValidator(_check_timestamp)]
CalendarDate = Annotated[str, AfterValidator(_check_calendar_date)]
Money = Annotated[float, Field(ge=0)]


class RecordModel(BaseModel):
    """
    Shared configuration: camelCase aliases, no NaN/Infinity.

    Stored strings are kept byte for byte; ids that differ only in
    whitespace are different ids.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        allow_inf_nan=False,
    )

    def to_record(self) -> dict[str, Any]:
        """Dictionary in the stored/exported shape."""
        return self.model_dump(mode="json", by_alias=True)


class InputModel(RecordModel):
    """Caller input: surrounding whitespace is trimmed."""

    model_config = ConfigDict(str_strip_whitespace=True)


# =============================================================================
# STORED RECORDS
# =============================================================================

class Job(RecordModel):
    """A client engagement with a default billing rate."""

    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    client: str = Field(..., min_length=1)
    default_hourly_rate: Money = Field(
        ...,
        description="Default hourly rate, snapshotted into each WorkEntry at creation",
    )
    active: bool = True
    created_at: Timestamp


class WorkEntry(RecordModel):
    """
    One recorded work session against a Job.

    hourly_rate_used / km_rate_used are SNAPSHOTS: editing the Job later
    never changes a historical entry.
    """

    id: str = Field(..., min_length=1)
    date: CalendarDate
    start_time: Timestamp
    end_time: Timestamp
    job_id: str = Field(..., min_length=1)
    hourly_rate_used: Money
    kilometers: Money
    km_rate_used: Money

    # Derived - written by the entry service only
    labor_total: Money
    km_total: Money
    expenses_total: Money
    grand_total: Money

    created_at: Timestamp


class Expense(RecordModel):
    """A cost item owned by a WorkEntry, optionally with a receipt."""

    id: str = Field(..., min_length=1)
    work_entry_id: str = Field(..., min_length=1)
    amount: Money
    category: str = Field(..., min_length=1)
    receipt_image_url: str = Field(
        default="",
        description="Receipt storage path; empty string if none",
    )
    created_at: Timestamp


# =============================================================================
# INPUT SHAPES
# =============================================================================

class JobCreate(InputModel):
    """Fields required when creating a Job (id and createdAt are generated)."""

    name: str = Field(..., min_length=1)
    client: str = Field(..., min_length=1)
    default_hourly_rate: Money
    active: bool = True


class WorkEntryInput(InputModel):
    """
    Raw user input for a work entry, before totals are computed.

    Any total the caller sends along is dropped (extra keys are ignored).
    """

    date: CalendarDate
    start_time: Union[str, datetime]
    end_time: Union[str, datetime]
    job_id: str = Field(..., min_length=1)
    hourly_rate_used: Money
    kilometers: Money = 0.0
    km_rate_used: Money = 0.0

    @field_validator("start_time", "end_time")
    @classmethod
    def normalize_timestamp(cls, v: Union[str, datetime], info: ValidationInfo) -> str:
        """Keep strings as written; serialize datetimes with their offset."""
        label = to_camel(info.field_name)
        try:
            parsed = parse_timestamp(v, label)
        except InvalidInputError as e:
            raise InvalidInputError(
                f"workEntry.{label}: {e.message}", kind="workEntry", field=label
            ) from None
        if isinstance(v, datetime):
            return parsed.isoformat()
        return v.strip()

    @model_validator(mode="after")
    def validate_ordering(self) -> "WorkEntryInput":
        """A work entry must end strictly after it starts."""
        start = parse_timestamp(self.start_time, "startTime")
        end = parse_timestamp(self.end_time, "endTime")
        if end <= start:
            raise OrderingViolationError(
                f"endTime ({self.end_time}) must be after startTime ({self.start_time})",
                kind="workEntry",
                field="endTime",
            )
        return self


class ReceiptFile(BaseModel):
    """An attached receipt photo/document, not yet uploaded."""

    data: bytes = Field(..., min_length=1)
    filename: Optional[str] = None


class ExpenseInput(InputModel):
    """
    Expense data as provided by the caller.

    There is no work_entry_id yet; the entry service assigns it.
    ``receipt`` is a new file to upload; ``receipt_path`` keeps a receipt
    that is already in storage (used when editing an entry).
    """

    amount: Money
    category: str = Field(..., min_length=1)
    receipt: Optional[ReceiptFile] = None
    receipt_path: str = ""


# =============================================================================
# SERVICE RESULTS
# =============================================================================

class EntryWithExpenses(BaseModel):
    """A WorkEntry together with the Expenses it owns."""

    entry: WorkEntry
    expenses: list[Expense] = Field(default_factory=list)


class UpdateResult(EntryWithExpenses):
    """
    Result of an entry update.

    warnings carries non-fatal problems from post-commit cleanup
    (e.g. a superseded receipt file that could not be deleted).
    """

    warnings: list[str] = Field(default_factory=list)


# =============================================================================
# INPUT COERCION
# =============================================================================

ModelT = TypeVar("ModelT", bound=BaseModel)


def coerce_input(
    model_cls: type[ModelT],
    data: Union[ModelT, dict[str, Any]],
    kind: str,
    index: Optional[int] = None,
) -> ModelT:
    """
    Validate caller input into a model, translating pydantic errors.

    A failed ``>= 0`` constraint becomes NegativeInputError; every other
    schema problem becomes ValidationError naming the field.
    """
    if isinstance(data, model_cls):
        return data
    try:
        return model_cls.model_validate(data)
    except PydanticValidationError as e:
        error = e.errors()[0]
        field = ".".join(str(part) for part in error["loc"]) or None
        location = ValidationError("", kind=kind, index=index, field=field).location
        message = f"{location}: {error['msg']}"
        if error["type"] == "greater_than_equal":
            raise NegativeInputError(message, kind=kind, index=index, field=field) from None
        raise ValidationError(message, kind=kind, index=index, field=field) from None
