"""
Pure calculation functions for work entry totals.

All functions validate inputs and raise on invalid data so that bad
values never silently propagate into stored records.

DESIGN DECISION: Every monetary step is rounded to 2 decimal places at
computation time, not at display time. Rounding goes through Decimal so
that values like 2.675 round the way a person reading them expects.
"""

import math
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal, localcontext
from typing import Iterable, NamedTuple, Union

from craftlog.exceptions import (
    InvalidInputError,
    NegativeInputError,
    OrderingViolationError,
)
from craftlog.timeutils import parse_timestamp

Number = Union[int, float]

_CENT = Decimal("0.01")

# Enough significant digits to quantize the largest finite float to cents
_ROUND_PRECISION = 400


def round2(value: Number, label: str = "value") -> float:
    """
    Round to 2 decimal places, half away from zero.

    Raises:
        InvalidInputError: If the value is NaN or infinite (e.g. after overflow)
    """
    if not math.isfinite(value):
        raise InvalidInputError(f"{label} is not a finite number: {value}", field=label)
    with localcontext() as ctx:
        ctx.prec = _ROUND_PRECISION
        return float(Decimal(repr(value)).quantize(_CENT, rounding=ROUND_HALF_UP))


def _require_non_negative(value: Number, label: str) -> None:
    if value < 0:
        raise NegativeInputError(f"{label} must be >= 0, got {value}", field=label)


# =============================================================================
# Duration
# =============================================================================

def duration_hours(
    start: Union[str, datetime],
    end: Union[str, datetime],
) -> float:
    """
    Duration in hours between two timestamps, rounded to 2 decimals.

    Only ``end < start`` is rejected; equal timestamps yield 0.0.

    Raises:
        InvalidInputError: If either value is not a valid timestamp
        OrderingViolationError: If end is before start
    """
    start_at = parse_timestamp(start, "startTime")
    end_at = parse_timestamp(end, "endTime")

    if end_at < start_at:
        raise OrderingViolationError(
            f"endTime ({end}) is before startTime ({start})",
            field="endTime",
        )

    hours = (end_at - start_at).total_seconds() / 3600
    return round2(hours)


# =============================================================================
# Labor / kilometers
# =============================================================================

def labor_total(hours: Number, hourly_rate: Number) -> float:
    """Labor cost: hours x hourly rate."""
    _require_non_negative(hours, "hours")
    _require_non_negative(hourly_rate, "hourlyRate")
    return round2(hours * hourly_rate, "laborTotal")


def km_total(km: Number, km_rate: Number) -> float:
    """Kilometer cost: km x rate per km."""
    _require_non_negative(km, "km")
    _require_non_negative(km_rate, "kmRate")
    return round2(km * km_rate, "kmTotal")


# =============================================================================
# Expenses / grand total
# =============================================================================

def expenses_total(amounts: Iterable[Number]) -> float:
    """Sum of expense amounts, rounded once at the end."""
    total = Decimal("0")
    for amount in amounts:
        _require_non_negative(amount, "amount")
        total += Decimal(repr(amount))
    return round2(float(total), "expensesTotal")


def grand_total(
    labor: Number,
    km: Number,
    expenses: Number,
) -> float:
    """
    Sum all cost components into a grand total.

    Raises:
        NegativeInputError: If any component is negative
    """
    _require_non_negative(labor, "laborTotal")
    _require_non_negative(km, "kmTotal")
    _require_non_negative(expenses, "expensesTotal")
    total = Decimal(repr(labor)) + Decimal(repr(km)) + Decimal(repr(expenses))
    return round2(float(total), "grandTotal")


# =============================================================================
# Work entry totals
# =============================================================================

class EntryTotals(NamedTuple):
    """The four derived money fields of a work entry, plus hours."""
    hours: float
    labor_total: float
    km_total: float
    expenses_total: float
    grand_total: float


def entry_totals(
    start: Union[str, datetime],
    end: Union[str, datetime],
    hourly_rate: Number,
    kilometers: Number,
    km_rate: Number,
    expense_amounts: Iterable[Number],
) -> EntryTotals:
    """
    Compute every derived field of a work entry from raw data.

    This is the single code path used both when an entry is written and
    when a backup's stored totals are verified.
    """
    hours = duration_hours(start, end)
    labor = labor_total(hours, hourly_rate)
    km = km_total(kilometers, km_rate)
    expenses = expenses_total(expense_amounts)
    return EntryTotals(
        hours=hours,
        labor_total=labor,
        km_total=km,
        expenses_total=expenses,
        grand_total=grand_total(labor, km, expenses),
    )
