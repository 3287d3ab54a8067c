"""
Tests for the pure calculation functions and time helpers.
"""

import math
from datetime import datetime, timedelta, timezone

import pytest

from craftlog.calculations import (
    duration_hours,
    entry_totals,
    expenses_total,
    grand_total,
    km_total,
    labor_total,
    round2,
)
from craftlog.exceptions import (
    InvalidInputError,
    NegativeInputError,
    OrderingViolationError,
)
from craftlog.timeutils import (
    is_valid_timestamp,
    parse_calendar_date,
    to_local_date,
    to_local_iso,
)


class TestRounding:
    """Tests for round2."""

    def test_rounds_half_up(self):
        assert round2(2.675) == 2.68
        assert round2(1.005) == 1.01

    def test_keeps_two_decimals(self):
        assert round2(3000) == 3000.0
        assert round2(0.1 + 0.2) == 0.3

    def test_values_beyond_default_decimal_precision(self):
        assert round2(1e27) == 1e27
        assert round2(1e300) == 1e300

    def test_non_finite_rejected(self):
        with pytest.raises(InvalidInputError):
            round2(math.nan)
        with pytest.raises(InvalidInputError):
            round2(math.inf)

    def test_overflowing_product_names_total(self):
        with pytest.raises(InvalidInputError) as exc_info:
            labor_total(6, 1e308)
        assert exc_info.value.field == "laborTotal"


class TestDuration:
    """Tests for duration_hours."""

    def test_six_hours(self):
        assert duration_hours(
            "2025-06-15T08:00:00+02:00",
            "2025-06-15T14:00:00+02:00",
        ) == 6.0

    def test_fractional_hours_rounded(self):
        assert duration_hours(
            "2025-06-15T08:00:00+02:00",
            "2025-06-15T08:20:00+02:00",
        ) == 0.33

    def test_equal_times_are_zero(self):
        assert duration_hours(
            "2025-06-15T08:00:00+02:00",
            "2025-06-15T08:00:00+02:00",
        ) == 0.0

    def test_different_offsets_compare_absolute_time(self):
        # 08:00+02:00 == 06:00Z
        assert duration_hours("2025-06-15T08:00:00+02:00", "2025-06-15T07:00:00Z") == 1.0

    def test_accepts_datetimes(self):
        tz = timezone(timedelta(hours=2))
        start = datetime(2025, 6, 15, 8, 0, tzinfo=tz)
        assert duration_hours(start, start + timedelta(minutes=90)) == 1.5

    def test_end_before_start_rejected(self):
        with pytest.raises(OrderingViolationError):
            duration_hours("2025-06-15T14:00:00+02:00", "2025-06-15T08:00:00+02:00")

    def test_invalid_timestamp_rejected(self):
        with pytest.raises(InvalidInputError) as exc_info:
            duration_hours("not a date", "2025-06-15T08:00:00+02:00")
        assert exc_info.value.field == "startTime"


class TestTotals:
    """Tests for labor, km, expenses and grand totals."""

    def test_labor_total(self):
        assert labor_total(6, 500) == 3000.0
        assert labor_total(0.33, 450) == 148.5

    def test_km_total(self):
        assert km_total(20, 5) == 100.0
        assert km_total(12.5, 4.2) == 52.5

    def test_negative_operands_rejected(self):
        with pytest.raises(NegativeInputError):
            labor_total(-1, 500)
        with pytest.raises(NegativeInputError):
            labor_total(1, -500)
        with pytest.raises(NegativeInputError):
            km_total(-20, 5)
        with pytest.raises(NegativeInputError):
            km_total(20, -5)

    def test_grand_total(self):
        assert grand_total(3000, 100, 150) == 3250.0
        assert grand_total(0.1, 0.2, 0) == 0.3

    def test_grand_total_negative_component_rejected(self):
        with pytest.raises(NegativeInputError):
            grand_total(100, -1, 0)

    def test_expenses_total(self):
        assert expenses_total([]) == 0.0
        assert expenses_total([0.1, 0.2, 10]) == 10.3

    def test_expenses_total_negative_rejected(self):
        with pytest.raises(NegativeInputError):
            expenses_total([10, -0.01])

    def test_entry_totals_scenario(self):
        totals = entry_totals(
            "2025-06-15T08:00:00+02:00",
            "2025-06-15T14:00:00+02:00",
            500,
            20,
            5,
            [150],
        )
        assert totals.hours == 6.0
        assert totals.labor_total == 3000.0
        assert totals.km_total == 100.0
        assert totals.expenses_total == 150.0
        assert totals.grand_total == 3250.0


class TestTimeHelpers:
    """Tests for timestamp and date helpers."""

    def test_is_valid_timestamp(self):
        assert is_valid_timestamp("2025-06-15T08:00:00+02:00")
        assert is_valid_timestamp("2025-06-15T08:00:00.000Z")
        assert not is_valid_timestamp("")
        assert not is_valid_timestamp("yesterday")
        assert not is_valid_timestamp(1718431200)

    def test_to_local_iso_has_offset(self):
        value = to_local_iso(datetime(2025, 6, 15, 8, 0, tzinfo=timezone.utc))
        assert value[-6] in "+-"
        assert "." not in value

    def test_to_local_date_uses_own_offset(self):
        assert to_local_date("2025-06-15T23:30:00+01:00") == "2025-06-15"

    def test_parse_calendar_date_strict(self):
        assert parse_calendar_date("2025-06-15").day == 15
        for bad in ("2025-6-15", "2025-02-30", "15.06.2025", 20250615):
            with pytest.raises(InvalidInputError):
                parse_calendar_date(bad)


class TestGrandTotalOrder:
    """grand_total does not depend on the order of its components."""

    @pytest.mark.parametrize("values", [(0.1, 0.2, 0.3), (3000, 100, 150), (19.99, 0.01, 1234.565)])
    def test_permutations_agree(self, values):
        a, b, c = values
        assert grand_total(a, b, c) == grand_total(b, a, c) == grand_total(c, b, a)
