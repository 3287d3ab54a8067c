"""
Monthly Summary Service

Aggregates one calendar month of work entries per job. Amounts are taken
from the stored (snapshotted) totals; hours are recomputed from the
entry's start and end times.
"""

import calendar
import re
from decimal import Decimal

import structlog

from craftlog.calculations import duration_hours, round2
from craftlog.exceptions import ValidationError
from craftlog.models.summary import JobSummary, MonthlySummary
from craftlog.repositories import JobRepository
from craftlog.repositories.raw import WorkEntryRepository
from craftlog.services.storage import RecordStore

logger = structlog.get_logger(__name__)

MONTH_PATTERN = re.compile(r"^(\d{4})-(\d{2})$")
MISSING_JOB_NAME = "–"

SUMMED_FIELDS = ("hours", "kilometers", "labor", "expenses", "grand")


def month_bounds(month: str) -> tuple[str, str]:
    """
    First and last day of a ``YYYY-MM`` month as YYYY-MM-DD strings.

    Raises:
        ValidationError: If month is not a valid YYYY-MM string
    """
    match = MONTH_PATTERN.match(month) if isinstance(month, str) else None
    if not match or not 1 <= int(match.group(2)) <= 12:
        raise ValidationError(f'month: invalid month "{month}", expected YYYY-MM', field="month")
    year, month_number = int(match.group(1)), int(match.group(2))
    last_day = calendar.monthrange(year, month_number)[1]
    return f"{month}-01", f"{month}-{last_day:02d}"


class SummaryService:
    """Read-only reporting over work entries."""

    def __init__(self, store: RecordStore):
        self._entries = WorkEntryRepository(store)
        self._jobs = JobRepository(store)

    async def monthly_summary(self, month: str) -> MonthlySummary:
        """
        Per-job totals for one month, plus a totals row.

        Jobs appear in the order of their first entry in the month. Entries
        whose job was deleted are grouped under the name "–".
        """
        date_from, date_to = month_bounds(month)
        entries = await self._entries.get_by_date_range(date_from, date_to)
        job_names = {job.id: job.name for job in await self._jobs.get_all()}

        sums: dict[str, dict[str, Decimal]] = {}
        counts: dict[str, int] = {}
        for entry in entries:
            row = sums.setdefault(
                entry.job_id, {name: Decimal("0") for name in SUMMED_FIELDS}
            )
            counts[entry.job_id] = counts.get(entry.job_id, 0) + 1
            values = {
                "hours": duration_hours(entry.start_time, entry.end_time),
                "kilometers": entry.kilometers,
                "labor": entry.labor_total,
                "expenses": entry.expenses_total,
                "grand": entry.grand_total,
            }
            for name, value in values.items():
                row[name] += Decimal(repr(value))

        rows = [
            JobSummary(
                job_id=job_id,
                job_name=job_names.get(job_id, MISSING_JOB_NAME),
                entry_count=counts[job_id],
                **{name: round2(float(total)) for name, total in row.items()},
            )
            for job_id, row in sums.items()
        ]

        grand_sums = {
            name: sum((row[name] for row in sums.values()), Decimal("0"))
            for name in SUMMED_FIELDS
        }
        totals = JobSummary(
            job_id="",
            job_name="Total",
            entry_count=len(entries),
            **{name: round2(float(total)) for name, total in grand_sums.items()},
        )

        logger.debug("monthly_summary", month=month, entries=len(entries), jobs=len(rows))
        return MonthlySummary(
            month=month,
            date_from=date_from,
            date_to=date_to,
            jobs=rows,
            totals=totals,
        )
