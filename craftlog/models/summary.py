"""
Summary Models

Per-job aggregation of a month of work entries, as shown on the
monthly overview screen.
"""

from pydantic import BaseModel, Field


class JobSummary(BaseModel):
    """Totals for one job within a period."""

    job_id: str
    job_name: str = Field(
        ...,
        description='Job name, or "–" when the job no longer exists',
    )
    entry_count: int = Field(default=0, ge=0)
    hours: float = 0.0
    kilometers: float = 0.0
    labor: float = 0.0
    expenses: float = 0.0
    grand: float = 0.0


class MonthlySummary(BaseModel):
    """Summary of one calendar month (YYYY-MM)."""

    month: str
    date_from: str
    date_to: str
    jobs: list[JobSummary] = Field(default_factory=list)
    totals: JobSummary

    @property
    def has_data(self) -> bool:
        return len(self.jobs) > 0
