"""
Tests for the job repository and the raw entry/expense repositories.
"""

import pytest

from craftlog.exceptions import NegativeInputError, NotFoundError, ValidationError
from craftlog.models.records import Expense, JobCreate, WorkEntry
from craftlog.repositories import JobRepository
from craftlog.repositories.raw import ExpenseRepository, WorkEntryRepository

from conftest import run


def make_entry(entry_id: str, date: str, job_id: str = "job-1") -> WorkEntry:
    return WorkEntry(
        id=entry_id,
        date=date,
        start_time=f"{date}T08:00:00+02:00",
        end_time=f"{date}T09:00:00+02:00",
        job_id=job_id,
        hourly_rate_used=100,
        kilometers=0,
        km_rate_used=0,
        labor_total=100,
        km_total=0,
        expenses_total=0,
        grand_total=100,
        created_at=f"{date}T09:00:00+02:00",
    )


def make_expense(expense_id: str, entry_id: str, amount: float = 10) -> Expense:
    return Expense(
        id=expense_id,
        work_entry_id=entry_id,
        amount=amount,
        category="material",
        created_at="2025-06-15T09:00:00+02:00",
    )


class TestJobRepository:
    """Tests for JobRepository."""

    def test_create_generates_id_and_created_at(self, store):
        repo = JobRepository(store)
        job = run(repo.create({"name": "Roof", "client": "Novak", "defaultHourlyRate": 450}))
        assert job.id
        assert job.created_at
        assert job.active is True
        assert run(repo.get_by_id(job.id)) == job

    def test_create_rejects_negative_rate(self, store):
        with pytest.raises(NegativeInputError):
            run(JobRepository(store).create({"name": "Roof", "client": "Novak", "defaultHourlyRate": -1}))

    def test_create_rejects_empty_name(self, store):
        with pytest.raises(ValidationError) as exc_info:
            run(JobRepository(store).create({"name": "", "client": "Novak", "defaultHourlyRate": 1}))
        assert exc_info.value.field == "name"

    def test_update(self, store):
        repo = JobRepository(store)
        job = run(repo.create(JobCreate(name="Roof", client="Novak", default_hourly_rate=450)))
        changed = job.model_copy(update={"default_hourly_rate": 520.0})
        run(repo.update(changed))
        assert run(repo.get_by_id(job.id)).default_hourly_rate == 520.0

    def test_update_missing_raises(self, store, job):
        missing = job.model_copy(update={"id": "nope"})
        with pytest.raises(NotFoundError):
            run(JobRepository(store).update(missing))

    def test_get_active(self, store):
        repo = JobRepository(store)
        active = run(repo.create(JobCreate(name="A", client="c", default_hourly_rate=1)))
        run(repo.create(JobCreate(name="B", client="c", default_hourly_rate=1, active=False)))
        assert [j.id for j in run(repo.get_active())] == [active.id]

    def test_remove(self, store, job):
        repo = JobRepository(store)
        run(repo.remove(job.id))
        assert run(repo.get_by_id(job.id)) is None
        assert run(repo.get_all()) == []


class TestWorkEntryRepository:
    """Tests for the raw WorkEntryRepository."""

    def test_create_and_get(self, store):
        repo = WorkEntryRepository(store)
        entry = run(repo.create(make_entry("we-1", "2025-06-15")))
        assert run(repo.get_by_id("we-1")) == entry
        assert run(repo.get_by_id("nope")) is None

    def test_date_range_inclusive(self, store):
        repo = WorkEntryRepository(store)
        for entry_id, date in (("a", "2025-05-31"), ("b", "2025-06-01"), ("c", "2025-06-30")):
            run(repo.create(make_entry(entry_id, date)))
        found = run(repo.get_by_date_range("2025-06-01", "2025-06-30"))
        assert [e.id for e in found] == ["b", "c"]

    def test_by_job_id(self, store):
        repo = WorkEntryRepository(store)
        run(repo.create(make_entry("a", "2025-06-01", job_id="job-1")))
        run(repo.create(make_entry("b", "2025-06-02", job_id="job-2")))
        assert [e.id for e in run(repo.get_by_job_id("job-2"))] == ["b"]

    def test_update_missing_raises(self, store):
        with pytest.raises(NotFoundError):
            run(WorkEntryRepository(store).update(make_entry("we-1", "2025-06-15")))

    def test_remove_leaves_expenses(self, store):
        entries = WorkEntryRepository(store)
        expenses = ExpenseRepository(store)
        run(entries.create(make_entry("we-1", "2025-06-15")))
        run(expenses.create(make_expense("exp-1", "we-1")))

        run(entries.remove("we-1"))

        assert run(entries.get_all()) == []
        assert len(run(expenses.get_by_work_entry_id("we-1"))) == 1


class TestExpenseRepository:
    """Tests for the raw ExpenseRepository."""

    def test_by_work_entry_id(self, store):
        repo = ExpenseRepository(store)
        run(repo.create(make_expense("exp-1", "we-1")))
        run(repo.create(make_expense("exp-2", "we-2")))
        assert [e.id for e in run(repo.get_by_work_entry_id("we-1"))] == ["exp-1"]

    def test_update(self, store):
        repo = ExpenseRepository(store)
        run(repo.create(make_expense("exp-1", "we-1", amount=10)))
        run(repo.update(make_expense("exp-1", "we-1", amount=12.5)))
        assert run(repo.get_by_id("exp-1")).amount == 12.5

    def test_update_missing_raises(self, store):
        with pytest.raises(NotFoundError):
            run(ExpenseRepository(store).update(make_expense("exp-1", "we-1")))
