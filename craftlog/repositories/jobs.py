"""
Job Repository

Thin CRUD over the ``jobs`` collection. Jobs carry no derived data, so
this repository is safe for callers to use directly.

Deleting a job does NOT touch the work entries that reference it; they
keep a dangling jobId (summaries show such entries under "–").
"""

from typing import Any, Optional, Union
from uuid import uuid4

from craftlog.exceptions import NotFoundError
from craftlog.models.records import Job, JobCreate, coerce_input
from craftlog.services.storage import JOBS, RecordStore
from craftlog.timeutils import now_local_iso


class JobRepository:
    """CRUD for jobs plus the active-jobs lookup."""

    def __init__(self, store: RecordStore):
        self._store = store

    async def create(self, data: Union[JobCreate, dict[str, Any]]) -> Job:
        """Create a job; id and createdAt are generated here."""
        job_create = coerce_input(JobCreate, data, "job")
        job = Job(
            id=str(uuid4()),
            created_at=now_local_iso(),
            **job_create.model_dump(),
        )
        await self._store.put(JOBS, job.to_record())
        return job

    async def update(self, job: Job) -> Job:
        """
        Overwrite an existing job.

        Raises:
            NotFoundError: If the job does not exist
        """
        existing = await self._store.get(JOBS, job.id)
        if existing is None:
            raise NotFoundError(f"Job not found: {job.id}")
        await self._store.put(JOBS, job.to_record())
        return job

    async def remove(self, job_id: str) -> None:
        await self._store.delete(JOBS, job_id)

    async def get_by_id(self, job_id: str) -> Optional[Job]:
        record = await self._store.get(JOBS, job_id)
        return Job.model_validate(record) if record is not None else None

    async def get_all(self) -> list[Job]:
        return [Job.model_validate(r) for r in await self._store.get_all(JOBS)]

    async def get_active(self) -> list[Job]:
        """Only active jobs, via the by-active index."""
        records = await self._store.get_by_index(JOBS, "by-active", True)
        return [Job.model_validate(r) for r in records]
