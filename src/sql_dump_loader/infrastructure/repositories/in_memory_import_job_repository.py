"""In-memory repository implementation for import jobs."""

from __future__ import annotations

import asyncio

from sql_dump_loader.domain.entities import ImportJob
from sql_dump_loader.domain.ports import ImportJobRepository


class InMemoryImportJobRepository(ImportJobRepository):
    """Process-local job store; records are lost on restart."""

    def __init__(self) -> None:
        self._by_job_id: dict[str, ImportJob] = {}
        self._lock = asyncio.Lock()

    async def get(self, job_id: str) -> ImportJob | None:
        """Return by job id."""

        return self._by_job_id.get(job_id)

    async def list_jobs(self) -> list[ImportJob]:
        """Return jobs ordered by creation time."""

        return sorted(self._by_job_id.values(), key=lambda job: (job.created_at, job.job_id))

    async def upsert(self, job: ImportJob) -> None:
        """Persist entity state."""

        async with self._lock:
            self._by_job_id[job.job_id] = job


__all__ = ["InMemoryImportJobRepository"]
