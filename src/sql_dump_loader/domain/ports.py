"""Domain ports (interfaces) for infrastructure adapters."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Protocol, runtime_checkable

from sql_dump_loader.domain.entities import ExecutionResult, ImportJob, SqlDump

ProgressCallback = Callable[[int], Awaitable[None]]
"""Receives the cumulative number of dump bytes consumed so far."""


class ImportJobRepository(Protocol):
    """Persistence port for import job records."""

    async def get(self, job_id: str) -> ImportJob | None:
        """Return a job by id."""

    async def list_jobs(self) -> list[ImportJob]:
        """Return all known jobs, oldest first."""

    async def upsert(self, job: ImportJob) -> None:
        """Create or update a job."""


class ArchiveExtractor(Protocol):
    """Turns an uploaded file into a directory tree."""

    async def extract(self, source: Path, target_dir: Path) -> None:
        """Extract or copy `source` into `target_dir`."""


@runtime_checkable
class ExecutionBackend(Protocol):
    """Delivers a dump to the target database."""

    async def execute(self, dump: SqlDump, progress: ProgressCallback) -> ExecutionResult:
        """Run the whole dump in source order, reporting bytes consumed."""


class ProgressReporter(Protocol):
    """Observer of byte counters during one execution."""

    def update(self, bytes_read: int) -> None:
        """Record a new sample and render it if due."""

    def finish(self) -> None:
        """Render the final line unconditionally."""

    def abort(self) -> None:
        """Stop reporting after a failed execution."""


__all__ = [
    "ArchiveExtractor",
    "ExecutionBackend",
    "ImportJobRepository",
    "ProgressCallback",
    "ProgressReporter",
]
