"""Import job use-case service."""

from __future__ import annotations

import asyncio
import logging
import shutil
import time
from collections.abc import Callable
from dataclasses import replace
from pathlib import Path
from uuid import uuid4

from sql_dump_loader.domain.entities import ImportJob, SqlDump
from sql_dump_loader.domain.errors import (
    ExecutionFailedError,
    ImportJobNotFoundError,
    SqlImportError,
)
from sql_dump_loader.domain.job_states import ImportJobState
from sql_dump_loader.domain.monitoring_models import (
    ImportJobListResponse,
    ImportJobResponse,
    ImportProgressResponse,
    ImportProgressSnapshot,
)
from sql_dump_loader.domain.ports import (
    ArchiveExtractor,
    ExecutionBackend,
    ImportJobRepository,
    ProgressReporter,
)
from sql_dump_loader.domain.progress import compute_progress, format_bytes, format_duration
from sql_dump_loader.infrastructure.archives.dump_locator import locate_sql_dump
from sql_dump_loader.infrastructure.runtime import JobSlotControl, SlotBasedJobQueue

_DEFAULT_SHUTDOWN_TIMEOUT_SECONDS = 30.0
_UNEXPECTED_ERROR_KIND = "Unexpected"
_CANCELLED_ERROR_KIND = "Cancelled"

ProgressReporterFactory = Callable[[int], ProgressReporter]

logger = logging.getLogger(__name__)


def new_job_id() -> str:
    """Creation-time based id with a random suffix for uniqueness."""

    return f"{time.time_ns() // 1_000_000}-{uuid4().hex[:8]}"


class ImportJobService:
    """Runs uploaded dumps through extract, locate and execute phases.

    Jobs run as background tasks detached from the HTTP request that
    submitted them; a bounded slot queue limits how many execute at once.
    Failures end the job and are logged, never raised to the submitter.
    """

    def __init__(
        self,
        repository: ImportJobRepository,
        extractor: ArchiveExtractor,
        execution_backend: ExecutionBackend,
        work_dir: Path,
        job_queue: SlotBasedJobQueue,
        progress_reporter_factory: ProgressReporterFactory,
        keep_workspaces: bool = False,
        keep_uploads: bool = True,
        shutdown_timeout_seconds: float = _DEFAULT_SHUTDOWN_TIMEOUT_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._repository = repository
        self._extractor = extractor
        self._execution_backend = execution_backend
        self._work_dir = work_dir
        self._job_queue = job_queue
        self._progress_reporter_factory = progress_reporter_factory
        self._keep_workspaces = keep_workspaces
        self._keep_uploads = keep_uploads
        self._shutdown_timeout_seconds = max(shutdown_timeout_seconds, 0.1)
        self._clock = clock
        self._tasks: set[asyncio.Task[None]] = set()

    async def start(self) -> None:
        """Create the work directory."""

        await asyncio.to_thread(self._work_dir.mkdir, parents=True, exist_ok=True)

    async def stop(self) -> None:
        """Wait for in-flight jobs, cancelling whatever outlives the timeout."""

        pending = [task for task in self._tasks if not task.done()]
        if not pending:
            return
        logger.info("Waiting for %d import job(s) to finish.", len(pending))
        _, still_running = await asyncio.wait(pending, timeout=self._shutdown_timeout_seconds)
        for task in still_running:
            task.cancel()
        if still_running:
            logger.warning("Cancelled %d import job(s) at shutdown.", len(still_running))
            await asyncio.gather(*still_running, return_exceptions=True)

    async def submit(self, source_file_path: Path) -> ImportJob:
        """Register a job for an uploaded file and start it in the background."""

        job_id = new_job_id()
        job = ImportJob(
            job_id=job_id,
            source_file_path=source_file_path,
            workspace_dir=self._work_dir / f"job-{job_id}",
        )
        await self._repository.upsert(job)
        logger.info("Processing upload '%s' as import job %s.", source_file_path, job_id)

        task = asyncio.create_task(self._run_job(job), name=f"sql-import-{job_id}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return job

    async def wait_for_jobs(self) -> None:
        """Wait until every submitted job has finished."""

        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def get_job(self, job_id: str) -> ImportJob:
        """Return one job or raise `ImportJobNotFoundError`."""

        job = await self._repository.get(job_id)
        if job is None:
            raise ImportJobNotFoundError(f"Import job '{job_id}' not found.")
        return job

    async def get_job_info(self, job_id: str) -> ImportJobResponse:
        """Return the status payload for one job."""

        return self._to_response(await self.get_job(job_id))

    async def list_jobs(self) -> ImportJobListResponse:
        """Return status payloads for all known jobs."""

        jobs = await self._repository.list_jobs()
        return ImportJobListResponse(jobs=[self._to_response(job) for job in jobs])

    async def _run_job(self, job: ImportJob) -> None:
        control = JobSlotControl()

        async def on_queue_state_change() -> None:
            job.waiting_for_slot = control.waiting_for_slot
            await self._repository.upsert(job)

        try:
            async with self._job_queue.slot(control, on_queue_state_change):
                await self._transition(job, ImportJobState.EXTRACTING)
                await self._extract(job)

                await self._transition(job, ImportJobState.LOCATING)
                dump = await locate_sql_dump(job.workspace_dir)
                job.dump = dump
                logger.info(
                    "Running SQL: %s (%s) for job %s.",
                    dump.path,
                    format_bytes(dump.size_bytes),
                    job.job_id,
                )

                await self._transition(job, ImportJobState.EXECUTING)
                await self._execute(job, dump)
                await self._transition(job, ImportJobState.COMPLETED)
        except SqlImportError as exc:
            logger.error("Import job %s failed (%s): %s", job.job_id, exc.kind, exc)
            await self._fail(job, exc.kind, str(exc))
        except asyncio.CancelledError:
            await self._fail(job, _CANCELLED_ERROR_KIND, "Import job cancelled at shutdown.")
            raise
        except Exception as exc:  # noqa: BLE001
            logger.exception("Import job %s failed unexpectedly.", job.job_id)
            kind = (
                ExecutionFailedError.kind
                if job.state is ImportJobState.EXECUTING
                else _UNEXPECTED_ERROR_KIND
            )
            await self._fail(job, kind, str(exc) or type(exc).__name__)
        finally:
            await self._cleanup(job)

    async def _extract(self, job: ImportJob) -> None:
        await asyncio.to_thread(job.workspace_dir.mkdir, parents=True, exist_ok=False)
        await self._extractor.extract(job.source_file_path, job.workspace_dir)

    async def _execute(self, job: ImportJob, dump: SqlDump) -> None:
        total = dump.size_bytes
        reporter = self._progress_reporter_factory(total)
        started_at = self._clock()
        job.progress = ImportProgressSnapshot(
            bytes_total=total,
            started_at=started_at,
            updated_at=started_at,
        )

        async def on_progress(bytes_read: int) -> None:
            reporter.update(bytes_read)
            assert job.progress is not None
            job.progress = replace(
                job.progress,
                bytes_read=max(job.progress.bytes_read, min(bytes_read, total)),
                updated_at=self._clock(),
            )

        try:
            result = await self._execution_backend.execute(dump, on_progress)
        except BaseException:
            reporter.abort()
            raise
        reporter.finish()

        finished_at = self._clock()
        job.progress = replace(job.progress, bytes_read=total, updated_at=finished_at)
        job.statements_executed = result.statements_executed
        if result.bytes_read != total:
            logger.warning(
                "Job %s read %d bytes but the dump was %d bytes when located.",
                job.job_id,
                result.bytes_read,
                total,
            )

        stats = compute_progress(total, total, started_at, finished_at)
        logger.info(
            "SQL migration completed successfully in %s (%s/s avg) for job %s.",
            format_duration(stats.elapsed_seconds),
            format_bytes(stats.speed_bytes_per_second),
            job.job_id,
        )

    async def _transition(self, job: ImportJob, state: ImportJobState) -> None:
        job.transition_to(state)
        await self._repository.upsert(job)
        logger.debug("Import job %s is %s.", job.job_id, state)

    async def _fail(self, job: ImportJob, kind: str, message: str) -> None:
        if job.finished:
            return
        job.waiting_for_slot = False
        job.fail(kind, message)
        await self._repository.upsert(job)

    async def _cleanup(self, job: ImportJob) -> None:
        if not self._keep_workspaces:
            try:
                await asyncio.to_thread(_remove_tree, job.workspace_dir)
            except OSError:
                logger.warning(
                    "Failed to remove workspace '%s'.", job.workspace_dir, exc_info=True
                )
        if not self._keep_uploads:
            try:
                await asyncio.to_thread(job.source_file_path.unlink, missing_ok=True)
            except OSError:
                logger.warning(
                    "Failed to remove upload '%s'.", job.source_file_path, exc_info=True
                )

    @staticmethod
    def _to_response(job: ImportJob) -> ImportJobResponse:
        progress = None
        if job.progress is not None:
            progress = ImportProgressResponse(
                bytes_total=job.progress.bytes_total,
                bytes_read=job.progress.bytes_read,
                percent_complete=job.progress.percent_complete,
                speed_bytes_per_second=job.progress.speed_bytes_per_second,
                eta_seconds=job.progress.eta_seconds,
            )
        return ImportJobResponse(
            job_id=job.job_id,
            state=job.state,
            created_at=job.created_at,
            updated_at=job.updated_at,
            waiting_for_slot=job.waiting_for_slot,
            dump_file=None if job.dump is None else job.dump.path.name,
            dump_size_bytes=None if job.dump is None else job.dump.size_bytes,
            statements_executed=job.statements_executed,
            error_kind=job.error_kind,
            error_message=job.error_message,
            progress=progress,
        )


def _remove_tree(path: Path) -> None:
    if path.exists():
        shutil.rmtree(path)


__all__ = ["ImportJobService", "ProgressReporterFactory", "new_job_id"]
