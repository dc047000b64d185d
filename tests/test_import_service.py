from __future__ import annotations

import asyncio
import io
import logging
import sys
from pathlib import Path
from typing import Any

import pytest

from sql_dump_loader.application.services import ImportJobService
from sql_dump_loader.application.services.import_service import new_job_id
from sql_dump_loader.domain.entities import ExecutionResult, ImportJob, SqlDump
from sql_dump_loader.domain.errors import (
    ExecutionFailedError,
    ExtractionFailedError,
    ImportJobNotFoundError,
)
from sql_dump_loader.domain.job_states import ImportJobState
from sql_dump_loader.domain.ports import ArchiveExtractor, ExecutionBackend, ProgressCallback
from sql_dump_loader.infrastructure.archives import SubprocessArchiveExtractor
from sql_dump_loader.infrastructure.backends import (
    AsyncpgQueryBackend,
    DatabaseConnectionSettings,
    SubprocessExecutionBackend,
)
from sql_dump_loader.infrastructure.progress import ConsoleProgressReporter
from sql_dump_loader.infrastructure.repositories import InMemoryImportJobRepository
from sql_dump_loader.infrastructure.runtime import SlotBasedJobQueue


class RecordingRepository(InMemoryImportJobRepository):
    def __init__(self) -> None:
        super().__init__()
        self.states: list[ImportJobState] = []

    async def upsert(self, job: ImportJob) -> None:
        self.states.append(job.state)
        await super().upsert(job)


class FakeConnection:
    def __init__(self) -> None:
        self.executed: list[str] = []
        self.closed = False

    async def execute(self, query: str, *args: Any, timeout: float | None = None) -> str:
        self.executed.append(query)
        return "OK"

    async def close(self, *, timeout: float | None = None) -> None:
        self.closed = True


class FakeConnector:
    def __init__(self) -> None:
        self.connection = FakeConnection()
        self.calls = 0

    async def __call__(self, **_: Any) -> FakeConnection:
        self.calls += 1
        return self.connection


class TwoSqlFilesExtractor(ArchiveExtractor):
    async def extract(self, source: Path, target_dir: Path) -> None:
        (target_dir / "schema.sql").write_text("CREATE TABLE t (id INT);\n")
        (target_dir / "data.sql").write_text("INSERT INTO t VALUES (1);\n")


class FailingExtractor(ArchiveExtractor):
    async def extract(self, source: Path, target_dir: Path) -> None:
        raise ExtractionFailedError("'unzip' exited with code 9 while extracting 'upload.zip'.")


class BlockingBackend(ExecutionBackend):
    def __init__(self) -> None:
        self.release = asyncio.Event()
        self.started: list[str] = []

    async def execute(self, dump: SqlDump, progress: ProgressCallback) -> ExecutionResult:
        self.started.append(dump.path.parent.name)
        await self.release.wait()
        await progress(dump.size_bytes)
        return ExecutionResult(bytes_read=dump.size_bytes, statements_executed=1)


class ExplodingBackend(ExecutionBackend):
    async def execute(self, dump: SqlDump, progress: ProgressCallback) -> ExecutionResult:
        raise RuntimeError("driver crashed")


def _query_backend(connector: FakeConnector) -> AsyncpgQueryBackend:
    return AsyncpgQueryBackend(
        DatabaseConnectionSettings(host="localhost", port=5432),
        connect=connector,
    )


def _build_service(
    tmp_path: Path,
    backend: ExecutionBackend,
    extractor: ArchiveExtractor | None = None,
    repository: InMemoryImportJobRepository | None = None,
    max_concurrent_jobs: int = 1,
    keep_workspaces: bool = False,
    shutdown_timeout_seconds: float = 30.0,
) -> ImportJobService:
    return ImportJobService(
        repository=repository or InMemoryImportJobRepository(),
        extractor=extractor or SubprocessArchiveExtractor(),
        execution_backend=backend,
        work_dir=tmp_path / "work",
        job_queue=SlotBasedJobQueue(max_concurrent_jobs),
        progress_reporter_factory=lambda total: ConsoleProgressReporter(
            total, stream=io.StringIO()
        ),
        keep_workspaces=keep_workspaces,
        shutdown_timeout_seconds=shutdown_timeout_seconds,
    )


def _upload(tmp_path: Path, content: str, name: str = "upload-1.sql") -> Path:
    path = tmp_path / name
    path.write_text(content)
    return path


def test_raw_sql_upload_executes_two_statements_in_order(tmp_path: Path) -> None:
    content = "INSERT INTO t VALUES (1);\nINSERT INTO t VALUES (2);\n"
    connector = FakeConnector()
    repository = RecordingRepository()
    service = _build_service(tmp_path, _query_backend(connector), repository=repository)

    async def scenario() -> ImportJob:
        await service.start()
        job = await service.submit(_upload(tmp_path, content))
        await service.wait_for_jobs()
        return await service.get_job(job.job_id)

    job = asyncio.run(scenario())

    assert job.state is ImportJobState.COMPLETED
    assert connector.connection.executed == [
        "INSERT INTO t VALUES (1);",
        "INSERT INTO t VALUES (2);",
    ]
    assert connector.connection.closed is True
    assert job.statements_executed == 2
    assert job.dump is not None and job.dump.path.name == "dump.sql"
    assert job.progress is not None
    assert job.progress.bytes_read == job.progress.bytes_total == len(content)
    assert repository.states == [
        ImportJobState.RECEIVED,
        ImportJobState.EXTRACTING,
        ImportJobState.LOCATING,
        ImportJobState.EXECUTING,
        ImportJobState.COMPLETED,
    ]
    assert not job.workspace_dir.exists()


def test_archive_with_two_sql_files_fails_before_connecting(tmp_path: Path) -> None:
    connector = FakeConnector()
    service = _build_service(
        tmp_path,
        _query_backend(connector),
        extractor=TwoSqlFilesExtractor(),
    )

    async def scenario() -> ImportJob:
        await service.start()
        job = await service.submit(_upload(tmp_path, "ignored", name="upload-1.zip"))
        await service.wait_for_jobs()
        return await service.get_job(job.job_id)

    job = asyncio.run(scenario())

    assert job.state is ImportJobState.FAILED
    assert job.error_kind == "InvalidArchiveContents"
    assert connector.calls == 0
    assert connector.connection.executed == []


def test_client_process_exit_code_fails_job_and_is_logged(
    tmp_path: Path,
    caplog: pytest.LogCaptureFixture,
) -> None:
    backend = SubprocessExecutionBackend(
        [sys.executable, "-c", "import sys; sys.stdin.buffer.read(); sys.exit(1)"],
    )
    service = _build_service(tmp_path, backend)

    async def scenario() -> ImportJob:
        await service.start()
        job = await service.submit(_upload(tmp_path, "INSERT INTO t VALUES (1);\n"))
        await service.wait_for_jobs()
        return await service.get_job(job.job_id)

    with caplog.at_level(logging.ERROR):
        job = asyncio.run(scenario())

    assert job.state is ImportJobState.FAILED
    assert job.error_kind == "ExecutionFailed"
    assert "exited with code 1" in (job.error_message or "")
    assert any(
        job.job_id in record.getMessage() and "ExecutionFailed" in record.getMessage()
        for record in caplog.records
    )


def test_extraction_failure_stops_job(tmp_path: Path) -> None:
    backend = BlockingBackend()
    service = _build_service(tmp_path, backend, extractor=FailingExtractor())

    async def scenario() -> ImportJob:
        await service.start()
        job = await service.submit(_upload(tmp_path, "x", name="upload-1.zip"))
        await service.wait_for_jobs()
        return await service.get_job(job.job_id)

    job = asyncio.run(scenario())

    assert job.state is ImportJobState.FAILED
    assert job.error_kind == "ExtractionFailed"
    assert backend.started == []


def test_unexpected_backend_error_is_recorded_as_execution_failure(tmp_path: Path) -> None:
    service = _build_service(tmp_path, ExplodingBackend())

    async def scenario() -> ImportJob:
        await service.start()
        job = await service.submit(_upload(tmp_path, "SELECT 1;\n"))
        await service.wait_for_jobs()
        return await service.get_job(job.job_id)

    job = asyncio.run(scenario())

    assert job.state is ImportJobState.FAILED
    assert job.error_kind == "ExecutionFailed"
    assert job.error_message == "driver crashed"


def test_slot_queue_serializes_jobs(tmp_path: Path) -> None:
    backend = BlockingBackend()
    service = _build_service(tmp_path, backend, max_concurrent_jobs=1)

    async def scenario() -> tuple[ImportJob, ImportJob]:
        await service.start()
        first = await service.submit(_upload(tmp_path, "SELECT 1;\n", name="upload-1.sql"))
        second = await service.submit(_upload(tmp_path, "SELECT 2;\n", name="upload-2.sql"))
        for _ in range(200):
            if backend.started:
                break
            await asyncio.sleep(0.01)
        await asyncio.sleep(0.05)

        assert first.state is ImportJobState.EXECUTING
        assert second.state is ImportJobState.RECEIVED
        assert first.waiting_for_slot is False
        assert second.waiting_for_slot is True
        waiting = await service.get_job_info(second.job_id)
        assert waiting.waiting_for_slot is True
        assert waiting.model_dump(by_alias=True)["waitingForSlot"] is True
        assert len(backend.started) == 1

        backend.release.set()
        await service.wait_for_jobs()
        return first, second

    first, second = asyncio.run(scenario())

    assert first.state is ImportJobState.COMPLETED
    assert second.state is ImportJobState.COMPLETED
    assert second.waiting_for_slot is False
    assert len(backend.started) == 2


def test_stop_cancels_jobs_that_outlive_the_timeout(tmp_path: Path) -> None:
    backend = BlockingBackend()
    service = _build_service(tmp_path, backend, shutdown_timeout_seconds=0.1)

    async def scenario() -> ImportJob:
        await service.start()
        job = await service.submit(_upload(tmp_path, "SELECT 1;\n"))
        for _ in range(200):
            if backend.started:
                break
            await asyncio.sleep(0.01)
        await service.stop()
        return job

    job = asyncio.run(scenario())

    assert job.state is ImportJobState.FAILED
    assert job.error_kind == "Cancelled"
    assert job.finished is True


def test_keep_workspaces_leaves_extracted_files(tmp_path: Path) -> None:
    service = _build_service(tmp_path, _query_backend(FakeConnector()), keep_workspaces=True)

    async def scenario() -> ImportJob:
        await service.start()
        job = await service.submit(_upload(tmp_path, "SELECT 1;\n"))
        await service.wait_for_jobs()
        return job

    job = asyncio.run(scenario())

    assert (job.workspace_dir / "dump.sql").read_text() == "SELECT 1;\n"
    assert job.workspace_dir.name == f"job-{job.job_id}"


def test_status_queries(tmp_path: Path) -> None:
    service = _build_service(tmp_path, _query_backend(FakeConnector()))

    async def scenario() -> tuple[str, Any, Any]:
        await service.start()
        job = await service.submit(_upload(tmp_path, "SELECT 1;\n"))
        await service.wait_for_jobs()
        return job.job_id, await service.get_job_info(job.job_id), await service.list_jobs()

    job_id, info, listing = asyncio.run(scenario())

    assert info.job_id == job_id
    assert info.state is ImportJobState.COMPLETED
    assert info.progress is not None
    assert info.progress.percent_complete == 100.0
    assert [item.job_id for item in listing.jobs] == [job_id]

    with pytest.raises(ImportJobNotFoundError):
        asyncio.run(service.get_job("missing"))


def test_job_ids_are_unique() -> None:
    ids = {new_job_id() for _ in range(1000)}

    assert len(ids) == 1000


class HalfwayFailingBackend(ExecutionBackend):
    async def execute(self, dump: SqlDump, progress: ProgressCallback) -> ExecutionResult:
        await progress(dump.size_bytes // 2)
        raise ExecutionFailedError("Statement #2 failed: syntax error")


def test_failed_execution_ends_progress_line_without_full_bar(tmp_path: Path) -> None:
    streams: list[io.StringIO] = []

    def reporter_factory(total: int) -> ConsoleProgressReporter:
        stream = io.StringIO()
        streams.append(stream)
        return ConsoleProgressReporter(total, stream=stream)

    service = ImportJobService(
        repository=InMemoryImportJobRepository(),
        extractor=SubprocessArchiveExtractor(),
        execution_backend=HalfwayFailingBackend(),
        work_dir=tmp_path / "work",
        job_queue=SlotBasedJobQueue(1),
        progress_reporter_factory=reporter_factory,
    )

    async def scenario() -> ImportJob:
        await service.start()
        job = await service.submit(_upload(tmp_path, "SELECT 1;\nSELECT 2;\n"))
        await service.wait_for_jobs()
        return job

    job = asyncio.run(scenario())

    assert job.state is ImportJobState.FAILED
    output = streams[0].getvalue()
    assert output.startswith("\r[")
    assert output.endswith("\n")
    assert "100.0%" not in output
