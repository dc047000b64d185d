"""Application bootstrap/wiring."""

import logging

from sql_dump_loader.application.services import ImportJobService, UploadReceiver
from sql_dump_loader.application.services.import_service import ProgressReporterFactory
from sql_dump_loader.config import Settings
from sql_dump_loader.domain.job_states import DatabaseEngine, ExecutionBackendKind
from sql_dump_loader.domain.ports import ExecutionBackend, ProgressReporter
from sql_dump_loader.infrastructure.archives import SubprocessArchiveExtractor
from sql_dump_loader.infrastructure.backends import (
    AiomysqlQueryBackend,
    AsyncpgQueryBackend,
    DatabaseConnectionSettings,
    SubprocessExecutionBackend,
)
from sql_dump_loader.infrastructure.progress import ConsoleProgressReporter
from sql_dump_loader.infrastructure.repositories import InMemoryImportJobRepository
from sql_dump_loader.infrastructure.runtime import SlotBasedJobQueue

logger = logging.getLogger(__name__)


def _connection_settings(settings: Settings) -> DatabaseConnectionSettings:
    return DatabaseConnectionSettings(
        host=settings.db_host,
        port=settings.database_port,
        user=settings.db_user,
        password=settings.db_password,
        database=settings.db_name,
        ssl_self_signed=settings.db_ssl_self_signed,
        engine=settings.db_engine,
    )


def build_execution_backend(settings: Settings) -> ExecutionBackend:
    """Select the execution backend named in settings."""

    connection_settings = _connection_settings(settings)
    if settings.execution_backend == ExecutionBackendKind.PROCESS:
        return SubprocessExecutionBackend(
            command=settings.client_command + connection_settings.client_arguments(),
            forward_mode=settings.process_forward_mode,
            env=connection_settings.client_environment(),
            chunk_size=settings.read_chunk_size_bytes,
        )
    if settings.db_engine == DatabaseEngine.MYSQL:
        return AiomysqlQueryBackend(
            connection_settings=connection_settings,
            chunk_size=settings.read_chunk_size_bytes,
        )
    return AsyncpgQueryBackend(
        connection_settings=connection_settings,
        chunk_size=settings.read_chunk_size_bytes,
    )


def _build_progress_reporter_factory(settings: Settings) -> ProgressReporterFactory:
    interval_seconds = settings.progress_update_interval_ms / 1000

    def factory(total_bytes: int) -> ProgressReporter:
        return ConsoleProgressReporter(
            total_bytes,
            update_interval_seconds=interval_seconds,
            bar_width=settings.progress_bar_width,
        )

    return factory


def build_import_service(settings: Settings) -> ImportJobService:
    """Compose service graph."""

    if not settings.basic_auth_configured:
        logger.warning(
            "SQL_LOADER_BASIC_AUTH_USERNAME/SQL_LOADER_BASIC_AUTH_PASSWORD are not set. "
            "Upload endpoints will reject every request."
        )
    return ImportJobService(
        repository=InMemoryImportJobRepository(),
        extractor=SubprocessArchiveExtractor(),
        execution_backend=build_execution_backend(settings),
        work_dir=settings.work_dir,
        job_queue=SlotBasedJobQueue(settings.max_concurrent_jobs),
        progress_reporter_factory=_build_progress_reporter_factory(settings),
        keep_workspaces=settings.keep_workspaces,
        keep_uploads=settings.keep_uploads,
        shutdown_timeout_seconds=settings.shutdown_timeout_seconds,
    )


def build_upload_receiver(settings: Settings) -> UploadReceiver:
    """Build the receiver writing request bodies under `upload_dir`."""

    return UploadReceiver(
        upload_dir=settings.upload_dir,
        max_body_size_bytes=settings.max_body_size_bytes,
    )


__all__ = ["build_execution_backend", "build_import_service", "build_upload_receiver"]
