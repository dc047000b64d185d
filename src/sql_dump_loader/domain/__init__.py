"""Domain public API."""

from sql_dump_loader.domain.entities import ExecutionResult, ImportJob, SqlDump
from sql_dump_loader.domain.errors import (
    ExecutionFailedError,
    ExtractionFailedError,
    ImportJobNotFoundError,
    InvalidArchiveContentsError,
    InvalidJobTransitionError,
    NoRequestBodyError,
    SqlImportError,
    UploadTooLargeError,
)
from sql_dump_loader.domain.job_states import (
    DatabaseEngine,
    ExecutionBackendKind,
    ImportJobState,
    ProcessForwardMode,
)
from sql_dump_loader.domain.monitoring_models import (
    ImportJobListResponse,
    ImportJobResponse,
    ImportProgressResponse,
    ImportProgressSnapshot,
    UploadAcceptedResponse,
)
from sql_dump_loader.domain.ports import (
    ArchiveExtractor,
    ExecutionBackend,
    ImportJobRepository,
    ProgressCallback,
    ProgressReporter,
)

__all__ = [
    "ArchiveExtractor",
    "DatabaseEngine",
    "ExecutionBackend",
    "ExecutionBackendKind",
    "ExecutionFailedError",
    "ExecutionResult",
    "ExtractionFailedError",
    "ImportJob",
    "ImportJobListResponse",
    "ImportJobNotFoundError",
    "ImportJobRepository",
    "ImportJobResponse",
    "ImportJobState",
    "ImportProgressResponse",
    "ImportProgressSnapshot",
    "InvalidArchiveContentsError",
    "InvalidJobTransitionError",
    "NoRequestBodyError",
    "ProcessForwardMode",
    "ProgressCallback",
    "ProgressReporter",
    "SqlDump",
    "SqlImportError",
    "UploadAcceptedResponse",
]
