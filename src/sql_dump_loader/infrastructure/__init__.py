"""Infrastructure layer public API."""

from sql_dump_loader.infrastructure.archives import SubprocessArchiveExtractor, locate_sql_dump
from sql_dump_loader.infrastructure.backends import (
    AiomysqlQueryBackend,
    AsyncpgQueryBackend,
    DatabaseConnectionSettings,
    SubprocessExecutionBackend,
)
from sql_dump_loader.infrastructure.progress import ConsoleProgressReporter
from sql_dump_loader.infrastructure.repositories import InMemoryImportJobRepository
from sql_dump_loader.infrastructure.runtime import JobSlotControl, SlotBasedJobQueue

__all__ = [
    "AiomysqlQueryBackend",
    "AsyncpgQueryBackend",
    "ConsoleProgressReporter",
    "DatabaseConnectionSettings",
    "InMemoryImportJobRepository",
    "JobSlotControl",
    "SlotBasedJobQueue",
    "SubprocessArchiveExtractor",
    "SubprocessExecutionBackend",
    "locate_sql_dump",
]
