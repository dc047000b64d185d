"""Repository implementations."""

from sql_dump_loader.infrastructure.repositories.in_memory_import_job_repository import (
    InMemoryImportJobRepository,
)

__all__ = ["InMemoryImportJobRepository"]
