"""Domain entities."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path

from sql_dump_loader.domain.job_states import (
    TERMINAL_JOB_STATES,
    ImportJobState,
    ensure_forward_transition,
)
from sql_dump_loader.domain.monitoring_models import ImportProgressSnapshot


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(slots=True, frozen=True)
class SqlDump:
    """The single SQL script found in a job workspace."""

    path: Path
    size_bytes: int


@dataclass(slots=True, frozen=True)
class ExecutionResult:
    """Outcome of a successful backend run."""

    bytes_read: int
    statements_executed: int | None = None


@dataclass(slots=True)
class ImportJob:
    """Mutable representation of one upload-to-database import."""

    job_id: str
    source_file_path: Path
    workspace_dir: Path
    state: ImportJobState = ImportJobState.RECEIVED
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)
    dump: SqlDump | None = None
    progress: ImportProgressSnapshot | None = None
    waiting_for_slot: bool = False
    statements_executed: int | None = None
    error_kind: str | None = None
    error_message: str | None = None

    @property
    def finished(self) -> bool:
        """Return whether the job reached a terminal state."""

        return self.state in TERMINAL_JOB_STATES

    def transition_to(self, target: ImportJobState) -> None:
        """Move the job forward; never revisits a state."""

        ensure_forward_transition(self.state, target)
        self.state = target
        self.updated_at = _utcnow()

    def fail(self, kind: str, message: str) -> None:
        """Record the failure and move to FAILED."""

        self.transition_to(ImportJobState.FAILED)
        self.error_kind = kind
        self.error_message = message


__all__ = ["ExecutionResult", "ImportJob", "SqlDump"]
