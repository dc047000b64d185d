"""Progress snapshots and status models for the job API."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from sql_dump_loader.domain.job_states import ImportJobState
from sql_dump_loader.domain.progress import compute_progress


@dataclass(slots=True, frozen=True)
class ImportProgressSnapshot:
    """Byte-level progress captured while a dump is executing."""

    bytes_total: int
    bytes_read: int = 0
    started_at: float = 0.0
    updated_at: float = 0.0

    @property
    def percent_complete(self) -> float:
        """Return completion ratio in percent, rounded to two decimals."""

        stats = compute_progress(
            self.bytes_read, self.bytes_total, self.started_at, self.updated_at
        )
        return max(0.0, min(100.0, round(stats.percent, 2)))

    @property
    def speed_bytes_per_second(self) -> float:
        """Return average throughput since execution started."""

        return compute_progress(
            self.bytes_read, self.bytes_total, self.started_at, self.updated_at
        ).speed_bytes_per_second

    @property
    def eta_seconds(self) -> float:
        """Return estimated seconds left; zero while throughput is unknown."""

        return compute_progress(
            self.bytes_read, self.bytes_total, self.started_at, self.updated_at
        ).eta_seconds


class MonitoringModel(BaseModel):
    """Base model for job status routes."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)


class ImportProgressResponse(MonitoringModel):
    """Progress data shown by job status endpoints."""

    bytes_total: int = Field(alias="bytesTotal")
    bytes_read: int = Field(default=0, alias="bytesRead")
    percent_complete: float = Field(default=0.0, alias="percentComplete")
    speed_bytes_per_second: float = Field(default=0.0, alias="speedBytesPerSecond")
    eta_seconds: float = Field(default=0.0, alias="etaSeconds")


class ImportJobResponse(MonitoringModel):
    """Single job status payload."""

    job_id: str = Field(alias="jobId")
    state: ImportJobState
    created_at: datetime = Field(alias="createdAt")
    updated_at: datetime = Field(alias="updatedAt")
    waiting_for_slot: bool = Field(default=False, alias="waitingForSlot")
    dump_file: str | None = Field(default=None, alias="dumpFile")
    dump_size_bytes: int | None = Field(default=None, alias="dumpSizeBytes")
    statements_executed: int | None = Field(default=None, alias="statementsExecuted")
    error_kind: str | None = Field(default=None, alias="errorKind")
    error_message: str | None = Field(default=None, alias="errorMessage")
    progress: ImportProgressResponse | None = None


class ImportJobListResponse(MonitoringModel):
    """Collection wrapper for the job list endpoint."""

    jobs: list[ImportJobResponse]


class UploadAcceptedResponse(MonitoringModel):
    """Body returned once an upload is written to disk."""

    message: str


__all__ = [
    "ImportJobListResponse",
    "ImportJobResponse",
    "ImportProgressResponse",
    "ImportProgressSnapshot",
    "UploadAcceptedResponse",
]
