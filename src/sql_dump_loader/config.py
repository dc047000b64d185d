"""Application settings."""

import json
import shlex
from pathlib import Path
from typing import Annotated

from pydantic import field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from sql_dump_loader.domain.job_states import (
    DatabaseEngine,
    ExecutionBackendKind,
    ProcessForwardMode,
)

_DEFAULT_PROCESS_COMMANDS = {
    DatabaseEngine.POSTGRES: ["psql", "--no-psqlrc", "--quiet", "--set", "ON_ERROR_STOP=1"],
    DatabaseEngine.MYSQL: ["mysql", "--batch"],
}
_DEFAULT_DATABASE_PORTS = {
    DatabaseEngine.POSTGRES: 5432,
    DatabaseEngine.MYSQL: 3306,
}


class Settings(BaseSettings):
    """Runtime settings loaded from environment variables."""

    app_name: str = "SQL Dump Loader"
    api_prefix: str = "/api"
    host: str = "0.0.0.0"
    port: int = 3000
    log_level: str = "INFO"
    upload_dir: Path = Path("./uploads")
    work_dir: Path = Path("./work")
    max_body_size_bytes: int = 10 * 1024 * 1024 * 1024
    db_engine: DatabaseEngine = DatabaseEngine.POSTGRES
    db_host: str = "localhost"
    db_port: int | None = None
    db_user: str | None = None
    db_password: str | None = None
    db_name: str | None = None
    db_ssl_self_signed: bool = False
    execution_backend: ExecutionBackendKind = ExecutionBackendKind.QUERY
    process_command: Annotated[list[str] | None, NoDecode] = None
    process_forward_mode: ProcessForwardMode = ProcessForwardMode.RAW
    read_chunk_size_bytes: int = 1024 * 1024
    progress_update_interval_ms: int = 150
    progress_bar_width: int = 32
    max_concurrent_jobs: int = 1
    keep_workspaces: bool = False
    keep_uploads: bool = True
    shutdown_timeout_seconds: float = 30.0
    basic_auth_username: str | None = None
    basic_auth_password: str | None = None

    @field_validator("process_command", mode="before")
    @classmethod
    def parse_command(cls, value: object) -> object:
        """Support shell-style command strings in addition to JSON arrays."""

        if not isinstance(value, str):
            return value
        if value.lstrip().startswith("["):
            return json.loads(value)
        return shlex.split(value)

    @model_validator(mode="after")
    def validate_runtime_settings(self) -> "Settings":
        """Ensure numeric limits and backend-specific settings are valid."""

        if self.max_body_size_bytes < 1:
            raise ValueError("SQL_LOADER_MAX_BODY_SIZE_BYTES must be >= 1.")
        if not 1 <= self.database_port <= 65535:
            raise ValueError("SQL_LOADER_DB_PORT must be between 1 and 65535.")
        if self.read_chunk_size_bytes < 1:
            raise ValueError("SQL_LOADER_READ_CHUNK_SIZE_BYTES must be >= 1.")
        if self.progress_update_interval_ms < 0:
            raise ValueError("SQL_LOADER_PROGRESS_UPDATE_INTERVAL_MS must be >= 0.")
        if self.progress_bar_width < 2:
            raise ValueError("SQL_LOADER_PROGRESS_BAR_WIDTH must be >= 2.")
        if self.max_concurrent_jobs < 1:
            raise ValueError("SQL_LOADER_MAX_CONCURRENT_JOBS must be >= 1.")
        if self.shutdown_timeout_seconds <= 0:
            raise ValueError("SQL_LOADER_SHUTDOWN_TIMEOUT_SECONDS must be > 0.")
        if self.execution_backend == ExecutionBackendKind.PROCESS and not self.client_command:
            raise ValueError(
                "SQL_LOADER_PROCESS_COMMAND is required when "
                "SQL_LOADER_EXECUTION_BACKEND=process."
            )
        if self.basic_auth_password is not None and not self.basic_auth_username:
            raise ValueError(
                "SQL_LOADER_BASIC_AUTH_USERNAME is required when "
                "SQL_LOADER_BASIC_AUTH_PASSWORD is set."
            )
        return self

    @property
    def database_port(self) -> int:
        """Return the configured port or the engine's default one."""

        if self.db_port is not None:
            return self.db_port
        return _DEFAULT_DATABASE_PORTS[self.db_engine]

    @property
    def client_command(self) -> list[str]:
        """Return the process backend command, defaulting to the engine's client."""

        if self.process_command is not None:
            return list(self.process_command)
        return list(_DEFAULT_PROCESS_COMMANDS[self.db_engine])

    @property
    def basic_auth_configured(self) -> bool:
        """Return whether upload credentials are present."""

        return bool(self.basic_auth_username) and self.basic_auth_password is not None

    model_config = SettingsConfigDict(env_prefix="SQL_LOADER_", extra="ignore", frozen=True)


__all__ = ["Settings"]
