"""Execution backends issuing each statement over one driver connection."""

from __future__ import annotations

import logging
import ssl
from collections.abc import Awaitable, Callable
from contextlib import aclosing
from typing import Any, Protocol

import asyncpg  # type: ignore[import-untyped]

from sql_dump_loader.domain.entities import ExecutionResult, SqlDump
from sql_dump_loader.domain.errors import ExecutionFailedError
from sql_dump_loader.domain.ports import ExecutionBackend, ProgressCallback
from sql_dump_loader.infrastructure.backends.connection_settings import DatabaseConnectionSettings
from sql_dump_loader.infrastructure.statements.sql_statement_stream import (
    DEFAULT_CHUNK_SIZE_BYTES,
    iter_file_chunks,
    stream_sql_statements,
)

_STATEMENT_PREVIEW_CHARS = 120

logger = logging.getLogger(__name__)


class QueryConnection(Protocol):
    """Subset of asyncpg connection operations used by the backend."""

    async def execute(self, query: str, *args: Any, timeout: float | None = None) -> str:
        """Run one query without returning rows."""

    async def close(self, *, timeout: float | None = None) -> None:
        """Close the connection."""


ConnectFunction = Callable[..., Awaitable[Any]]


def build_self_signed_ssl_context() -> ssl.SSLContext:
    """TLS context that encrypts but accepts any server certificate."""

    context = ssl.create_default_context()
    context.check_hostname = False
    context.verify_mode = ssl.CERT_NONE
    return context


def _preview(statement: str) -> str:
    flat = " ".join(statement.split())
    if len(flat) <= _STATEMENT_PREVIEW_CHARS:
        return flat
    return flat[:_STATEMENT_PREVIEW_CHARS] + "..."


class StatementQueryBackend(ExecutionBackend):
    """Run statements one at a time, in source order, on a single connection.

    Driver subclasses open the connection, run one statement and close it.
    The first failing statement stops the import; the connection is always
    closed.
    """

    def __init__(
        self,
        connection_settings: DatabaseConnectionSettings,
        chunk_size: int = DEFAULT_CHUNK_SIZE_BYTES,
    ) -> None:
        self._connection_settings = connection_settings
        self._chunk_size = chunk_size

    async def execute(self, dump: SqlDump, progress: ProgressCallback) -> ExecutionResult:
        """Stream the dump into the database and return counters."""

        connection = await self._open_connection()
        bytes_read = 0
        statements_executed = 0

        async def on_chunk(size: int) -> None:
            nonlocal bytes_read
            bytes_read += size
            await progress(bytes_read)

        try:
            async with (
                aclosing(iter_file_chunks(dump.path, self._chunk_size)) as chunks,
                aclosing(stream_sql_statements(chunks, on_chunk=on_chunk)) as statements,
            ):
                async for statement in statements:
                    try:
                        await self._run_statement(connection, statement)
                    except Exception as exc:  # noqa: BLE001
                        raise ExecutionFailedError(
                            f"Statement #{statements_executed + 1} failed: {exc} "
                            f"[{_preview(statement)}]"
                        ) from exc
                    statements_executed += 1
        finally:
            await self._close(connection)

        return ExecutionResult(bytes_read=bytes_read, statements_executed=statements_executed)

    async def _open_connection(self) -> Any:
        raise NotImplementedError

    async def _run_statement(self, connection: Any, statement: str) -> None:
        raise NotImplementedError

    async def _close(self, connection: Any) -> None:
        raise NotImplementedError

    def _connection_error(self, exc: Exception) -> ExecutionFailedError:
        settings = self._connection_settings
        return ExecutionFailedError(f"Unable to connect to {settings.host}:{settings.port}: {exc}")


class AsyncpgQueryBackend(StatementQueryBackend):
    """PostgreSQL backend.

    Each statement goes through the simple query protocol, so statements that
    contain several commands are accepted as-is.
    """

    def __init__(
        self,
        connection_settings: DatabaseConnectionSettings,
        chunk_size: int = DEFAULT_CHUNK_SIZE_BYTES,
        connect: ConnectFunction | None = None,
    ) -> None:
        super().__init__(connection_settings, chunk_size)
        self._connect = connect or asyncpg.connect

    async def _open_connection(self) -> QueryConnection:
        settings = self._connection_settings
        kwargs: dict[str, Any] = {
            "host": settings.host,
            "port": settings.port,
            "user": settings.user,
            "password": settings.password,
            "database": settings.database,
        }
        if settings.ssl_self_signed:
            kwargs["ssl"] = build_self_signed_ssl_context()
        try:
            return await self._connect(**kwargs)
        except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError) as exc:
            raise self._connection_error(exc) from exc

    async def _run_statement(self, connection: QueryConnection, statement: str) -> None:
        await connection.execute(statement)

    async def _close(self, connection: QueryConnection) -> None:
        try:
            await connection.close()
        except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError):
            logger.warning("Failed to close database connection cleanly.", exc_info=True)


__all__ = [
    "AsyncpgQueryBackend",
    "ConnectFunction",
    "QueryConnection",
    "StatementQueryBackend",
    "build_self_signed_ssl_context",
]
