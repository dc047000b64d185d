"""Execution backend piping the dump into an external database client."""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Mapping, Sequence
from contextlib import aclosing, suppress

from sql_dump_loader.domain.entities import ExecutionResult, SqlDump
from sql_dump_loader.domain.errors import ExecutionFailedError
from sql_dump_loader.domain.job_states import ProcessForwardMode
from sql_dump_loader.domain.ports import ExecutionBackend, ProgressCallback
from sql_dump_loader.infrastructure.statements.sql_statement_stream import (
    DEFAULT_CHUNK_SIZE_BYTES,
    iter_file_chunks,
    stream_sql_statements,
)

_PIPE_ERRORS = (BrokenPipeError, ConnectionResetError)

logger = logging.getLogger(__name__)


class SubprocessExecutionBackend(ExecutionBackend):
    """Spawn a client such as `psql` and feed the dump through its stdin.

    `RAW` mode forwards undecoded chunks and leaves statement parsing to the
    client. `STATEMENTS` mode splits first and writes one statement per line.
    The client's stdout/stderr are inherited; only its exit code decides the
    outcome.
    """

    def __init__(
        self,
        command: Sequence[str],
        forward_mode: ProcessForwardMode = ProcessForwardMode.RAW,
        env: Mapping[str, str] | None = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE_BYTES,
    ) -> None:
        if not command:
            raise ValueError("command must not be empty")
        self._command = list(command)
        self._forward_mode = forward_mode
        self._env = None if env is None else {**os.environ, **env}
        self._chunk_size = chunk_size

    @property
    def command(self) -> list[str]:
        """Client command line."""

        return list(self._command)

    @property
    def forward_mode(self) -> ProcessForwardMode:
        """What gets written to the client's stdin."""

        return self._forward_mode

    async def execute(self, dump: SqlDump, progress: ProgressCallback) -> ExecutionResult:
        """Pipe the dump into the client and wait for a zero exit code."""

        process = await self._spawn()
        try:
            if self._forward_mode is ProcessForwardMode.STATEMENTS:
                bytes_read, statements = await self._forward_statements(process, dump, progress)
            else:
                bytes_read = await self._forward_raw(process, dump, progress)
                statements = None
            await self._close_stdin(process)
            exit_code = await process.wait()
        except BaseException:
            await self._kill(process)
            raise

        if exit_code != 0:
            raise ExecutionFailedError(f"'{self._command[0]}' exited with code {exit_code}.")
        return ExecutionResult(bytes_read=bytes_read, statements_executed=statements)

    async def _spawn(self) -> asyncio.subprocess.Process:
        logger.debug("Spawning execution client: %s", self._command)
        try:
            return await asyncio.create_subprocess_exec(
                *self._command,
                stdin=asyncio.subprocess.PIPE,
                env=self._env,
            )
        except OSError as exc:
            raise ExecutionFailedError(
                f"Unable to start '{self._command[0]}': {exc}"
            ) from exc

    async def _forward_raw(
        self,
        process: asyncio.subprocess.Process,
        dump: SqlDump,
        progress: ProgressCallback,
    ) -> int:
        bytes_read = 0
        async with aclosing(iter_file_chunks(dump.path, self._chunk_size)) as chunks:
            async for chunk in chunks:
                bytes_read += len(chunk)
                await progress(bytes_read)
                await self._write(process, chunk)
        return bytes_read

    async def _forward_statements(
        self,
        process: asyncio.subprocess.Process,
        dump: SqlDump,
        progress: ProgressCallback,
    ) -> tuple[int, int]:
        bytes_read = 0
        forwarded = 0

        async def on_chunk(size: int) -> None:
            nonlocal bytes_read
            bytes_read += size
            await progress(bytes_read)

        async with (
            aclosing(iter_file_chunks(dump.path, self._chunk_size)) as chunks,
            aclosing(stream_sql_statements(chunks, on_chunk=on_chunk)) as statements,
        ):
            async for statement in statements:
                await self._write(process, (statement + "\n").encode("utf-8"))
                forwarded += 1
        return bytes_read, forwarded

    async def _write(self, process: asyncio.subprocess.Process, data: bytes) -> None:
        stdin = process.stdin
        assert stdin is not None
        try:
            stdin.write(data)
            await stdin.drain()
        except _PIPE_ERRORS as exc:
            exit_code = await process.wait()
            raise ExecutionFailedError(
                f"'{self._command[0]}' stopped reading input and exited with code {exit_code}."
            ) from exc

    async def _close_stdin(self, process: asyncio.subprocess.Process) -> None:
        stdin = process.stdin
        assert stdin is not None
        stdin.close()
        # The exit code reports whatever made the client hang up early.
        with suppress(*_PIPE_ERRORS):
            await stdin.wait_closed()

    async def _kill(self, process: asyncio.subprocess.Process) -> None:
        if process.returncode is not None:
            return
        with suppress(ProcessLookupError):
            process.kill()
        await process.wait()


__all__ = ["SubprocessExecutionBackend"]
