"""Incremental splitting of SQL dump bytes into executable statements."""

from __future__ import annotations

import asyncio
import codecs
import re
from collections.abc import AsyncIterable, AsyncIterator, Awaitable, Callable
from pathlib import Path

DEFAULT_CHUNK_SIZE_BYTES = 1024 * 1024

# A statement ends at a semicolon followed by a line break. Semicolons inside
# quoted values that happen to end a line also split; dumps rarely contain them.
STATEMENT_BOUNDARY = re.compile(r"\s*;\s*\r?\n")
COMMENT_MARKER = "--"
STATEMENT_TERMINATOR = ";"

ChunkCallback = Callable[[int], Awaitable[None]]


def _strip_leading_comments(fragment: str) -> str:
    """Drop leading `--` comment lines and surrounding whitespace."""

    text = fragment.strip()
    while text.startswith(COMMENT_MARKER):
        _, newline, rest = text.partition("\n")
        if not newline:
            return ""
        text = rest.strip()
    return text


class SqlStatementSplitter:
    """Accumulates decoded text and yields complete statements.

    Output is independent of how the input bytes are chunked: undecodable
    sequences become U+FFFD and multi-byte characters straddling two chunks are
    held back by the incremental decoder until complete.
    """

    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""
        self._finished = False

    def feed(self, chunk: bytes) -> list[str]:
        """Consume one chunk and return the statements it completed."""

        if self._finished:
            raise RuntimeError("Cannot feed a splitter after finish().")
        self._buffer += self._decoder.decode(chunk)
        parts = STATEMENT_BOUNDARY.split(self._buffer)
        self._buffer = parts.pop()
        statements: list[str] = []
        for part in parts:
            statement = _strip_leading_comments(part)
            if statement:
                statements.append(statement + STATEMENT_TERMINATOR)
        return statements

    def finish(self) -> list[str]:
        """Flush the decoder and return the trailing statement, if any."""

        if self._finished:
            return []
        self._finished = True
        self._buffer += self._decoder.decode(b"", final=True)
        remainder = _strip_leading_comments(self._buffer)
        self._buffer = ""
        if not remainder:
            return []
        if not remainder.endswith(STATEMENT_TERMINATOR):
            remainder += STATEMENT_TERMINATOR
        return [remainder]


async def iter_file_chunks(
    path: Path,
    chunk_size: int = DEFAULT_CHUNK_SIZE_BYTES,
) -> AsyncIterator[bytes]:
    """Read a file chunk by chunk without blocking the event loop."""

    if chunk_size < 1:
        raise ValueError("chunk_size must be >= 1")
    handle = await asyncio.to_thread(path.open, "rb")
    try:
        while True:
            chunk = await asyncio.to_thread(handle.read, chunk_size)
            if not chunk:
                return
            yield chunk
    finally:
        await asyncio.to_thread(handle.close)


async def stream_sql_statements(
    chunks: AsyncIterable[bytes],
    on_chunk: ChunkCallback | None = None,
) -> AsyncIterator[str]:
    """Yield complete statements from a byte stream in source order.

    `on_chunk` receives each chunk's byte length before the chunk is split, so
    progress tracks bytes consumed rather than statements produced.
    """

    splitter = SqlStatementSplitter()
    async for chunk in chunks:
        if on_chunk is not None:
            await on_chunk(len(chunk))
        for statement in splitter.feed(chunk):
            yield statement
    for statement in splitter.finish():
        yield statement


def split_sql_text(text: str) -> list[str]:
    """Split an in-memory script; convenience wrapper used by tooling and tests."""

    splitter = SqlStatementSplitter()
    return splitter.feed(text.encode("utf-8")) + splitter.finish()


__all__ = [
    "COMMENT_MARKER",
    "DEFAULT_CHUNK_SIZE_BYTES",
    "STATEMENT_BOUNDARY",
    "STATEMENT_TERMINATOR",
    "SqlStatementSplitter",
    "iter_file_chunks",
    "split_sql_text",
    "stream_sql_statements",
]
