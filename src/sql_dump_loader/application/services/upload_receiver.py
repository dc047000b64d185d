"""Write uploaded request bodies to disk."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import AsyncIterable
from pathlib import Path
from typing import BinaryIO

from sql_dump_loader.domain.errors import NoRequestBodyError, UploadTooLargeError

ACCEPTED_UPLOAD_SUFFIXES = (".tar.gz", ".tgz", ".gz", ".zip", ".sql")

logger = logging.getLogger(__name__)


def upload_suffix(filename: str | None) -> str:
    """Return the archive suffix to keep from a client-supplied file name."""

    if not filename:
        return ""
    lowered = Path(filename).name.lower()
    for suffix in ACCEPTED_UPLOAD_SUFFIXES:
        if lowered.endswith(suffix):
            return suffix
    return ""


class UploadReceiver:
    """Stream request bodies into timestamp-named files under the upload directory."""

    def __init__(self, upload_dir: Path, max_body_size_bytes: int) -> None:
        self._upload_dir = upload_dir
        self._max_body_size_bytes = max_body_size_bytes

    @property
    def max_body_size_bytes(self) -> int:
        """Largest accepted body."""

        return self._max_body_size_bytes

    async def start(self) -> None:
        """Create the upload directory."""

        await asyncio.to_thread(self._upload_dir.mkdir, parents=True, exist_ok=True)

    async def receive(
        self,
        body: AsyncIterable[bytes],
        filename: str | None = None,
        declared_size: int | None = None,
    ) -> Path:
        """Write `body` to a new file and return its path.

        Raises `UploadTooLargeError` when the declared or actual size exceeds
        the limit and `NoRequestBodyError` when no bytes arrive. The partial
        file is removed in both cases.
        """

        if declared_size is not None and declared_size > self._max_body_size_bytes:
            raise UploadTooLargeError(
                f"Upload of {declared_size} bytes exceeds limit of "
                f"{self._max_body_size_bytes} bytes."
            )

        path, handle = await asyncio.to_thread(
            _open_exclusive,
            self._upload_dir,
            f"upload-{time.time_ns() // 1_000_000}",
            upload_suffix(filename),
        )
        written = 0
        completed = False
        try:
            async for chunk in body:
                if not chunk:
                    continue
                written += len(chunk)
                if written > self._max_body_size_bytes:
                    raise UploadTooLargeError(
                        f"Upload exceeds limit of {self._max_body_size_bytes} bytes."
                    )
                await asyncio.to_thread(handle.write, chunk)
            if written == 0:
                raise NoRequestBodyError("No body stream")
            completed = True
        finally:
            await asyncio.to_thread(handle.close)
            if not completed:
                await asyncio.to_thread(path.unlink, missing_ok=True)

        logger.info("Received upload '%s' (%d bytes).", path, written)
        return path


def _open_exclusive(upload_dir: Path, stem: str, suffix: str) -> tuple[Path, BinaryIO]:
    # Two uploads in the same millisecond get distinct names.
    counter = 0
    while True:
        name = stem if counter == 0 else f"{stem}-{counter}"
        path = upload_dir / f"{name}{suffix}"
        try:
            return path, path.open("xb")
        except FileExistsError:
            counter += 1


__all__ = ["ACCEPTED_UPLOAD_SUFFIXES", "UploadReceiver", "upload_suffix"]
