"""Archive extraction through the unzip/tar/cp command-line utilities."""

from __future__ import annotations

import asyncio
import logging
from enum import StrEnum
from pathlib import Path

from sql_dump_loader.domain.errors import ExtractionFailedError
from sql_dump_loader.domain.ports import ArchiveExtractor

RAW_DUMP_FILENAME = "dump.sql"

_ZIP_MAGIC = b"PK\x03\x04"
_GZIP_MAGIC = b"\x1f\x8b"

logger = logging.getLogger(__name__)


class ArchiveFormat(StrEnum):
    """Upload formats understood by the extractor."""

    ZIP = "zip"
    GZIP_TAR = "gzip_tar"
    RAW = "raw"


def _sniff_format(source: Path) -> ArchiveFormat:
    with source.open("rb") as handle:
        head = handle.read(len(_ZIP_MAGIC))
    if head.startswith(_ZIP_MAGIC):
        return ArchiveFormat.ZIP
    if head.startswith(_GZIP_MAGIC):
        return ArchiveFormat.GZIP_TAR
    return ArchiveFormat.RAW


async def detect_archive_format(source: Path) -> ArchiveFormat:
    """Pick the format from the file suffix, falling back to magic bytes."""

    name = source.name.lower()
    if name.endswith(".zip"):
        return ArchiveFormat.ZIP
    if name.endswith((".gz", ".tgz")):
        return ArchiveFormat.GZIP_TAR
    if name.endswith(".sql"):
        return ArchiveFormat.RAW
    return await asyncio.to_thread(_sniff_format, source)


def build_extract_command(
    archive_format: ArchiveFormat, source: Path, target_dir: Path
) -> list[str]:
    """Return the utility invocation for one archive format."""

    if archive_format is ArchiveFormat.ZIP:
        return ["unzip", "-q", str(source), "-d", str(target_dir)]
    if archive_format is ArchiveFormat.GZIP_TAR:
        return ["tar", "-xzf", str(source), "-C", str(target_dir)]
    return ["cp", str(source), str(target_dir / RAW_DUMP_FILENAME)]


class SubprocessArchiveExtractor(ArchiveExtractor):
    """Extract uploads by spawning the matching system utility."""

    async def extract(self, source: Path, target_dir: Path) -> None:
        """Extract `source` into `target_dir`; raise on non-zero exit."""

        archive_format = await detect_archive_format(source)
        command = build_extract_command(archive_format, source, target_dir)
        logger.debug("Extracting '%s' as %s: %s", source, archive_format, command)
        try:
            process = await asyncio.create_subprocess_exec(*command)
        except OSError as exc:
            raise ExtractionFailedError(
                f"Unable to start '{command[0]}' for '{source.name}': {exc}"
            ) from exc
        exit_code = await process.wait()
        if exit_code != 0:
            raise ExtractionFailedError(
                f"'{command[0]}' exited with code {exit_code} while extracting '{source.name}'."
            )


__all__ = [
    "ArchiveFormat",
    "RAW_DUMP_FILENAME",
    "SubprocessArchiveExtractor",
    "build_extract_command",
    "detect_archive_format",
]
