"""Archive extraction and dump discovery adapters."""

from sql_dump_loader.infrastructure.archives.dump_locator import SQL_SUFFIX, locate_sql_dump
from sql_dump_loader.infrastructure.archives.subprocess_archive_extractor import (
    ArchiveFormat,
    SubprocessArchiveExtractor,
    detect_archive_format,
)

__all__ = [
    "ArchiveFormat",
    "SQL_SUFFIX",
    "SubprocessArchiveExtractor",
    "detect_archive_format",
    "locate_sql_dump",
]
