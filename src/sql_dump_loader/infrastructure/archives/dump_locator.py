"""Locate the single SQL script inside an extracted workspace."""

from __future__ import annotations

import asyncio
from pathlib import Path

from sql_dump_loader.domain.entities import SqlDump
from sql_dump_loader.domain.errors import InvalidArchiveContentsError

SQL_SUFFIX = ".sql"


def _find_sql_files(workspace_dir: Path) -> list[Path]:
    return sorted(
        entry
        for entry in workspace_dir.iterdir()
        if entry.name.endswith(SQL_SUFFIX) and entry.is_file()
    )


async def locate_sql_dump(workspace_dir: Path) -> SqlDump:
    """Return the one `.sql` file among the workspace's immediate entries."""

    matches = await asyncio.to_thread(_find_sql_files, workspace_dir)
    if len(matches) != 1:
        names = ", ".join(path.name for path in matches) or "none"
        raise InvalidArchiveContentsError(
            f"Archive must contain exactly ONE {SQL_SUFFIX} file, found {len(matches)} ({names})."
        )
    path = matches[0]
    stat = await asyncio.to_thread(path.stat)
    return SqlDump(path=path, size_bytes=stat.st_size)


__all__ = ["SQL_SUFFIX", "locate_sql_dump"]
