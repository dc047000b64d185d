"""Progress reporting adapters."""

from sql_dump_loader.infrastructure.progress.console_progress_reporter import (
    ConsoleProgressReporter,
)

__all__ = ["ConsoleProgressReporter"]
