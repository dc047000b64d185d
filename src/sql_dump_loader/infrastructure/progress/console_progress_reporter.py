"""Rate-limited console progress bar."""

from __future__ import annotations

import sys
import time
from collections.abc import Callable
from typing import TextIO

from sql_dump_loader.domain.ports import ProgressReporter
from sql_dump_loader.domain.progress import DEFAULT_PROGRESS_BAR_WIDTH, render_progress_bar

_DEFAULT_UPDATE_INTERVAL_SECONDS = 0.15


class ConsoleProgressReporter(ProgressReporter):
    """Redraw a single progress line in place, at most once per interval.

    The final 100% line is always drawn and terminated with a newline.
    """

    def __init__(
        self,
        total_bytes: int,
        stream: TextIO | None = None,
        update_interval_seconds: float = _DEFAULT_UPDATE_INTERVAL_SECONDS,
        bar_width: int = DEFAULT_PROGRESS_BAR_WIDTH,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._total_bytes = total_bytes
        self._stream = stream if stream is not None else sys.stdout
        self._update_interval_seconds = max(0.0, update_interval_seconds)
        self._bar_width = bar_width
        self._clock = clock
        self._started_at = clock()
        self._last_render_at: float | None = None
        self._bytes_read = 0
        self._finished = False

    @property
    def started_at(self) -> float:
        """Clock reading taken when the reporter was created."""

        return self._started_at

    @property
    def bytes_read(self) -> int:
        """Latest byte counter seen."""

        return self._bytes_read

    def update(self, bytes_read: int) -> None:
        """Record a sample; render when the interval elapsed or the dump is done."""

        self._bytes_read = max(self._bytes_read, min(bytes_read, self._total_bytes))
        now = self._clock()
        due = (
            self._last_render_at is None
            or now - self._last_render_at >= self._update_interval_seconds
        )
        if due or self._bytes_read == self._total_bytes:
            self._render(self._bytes_read, now)

    def finish(self) -> None:
        """Draw the completed bar and end the line."""

        if self._finished:
            return
        self._finished = True
        self._bytes_read = self._total_bytes
        self._render(self._total_bytes, self._clock())
        self._stream.write("\n")
        self._stream.flush()

    def abort(self) -> None:
        """End a partially drawn line without drawing the completed bar."""

        if self._finished:
            return
        self._finished = True
        if self._last_render_at is not None:
            self._stream.write("\n")
            self._stream.flush()

    def _render(self, bytes_read: int, now: float) -> None:
        self._last_render_at = now
        line = render_progress_bar(
            bytes_read,
            self._total_bytes,
            self._started_at,
            now,
            width=self._bar_width,
        )
        self._stream.write("\r" + line)
        self._stream.flush()


__all__ = ["ConsoleProgressReporter"]
