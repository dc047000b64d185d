"""Progress math and text rendering for dump imports."""

from __future__ import annotations

import math
from dataclasses import dataclass

DEFAULT_PROGRESS_BAR_WIDTH = 32

_KB = 1024
_MB = 1024 * 1024
_GB = 1024 * 1024 * 1024


def _round_half_up(value: float) -> int:
    # 2.5 -> 3 and 0.5 -> 1; round() would give 2 and 0.
    return math.floor(value + 0.5)


@dataclass(slots=True, frozen=True)
class ProgressStats:
    """Derived throughput figures for one progress sample."""

    fraction: float
    elapsed_seconds: float
    speed_bytes_per_second: float
    eta_seconds: float

    @property
    def percent(self) -> float:
        """Return completion in percent."""

        return self.fraction * 100


def compute_progress(
    bytes_read: int,
    total_bytes: int,
    started_at: float,
    now: float,
) -> ProgressStats:
    """Compute completion, speed and ETA for a sample.

    An empty dump counts as complete. Speed is zero until time has elapsed,
    and ETA is zero while speed is zero.
    """

    fraction = bytes_read / total_bytes if total_bytes > 0 else 1.0
    elapsed = now - started_at
    speed = bytes_read / elapsed if elapsed > 0 else 0.0
    eta = (total_bytes - bytes_read) / speed if speed > 0 else 0.0
    return ProgressStats(
        fraction=fraction,
        elapsed_seconds=max(0.0, elapsed),
        speed_bytes_per_second=speed,
        eta_seconds=max(0.0, eta),
    )


def format_bytes(num_bytes: float) -> str:
    """Format a byte count using binary units."""

    if num_bytes >= _GB:
        return f"{num_bytes / _GB:.2f} GB"
    if num_bytes >= _MB:
        return f"{num_bytes / _MB:.2f} MB"
    if num_bytes >= _KB:
        return f"{num_bytes / _KB:.2f} KB"
    return f"{_round_half_up(num_bytes)} B"


def format_duration(seconds: float) -> str:
    """Format seconds as `Ns` or `Mm Ss`."""

    if seconds < 60:
        return f"{_round_half_up(seconds)}s"
    minutes = int(seconds // 60)
    rest = _round_half_up(seconds % 60)
    return f"{minutes}m {rest}s"


def render_bar(fraction: float, width: int = DEFAULT_PROGRESS_BAR_WIDTH) -> str:
    """Render the fixed-width bar body, `>` marking the fill boundary."""

    filled = max(0, min(width, _round_half_up(fraction * width)))
    if filled >= width:
        return "=" * width
    return "=" * filled + ">" + " " * (width - filled - 1)


def render_progress_bar(
    bytes_read: int,
    total_bytes: int,
    started_at: float,
    now: float,
    width: int = DEFAULT_PROGRESS_BAR_WIDTH,
) -> str:
    """Render one progress line without carriage return or newline."""

    stats = compute_progress(bytes_read, total_bytes, started_at, now)
    return " ".join(
        [
            f"[{render_bar(stats.fraction, width)}]",
            f"{stats.percent:.1f}%",
            "|",
            f"{format_bytes(bytes_read)} / {format_bytes(total_bytes)}",
            "|",
            f"{format_bytes(stats.speed_bytes_per_second)}/s",
            "|",
            f"ETA {format_duration(stats.eta_seconds)}",
        ]
    )


__all__ = [
    "DEFAULT_PROGRESS_BAR_WIDTH",
    "ProgressStats",
    "compute_progress",
    "format_bytes",
    "format_duration",
    "render_bar",
    "render_progress_bar",
]
