from __future__ import annotations

import sys
import time
from typing import Callable, Optional, TextIO

from tqdm import tqdm


BAR_WIDTH = 50
ETR_PLACEHOLDER = "--:--"


def format_time(seconds: int) -> str:
    seconds = max(0, int(seconds))
    return f"{seconds // 60:02d}:{seconds % 60:02d}"


def percent_complete(completed: int, total: int) -> int:
    if total <= 0:
        return 100
    return min(100, max(0, (100 * completed) // total))


def estimate_remaining(completed: int, total: int, elapsed: float) -> Optional[int]:
    if completed <= 0:
        return None
    elapsed = max(1.0, elapsed)
    remaining = max(0, total - completed)
    return int(round((elapsed / completed) * remaining))


def render_progress(completed: int, total: int, elapsed: float) -> str:
    pct = percent_complete(completed, total)
    bar_len = pct * BAR_WIDTH // 100
    bar = "#" * bar_len + " " * (BAR_WIDTH - bar_len)
    eta = estimate_remaining(completed, total, elapsed)
    etr = format_time(eta) if eta is not None else ETR_PLACEHOLDER
    return f"Progress: [{bar}] {pct}% ({completed}/{total}) | ETR: {etr} "


class ProgressReporter:
    """
    Single-line progress display on stderr.

    The line is redrawn in place with a carriage return and never touches the
    CSV output. Elapsed time is measured from construction.
    """

    def __init__(
        self,
        *,
        total: int,
        stream: Optional[TextIO] = None,
        clock: Callable[[], float] = time.monotonic,
        enabled: bool = True,
    ) -> None:
        self.total = total
        self._stream = stream if stream is not None else sys.stderr
        self._clock = clock
        self._started_at = clock()
        self._enabled = enabled
        self.last_line: Optional[str] = None

    def elapsed(self) -> float:
        return self._clock() - self._started_at

    def update(self, completed: int) -> str:
        line = render_progress(completed, self.total, self.elapsed())
        self.last_line = line
        if self._enabled:
            self._stream.write(f"\r{line}")
            self._stream.flush()
        return line


def countdown(
    seconds: int,
    *,
    sleep: Callable[[float], None] = time.sleep,
    desc: str = "Waiting {left}s for permissions to propagate",
    enabled: bool = True,
    tqdm_factory: Optional[Callable] = None,
) -> None:
    if seconds <= 0:
        return
    factory = tqdm_factory or tqdm
    bar = factory(
        total=seconds,
        desc=desc.format(left=seconds),
        unit="s",
        leave=False,
        file=sys.stderr,
        disable=not enabled,
        bar_format="{desc} |{bar}| {n_fmt}/{total_fmt}s",
    )
    try:
        for left in range(seconds, 0, -1):
            bar.set_description_str(desc.format(left=left), refresh=False)
            sleep(1)
            bar.update(1)
    finally:
        bar.close()
