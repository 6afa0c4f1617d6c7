"""
Progress display for Pack Sync.

Renders the aggregated progress of a phase as a single self-overwriting
terminal line.
"""

import shutil
import sys
import time

from ..core.formatting import format_duration
from ..core.progress import ProgressAggregator
from .colors import Colors


class TerminalProgress(ProgressAggregator):
    """
    Progress aggregator that redraws a status line on change.

    Redraws are throttled to at most one per min_interval seconds; the
    final state of a phase is always drawn.
    """

    def __init__(self, stream=None, min_interval: float = 0.1):
        super().__init__()
        self.stream = stream or sys.stdout
        self.min_interval = min_interval
        self.start_time = time.time()
        self._last_draw = 0.0

    def reset(self):
        super().reset()
        self.start_time = time.time()

    def _changed(self):
        snap = self.snapshot()
        now = time.time()
        if not snap.finished and now - self._last_draw < self.min_interval:
            return
        self._last_draw = now
        self._draw(snap)

    def _draw(self, snap):
        term_width = shutil.get_terminal_size().columns
        elapsed = format_duration(time.time() - self.start_time)
        if snap.total > 0:
            core = f"  {snap.fraction * 100:5.1f}% ({snap.done}/{snap.total})"
        else:
            core = f"  {snap.done}"
        line = f"{core}  {Colors.DIM}{elapsed}{Colors.RESET}  {snap.message}"
        # Leave room for the escape codes, which take no columns
        line = line[:term_width + len(Colors.DIM) + len(Colors.RESET) - 1]
        with self.lock:
            self.stream.write("\r\x1b[K" + line)
            if snap.finished:
                self.stream.write("\n")
            self.stream.flush()
