"""Named wall-clock timers for a build run."""

from __future__ import annotations

import time
from typing import Dict, Hashable, Optional, Tuple


def format_elapsed(seconds: float) -> str:
    """
    Format seconds as mm:ss.

    Examples:
        5.2 -> "00:05"
        65.9 -> "01:05"
        3725 -> "62:05"
    """
    minutes, secs = divmod(int(seconds), 60)
    return f"{minutes:02d}:{secs:02d}"


class Stopwatch:
    """
    A collection of named timers.

    Usage:
        watches = Stopwatch()
        watches.start("core")
        build()
        watches.stop("core")
        watches.format("core")  # "01:12"
    """

    def __init__(self) -> None:
        self._timers: Dict[Hashable, Tuple[float, Optional[float]]] = {}

    def start(self, name: Hashable) -> None:
        self._timers[name] = (time.monotonic(), None)

    def stop(self, name: Hashable) -> None:
        start, _ = self._timers[name]
        self._timers[name] = (start, time.monotonic())

    def __contains__(self, name: Hashable) -> bool:
        return name in self._timers

    def elapsed(self, name: Hashable) -> float:
        """Seconds on the timer; a running timer is stopped first."""
        start, stop = self._timers[name]
        if stop is None:
            self.stop(name)
            start, stop = self._timers[name]
        return stop - start

    def format(self, name: Hashable) -> str:
        if name not in self._timers:
            return "--:--"
        return format_elapsed(self.elapsed(name))
