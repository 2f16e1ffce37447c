"""A timer that reports its elapsed time when its scope ends."""

from __future__ import annotations

import time
from typing import Callable, Optional


class ScopedTimer:
    """Measures time from construction; calls ``callback(seconds)`` on exit."""

    def __init__(self, callback: Optional[Callable[[float], None]] = None) -> None:
        self._callback = callback
        self._start = time.monotonic()

    def elapsed_sec(self) -> float:
        return time.monotonic() - self._start

    def __enter__(self) -> "ScopedTimer":
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        if self._callback is not None:
            self._callback(self.elapsed_sec())
        return False