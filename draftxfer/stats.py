"""Transfer counters and a smoothed bandwidth estimate."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Callable, Optional


@dataclass
class Stats:
    """Byte and block counters for a transfer or a single file."""

    disk_byte_count: int = 0
    queued_block_count: int = 0
    dequeued_block_count: int = 0
    net_byte_count: int = 0
    file_byte_count: int = 0


@dataclass
class StatsManager:
    """Holds global counters and one set per transferred file."""

    global_stats: Stats = field(default_factory=Stats)
    file_stats: list[Stats] = field(default_factory=list)

    def get(self, file_id: Optional[int] = None) -> Optional[Stats]:
        """Return global stats, or the stats of ``file_id`` if it exists."""
        if file_id is None:
            return self.global_stats
        if 0 <= file_id < len(self.file_stats):
            return self.file_stats[file_id]
        return None

    def reallocate(self, size: int) -> None:
        """Replace the per-file stats with ``size`` fresh entries."""
        self.file_stats = [Stats() for _ in range(size)]


@dataclass
class BandwidthMonitor:
    """Exponentially smoothed rate of a growing byte count."""

    clock: Callable[[], float] = time.monotonic
    prev_time: float = 0.0
    prev_value: int = 0
    avg: float = 1e9

    def update(self, value: int) -> float:
        """Record the current count and return the smoothed rate."""
        now = self.clock()
        dt = now - self.prev_time
        dv = value - self.prev_value

        if dt > 0:
            self.avg = 0.95 * self.avg + 0.05 * dv / dt

        self.prev_time = now
        self.prev_value = value
        return self.avg

    def data_rate(self) -> float:
        return self.avg

    def eta_sec(self, total_len: int) -> float:
        """Seconds left to reach ``total_len`` at the current rate."""
        if self.avg <= 0.0 or total_len < self.prev_value:
            return 0.0
        return (total_len - self.prev_value) / self.avg


_MANAGER = StatsManager()


def stats_manager() -> StatsManager:
    """Return the process-wide stats manager."""
    return _MANAGER


def stats(file_id: Optional[int] = None) -> Optional[Stats]:
    """Return the global stats, or those of one file."""
    return _MANAGER.get(file_id)