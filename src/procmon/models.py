"""Data models for procmon."""

from dataclasses import dataclass
from typing import NamedTuple


@dataclass(slots=True, frozen=True)
class CpuSnapshot:
    """Aggregate CPU tick counters, cumulative since boot."""

    total_ticks: int
    idle_ticks: int  # idle + iowait


@dataclass(slots=True, frozen=True)
class MemorySnapshot:
    """Instantaneous memory counters in kB."""

    total_kb: int
    free_kb: int
    buffers_kb: int
    cached_kb: int

    @property
    def used_kb(self) -> int:
        """Memory in use, excluding buffers and page cache."""
        return self.total_kb - self.free_kb - self.buffers_kb - self.cached_kb


class RawProcessSample(NamedTuple):
    """One per-process reading as reported by a counter source."""

    name: str
    cpu_ticks: int  # utime + stime
    rss_pages: int


@dataclass(slots=True, frozen=True)
class ProcessSample:
    """Immutable sample of a single process."""

    pid: int
    name: str
    cpu_ticks_cumulative: int
    rss_kb: float


@dataclass(slots=True, frozen=True)
class ProcessTableEntry:
    """A ranked row: a sample plus the CPU rate derived for it."""

    sample: ProcessSample
    cpu_percent: float  # 0.0 - 100.0

    @property
    def pid(self) -> int:
        return self.sample.pid

    @property
    def name(self) -> str:
        return self.sample.name

    @property
    def rss_mb(self) -> float:
        return self.sample.rss_kb / 1024
