"""Rate engine: turns cumulative counters into percentages."""

from procmon.counters import CounterSource
from procmon.models import CpuSnapshot


class UnavailableMetric(Exception):
    """A metric cannot be computed from the counters read this cycle."""


def clamp_percent(value: float) -> float:
    """Clamp a percentage to [0, 100]."""
    return min(max(value, 0.0), 100.0)


class RateEngine:
    """
    Computes system-wide CPU and memory usage.

    Owns the previous system CPU snapshot. Each call to
    compute_system_cpu_percent() consumes the snapshot taken one cycle
    earlier and stores the current one in its place.
    """

    def __init__(self, source: CounterSource) -> None:
        self._source = source
        self._previous: CpuSnapshot | None = None
        self._last_tick_delta = 0

    @property
    def previous(self) -> CpuSnapshot | None:
        """The snapshot the next rate will be computed against."""
        return self._previous

    @property
    def last_tick_delta(self) -> int:
        """Total system ticks elapsed over the most recent interval (never negative)."""
        return self._last_tick_delta

    def prime(self, snapshot: CpuSnapshot | None = None) -> CpuSnapshot:
        """Store a baseline snapshot, reading one from the source if not given."""
        if snapshot is None:
            snapshot = self._source.read_system_cpu()
        self._previous = snapshot
        self._last_tick_delta = 0
        return snapshot

    def compute_system_cpu_percent(self, current: CpuSnapshot) -> float:
        """
        Return the busy share of CPU time between the stored snapshot and current.

        A zero or negative tick delta (no time passed, or the counters were
        reset) yields 0.0. The stored snapshot is replaced by current in
        every case.
        """
        previous = self._previous
        self._previous = current

        if previous is None:
            self._last_tick_delta = 0
            return 0.0

        diff_total = current.total_ticks - previous.total_ticks
        diff_idle = current.idle_ticks - previous.idle_ticks
        self._last_tick_delta = max(diff_total, 0)

        if diff_total <= 0:
            return 0.0
        return clamp_percent((diff_total - diff_idle) / diff_total * 100.0)

    def compute_memory_percent(self) -> float:
        """
        Return used memory as a percentage of the total.

        Raises:
            UnavailableMetric: If total memory reads as zero.
        """
        mem = self._source.read_memory()
        if mem.total_kb <= 0:
            raise UnavailableMetric("total memory reads as zero")
        return clamp_percent(mem.used_kb / mem.total_kb * 100.0)
