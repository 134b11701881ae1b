"""Process table: matches per-process samples across sampling cycles."""

from procmon.counters import CounterSource, ProcessGone
from procmon.engine import clamp_percent
from procmon.models import ProcessSample, ProcessTableEntry


def rank_entries(entries: list[ProcessTableEntry]) -> list[ProcessTableEntry]:
    """Sort entries by CPU% descending, breaking ties by PID ascending."""
    return sorted(entries, key=lambda e: (-e.cpu_percent, e.pid))


class ProcessTable:
    """
    Per-process CPU accounting across cycles.

    Keeps the last sample of every PID seen in the most recent listing.
    A PID missing from a listing is forgotten at once; if it shows up again
    it is treated as a new process.
    """

    def __init__(self, source: CounterSource, page_size_kb: float | None = None) -> None:
        """
        Initialize the ProcessTable.

        Args:
            source: Counter source to list and sample processes from.
            page_size_kb: Size of a memory page in kB. Defaults to the source's.
        """
        self._source = source
        self._page_size_kb = page_size_kb if page_size_kb is not None else source.page_size_kb
        self._previous: dict[int, ProcessTableEntry] = {}

    def __len__(self) -> int:
        return len(self._previous)

    def __contains__(self, pid: object) -> bool:
        return pid in self._previous

    def reset(self) -> None:
        """Forget all previous samples; the next refresh starts from a cold baseline."""
        self._previous = {}

    def refresh(self, system_tick_delta: int, ticks_per_second: int) -> list[ProcessTableEntry]:
        """
        Sample every listed process and compute its CPU% since the last refresh.

        Args:
            system_tick_delta: System ticks elapsed since the previous refresh.
            ticks_per_second: Kernel clock tick rate.

        Returns:
            Entries ranked by CPU% descending, then PID ascending.

        Raises:
            ListingError: If the process list cannot be read at all.
        """
        pids = self._source.list_process_ids()
        denominator = system_tick_delta * ticks_per_second

        current: dict[int, ProcessTableEntry] = {}
        for pid in pids:
            try:
                raw = self._source.read_process_sample(pid)
            except ProcessGone:
                # Exited between listing and reading
                continue

            sample = ProcessSample(
                pid=pid,
                name=raw.name,
                cpu_ticks_cumulative=raw.cpu_ticks,
                rss_kb=raw.rss_pages * self._page_size_kb,
            )
            current[pid] = ProcessTableEntry(
                sample=sample,
                cpu_percent=self._cpu_percent(sample, denominator),
            )

        self._previous = current
        return rank_entries(list(current.values()))

    def _cpu_percent(self, sample: ProcessSample, denominator: int) -> float:
        previous = self._previous.get(sample.pid)
        if previous is None or denominator <= 0:
            return 0.0

        # Same PID, different command: the PID was reused, no baseline
        if previous.sample.name != sample.name:
            return 0.0

        delta = sample.cpu_ticks_cumulative - previous.sample.cpu_ticks_cumulative
        if delta <= 0:
            return 0.0
        return clamp_percent(delta / denominator * 100.0)
