"""Counter sources for procmon.

A counter source exposes the raw, cumulative kernel counters the rate engine
works from: aggregate CPU ticks, memory totals and per-process CPU ticks and
resident pages, keyed by PID. Two implementations are provided:

- ProcfsCounterSource reads Linux procfs directly.
- PsutilCounterSource goes through psutil and converts its seconds and bytes
  back into ticks and pages.
"""

import os
from pathlib import Path
from typing import Protocol

import psutil

from procmon.models import CpuSnapshot, MemorySnapshot, RawProcessSample

# Fields of the aggregate "cpu" line in /proc/stat, in kernel order
CPU_FIELDS = ("user", "nice", "system", "idle", "iowait", "irq", "softirq", "steal")

DEFAULT_TICKS_PER_SECOND = 100
DEFAULT_PAGE_SIZE = 4096


class CounterSourceError(Exception):
    """Counters could not be read or parsed."""


class ListingError(CounterSourceError):
    """The set of running processes could not be enumerated."""


class ProcessGone(CounterSourceError):
    """The process exited, or became unreadable, before it could be sampled."""

    def __init__(self, pid: int) -> None:
        super().__init__(f"process {pid} is gone")
        self.pid = pid


class CounterSource(Protocol):
    """Interface the engine and process table read counters through."""

    ticks_per_second: int
    page_size_kb: float

    def read_system_cpu(self) -> CpuSnapshot: ...

    def read_memory(self) -> MemorySnapshot: ...

    def list_process_ids(self) -> set[int]: ...

    def read_process_sample(self, pid: int) -> RawProcessSample: ...


def system_ticks_per_second() -> int:
    """Return the kernel clock tick rate (USER_HZ)."""
    try:
        return os.sysconf("SC_CLK_TCK")
    except (AttributeError, ValueError, OSError):
        return DEFAULT_TICKS_PER_SECOND


def system_page_size() -> int:
    """Return the memory page size in bytes."""
    try:
        return os.sysconf("SC_PAGE_SIZE")
    except (AttributeError, ValueError, OSError):
        return DEFAULT_PAGE_SIZE


# ─────────────────────────────────────────────────────────────────────────────
# procfs parsing
# ─────────────────────────────────────────────────────────────────────────────


def parse_cpu_stat(text: str) -> CpuSnapshot:
    """Parse the aggregate CPU line of /proc/stat.

    Total is the sum of the first eight fields; idle counts iowait as idle.
    Older kernels report fewer fields, the missing ones read as zero.
    """
    line = text.split("\n", 1)[0]
    parts = line.split()
    if not parts or parts[0] != "cpu":
        raise CounterSourceError(f"unexpected /proc/stat format: {line!r}")

    try:
        values = [int(v) for v in parts[1 : len(CPU_FIELDS) + 1]]
    except ValueError as exc:
        raise CounterSourceError(f"unexpected /proc/stat format: {line!r}") from exc
    if len(values) < 4:
        raise CounterSourceError(f"too few CPU fields in /proc/stat: {line!r}")
    values += [0] * (len(CPU_FIELDS) - len(values))

    fields = dict(zip(CPU_FIELDS, values))
    return CpuSnapshot(
        total_ticks=sum(values),
        idle_ticks=fields["idle"] + fields["iowait"],
    )


def parse_meminfo(text: str) -> MemorySnapshot:
    """Parse /proc/meminfo. Missing keys read as zero."""
    wanted = {"MemTotal:": 0, "MemFree:": 0, "Buffers:": 0, "Cached:": 0}
    for line in text.splitlines():
        parts = line.split()
        if len(parts) >= 2 and parts[0] in wanted:
            try:
                wanted[parts[0]] = int(parts[1])
            except ValueError as exc:
                raise CounterSourceError(f"bad /proc/meminfo line: {line!r}") from exc

    return MemorySnapshot(
        total_kb=wanted["MemTotal:"],
        free_kb=wanted["MemFree:"],
        buffers_kb=wanted["Buffers:"],
        cached_kb=wanted["Cached:"],
    )


def parse_pid_stat(text: str) -> RawProcessSample:
    """Parse /proc/<pid>/stat.

    The command name is field 2, wrapped in parentheses, and may itself
    contain spaces and parentheses, so it runs up to the *last* ')'.
    """
    start = text.find("(")
    end = text.rfind(")")
    if start < 0 or end < start:
        raise CounterSourceError(f"unexpected stat format: {text[:64]!r}")

    name = text[start + 1 : end]
    # rest[0] is field 3 (state), so field N lives at rest[N - 3]
    rest = text[end + 1 :].split()
    if len(rest) < 22:
        raise CounterSourceError(f"too few stat fields for {name!r}")

    try:
        utime = int(rest[11])
        stime = int(rest[12])
        rss_pages = int(rest[21])
    except ValueError as exc:
        raise CounterSourceError(f"non-numeric stat field for {name!r}") from exc

    return RawProcessSample(name=name, cpu_ticks=utime + stime, rss_pages=max(rss_pages, 0))


class ProcfsCounterSource:
    """Counter source reading a procfs tree (Linux)."""

    def __init__(
        self,
        root: str | Path = "/proc",
        ticks_per_second: int | None = None,
        page_size: int | None = None,
    ) -> None:
        """
        Initialize the ProcfsCounterSource.

        Args:
            root: Mount point of procfs. Tests point this at a fake tree.
            ticks_per_second: Clock tick rate. Defaults to the system's USER_HZ.
            page_size: Page size in bytes. Defaults to the system's.
        """
        self._root = Path(root)
        self.ticks_per_second = ticks_per_second or system_ticks_per_second()
        self.page_size_kb = (page_size or system_page_size()) / 1024

    def _read(self, *parts: str) -> str:
        return self._root.joinpath(*parts).read_text(encoding="utf-8", errors="replace")

    def read_system_cpu(self) -> CpuSnapshot:
        try:
            text = self._read("stat")
        except OSError as exc:
            raise CounterSourceError(f"cannot read {self._root / 'stat'}: {exc}") from exc
        return parse_cpu_stat(text)

    def read_memory(self) -> MemorySnapshot:
        try:
            text = self._read("meminfo")
        except OSError as exc:
            raise CounterSourceError(f"cannot read {self._root / 'meminfo'}: {exc}") from exc
        return parse_meminfo(text)

    def list_process_ids(self) -> set[int]:
        try:
            return {int(entry.name) for entry in self._root.iterdir() if entry.name.isdigit()}
        except OSError as exc:
            raise ListingError(f"cannot list {self._root}: {exc}") from exc

    def read_process_sample(self, pid: int) -> RawProcessSample:
        try:
            text = self._read(str(pid), "stat")
        except OSError as exc:
            raise ProcessGone(pid) from exc

        try:
            return parse_pid_stat(text)
        except CounterSourceError as exc:
            # A half-written record belongs to a process on its way out
            raise ProcessGone(pid) from exc


class PsutilCounterSource:
    """
    Counter source backed by psutil.

    psutil reports CPU time in seconds and memory in bytes; both are converted
    back to ticks and pages so the engine sees the same units as from procfs.
    """

    def __init__(self, ticks_per_second: int | None = None, page_size: int | None = None) -> None:
        self.ticks_per_second = ticks_per_second or system_ticks_per_second()
        self._page_size = page_size or system_page_size()
        self.page_size_kb = self._page_size / 1024

    def _to_ticks(self, seconds: float) -> int:
        return round(seconds * self.ticks_per_second)

    def read_system_cpu(self) -> CpuSnapshot:
        try:
            times = psutil.cpu_times()
        except (OSError, psutil.Error) as exc:
            raise CounterSourceError(f"cannot read CPU times: {exc}") from exc

        # Fields missing on this platform (iowait, steal, ...) count as zero
        values = {field: getattr(times, field, 0.0) for field in CPU_FIELDS}
        return CpuSnapshot(
            total_ticks=self._to_ticks(sum(values.values())),
            idle_ticks=self._to_ticks(values["idle"] + values["iowait"]),
        )

    def read_memory(self) -> MemorySnapshot:
        try:
            mem = psutil.virtual_memory()
        except (OSError, psutil.Error) as exc:
            raise CounterSourceError(f"cannot read memory info: {exc}") from exc

        return MemorySnapshot(
            total_kb=mem.total // 1024,
            free_kb=mem.free // 1024,
            buffers_kb=getattr(mem, "buffers", 0) // 1024,
            cached_kb=getattr(mem, "cached", 0) // 1024,
        )

    def list_process_ids(self) -> set[int]:
        try:
            return set(psutil.pids())
        except (OSError, psutil.Error) as exc:
            raise ListingError(f"cannot list processes: {exc}") from exc

    def read_process_sample(self, pid: int) -> RawProcessSample:
        try:
            proc = psutil.Process(pid)
            with proc.oneshot():
                name = proc.name()
                cpu = proc.cpu_times()
                rss = proc.memory_info().rss
        except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess) as exc:
            raise ProcessGone(pid) from exc

        return RawProcessSample(
            name=name,
            cpu_ticks=self._to_ticks(cpu.user + cpu.system),
            rss_pages=rss // self._page_size,
        )


def default_counter_source() -> CounterSource:
    """Return a procfs source where /proc is available, psutil otherwise."""
    if os.access("/proc/stat", os.R_OK):
        return ProcfsCounterSource()
    return PsutilCounterSource()
