"""Shared fakes for procmon tests."""

import pytest

from procmon.counters import ProcessGone
from procmon.models import CpuSnapshot, MemorySnapshot, RawProcessSample
from procmon.scheduler import TerminationResult


class FakeCounterSource:
    """In-memory counter source; tests mutate its attributes between cycles."""

    def __init__(self) -> None:
        self.ticks_per_second = 10
        self.page_size_kb = 4.0
        self.cpu = CpuSnapshot(total_ticks=1000, idle_ticks=800)
        self.memory = MemorySnapshot(
            total_kb=8_000_000, free_kb=2_000_000, buffers_kb=500_000, cached_kb=1_500_000
        )
        self.processes: dict[int, RawProcessSample] = {}
        self.gone: set[int] = set()  # listed, but exit before they can be read
        self.cpu_error: Exception | None = None
        self.listing_error: Exception | None = None
        self.cpu_reads = 0

    def set_process(self, pid: int, name: str, ticks: int, rss_pages: int = 256) -> None:
        self.processes[pid] = RawProcessSample(name=name, cpu_ticks=ticks, rss_pages=rss_pages)

    def read_system_cpu(self) -> CpuSnapshot:
        self.cpu_reads += 1
        if self.cpu_error is not None:
            raise self.cpu_error
        return self.cpu

    def read_memory(self) -> MemorySnapshot:
        return self.memory

    def list_process_ids(self) -> set[int]:
        if self.listing_error is not None:
            raise self.listing_error
        return set(self.processes) | self.gone

    def read_process_sample(self, pid: int) -> RawProcessSample:
        if pid in self.gone or pid not in self.processes:
            raise ProcessGone(pid)
        return self.processes[pid]


class FakePresenter:
    """Records everything it is asked to draw."""

    def __init__(self) -> None:
        self.renders: list[tuple[list, float, float]] = []
        self.messages: list[tuple[str, bool]] = []

    def render(self, rows, cpu_percent, memory_percent) -> None:
        self.renders.append((list(rows), cpu_percent, memory_percent))

    def show_message(self, text: str, error: bool = False) -> None:
        self.messages.append((text, error))


class FakeInput:
    """Replays queued keys and lines; polls return None once keys run out."""

    def __init__(self, keys=None, lines=None) -> None:
        self.keys = list(keys or [])
        self.lines = list(lines or [])
        self.prompts: list[str] = []

    def poll(self) -> str | None:
        return self.keys.pop(0) if self.keys else None

    def read_line(self, prompt: str) -> str:
        self.prompts.append(prompt)
        return self.lines.pop(0) if self.lines else ""


class FakeController:
    """Terminates only the PIDs listed in `alive`."""

    def __init__(self, alive=None) -> None:
        self.alive = set(alive or [])
        self.calls: list[int] = []

    def terminate(self, pid: int) -> TerminationResult:
        self.calls.append(pid)
        if pid in self.alive:
            self.alive.discard(pid)
            return TerminationResult(pid, True, f"Process {pid} terminated.")
        return TerminationResult(pid, False, f"Failed to kill process {pid}: no such process.")


@pytest.fixture
def source() -> FakeCounterSource:
    return FakeCounterSource()


@pytest.fixture
def presenter() -> FakePresenter:
    return FakePresenter()


@pytest.fixture
def sleeps() -> list[float]:
    """Collects requested sleep durations instead of sleeping."""
    return []


@pytest.fixture
def controller() -> FakeController:
    """Controller for which only PID 4321 is a live process."""
    return FakeController(alive={4321})


@pytest.fixture
def make_input():
    """Factory for FakeInput instances."""
    return FakeInput
