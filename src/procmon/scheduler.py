"""Monitor loop: one sampling cycle per interval, operator commands in between."""

import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

from procmon.config import MonitorConfig
from procmon.counters import CounterSource, CounterSourceError
from procmon.engine import RateEngine, UnavailableMetric
from procmon.logging import get_logger
from procmon.models import ProcessTableEntry
from procmon.table import ProcessTable

log = get_logger(__name__)

QUIT_KEY = "q"
KILL_KEY = "k"


class State(Enum):
    """Scheduler states."""

    RUNNING = "running"
    STOPPED = "stopped"


@dataclass(slots=True, frozen=True)
class TerminationResult:
    """Outcome of a termination request."""

    pid: int
    ok: bool
    message: str


class Presenter(Protocol):
    """Draws the ranked table and advisory messages."""

    def render(self, rows: Sequence[ProcessTableEntry], cpu_percent: float, memory_percent: float) -> None: ...

    def show_message(self, text: str, error: bool = False) -> None: ...


class InputSource(Protocol):
    """Operator input: a non-blocking key poll and a blocking line read."""

    def poll(self) -> str | None: ...

    def read_line(self, prompt: str) -> str: ...


class ProcessController(Protocol):
    """Sends a graceful termination signal to a process."""

    def terminate(self, pid: int) -> TerminationResult: ...


class Scheduler:
    """
    Drives the monitor.

    Each cycle is strictly sequential: read system counters, compute rates,
    refresh the process table, render, then poll for one pending key.
    Only the quit key moves the scheduler to STOPPED; every other failure
    is reported and the loop carries on with the next interval.
    """

    def __init__(
        self,
        source: CounterSource,
        presenter: Presenter,
        input_source: InputSource,
        controller: ProcessController,
        config: MonitorConfig | None = None,
        engine: RateEngine | None = None,
        table: ProcessTable | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._source = source
        self._presenter = presenter
        self._input = input_source
        self._controller = controller
        self._config = config or MonitorConfig()
        self._engine = engine or RateEngine(source)
        self._table = table or ProcessTable(source)
        self._sleep = sleep
        self._state = State.RUNNING

    @property
    def state(self) -> State:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state is State.RUNNING

    def prime(self) -> None:
        """Take the throwaway baseline readings the first rates are computed against."""
        try:
            self._engine.prime()
        except CounterSourceError as exc:
            # Unprimed, the first cycle reports 0% and becomes the baseline
            log.warning("baseline_failed", reason="system_cpu", error=str(exc))

        try:
            self._table.refresh(0, self._source.ticks_per_second)
        except CounterSourceError as exc:
            log.warning("baseline_failed", reason="listing", error=str(exc))
            self._table.reset()

    def run_cycle(self) -> list[ProcessTableEntry] | None:
        """
        Run one sampling cycle and render it.

        Returns:
            The rendered rows, or None if the cycle was skipped.
        """
        try:
            current = self._source.read_system_cpu()
        except CounterSourceError as exc:
            log.warning("cycle_skipped", reason="system_cpu", error=str(exc))
            self._presenter.show_message(f"Cannot read CPU counters: {exc}", error=True)
            return None

        cpu_percent = self._engine.compute_system_cpu_percent(current)

        memory_percent = 0.0
        memory_note = None
        try:
            memory_percent = self._engine.compute_memory_percent()
        except (UnavailableMetric, CounterSourceError) as exc:
            log.warning("memory_unavailable", error=str(exc))
            memory_note = f"Memory usage unavailable: {exc}"

        try:
            rows = self._table.refresh(self._engine.last_tick_delta, self._source.ticks_per_second)
        except CounterSourceError as exc:
            log.warning("cycle_skipped", reason="listing", error=str(exc))
            # A stale baseline would span two intervals; start cold next cycle
            self._table.reset()
            self._presenter.show_message(f"Cannot list processes: {exc}", error=True)
            return None

        self._presenter.render(rows, cpu_percent, memory_percent)
        if memory_note is not None:
            self._presenter.show_message(memory_note, error=True)
        return rows

    def handle_key(self, key: str | None) -> None:
        """Dispatch one operator key. Unknown keys are ignored."""
        if key is None:
            return
        if key == QUIT_KEY:
            self.stop()
        elif key == KILL_KEY:
            self._kill_prompt()

    def stop(self) -> None:
        if self._state is State.RUNNING:
            self._state = State.STOPPED
            self._presenter.show_message("Exiting monitor...")

    def _kill_prompt(self) -> None:
        text = self._input.read_line(self._config.kill_prompt).strip()
        # Plain ASCII digits only: int() would also take "+5", "43_21" or non-ASCII digits
        if not (text.isascii() and text.isdigit()):
            self._presenter.show_message(f"Invalid PID: {text!r}", error=True)
            self._sleep(self._config.message_hold)
            return

        pid = int(text)
        log.info("terminate_requested", pid=pid)
        result = self._controller.terminate(pid)
        if not result.ok:
            log.warning("terminate_failed", pid=pid, reason=result.message)
        self._presenter.show_message(result.message, error=not result.ok)
        self._sleep(self._config.message_hold)

    def run(self) -> int:
        """
        Run until the quit key is pressed.

        Returns:
            Process exit code (0 on a clean quit).
        """
        log.info("monitor_started", interval=self._config.interval)
        self.prime()

        while self.is_running:
            self._sleep(self._config.interval)
            self.run_cycle()
            self.handle_key(self._input.poll())

        log.info("monitor_stopped")
        return 0
