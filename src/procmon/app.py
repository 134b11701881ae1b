"""procmon - terminal process monitor entry point."""

from rich.console import Console

from procmon import logging as procmon_logging
from procmon.config import MonitorConfig
from procmon.control import PsutilProcessController
from procmon.counters import default_counter_source
from procmon.scheduler import Scheduler
from procmon.terminal import KeyReader, TerminalPresenter

EXIT_INTERRUPTED = 130


def build_scheduler(console: Console, keys: KeyReader, config: MonitorConfig) -> Scheduler:
    """Wire the real counter source, terminal and psutil controller together."""
    return Scheduler(
        source=default_counter_source(),
        presenter=TerminalPresenter(console, config),
        input_source=keys,
        controller=PsutilProcessController(),
        config=config,
    )


def main() -> int:
    """Entry point for the procmon application."""
    procmon_logging.configure()
    config = MonitorConfig()
    console = Console(highlight=False)

    try:
        with KeyReader(console=console) as keys:
            return build_scheduler(console, keys, config).run()
    except KeyboardInterrupt:
        return EXIT_INTERRUPTED
