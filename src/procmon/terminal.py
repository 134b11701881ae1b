"""Terminal front end: a full-redraw presenter and a raw key reader."""

import os
import select
import sys
import termios
import tty
from collections.abc import Sequence
from typing import TextIO

from rich import box
from rich.console import Console
from rich.table import Table
from rich.text import Text

from procmon.config import MonitorConfig
from procmon.models import ProcessTableEntry

TITLE = "SYSTEM MONITOR"
FOOTER = "Press 'k' to kill process, 'q' to quit."

# Lines drawn around the rows: rule, stats, blank, table head (2), footer, message, prompt
CHROME_LINES = 8


def format_percent(value: float) -> str:
    """Format a percentage with two decimals, as shown in every column."""
    return f"{value:.2f}"


def truncate_name(name: str, width: int) -> str:
    """Shorten a command name for display. Identity never depends on this."""
    return name[:width] if width > 0 else ""


class TerminalPresenter:
    """
    Renders the monitor as a full screen redraw with Rich.

    Nothing is diffed between renders: every call clears the screen and
    draws the latest state, which also wipes the previous cycle's messages.
    """

    def __init__(self, console: Console | None = None, config: MonitorConfig | None = None) -> None:
        self._console = console or Console(highlight=False)
        self._config = config or MonitorConfig()

    @property
    def console(self) -> Console:
        return self._console

    def visible_rows(self) -> int:
        """Number of process rows that fit on screen."""
        if self._config.max_rows is not None:
            return max(self._config.max_rows, 0)
        return max(self._console.size.height - CHROME_LINES, 1)

    def build_table(self, rows: Sequence[ProcessTableEntry]) -> Table:
        """Build the process table for the given (already ranked) rows."""
        table = Table(box=box.SIMPLE_HEAD, show_edge=False, pad_edge=False)
        table.add_column("PID", justify="right", width=8)
        table.add_column("PROCESS", width=self._config.name_width, no_wrap=True)
        table.add_column("CPU(%)", justify="right", width=10)
        table.add_column("MEM(MB)", justify="right", width=10)

        for entry in rows[: self.visible_rows()]:
            # Text() keeps '[' in command names from being parsed as markup
            table.add_row(
                str(entry.pid),
                Text(truncate_name(entry.name, self._config.name_width)),
                format_percent(entry.cpu_percent),
                format_percent(entry.rss_mb),
            )
        return table

    def render(self, rows: Sequence[ProcessTableEntry], cpu_percent: float, memory_percent: float) -> None:
        console = self._console
        console.clear()
        console.rule(f"[bold]{TITLE}[/]")
        console.print(
            f"CPU Usage: [bold cyan]{format_percent(cpu_percent)}%[/]  "
            f"Memory Usage: [bold cyan]{format_percent(memory_percent)}%[/]"
        )
        console.print(self.build_table(rows))
        console.print(f"[dim]{FOOTER}[/]")

    def show_message(self, text: str, error: bool = False) -> None:
        self._console.print(Text(text, style="bold red" if error else "green"))


class KeyReader:
    """
    Reads operator keys from a terminal.

    Used as a context manager: on entry stdin is switched to cbreak mode so
    single keypresses arrive without Enter; on exit the original terminal
    settings are restored. When stdin is not a TTY, poll() never reports
    a key.
    """

    def __init__(self, stream: TextIO | None = None, console: Console | None = None) -> None:
        self._stream = stream or sys.stdin
        self._console = console or Console(highlight=False)
        self._fd: int | None = None
        self._saved: list | None = None

    def __enter__(self) -> "KeyReader":
        if self._stream.isatty():
            self._fd = self._stream.fileno()
            self._saved = termios.tcgetattr(self._fd)
            tty.setcbreak(self._fd)
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        self._restore()
        self._fd = None
        self._saved = None
        return False

    @property
    def interactive(self) -> bool:
        """True while stdin is a TTY in cbreak mode."""
        return self._saved is not None

    def _restore(self) -> None:
        if self._fd is not None and self._saved is not None:
            termios.tcsetattr(self._fd, termios.TCSADRAIN, self._saved)

    def poll(self) -> str | None:
        """Return one pending key, or None without waiting."""
        if not self.interactive:
            return None
        ready, _, _ = select.select([self._fd], [], [], 0)
        if not ready:
            return None
        # Bypass the text buffer so select() stays accurate for the next poll
        data = os.read(self._fd, 1)
        return data.decode(errors="ignore") or None

    def read_line(self, prompt: str) -> str:
        """Block until the operator enters a line, with echo and line editing on."""
        self._restore()
        try:
            return self._console.input(prompt)
        except EOFError:
            return ""
        finally:
            if self.interactive:
                tty.setcbreak(self._fd)
