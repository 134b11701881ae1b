"""Runtime settings for procmon.

procmon reads no config file, flags or environment; these are the fixed
defaults the monitor runs with. Tests construct their own instances.
"""

from dataclasses import dataclass

MIN_INTERVAL = 0.1


@dataclass(slots=True, frozen=True)
class MonitorConfig:
    """Monitor loop and display settings."""

    interval: float = 1.0  # seconds between cycles
    message_hold: float = 2.0  # seconds a kill result stays on screen
    name_width: int = 24
    max_rows: int | None = None  # None: fit the terminal height
    kill_prompt: str = "Enter PID to kill: "

    def __post_init__(self) -> None:
        if self.interval < MIN_INTERVAL:
            object.__setattr__(self, "interval", MIN_INTERVAL)
        if self.message_hold < 0:
            object.__setattr__(self, "message_hold", 0.0)
