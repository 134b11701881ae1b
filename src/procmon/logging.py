"""Structlog configuration for procmon.

The monitor owns the terminal while it runs, so log output is kept to
warnings and above on stderr by default. Events are structured; the
console renderer is used for humans, tests capture them with
structlog.testing.capture_logs().
"""

from __future__ import annotations

import logging
import sys
from typing import TextIO

import structlog


def configure(level: int = logging.WARNING, stream: TextIO | None = None) -> None:
    """Configure structlog to render through a stdlib handler.

    Args:
        level: Minimum stdlib level to emit.
        stream: Where to write. Defaults to stderr.
    """
    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=structlog.dev.ConsoleRenderer(colors=False),
            foreign_pre_chain=[
                structlog.processors.TimeStamper(fmt="iso", utc=False),
                structlog.processors.add_log_level,
            ],
        )
    )

    root = logging.getLogger()
    root.setLevel(level)
    # Clear any existing handlers
    root.handlers.clear()
    root.addHandler(handler)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.processors.TimeStamper(fmt="iso", utc=False),
            structlog.processors.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structlog logger instance."""
    return structlog.get_logger(name)
