"""Structured logging for the engine and CLI.

structlog renders every event; stdlib logging owns the handlers so library
loggers (SQLAlchemy, asyncpg) end up in the same stream.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Any

import structlog

LOG_FILE = Path("logs/ghgcalc.log")

_handlers: list[logging.Handler] = []


def build_processors(log_format: str) -> list[Any]:
    """Processor chain ending in a JSON renderer ("json") or a console renderer."""
    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.format_exc_info,
    ]
    if log_format.strip().lower() == "json":
        # Calculation audit trail is machine-read
        processors.append(structlog.processors.JSONRenderer(sort_keys=True))
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=False))
    return processors


def configure_logging(log_level: str = "INFO", log_format: str = "json") -> None:
    """Configure structlog and the root logger.

    Args:
        log_level: Level name for the root logger ("DEBUG", "INFO", ...)
        log_format: "json" or "text"

    Raises:
        ValueError: If log_level is not a logging level name
    """
    level = logging.getLevelName(log_level.strip().upper())
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level: {log_level}")

    structlog.configure(
        processors=build_processors(log_format),
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )

    root = logging.getLogger()
    # Reconfiguring replaces our handlers, never duplicates them
    for handler in _handlers:
        root.removeHandler(handler)
        handler.close()
    _handlers.clear()

    _handlers.append(logging.StreamHandler(sys.stderr))
    if LOG_FILE.parent.exists():
        _handlers.append(logging.FileHandler(LOG_FILE))

    formatter = logging.Formatter("%(message)s")
    for handler in _handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)
    root.setLevel(level)


def bind_calculation_context(org_id: str, year: int):
    """Attach the (organization, year) key to every log line inside the block."""
    return structlog.contextvars.bound_contextvars(org_id=org_id, year=year)
