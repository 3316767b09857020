"""Logging configuration for Tollgate with structlog.

Stdlib logging carries the leaf modules (classifier, resolver, registry)
and is the only writer: structlog events from the gate are handed to the
stdlib handlers and rendered there alongside the plain records. The
terminal gets stderr so tool output on stdout stays clean.
"""

import logging
import sys
import time
from pathlib import Path
from typing import Any

import structlog


def _level_number(level: str | None) -> int:
    return getattr(logging, (level or "INFO").upper(), logging.INFO)


def _shared_processors() -> list[Any]:
    """Processors applied to structlog events and stdlib records alike."""
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.StackInfoRenderer(),
    ]


def _console_formatter(show_timestamps: bool) -> structlog.stdlib.ProcessorFormatter:
    processors: list[Any] = [structlog.stdlib.ProcessorFormatter.remove_processors_meta]
    if show_timestamps:
        processors.append(structlog.processors.TimeStamper(fmt="%H:%M:%S", utc=False))
    processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))
    return structlog.stdlib.ProcessorFormatter(
        processors=processors,
        foreign_pre_chain=_shared_processors(),
    )


def _json_formatter() -> structlog.stdlib.ProcessorFormatter:
    return structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.dict_tracebacks,
            structlog.processors.JSONRenderer(),
        ],
        foreign_pre_chain=_shared_processors(),
    )


def setup_logging(
    level: str | None = "INFO",
    log_file: Path | None = None,
    show_timestamps: bool = True,
) -> None:
    """Configure structlog and stdlib logging.

    Records are rendered for the terminal on stderr. With a log file they
    are also written there as JSON lines (one per event, with
    call_id/tool/turn fields). Calling this again replaces and closes the
    previous handlers.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR), or None to use INFO
        log_file: Optional file path to write logs
        show_timestamps: Include timestamps in console output
    """
    log_level = _level_number(level)

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(_console_formatter(show_timestamps))
    handlers: list[logging.Handler] = [console]
    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(_json_formatter())
        handlers.append(file_handler)
    for handler in handlers:
        handler.setLevel(log_level)

    logging.basicConfig(level=log_level, handlers=handlers, force=True)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            *_shared_processors(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structlog logger, e.g. ``get_logger("tollgate.gate.executor")``."""
    return structlog.get_logger(name)


class Timer:
    """Times a block at debug level, as a sync or async context manager.

    Usage:
        with Timer("resolve_edit(app.py)", logger):
            ...
        async with Timer("execute(c1)", logger) as timer:
            ...
        timer.elapsed
    """

    def __init__(self, name: str, logger: Any | None = None):
        self.name = name
        self.logger = logger or get_logger("tollgate.timer")
        self.start_time: float = 0
        self.elapsed: float = 0

    def _start(self) -> None:
        self.start_time = time.perf_counter()
        self.logger.debug(f"Starting: {self.name}")

    def _stop(self, failed: bool) -> None:
        self.elapsed = time.perf_counter() - self.start_time
        outcome = "Aborted" if failed else "Completed"
        self.logger.debug(f"{outcome}: {self.name}", elapsed_s=round(self.elapsed, 3))

    def __enter__(self) -> "Timer":
        self._start()
        return self

    def __exit__(self, exc_type: Any, *args: Any) -> None:
        self._stop(exc_type is not None)

    async def __aenter__(self) -> "Timer":
        self._start()
        return self

    async def __aexit__(self, exc_type: Any, *args: Any) -> None:
        self._stop(exc_type is not None)
