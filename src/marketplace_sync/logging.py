"""
Structured logging configuration for the reconciliation engine.

Uses structlog for structured, context-aware logging with:
- JSON output for production
- Pretty console output for development
- Per-stage timing
- Run ID / group ID propagation through context variables
"""

import logging
import sys
import time
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Generator, TextIO

import structlog
from structlog.types import Processor

from .config import get_settings

# Context variables for run-scoped data
_run_id: ContextVar[str | None] = ContextVar('run_id', default=None)
_group_id: ContextVar[str | None] = ContextVar('group_id', default=None)


def add_context_info(
    logger: structlog.types.WrappedLogger,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Processor that adds context variables to log entries."""
    run_id = _run_id.get()
    group_id = _group_id.get()

    if run_id:
        event_dict['run_id'] = run_id
    if group_id:
        event_dict['group_id'] = group_id

    return event_dict


def configure_logging(
    json_output: bool = False,
    log_level: str | None = None,
    stream: TextIO | None = None,
) -> None:
    """
    Configure structlog for the application.

    Args:
        json_output: If True, output JSON logs (for production).
                    If False, output pretty console logs (for development).
        log_level: Override log level (defaults to LOG_LEVEL setting)
        stream: Output stream (defaults to stdout)
    """
    stream = stream or sys.stdout
    level = log_level or get_settings().LOG_LEVEL
    level_num = getattr(logging, level.upper(), logging.INFO)

    logging.basicConfig(
        format='%(message)s',
        stream=stream,
        level=level_num,
    )

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        add_context_info,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt='iso'),
        structlog.processors.StackInfoRenderer(),
    ]

    if json_output:
        processors: list[Processor] = [
            *shared_processors,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = [
            *shared_processors,
            structlog.dev.ConsoleRenderer(colors=True),
        ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level_num),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=stream),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """
    Get a structured logger instance.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured structlog logger
    """
    return structlog.get_logger(name)


@contextmanager
def logging_context(
    run_id: str | None = None,
    group_id: str | None = None,
) -> Generator[None, None, None]:
    """
    Context manager for setting logging context variables.

    Usage:
        with logging_context(run_id="0190f3...", group_id="L-123"):
            logger.info("engine.group_started")  # Includes run_id and group_id
    """
    old_run = _run_id.get()
    old_group = _group_id.get()

    try:
        if run_id is not None:
            _run_id.set(run_id)
        if group_id is not None:
            _group_id.set(group_id)
        yield
    finally:
        _run_id.set(old_run)
        _group_id.set(old_group)


class PipelineTimer:
    """
    Timer for tracking pipeline stage durations.

    Usage:
        timer = PipelineTimer()
        with timer.stage("deals"):
            # generate deal actions
        with timer.stage("contacts"):
            # aggregate contacts
        print(timer.summary())
    """

    def __init__(self):
        self.stages: dict[str, float] = {}
        self.start_time: float = time.perf_counter()

    @contextmanager
    def stage(self, name: str) -> Generator[None, None, None]:
        """Time a pipeline stage. Re-entering a stage adds to its total."""
        stage_start = time.perf_counter()
        try:
            yield
        finally:
            elapsed = (time.perf_counter() - stage_start) * 1000
            self.stages[name] = self.stages.get(name, 0.0) + elapsed

    @property
    def total_ms(self) -> float:
        """Total elapsed time since timer creation in milliseconds."""
        return (time.perf_counter() - self.start_time) * 1000

    def summary(self) -> dict[str, Any]:
        """Get timing summary as a dictionary."""
        return {
            'total_ms': round(self.total_ms, 2),
            'stages': {k: round(v, 2) for k, v in self.stages.items()},
        }
