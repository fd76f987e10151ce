"""Structured logging utilities for dataprotect.

This module provides thread- and async-safe structured logging using structlog.
Every protect/reveal call binds a ``call_id`` so that all attempts of one call
can be correlated.
"""

import logging
import sys
import time
from contextvars import ContextVar
from typing import Any, Optional

import structlog
from structlog.types import EventDict, Processor

from dataprotect.redaction import redact_sensitive_fields

# Context variable for call tracking
call_id_var: ContextVar[Optional[str]] = ContextVar("call_id", default=None)


def add_call_id(logger: logging.Logger, method_name: str, event_dict: EventDict) -> EventDict:
    """Add call_id to log context if available."""
    call_id = call_id_var.get()
    if call_id:
        event_dict["call_id"] = call_id
    return event_dict


def add_timestamp(logger: logging.Logger, method_name: str, event_dict: EventDict) -> EventDict:
    """Add epoch timestamp to log entries."""
    event_dict["timestamp"] = time.time()
    return event_dict


def configure_logging(
    log_level: str = "INFO",
    json_output: bool = True
) -> None:
    """Configure structured logging for applications embedding the client.

    The library never calls this itself; host applications call it once at
    startup (or configure structlog their own way).

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_output: If True, output JSON format. If False, use console format.
    """
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        add_call_id,
        add_timestamp,
        structlog.processors.add_log_level,
        redact_sensitive_fields,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if json_output:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.extend([
            structlog.dev.ConsoleRenderer(colors=True),
        ])

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, log_level.upper())
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str = "dataprotect") -> structlog.stdlib.BoundLogger:
    """Get a configured logger instance.

    Args:
        name: Logger name (typically module name)

    Returns:
        Configured structlog logger
    """
    return structlog.get_logger(name)


class CallTimer:
    """Context manager measuring the wall time of one protect/reveal call."""

    def __init__(self) -> None:
        self.start_time: float = 0
        self.end_time: float = 0

    def __enter__(self) -> "CallTimer":
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.end_time = time.perf_counter()

    @property
    def duration_ms(self) -> float:
        """Get duration in milliseconds (running total while inside the block)."""
        if self.end_time == 0:
            return (time.perf_counter() - self.start_time) * 1000
        return (self.end_time - self.start_time) * 1000


def set_call_id(call_id: str) -> Any:
    """Set call ID in context for all subsequent logs.

    Returns:
        The contextvar token, for ``reset_call_id``.
    """
    return call_id_var.set(call_id)


def reset_call_id(token: Any) -> None:
    """Restore the call ID that was active before ``set_call_id``."""
    call_id_var.reset(token)
