"""
Advanced Logging Module

Provides structured logging for the client SDK with:
- structlog configuration on top of stdlib logging
- Task ID context tracking across coroutines
- Context managers for automatic timing of round trips
"""

import contextlib
import contextvars
import logging
import time
from typing import Any, Iterator, Optional

import structlog
from structlog.types import EventDict, Processor


# =============================================================================
# Structured Logging Configuration
# =============================================================================


def configure_logging(
    log_level: str = "INFO",
    log_format: str = "console",
    service_name: str = "pekclient",
) -> None:
    """
    Configure structured logging with structlog.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Output format ("json" or "console")
        service_name: Name added to every log event
    """
    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, log_level.upper()),
    )

    processors: list[Processor] = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        add_service_context(service_name),
    ]

    if log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def add_service_context(service_name: str) -> Processor:
    """
    Add service-level context to all log events.

    Args:
        service_name: Service name

    Returns:
        Processor function
    """

    def processor(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
        event_dict["service"] = service_name
        task_id = LogContext.get_task_id()
        if task_id is not None:
            event_dict.setdefault("task_id", task_id)
        return event_dict

    return processor


# =============================================================================
# Task ID Context
# =============================================================================


_task_id: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar("pek_task_id", default=None)


class LogContext:
    """
    Task ID tracking for log events.

    Backed by a context variable so concurrent tasks running on the same
    event loop keep their own identifier.
    """

    @classmethod
    def set_task_id(cls, task_id: str) -> None:
        _task_id.set(task_id)

    @classmethod
    def get_task_id(cls) -> Optional[str]:
        return _task_id.get()

    @classmethod
    def clear_task_id(cls) -> None:
        _task_id.set(None)

    @classmethod
    @contextlib.contextmanager
    def task_context(cls, task_id: str) -> Iterator[None]:
        """
        Context manager binding a task ID.

        Example:
            with LogContext.task_context(task.id):
                logger.info("partial_result_received")  # Includes task_id
        """
        token = _task_id.set(task_id)
        try:
            yield
        finally:
            _task_id.reset(token)


def get_logger(name: str) -> structlog.BoundLogger:
    """
    Get logger with automatic task ID binding.

    Args:
        name: Logger name (usually __name__)

    Returns:
        Bound logger instance
    """
    logger = structlog.get_logger(name)

    task_id = LogContext.get_task_id()
    if task_id:
        logger = logger.bind(task_id=task_id)

    return logger


# =============================================================================
# Performance Logger
# =============================================================================


class PerformanceLogger:
    """
    Context manager for automatic timing and logging of an operation.
    """

    def __init__(
        self,
        operation: str,
        logger: Optional[structlog.BoundLogger] = None,
        log_level: str = "debug",
        **extra_context: Any,
    ):
        self.operation = operation
        self.logger = logger or get_logger(__name__)
        self.log_level = log_level
        self.extra_context = extra_context
        self.start_time: Optional[float] = None
        self.end_time: Optional[float] = None

    def __enter__(self) -> "PerformanceLogger":
        self.start_time = time.time()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.end_time = time.time()
        duration = self.end_time - self.start_time

        log_data = {
            "operation": self.operation,
            "duration_seconds": round(duration, 3),
            **self.extra_context,
        }

        if exc_type is not None:
            log_data["error"] = str(exc_val)
            log_data["error_type"] = exc_type.__name__
            self.logger.warning("operation_failed", **log_data)
        else:
            getattr(self.logger, self.log_level)("operation_completed", **log_data)

    @property
    def elapsed_time(self) -> float:
        """Get elapsed time (even if context not exited)."""
        if self.start_time is None:
            return 0.0
        end = self.end_time or time.time()
        return end - self.start_time
