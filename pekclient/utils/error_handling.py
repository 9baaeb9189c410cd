"""
Error Handling Module

Provides the error handling infrastructure of the client SDK:
- Custom exception hierarchy
- Async retry decorator with exponential backoff (connection bootstrap only)
"""

import asyncio
import functools
import random
import time
from typing import Any, Awaitable, Callable, Optional, Type, TypeVar

import structlog
from pydantic import BaseModel, ConfigDict


logger = structlog.get_logger(__name__)


# =============================================================================
# Custom Exception Hierarchy
# =============================================================================


class PekError(Exception):
    """Base exception for all pekclient errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}
        self.timestamp = time.time()

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for logging."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
            "timestamp": self.timestamp,
        }


# Client Errors
class PekClientError(PekError):
    """Error raised by the client or reported by the server."""
    pass


class RemoteError(PekClientError):
    """The server acknowledged a request with an error."""
    pass


class ConnectionFailedError(PekClientError):
    """Could not connect to the server."""
    pass


class RequestTimeoutError(PekClientError):
    """The server did not acknowledge a request in time."""
    pass


# Dataset Errors
class PekDatasetError(PekError):
    """Invalid dataset access."""
    pass


# Task Errors
class PekTaskError(PekError):
    """Base class for task-related errors."""
    pass


class TaskConfigurationError(PekTaskError):
    """Task arguments cannot be changed or are invalid."""
    pass


class TaskStateError(PekTaskError):
    """Lifecycle call issued in the wrong task state."""
    pass


class PartialResultDecodeError(PekTaskError):
    """A streamed partial result could not be decoded."""
    pass


# Early Termination Errors
class PekEarlyTerminationError(PekError):
    """Invalid early terminator definition."""
    pass


# =============================================================================
# Retry Decorator with Exponential Backoff
# =============================================================================


T = TypeVar("T")


class RetryConfig(BaseModel):
    """Configuration for retry behavior."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    max_attempts: int = 3
    initial_delay: float = 1.0
    max_delay: float = 30.0
    backoff_factor: float = 2.0
    jitter: bool = True
    retriable_exceptions: tuple[Type[Exception], ...] = (
        ConnectionError,
        TimeoutError,
        ConnectionFailedError,
    )


def retry_async(
    config: Optional[RetryConfig] = None,
    max_attempts: Optional[int] = None,
    initial_delay: Optional[float] = None,
) -> Callable[[Callable[..., Awaitable[T]]], Callable[..., Awaitable[T]]]:
    """
    Decorator for retrying coroutines with exponential backoff.

    Args:
        config: RetryConfig object (overrides individual params)
        max_attempts: Maximum number of attempts
        initial_delay: Initial delay in seconds

    Example:
        @retry_async(max_attempts=5, initial_delay=2.0)
        async def connect():
            ...
    """
    if config is None:
        config = RetryConfig(
            max_attempts=max_attempts or 3,
            initial_delay=initial_delay if initial_delay is not None else 1.0,
        )

    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            attempt = 0
            delay = config.initial_delay

            while True:
                try:
                    return await func(*args, **kwargs)
                except config.retriable_exceptions as e:
                    attempt += 1

                    if attempt >= config.max_attempts:
                        logger.error(
                            "retry_exhausted",
                            function=func.__name__,
                            attempts=attempt,
                            error=str(e),
                            error_type=type(e).__name__,
                        )
                        raise

                    current_delay = min(delay, config.max_delay)
                    if config.jitter:
                        current_delay *= (0.5 + random.random())

                    logger.warning(
                        "retry_attempt",
                        function=func.__name__,
                        attempt=attempt,
                        max_attempts=config.max_attempts,
                        delay=current_delay,
                        error=str(e),
                        error_type=type(e).__name__,
                    )

                    await asyncio.sleep(current_delay)
                    delay *= config.backoff_factor

        return wrapper

    return decorator
