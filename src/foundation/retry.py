"""Retry utilities with exponential backoff using tenacity.

This module provides reusable retry utilities for consistent retry behavior
with structured logging.

## Components

### RetryWithBackoff
Class-based retry utility with exponential backoff and structured logging.
Attempts can be bounded by count, by elapsed time, or both.

### create_retry_logger
Factory function to create retry logging callbacks with custom error
detail extraction.

## Usage

```python
from foundation.retry import RetryWithBackoff

# Bounded by attempts
retry = RetryWithBackoff(max_attempts=5, wait_min=1.0, wait_max=30.0)
result = retry.call(lambda: some_function(arg1, arg2))

# Bounded by a deadline (polling)
poll = RetryWithBackoff(
    max_attempts=None,
    max_delay=60.0,
    wait_min=0.5,
    wait_max=5.0,
    retry_exceptions=(NotReadyYet,),
)
poll.call(check_ready)
```
"""

import logging
from collections.abc import Callable
from functools import partial
from typing import Any, TypeVar

from tenacity import (
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    stop_after_delay,
    wait_exponential,
)

T = TypeVar("T")

# Default exceptions to retry on (narrowed by callers)
DEFAULT_RETRY_EXCEPTIONS: tuple[type[Exception], ...] = (Exception,)

DEFAULT_LOGGER_NAME = "foundation.retry"


# =============================================================================
# Retry Logging
# =============================================================================


def create_retry_logger(
    logger: logging.Logger,
    get_error_details: Callable[[BaseException], dict[str, Any]] | None = None,
    message: str = "Operation failed, retrying",
) -> Callable[[Any], None]:
    """Create a retry logging callback for tenacity.

    This factory creates a callback function suitable for tenacity's
    `before_sleep` parameter. It logs retry attempts with structured
    context including attempt number, wait time, and error details.

    Args:
        logger: Logger instance to use for logging.
        get_error_details: Optional function to extract additional error
            details from exceptions.
        message: Log message.

    Returns:
        Callback function for tenacity's before_sleep parameter.

    Example:
        ```python
        def probe_details(exc: BaseException) -> dict[str, Any]:
            if isinstance(exc, ProbeFailedError):
                return {"probe": exc.probe}
            return {}

        log_retry = create_retry_logger(logger, probe_details, "Container not ready")

        Retrying(before_sleep=log_retry, ...)
        ```
    """

    def log_retry(retry_state: Any) -> None:
        if retry_state.outcome is None or not retry_state.outcome.failed:
            return

        exc = retry_state.outcome.exception()
        wait_time = retry_state.next_action.sleep if retry_state.next_action else 0

        extra: dict[str, Any] = {
            "attempt": retry_state.attempt_number,
            "wait_seconds": round(wait_time, 2),
            "error_type": type(exc).__name__,
        }

        if get_error_details is not None:
            extra.update(get_error_details(exc))

        logger.debug(message, extra=extra)

    return log_retry


# =============================================================================
# RetryWithBackoff
# =============================================================================


class RetryWithBackoff:
    """Retry utility with exponential backoff and structured logging.

    This class provides a reusable retry mechanism using tenacity with
    configurable exponential backoff, exception filtering, and structured
    logging integration.

    Attributes:
        max_attempts: Maximum number of attempts, or None for no attempt
            limit (default: 3).
        max_delay: Maximum total seconds spent retrying, or None for no time
            limit (default: None).
        wait_min: Minimum wait time between retries in seconds (default: 2.0).
        wait_max: Maximum wait time between retries in seconds (default: 10.0).
        multiplier: Exponential backoff multiplier (default: 1.0).
        retry_exceptions: Tuple of exception types to retry on.
        logger: Logger instance for structured logging.

    Note:
        The retry strategy uses exponential backoff: multiplier * 2 ** (attempt - 1),
        clamped to [wait_min, wait_max]. Unexpected exceptions (TypeError,
        AttributeError, KeyError) are never retried.
    """

    def __init__(
        self,
        max_attempts: int | None = 3,
        wait_min: float = 2.0,
        wait_max: float = 10.0,
        multiplier: float = 1.0,
        retry_exceptions: tuple[type[Exception], ...] | None = None,
        logger: logging.Logger | None = None,
        max_delay: float | None = None,
    ) -> None:
        """Initialize retry utility.

        Args:
            max_attempts: Maximum number of attempts. None disables the limit.
            wait_min: Minimum wait time between retries (seconds).
            wait_max: Maximum wait time between retries (seconds).
            multiplier: Exponential backoff multiplier.
            retry_exceptions: Exception types to retry on. If None, every
                Exception is retried.
            logger: Logger instance for structured logging. If None, uses
                the "foundation.retry" logger.
            max_delay: Maximum seconds from the first attempt after which no
                further attempt is started. Backoff sleeps are shortened so
                they never pass this deadline. None disables the limit.

        Raises:
            ValueError: If neither max_attempts nor max_delay is set.
        """
        if max_attempts is None and max_delay is None:
            raise ValueError("RetryWithBackoff needs max_attempts, max_delay, or both")
        self.max_attempts = max_attempts
        self.max_delay = max_delay
        self.wait_min = wait_min
        self.wait_max = wait_max
        self.multiplier = multiplier
        self.retry_exceptions = retry_exceptions or DEFAULT_RETRY_EXCEPTIONS
        self.logger = logger or logging.getLogger(DEFAULT_LOGGER_NAME)

    @staticmethod
    def _log_retry(
        retry_state: Any,
        logger: logging.Logger,
        max_attempts: int | None,
    ) -> None:
        """Log callback for retry attempts.

        Args:
            retry_state: Tenacity retry state object.
            logger: Logger instance for structured logging.
            max_attempts: Maximum number of attempts.
        """
        if retry_state.outcome is None or not retry_state.outcome.failed:
            return

        exception = retry_state.outcome.exception()
        wait_time = retry_state.next_action.sleep if retry_state.next_action else 0
        logger.debug(
            "Retry attempt failed, retrying",
            extra={
                "attempt": retry_state.attempt_number,
                "max_attempts": max_attempts,
                "wait_seconds": round(wait_time, 2),
                "error": str(exception),
                "error_type": type(exception).__name__,
            },
        )

    def _stop_strategy(self) -> Any:
        if self.max_attempts is not None and self.max_delay is not None:
            return stop_after_attempt(self.max_attempts) | stop_after_delay(self.max_delay)
        if self.max_attempts is not None:
            return stop_after_attempt(self.max_attempts)
        return stop_after_delay(self.max_delay)

    def _wait_strategy(self) -> Callable[[Any], float]:
        backoff = wait_exponential(multiplier=self.multiplier, min=self.wait_min, max=self.wait_max)
        if self.max_delay is None:
            return backoff
        max_delay = self.max_delay

        def wait_within_deadline(retry_state: Any) -> float:
            # The attempt after the last sleep starts at the deadline at the latest
            remaining = max_delay - retry_state.seconds_since_start
            return max(0.0, min(backoff(retry_state), remaining))

        return wait_within_deadline

    def call(
        self,
        func: Callable[..., T],
        *args: Any,
        retry_exceptions: tuple[type[Exception], ...] | None = None,
        before_sleep: Callable[[Any], None] | None = None,
        **kwargs: Any,
    ) -> T:
        """Call a function with retry logic.

        Args:
            func: Function to call with retry logic.
            *args: Positional arguments to pass to func.
            retry_exceptions: Override default retry exceptions for this call.
            before_sleep: Override the default retry logging callback.
            **kwargs: Keyword arguments to pass to func.

        Returns:
            Result of func(*args, **kwargs).

        Raises:
            Exception: If all retry attempts fail, raises the last exception.
            TypeError, AttributeError, KeyError: These exceptions are never
                retried and are raised immediately.
        """
        exceptions_to_retry = retry_exceptions or self.retry_exceptions

        wait_strategy = self._wait_strategy()

        log_retry = before_sleep or partial(
            self._log_retry,
            logger=self.logger,
            max_attempts=self.max_attempts,
        )

        retry = Retrying(
            stop=self._stop_strategy(),
            wait=wait_strategy,
            retry=retry_if_exception_type(exceptions_to_retry),
            before_sleep=log_retry,
            reraise=True,
        )

        try:
            result: T = retry(func, *args, **kwargs)
            return result
        except (TypeError, AttributeError, KeyError) as e:
            # Don't retry on unexpected exceptions (programming errors, etc.)
            self.logger.exception(
                "Unexpected error, not retrying",
                extra={"error": str(e), "error_type": type(e).__name__},
            )
            raise
        except exceptions_to_retry as e:
            self.logger.warning(
                "All retry attempts exhausted",
                extra={
                    "attempts": retry.statistics.get("attempt_number"),
                    "max_attempts": self.max_attempts,
                    "max_delay": self.max_delay,
                    "error": str(e),
                    "error_type": type(e).__name__,
                },
            )
            raise
