"""Retry utilities with exponential backoff using tenacity.

This module provides reusable retry utilities for network adapters, with
structured logging of every retry.

## Components

### AsyncRetryWithBackoff
Retry wrapper for coroutines with exponential backoff and structured logging.

### HTTPErrorClassifier
Base implementation with common HTTP status code classification:
- 5xx errors: Retriable (server-side issues)
- 4xx errors: Non-retriable (client-side issues)

### create_retry_logger
Factory function to create retry logging callbacks with custom error
detail extraction.

## Usage

```python
class MyClassifier(HTTPErrorClassifier):
    def is_retriable(self, exc: BaseException) -> bool:
        if isinstance(exc, httpx.TransportError):
            return True
        if isinstance(exc, httpx.HTTPStatusError):
            return self.is_retriable_http_status(exc.response.status_code)
        return False

    def get_error_details(self, exc: BaseException) -> dict[str, Any]:
        return {}

retry = AsyncRetryWithBackoff(max_attempts=3, classifier=MyClassifier())
payload = await retry.call(fetch, url)
```

Note:
    Retries belong to adapters. The location tracker itself never retries;
    a failure that survives the adapter's retries becomes a published outcome.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from tenacity import AsyncRetrying, retry_if_exception, stop_after_attempt, wait_exponential

T = TypeVar("T")

# HTTP status codes that indicate transient/retriable errors
RETRIABLE_HTTP_STATUS_CODES: frozenset[str] = frozenset(
    {
        "500",  # Internal Server Error
        "502",  # Bad Gateway
        "503",  # Service Unavailable
        "504",  # Gateway Timeout
    }
)


class HTTPErrorClassifier(ABC):
    """Base error classifier with HTTP status code classification.

    Attributes:
        retriable_http_codes: Set of HTTP status codes considered retriable.
            Defaults to 500, 502, 503, 504.
    """

    retriable_http_codes: frozenset[str] = RETRIABLE_HTTP_STATUS_CODES

    def is_retriable_http_status(self, status: str | int) -> bool:
        """Check if an HTTP status code indicates a retriable error.

        Args:
            status: HTTP status code as string or int.

        Returns:
            True for configured retriable codes, False otherwise (fail fast).
        """
        return str(status) in self.retriable_http_codes

    @abstractmethod
    def is_retriable(self, exc: BaseException) -> bool:
        """Determine if an exception should trigger a retry."""

    @abstractmethod
    def get_error_details(self, exc: BaseException) -> dict[str, Any]:
        """Extract structured error details for logging."""


def create_retry_logger(
    logger: logging.Logger,
    get_error_details: Callable[[BaseException], dict[str, Any]] | None = None,
    message: str = "Operation failed, retrying",
) -> Callable[[Any], None]:
    """Create a retry logging callback for tenacity's `before_sleep` hook.

    Args:
        logger: Logger instance to use for logging.
        get_error_details: Optional function to extract additional error
            details from exceptions.
        message: Log message.

    Returns:
        Callback function for tenacity's before_sleep parameter.
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

        logger.warning(message, extra=extra)

    return log_retry


class AsyncRetryWithBackoff:
    """Retry utility for coroutines with exponential backoff.

    Attributes:
        max_attempts: Maximum number of attempts, including the first (default: 3).
        wait_min: Minimum wait time between retries in seconds (default: 1.0).
        wait_max: Maximum wait time between retries in seconds (default: 10.0).
        multiplier: Exponential backoff multiplier (default: 1.0).
        classifier: Decides which exceptions are retried. If None, nothing is.
        logger: Logger for retry events.
    """

    def __init__(
        self,
        max_attempts: int = 3,
        wait_min: float = 1.0,
        wait_max: float = 10.0,
        multiplier: float = 1.0,
        classifier: HTTPErrorClassifier | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts
        self.wait_min = wait_min
        self.wait_max = wait_max
        self.multiplier = multiplier
        self.classifier = classifier
        self.logger = logger or logging.getLogger(__name__)

    def _should_retry(self, exc: BaseException) -> bool:
        return self.classifier is not None and self.classifier.is_retriable(exc)

    async def call(self, func: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any) -> T:
        """Await `func(*args, **kwargs)` with retry logic.

        Returns:
            Result of the coroutine.

        Raises:
            Exception: The last exception once attempts are exhausted, or the
                first non-retriable exception.
        """
        get_details = self.classifier.get_error_details if self.classifier is not None else None
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=self.multiplier, min=self.wait_min, max=self.wait_max),
            retry=retry_if_exception(self._should_retry),
            before_sleep=create_retry_logger(self.logger, get_details),
            reraise=True,
        )
        result: T = await retrying(func, *args, **kwargs)
        return result
