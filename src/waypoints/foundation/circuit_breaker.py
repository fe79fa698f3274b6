"""Circuit breaker utilities for resilient network adapters.

This module provides circuit breaker patterns for external service
dependencies (reverse geocoding services) using **aiobreaker**, which has
native asyncio support. Circuit breakers prevent a degraded service from
being hammered by every accepted fix: once open, calls fail fast with
`UpstreamError`, which the tracker publishes as an upstream failure.

## Usage

```python
@attrs.define(frozen=False, slots=True)
class MyGeocoder(CircuitBreakerMixin, Geocoder):
    def _circuit_breaker_config(self) -> tuple[str, int, int]:
        return ("mygeocoder", 5, 60)

    def __attrs_post_init__(self) -> None:
        self._init_circuit_breaker()

    @with_circuit_breaker_async("mygeocoder")
    async def resolve(self, coordinate: Coordinate) -> list[PlaceCandidate]:
        ...
```

## Circuit Breaker States

- **CLOSED**: Normal operation, requests pass through
- **OPEN**: Service is failing, requests fail immediately without calling service
- **HALF_OPEN**: Testing if service has recovered, allows limited requests
"""

import functools
import logging
from collections.abc import Callable
from datetime import timedelta
from typing import NoReturn

import aiobreaker

from waypoints.foundation.exceptions import UpstreamError

logger = logging.getLogger(__name__)


class CircuitBreakerListener(aiobreaker.CircuitBreakerListener):
    """Logging listener for circuit breaker events."""

    def state_change(
        self,
        breaker: aiobreaker.CircuitBreaker,
        old: object,
        new: object,
    ) -> None:
        """Log circuit breaker state transitions.

        Args:
            breaker: The circuit breaker instance.
            old: Previous state.
            new: New state.
        """
        logger.warning(
            "Circuit breaker state changed",
            extra={
                "circuit_breaker": breaker.name,
                "old_state": str(old),
                "new_state": str(new),
                "failure_count": getattr(breaker, "fail_counter", None),
            },
        )

    def before_call(
        self,
        breaker: aiobreaker.CircuitBreaker,
        func: Callable,
        *args: object,
        **kwargs: object,
    ) -> None:
        """Log before calling the protected function."""
        logger.debug(
            "Circuit breaker call",
            extra={
                "circuit_breaker": breaker.name,
                "state": str(breaker.current_state),
                "function": getattr(func, "__name__", repr(func)),
            },
        )

    def failure(self, breaker: aiobreaker.CircuitBreaker, exception: Exception) -> None:
        """Log when a protected call fails.

        Args:
            breaker: The circuit breaker instance.
            exception: Exception that occurred.
        """
        logger.error(
            "Circuit breaker failure",
            extra={
                "circuit_breaker": breaker.name,
                "state": str(breaker.current_state),
                "failure_count": getattr(breaker, "fail_counter", None),
                "exception_type": type(exception).__name__,
                "exception_message": str(exception),
            },
        )

    def success(self, breaker: aiobreaker.CircuitBreaker) -> None:
        """Log a successful call."""
        logger.debug(
            "Circuit breaker success",
            extra={"circuit_breaker": breaker.name, "state": str(breaker.current_state)},
        )


def create_async_circuit_breaker(
    name: str,
    failure_threshold: int = 5,
    recovery_timeout: int = 60,
) -> aiobreaker.CircuitBreaker:
    """Create an async circuit breaker for an external service dependency.

    Args:
        name: Unique name for the circuit breaker (e.g., "nominatim").
        failure_threshold: Number of consecutive failures before opening
            circuit. Default: 5.
        recovery_timeout: Seconds to wait before attempting recovery.
            Default: 60.

    Returns:
        Configured aiobreaker.CircuitBreaker instance with logging listener.

    Note:
        State transitions:
        - CLOSED → OPEN: After `failure_threshold` consecutive failures
        - OPEN → HALF_OPEN: After `recovery_timeout` seconds
        - HALF_OPEN → CLOSED: After first successful call
        - HALF_OPEN → OPEN: If call fails during recovery
    """
    return aiobreaker.CircuitBreaker(
        fail_max=failure_threshold,
        timeout_duration=timedelta(seconds=recovery_timeout),
        listeners=[CircuitBreakerListener()],
        name=name,
    )


def handle_circuit_breaker_error(service_name: str) -> NoReturn:
    """Handle circuit breaker open state by raising UpstreamError.

    Args:
        service_name: Name of the service (for error message).

    Raises:
        UpstreamError: Always raises with message about service unavailability.
    """
    msg = (
        f"{service_name} service is currently unavailable. "
        "The circuit breaker is open due to repeated failures. "
        "The service will be retried automatically after the recovery timeout."
    )
    raise UpstreamError(msg)


def with_circuit_breaker_async(service_name: str):
    """Decorator to wrap async method calls with circuit breaker protection.

    **How it works:**
    1. Runs the coroutine through `breaker.call_async()`, which fails fast
       while the circuit is open and lets a trial call through once the
       recovery timeout has elapsed
    2. Converts `aiobreaker.CircuitBreakerError` into UpstreamError

    Args:
        service_name: Service name for error messages.

    Returns:
        Decorator function that wraps async methods with circuit breaker logic.

    Note:
        This decorator expects the instance to have a `_breaker` attribute
        holding an `aiobreaker.CircuitBreaker` (see `CircuitBreakerMixin`).
    """

    def decorator(func):
        @functools.wraps(func)
        async def wrapper(self, *args, **kwargs):
            breaker = getattr(self, "_breaker", None)
            if breaker is None:
                msg = (
                    f"{self.__class__.__name__} has no circuit breaker. "
                    "Ensure the class inherits from CircuitBreakerMixin and "
                    "calls _init_circuit_breaker() in __attrs_post_init__."
                )
                raise RuntimeError(msg)

            async def _impl():
                return await func(self, *args, **kwargs)

            try:
                return await breaker.call_async(_impl)
            except aiobreaker.CircuitBreakerError:
                handle_circuit_breaker_error(service_name)

        return wrapper

    return decorator
