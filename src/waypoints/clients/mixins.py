"""Mixins for adapter classes.

This module provides reusable mixins that can be combined with adapter
classes to add circuit breaker support, config validation, and logging.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any

import aiobreaker
import attrs

from waypoints.foundation.circuit_breaker import create_async_circuit_breaker


@attrs.define(frozen=False, slots=True)
class CircuitBreakerMixin(ABC):
    """Mixin for adapters with circuit breaker support.

    Subclasses implement `_circuit_breaker_config()` and call
    `_init_circuit_breaker()` from `__attrs_post_init__`.

    Example:
        ```python
        @attrs.define(frozen=False, slots=True)
        class MyGeocoder(CircuitBreakerMixin, Geocoder):
            url: str

            def _circuit_breaker_config(self) -> tuple[str, int, int]:
                return ("mygeocoder", 5, 60)

            def __attrs_post_init__(self) -> None:
                self._init_circuit_breaker()
        ```
    """

    _breaker: aiobreaker.CircuitBreaker = attrs.field(init=False)

    @abstractmethod
    def _circuit_breaker_config(self) -> tuple[str, int, int]:
        """Return circuit breaker configuration.

        Returns:
            Tuple of (name, failure_threshold, recovery_timeout).
        """

    def _init_circuit_breaker(self) -> None:
        name, failure_threshold, recovery_timeout = self._circuit_breaker_config()
        object.__setattr__(
            self,
            "_breaker",
            create_async_circuit_breaker(
                name=name,
                failure_threshold=failure_threshold,
                recovery_timeout=recovery_timeout,
            ),
        )


class ConfigValidationMixin:
    """Mixin for adapters built from configuration objects."""

    @classmethod
    def _validate_config(
        cls, config: Any, expected_provider: str, required_fields: list[str]
    ) -> None:
        """Validate config has correct provider type and required fields.

        Args:
            config: Configuration object with `provider_type` attribute.
            expected_provider: Expected value of `config.provider_type`.
            required_fields: Config attribute names that must be set.

        Raises:
            ValueError: If provider_type doesn't match or required fields are missing.

        Example:
            ```python
            @classmethod
            def from_config(cls, config: PositionSourceConfig, *, scheduler=None):
                cls._validate_config(config, "replay", ["replay_path"])
                return cls.from_csv(config.replay_path, scheduler=scheduler)
            ```
        """
        if config.provider_type != expected_provider:
            msg = f"Config provider_type must be '{expected_provider}', got '{config.provider_type}'"
            raise ValueError(msg)

        missing = [f for f in required_fields if not getattr(config, f, None)]
        if missing:
            msg = f"{expected_provider.capitalize()} provider requires: {', '.join(missing)}"
            raise ValueError(msg)


class LoggerMixin:
    """Mixin that gives each adapter class a module logger as `_logger`."""

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        cls._logger = logging.getLogger(cls.__module__)  # type: ignore[attr-defined]
