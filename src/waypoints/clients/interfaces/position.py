"""Position source interface and factory.

This module defines the `PositionSource` ABC and the provider registry for
position sources. Configuration classes are in `waypoints.config`.
Concrete implementations live in the parent `clients` package (e.g.,
`ManualPositionSource`, `ReplayPositionSource`).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import TYPE_CHECKING

from waypoints.core.models import PositionEvent
from waypoints.core.observers import Subscription

if TYPE_CHECKING:
    from waypoints.config import PositionSourceConfig
    from waypoints.foundation.scheduler import Scheduler


class PositionSource(ABC):
    """Abstract base class for providers of raw position fixes.

    A position source emits `PositionEvent`s to its subscribers:
    `FixBatch` (most recent fix first), `PositionFailure`, or
    `AuthorizationChange`. Events may be delivered from any thread; the
    tracker re-dispatches them onto its own event loop.

    Example:
        ```python
        class MySource(PositionSource):
            def start(self) -> None:
                self._device.enable()

            def stop(self) -> None:
                self._device.disable()

            def request_authorization(self) -> None:
                self._device.prompt()

            def subscribe(self, observer):
                return self._events.subscribe(observer)
        ```
    """

    @abstractmethod
    def start(self) -> None:
        """Begin producing fixes. Calling it while started has no effect."""

    @abstractmethod
    def stop(self) -> None:
        """Stop producing fixes. Idempotent; `start()` resumes production."""

    @abstractmethod
    def request_authorization(self) -> None:
        """Ask the user for permission. The answer arrives as an
        `AuthorizationChange` event, if at all."""

    @abstractmethod
    def subscribe(self, observer: Callable[[PositionEvent], None]) -> Subscription:
        """Register `observer` for every position event.

        Returns:
            Handle whose `cancel()` removes the observer.
        """

    @property
    def requires_authorization(self) -> bool:
        """Whether the source must be authorized before it produces fixes."""
        return False

    def close(self) -> None:  # noqa: B027
        """Release resources held by the source.

        Note:
            Not abstract: sources without resources keep the default no-op.
        """

    @classmethod
    @abstractmethod
    def from_config(
        cls, config: PositionSourceConfig, *, scheduler: Scheduler | None = None
    ) -> "PositionSource":
        """Create a source from `PositionSourceConfig`.

        Args:
            config: Position source configuration.
            scheduler: Scheduler for sources that play back over time.

        Returns:
            Configured PositionSource instance.

        Raises:
            ValueError: If config is invalid or missing required fields.
        """


# Provider registry: maps provider_type to source class
_PROVIDER_REGISTRY: dict[str, type[PositionSource]] = {}


def register_provider(provider_type: str, provider_class: type[PositionSource]) -> None:
    """Register a position source class under `provider_type`.

    Example:
        ```python
        from waypoints.clients.interfaces.position import register_provider

        register_provider("gpsd", GpsdPositionSource)
        ```
    """
    _PROVIDER_REGISTRY[provider_type] = provider_class


def create_position_source(
    config: PositionSourceConfig,
    scheduler: Scheduler | None = None,
) -> PositionSource:
    """Create a position source based on configuration.

    Args:
        config: Position source configuration.
        scheduler: Optional scheduler passed to the source's `from_config()`.

    Returns:
        PositionSource instance.

    Raises:
        ValueError: If the provider type is not registered.
    """
    provider_class = _PROVIDER_REGISTRY.get(config.provider_type)
    if provider_class is None:
        msg = (
            f"Position provider '{config.provider_type}' is not registered. "
            f"Available providers: {list(_PROVIDER_REGISTRY.keys())}"
        )
        raise ValueError(msg)

    return provider_class.from_config(config, scheduler=scheduler)
