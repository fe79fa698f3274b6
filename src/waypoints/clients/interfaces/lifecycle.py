"""Application lifecycle interface and factory.

A lifecycle source tells the tracker when the host application moves to the
background (`WILL_RESIGN_ACTIVE`) or back to the foreground
(`DID_BECOME_ACTIVE`). Hosts without such a notion use
`NullLifecycleSource`, which never emits.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import TYPE_CHECKING

from waypoints.core.models import LifecycleEvent
from waypoints.core.observers import Subscription

if TYPE_CHECKING:
    from waypoints.config import LifecycleConfig


class LifecycleSource(ABC):
    """Abstract base class for application lifecycle notifications."""

    @abstractmethod
    def subscribe(self, observer: Callable[[LifecycleEvent], None]) -> Subscription:
        """Register `observer` for every lifecycle event."""

    @property
    def supports_lifecycle(self) -> bool:
        """Whether this source can emit events at all."""
        return True

    @classmethod
    @abstractmethod
    def from_config(cls, config: LifecycleConfig) -> "LifecycleSource":
        """Create a lifecycle source from `LifecycleConfig`."""


class NullLifecycleSource(LifecycleSource):
    """Lifecycle source for hosts that are always active."""

    def subscribe(self, observer: Callable[[LifecycleEvent], None]) -> Subscription:
        subscription = Subscription()
        subscription.cancel()
        return subscription

    @property
    def supports_lifecycle(self) -> bool:
        return False

    @classmethod
    def from_config(cls, config: LifecycleConfig) -> "NullLifecycleSource":
        return cls()


_PROVIDER_REGISTRY: dict[str, type[LifecycleSource]] = {}


def register_provider(provider_type: str, provider_class: type[LifecycleSource]) -> None:
    """Register a lifecycle source class under `provider_type`."""
    _PROVIDER_REGISTRY[provider_type] = provider_class


def create_lifecycle_source(config: LifecycleConfig) -> LifecycleSource:
    """Create a lifecycle source based on configuration.

    Raises:
        ValueError: If the provider type is not registered.
    """
    provider_class = _PROVIDER_REGISTRY.get(config.provider_type)
    if provider_class is None:
        msg = (
            f"Lifecycle provider '{config.provider_type}' is not registered. "
            f"Available providers: {list(_PROVIDER_REGISTRY.keys())}"
        )
        raise ValueError(msg)

    return provider_class.from_config(config)
