"""Adapters for position sources, reverse geocoders and lifecycle sources.

This module provides factory functions for creating configured adapters from
centralized configuration.
"""

from waypoints.config import GeocoderConfig, LifecycleConfig, PositionSourceConfig, get_settings
from waypoints.foundation.scheduler import Scheduler

# Import registries to trigger provider registration
from . import registries as _  # noqa: F401
from .interfaces.geocoding import Geocoder, create_geocoder
from .interfaces.lifecycle import LifecycleSource, NullLifecycleSource, create_lifecycle_source
from .interfaces.position import PositionSource, create_position_source
from .memory import ManualGeocoder, ManualLifecycleSource, ManualPositionSource
from .nominatim import NominatimGeocoder
from .replay import ReplayPositionSource


def create_position_client(
    config: PositionSourceConfig | None = None,
    scheduler: Scheduler | None = None,
) -> PositionSource:
    """Create a configured position source.

    Args:
        config: Optional PositionSourceConfig. If None, uses settings from
            get_settings().
        scheduler: Scheduler for sources that play back over time.
    """
    if config is None:
        config = get_settings().position
    return create_position_source(config, scheduler=scheduler)


def create_geocoder_client(config: GeocoderConfig | None = None) -> Geocoder:
    """Create a configured reverse geocoder.

    Example:
        ```python
        from waypoints.clients import create_geocoder_client

        geocoder = create_geocoder_client()
        candidates = await geocoder.resolve(Coordinate(25.7877, -80.2241))
        ```
    """
    if config is None:
        config = get_settings().geocoder
    return create_geocoder(config)


def create_lifecycle_client(config: LifecycleConfig | None = None) -> LifecycleSource:
    """Create a configured lifecycle source."""
    if config is None:
        config = get_settings().lifecycle
    return create_lifecycle_source(config)


__all__ = [
    "Geocoder",
    "LifecycleSource",
    "ManualGeocoder",
    "ManualLifecycleSource",
    "ManualPositionSource",
    "NominatimGeocoder",
    "NullLifecycleSource",
    "PositionSource",
    "ReplayPositionSource",
    "create_geocoder",
    "create_geocoder_client",
    "create_lifecycle_client",
    "create_lifecycle_source",
    "create_position_client",
    "create_position_source",
]
