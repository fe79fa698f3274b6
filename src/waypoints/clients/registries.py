"""Provider registry initialization.

This module registers the built-in adapters for the position, geocoding and
lifecycle interfaces. Registration happens at module import time to avoid
circular dependencies between interface definitions and concrete
implementations.
"""

from .interfaces.geocoding import register_provider as register_geocoder
from .interfaces.lifecycle import NullLifecycleSource
from .interfaces.lifecycle import register_provider as register_lifecycle_source
from .interfaces.position import register_provider as register_position_source
from .memory import ManualGeocoder, ManualLifecycleSource, ManualPositionSource
from .nominatim import NominatimGeocoder
from .replay import ReplayPositionSource


def _register_position_sources() -> None:
    register_position_source("memory", ManualPositionSource)
    register_position_source("replay", ReplayPositionSource)


def _register_geocoders() -> None:
    register_geocoder("nominatim", NominatimGeocoder)
    register_geocoder("memory", ManualGeocoder)


def _register_lifecycle_sources() -> None:
    register_lifecycle_source("none", NullLifecycleSource)
    register_lifecycle_source("memory", ManualLifecycleSource)


def register_all_providers() -> None:
    """Register all built-in providers.

    External providers can register themselves directly with the
    `register_provider` functions of the interface modules.
    """
    _register_position_sources()
    _register_geocoders()
    _register_lifecycle_sources()


# Register all providers on module import
register_all_providers()
