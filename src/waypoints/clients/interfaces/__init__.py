"""Abstract base classes (interfaces) for adapter providers.

This sub-package contains the ABCs and factory functions that define the
contracts for position sources, reverse geocoders and lifecycle sources.
Concrete implementations live in the parent `clients` package.
"""

from .geocoding import Geocoder, create_geocoder
from .geocoding import register_provider as register_geocoder
from .lifecycle import LifecycleSource, NullLifecycleSource, create_lifecycle_source
from .lifecycle import register_provider as register_lifecycle_source
from .position import PositionSource, create_position_source
from .position import register_provider as register_position_source

__all__ = [
    "Geocoder",
    "LifecycleSource",
    "NullLifecycleSource",
    "PositionSource",
    "create_geocoder",
    "create_lifecycle_source",
    "create_position_source",
    "register_geocoder",
    "register_lifecycle_source",
    "register_position_source",
]
