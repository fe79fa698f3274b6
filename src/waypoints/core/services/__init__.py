"""Tracking services.

This module provides the services that compose adapters and policies into a
stream of location outcomes.
"""

from .location_tracker import LocationTracker

__all__ = [
    "LocationTracker",
]
