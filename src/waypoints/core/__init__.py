"""Core domain models, policies, services, and shared types.

This package provides the domain code of the tracker:
- Value types for fixes, places, locations and outcomes
- Exception hierarchy for error handling
- Observer registry used to fan outcomes out to subscribers
- Update policies (interval throttle, distance threshold)
- The location tracker service (in core/services/)
"""

from .exceptions import GeocodingNotFoundError, TrackerStateError, UpstreamError, WaypointsError
from .models import (
    Coordinate,
    Failed,
    Location,
    LocationOutcome,
    PlaceCandidate,
    RawFix,
    Resolved,
    TrackerState,
    Unknown,
    Upstream,
)

__all__ = [
    "Coordinate",
    "Failed",
    "GeocodingNotFoundError",
    "Location",
    "LocationOutcome",
    "PlaceCandidate",
    "RawFix",
    "Resolved",
    "TrackerState",
    "TrackerStateError",
    "Unknown",
    "Upstream",
    "UpstreamError",
    "WaypointsError",
]
