"""waypoints: a stream of resolved, human-readable locations.

Wraps a position source and a reverse geocoder behind one subscribable
stream of `Resolved(Location)` / `Failed(...)` outcomes, with update
policies that throttle or filter noisy fixes and lifecycle handling that
pauses the source while the host application is in the background.
"""

from waypoints.core.models import (
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
from waypoints.core.policies import DistanceThresholdPolicy, IntervalThrottlePolicy
from waypoints.core.services import LocationTracker

__version__ = "0.1.0"

__all__ = [
    "Coordinate",
    "DistanceThresholdPolicy",
    "Failed",
    "IntervalThrottlePolicy",
    "Location",
    "LocationOutcome",
    "LocationTracker",
    "PlaceCandidate",
    "RawFix",
    "Resolved",
    "TrackerState",
    "Unknown",
    "Upstream",
    "__version__",
]
