"""Exception hierarchy for the waypoints package.

Provider failures never surface as exceptions to tracker consumers: they are
published as `Failed` outcomes. The exceptions here cover the remaining
cases:

- `UpstreamError`: raised by adapters when a dependency fails (re-exported
  from `waypoints.foundation.exceptions`). The tracker wraps it in
  `Failed(Upstream(error))`.
- `GeocodingNotFoundError`: a geocoder found no place for a coordinate.
  The tracker treats it like an empty candidate list.
- `TrackerStateError`: a tracker was used after it was disposed.

## Usage

```python
from waypoints.core.exceptions import UpstreamError

try:
    payload = await fetch()
except httpx.RequestError as e:
    raise UpstreamError(f"Reverse geocoding failed: {e}") from e
```
"""

from waypoints.foundation.exceptions import UpstreamError  # noqa: F401


class WaypointsError(Exception):
    """Base exception class for all waypoints errors."""


class GeocodingNotFoundError(WaypointsError):
    """Raised by a geocoder that could not find any place for a coordinate."""


class TrackerStateError(WaypointsError):
    """Raised when an operation is not valid in the tracker's current state.

    Examples:
        - Calling `start()` on a disposed tracker
        - Subscribing to a disposed tracker
    """
