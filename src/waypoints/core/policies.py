"""Update policies deciding which fixes are geocoded and published.

A policy receives the first fix of every non-empty batch and calls its bound
`accept` callback for the fixes that should be geocoded. Empty batches and
position errors never reach a policy; the tracker publishes them directly.

Two policies are available:

- `IntervalThrottlePolicy` (default): the first fix is accepted at once,
  then at most one fix per interval, latest wins, on the trailing edge.
- `DistanceThresholdPolicy`: a fix is accepted when the last outcome is a
  failure or the fix moved farther than the threshold from the last
  resolved location.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import TYPE_CHECKING

import attrs

from waypoints.core.models import Failed, LocationOutcome, RawFix
from waypoints.foundation.scheduler import Scheduler
from waypoints.foundation.throttle import TrailingThrottle

if TYPE_CHECKING:
    from waypoints.config import TrackerConfig

logger = logging.getLogger(__name__)


@attrs.define(slots=True, eq=False)
class UpdatePolicy(ABC):
    """Base class for update policies.

    Attributes:
        require_neighborhood: Whether a place candidate must include a
            neighborhood to produce a resolved location.
    """

    require_neighborhood: bool = attrs.field(default=False, kw_only=True)
    _accept: Callable[[RawFix], None] | None = attrs.field(default=None, init=False)
    _last_outcome: Callable[[], LocationOutcome] | None = attrs.field(default=None, init=False)
    _scheduler: Scheduler | None = attrs.field(default=None, init=False)

    def bind(
        self,
        *,
        scheduler: Scheduler,
        accept: Callable[[RawFix], None],
        last_outcome: Callable[[], LocationOutcome],
    ) -> None:
        """Attach the policy to a tracker.

        Args:
            scheduler: Time source for time-based policies.
            accept: Called with each fix that should be geocoded.
            last_outcome: Returns the tracker's most recently published outcome.
        """
        self._scheduler = scheduler
        self._accept = accept
        self._last_outcome = last_outcome

    @abstractmethod
    def submit(self, fix: RawFix) -> None:
        """Offer a fix to the policy."""

    @property
    def holds_fix(self) -> bool:
        """Whether a fix is waiting to be accepted later."""
        return False

    def reset(self) -> None:  # noqa: B027
        """Release timers and held fixes. Default no-op."""

    def _deliver(self, fix: RawFix) -> None:
        if self._accept is None:
            raise RuntimeError(f"{type(self).__name__} is not bound to a tracker")
        self._accept(fix)


@attrs.define(slots=True, eq=False)
class DistanceThresholdPolicy(UpdatePolicy):
    """Accept fixes that moved beyond a distance threshold.

    A fix is accepted when the last outcome is `Failed` (recover from the
    unknown state) or when its great-circle distance from the last resolved
    location exceeds `threshold_meters`. Other fixes are dropped silently.

    Attributes:
        threshold_meters: Minimum distance in meters, exclusive. Default 0.
        require_neighborhood: Defaults to True for this policy.
    """

    threshold_meters: float = attrs.field(default=0.0, validator=attrs.validators.ge(0.0))
    require_neighborhood: bool = attrs.field(default=True, kw_only=True)

    def should_accept(self, fix: RawFix, last: LocationOutcome) -> bool:
        if isinstance(last, Failed):
            return True
        return fix.coordinate.distance_to(last.location.physical) > self.threshold_meters

    def submit(self, fix: RawFix) -> None:
        if self._last_outcome is None:
            raise RuntimeError("DistanceThresholdPolicy is not bound to a tracker")
        if self.should_accept(fix, self._last_outcome()):
            self._deliver(fix)
            return
        logger.debug(
            "Fix within distance threshold, dropped",
            extra={
                "latitude": fix.coordinate.latitude,
                "longitude": fix.coordinate.longitude,
                "threshold_meters": self.threshold_meters,
            },
        )


@attrs.define(slots=True, eq=False)
class IntervalThrottlePolicy(UpdatePolicy):
    """Accept the first fix at once, then the latest fix per interval.

    The first fix opens a window of `interval_seconds`. Fixes arriving while
    a window is open are held and the latest one is accepted when the window
    closes. A fix arriving while no window is open starts a new window.

    Attributes:
        interval_seconds: Window length in seconds. Default 60.
    """

    interval_seconds: float = attrs.field(default=60.0, validator=attrs.validators.ge(0.0))
    _throttle: TrailingThrottle[RawFix] | None = attrs.field(default=None, init=False)
    _seen_first: bool = attrs.field(default=False, init=False)

    def bind(
        self,
        *,
        scheduler: Scheduler,
        accept: Callable[[RawFix], None],
        last_outcome: Callable[[], LocationOutcome],
    ) -> None:
        super().bind(scheduler=scheduler, accept=accept, last_outcome=last_outcome)
        self._throttle = TrailingThrottle(
            interval=self.interval_seconds,
            scheduler=scheduler,
            on_emit=self._deliver,
        )

    def submit(self, fix: RawFix) -> None:
        if self._throttle is None:
            raise RuntimeError("IntervalThrottlePolicy is not bound to a tracker")
        if not self._seen_first:
            self._seen_first = True
            self._throttle.open_window()
            self._deliver(fix)
            return
        self._throttle.offer(fix)

    @property
    def holds_fix(self) -> bool:
        return self._throttle is not None and self._throttle.has_pending

    def reset(self) -> None:
        if self._throttle is not None:
            self._throttle.cancel()


def create_update_policy(config: "TrackerConfig") -> UpdatePolicy:
    """Build the policy selected by a tracker configuration.

    Args:
        config: Tracker configuration.

    Returns:
        `IntervalThrottlePolicy` for "throttle", `DistanceThresholdPolicy`
        for "distance".

    Raises:
        ValueError: If the policy name is not recognized.
    """
    if config.policy == "throttle":
        return IntervalThrottlePolicy(interval_seconds=config.update_interval_seconds)
    if config.policy == "distance":
        return DistanceThresholdPolicy(threshold_meters=config.distance_threshold_meters)
    msg = f"Unsupported update policy: {config.policy}"
    raise ValueError(msg)
