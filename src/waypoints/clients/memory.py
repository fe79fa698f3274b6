"""In-memory adapters driven by hand.

These adapters implement the adapter interfaces without any device or
network. Tests and simulations push events into them with `steer*()` and
inspect the call counters afterwards.

## Usage

```python
source = ManualPositionSource()
geocoder = ManualGeocoder()
tracker = LocationTracker(position_source=source, geocoder=geocoder)
tracker.start()

source.steer(RawFix.at(25.7877, -80.2241))
geocoder.steer([PlaceCandidate(city="Miami", state="Florida", neighborhood="Wynwood")])
await tracker.wait_for_pending()
```
"""

from __future__ import annotations

import asyncio
from collections import deque
from collections.abc import Callable, Iterable

from waypoints.config import GeocoderConfig, LifecycleConfig, PositionSourceConfig
from waypoints.core.models import (
    AuthorizationChange,
    AuthorizationStatus,
    Coordinate,
    FixBatch,
    LifecycleEvent,
    PlaceCandidate,
    PositionEvent,
    PositionFailure,
    RawFix,
)
from waypoints.core.observers import ObserverRegistry, Subscription
from waypoints.foundation.scheduler import Scheduler

from .interfaces.geocoding import Geocoder
from .interfaces.lifecycle import LifecycleSource
from .interfaces.position import PositionSource
from .mixins import ConfigValidationMixin


class ManualPositionSource(ConfigValidationMixin, PositionSource):
    """Position source whose events are pushed with `steer*()`.

    Steered events are delivered whether or not the source is started, so
    tests can check how the tracker reacts to late events.

    Attributes:
        authorization_status: Last status steered with `steer_authorization()`.
        start_calls: Number of `start()` calls.
        stop_calls: Number of `stop()` calls.
        authorization_requests: Number of `request_authorization()` calls.
    """

    def __init__(
        self,
        *,
        requires_authorization: bool = False,
        authorization_status: AuthorizationStatus = AuthorizationStatus.NOT_DETERMINED,
    ) -> None:
        self._requires_authorization = requires_authorization
        self.authorization_status = authorization_status
        self._events: ObserverRegistry[PositionEvent] = ObserverRegistry(name="manual-position")
        self.started = False
        self.start_calls = 0
        self.stop_calls = 0
        self.authorization_requests = 0

    @property
    def requires_authorization(self) -> bool:
        return self._requires_authorization

    @property
    def subscriber_count(self) -> int:
        return len(self._events)

    def start(self) -> None:
        self.start_calls += 1
        self.started = True

    def stop(self) -> None:
        self.stop_calls += 1
        self.started = False

    def request_authorization(self) -> None:
        self.authorization_requests += 1

    def subscribe(self, observer: Callable[[PositionEvent], None]) -> Subscription:
        return self._events.subscribe(observer)

    def steer(self, *fixes: RawFix | Coordinate) -> None:
        """Deliver one batch with `fixes`, most recent first.

        Calling it without arguments delivers an empty batch.
        """
        self.steer_batch(fixes)

    def steer_batch(self, fixes: Iterable[RawFix | Coordinate]) -> None:
        batch = [RawFix(fix) if isinstance(fix, Coordinate) else fix for fix in fixes]
        self._events.notify(FixBatch(batch))

    def steer_failure(self, error: BaseException) -> None:
        self._events.notify(PositionFailure(error))

    def steer_authorization(self, status: AuthorizationStatus) -> None:
        self.authorization_status = status
        self._events.notify(AuthorizationChange(status))

    def close(self) -> None:
        self._events.close()

    @classmethod
    def from_config(
        cls, config: PositionSourceConfig, *, scheduler: Scheduler | None = None
    ) -> "ManualPositionSource":
        cls._validate_config(config, "memory", [])
        return cls(requires_authorization=config.requires_authorization)


class ManualGeocoder(ConfigValidationMixin, Geocoder):
    """Geocoder answered by hand.

    Each `resolve()` call consumes one steered answer. If an answer was
    steered ahead of time it is returned immediately; otherwise the call
    waits until the next `steer()` or `steer_failure()`. Waiting calls are
    answered in the order they were made. With `default` set, calls that
    find no steered answer return `default` instead of waiting.

    Attributes:
        requests: Coordinates passed to `resolve()`, in call order.
    """

    def __init__(self, default: Iterable[PlaceCandidate] | None = None) -> None:
        self.default = list(default) if default is not None else None
        self.requests: list[Coordinate] = []
        self._answers: deque[list[PlaceCandidate] | BaseException] = deque()
        self._waiting: deque[asyncio.Future[list[PlaceCandidate]]] = deque()

    @property
    def resolve_calls(self) -> int:
        return len(self.requests)

    @property
    def pending(self) -> int:
        """Number of `resolve()` calls still waiting for an answer."""
        return sum(1 for future in self._waiting if not future.done())

    async def resolve(self, coordinate: Coordinate) -> list[PlaceCandidate]:
        self.requests.append(coordinate)
        if self._answers:
            return self._unwrap(self._answers.popleft())
        if self.default is not None:
            return list(self.default)
        future: asyncio.Future[list[PlaceCandidate]] = asyncio.get_running_loop().create_future()
        self._waiting.append(future)
        return await future

    def steer(self, candidates: Iterable[PlaceCandidate]) -> None:
        """Answer the oldest waiting call, or queue the answer for the next call."""
        self._answer(list(candidates))

    def steer_failure(self, error: BaseException) -> None:
        """Make the oldest waiting (or next) call raise `error`."""
        self._answer(error)

    def _answer(self, answer: list[PlaceCandidate] | BaseException) -> None:
        while self._waiting:
            future = self._waiting.popleft()
            if future.done():
                continue
            if isinstance(answer, BaseException):
                future.set_exception(answer)
            else:
                future.set_result(answer)
            return
        self._answers.append(answer)

    @staticmethod
    def _unwrap(answer: list[PlaceCandidate] | BaseException) -> list[PlaceCandidate]:
        if isinstance(answer, BaseException):
            raise answer
        return answer

    @classmethod
    def from_config(cls, config: GeocoderConfig, client: object | None = None) -> "ManualGeocoder":
        cls._validate_config(config, "memory", [])
        return cls()


class ManualLifecycleSource(ConfigValidationMixin, LifecycleSource):
    """Lifecycle source whose events are pushed with `steer()`."""

    def __init__(self) -> None:
        self._events: ObserverRegistry[LifecycleEvent] = ObserverRegistry(name="manual-lifecycle")

    def subscribe(self, observer: Callable[[LifecycleEvent], None]) -> Subscription:
        return self._events.subscribe(observer)

    def steer(self, event: LifecycleEvent) -> None:
        self._events.notify(event)

    def steer_resign_active(self) -> None:
        self.steer(LifecycleEvent.WILL_RESIGN_ACTIVE)

    def steer_become_active(self) -> None:
        self.steer(LifecycleEvent.DID_BECOME_ACTIVE)

    @classmethod
    def from_config(cls, config: LifecycleConfig) -> "ManualLifecycleSource":
        cls._validate_config(config, "memory", [])
        return cls()
