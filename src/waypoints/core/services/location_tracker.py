"""Location tracker: the stream pipeline from raw fixes to resolved places.

The tracker subscribes to a position source and a lifecycle source, passes
fixes through an update policy, reverse geocodes the accepted fixes, and
publishes one `LocationOutcome` per accepted fix (or per empty batch or
position error) to every subscriber, in order.

```
PositionSource ──FixBatch──▶ UpdatePolicy ──accepted fix──▶ Geocoder
      │  ▲                                                      │
      │  └── start/stop ◀── LifecycleSource                     ▼
      └── empty batch / error ──────────────▶ publish ◀── Resolved | Failed
                                                 │
                                   subscribers, then current_outcome
```

## State machine

`IDLE` ─start()─▶ `ACTIVE` ⇄ `SUSPENDED` (lifecycle events), and any state
─dispose()─▶ `TERMINATED`.

## Concurrency

Everything runs on the event loop that was running when `start()` was
called. Adapter callbacks arriving on other threads are handed to that loop
with `call_soon_threadsafe`, so publications never interleave. Each accepted
fix is geocoded in its own task; tasks may finish out of order. With
`serialize_geocoding=True` a newly accepted fix cancels the geocode still in
flight for an older one.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from collections import deque
from collections.abc import Callable
from typing import Any, TypeVar

import attrs

from waypoints.clients import create_geocoder, create_lifecycle_source, create_position_source
from waypoints.clients.interfaces.geocoding import Geocoder
from waypoints.clients.interfaces.lifecycle import LifecycleSource, NullLifecycleSource
from waypoints.clients.interfaces.position import PositionSource
from waypoints.config import Settings, get_settings
from waypoints.core.exceptions import GeocodingNotFoundError, TrackerStateError
from waypoints.core.models import (
    AuthorizationChange,
    AuthorizationStatus,
    Failed,
    FixBatch,
    LifecycleEvent,
    Location,
    LocationOutcome,
    PlaceCandidate,
    PositionEvent,
    PositionFailure,
    RawFix,
    Resolved,
    TrackerState,
)
from waypoints.core.observers import ObserverRegistry, ObserverStream, Subscription
from waypoints.core.policies import IntervalThrottlePolicy, UpdatePolicy, create_update_policy
from waypoints.foundation.scheduler import AsyncioScheduler, Scheduler

logger = logging.getLogger(__name__)

E = TypeVar("E")


@attrs.define(slots=True, eq=False)
class LocationTracker:
    """Turns raw position fixes into a stream of resolved locations.

    Attributes:
        position_source: Source of fixes, errors and authorization changes.
        geocoder: Reverse geocoder for accepted fixes.
        lifecycle: Source of foreground/background events. Defaults to
            `NullLifecycleSource` (always active).
        policy: Update policy. Defaults to a 60 s `IntervalThrottlePolicy`.
            A policy instance must not be shared between trackers.
        scheduler: Time source for the policy. Defaults to the running
            event loop.
        serialize_geocoding: Cancel a stale in-flight geocode when a newer
            fix is accepted.

    Example:
        ```python
        tracker = LocationTracker(
            position_source=ManualPositionSource(),
            geocoder=NominatimGeocoder(user_agent="my-app/1.0"),
        )
        async with tracker:
            async for outcome in tracker.updates():
                match outcome:
                    case Resolved(location):
                        print(location.city, location.state)
                    case Failed(failure):
                        print(failure)
        ```
    """

    position_source: PositionSource
    geocoder: Geocoder
    lifecycle: LifecycleSource = attrs.field(factory=NullLifecycleSource)
    policy: UpdatePolicy = attrs.field(factory=IntervalThrottlePolicy)
    scheduler: Scheduler = attrs.field(factory=AsyncioScheduler)
    serialize_geocoding: bool = False
    _state: TrackerState = attrs.field(default=TrackerState.IDLE, init=False)
    _last_outcome: LocationOutcome = attrs.field(factory=Failed.unknown, init=False)
    _registry: ObserverRegistry[LocationOutcome] = attrs.field(
        factory=lambda: ObserverRegistry(name="location-tracker"), init=False
    )
    _subscriptions: list[Subscription] = attrs.field(factory=list, init=False)
    _tasks: set[asyncio.Task[None]] = attrs.field(factory=set, init=False)
    _latest_task: asyncio.Task[None] | None = attrs.field(default=None, init=False)
    _loop: asyncio.AbstractEventLoop | None = attrs.field(default=None, init=False)
    _thread_id: int | None = attrs.field(default=None, init=False)
    _outbox: deque[LocationOutcome] = attrs.field(factory=deque, init=False)
    _publishing: bool = attrs.field(default=False, init=False)
    _owns_adapters: bool = attrs.field(default=False, init=False)

    def __attrs_post_init__(self) -> None:
        self.policy.bind(
            scheduler=self.scheduler,
            accept=self._geocode,
            last_outcome=lambda: self._last_outcome,
        )

    @classmethod
    def from_settings(cls, settings: Settings | None = None, **overrides: Any) -> "LocationTracker":
        """Build a tracker and its adapters from configuration.

        Adapters created here are owned by the tracker and closed by
        `aclose()`. Any constructor argument can be passed in `overrides`
        to replace the configured one.

        Args:
            settings: Settings to use. If None, uses `get_settings()`.
            **overrides: Constructor arguments that take precedence.

        Returns:
            An idle tracker.

        Raises:
            ValueError: If a configured provider is not registered.
        """
        if settings is None:
            settings = get_settings()
        kwargs = dict(overrides)
        scheduler = kwargs.setdefault("scheduler", AsyncioScheduler())
        if "position_source" not in kwargs:
            kwargs["position_source"] = create_position_source(settings.position, scheduler=scheduler)
        if "geocoder" not in kwargs:
            kwargs["geocoder"] = create_geocoder(settings.geocoder)
        if "lifecycle" not in kwargs:
            kwargs["lifecycle"] = create_lifecycle_source(settings.lifecycle)
        if "policy" not in kwargs:
            kwargs["policy"] = create_update_policy(settings.tracker)
        kwargs.setdefault("serialize_geocoding", settings.tracker.serialize_geocoding)

        tracker = cls(**kwargs)
        tracker._owns_adapters = True
        return tracker

    # =========================================================================
    # Public surface
    # =========================================================================

    @property
    def state(self) -> TrackerState:
        return self._state

    @property
    def current_outcome(self) -> LocationOutcome:
        """The most recently published outcome, `Failed(Unknown)` initially."""
        return self._last_outcome

    @property
    def subscriber_count(self) -> int:
        return len(self._registry)

    def start(self) -> None:
        """Subscribe to the adapters and begin tracking.

        Must be called from a running event loop. Sources that require
        authorization are asked for it; others are started right away.
        Calling `start()` on a started tracker has no effect.

        Raises:
            TrackerStateError: If the tracker has been disposed.
        """
        if self._state is TrackerState.TERMINATED:
            raise TrackerStateError("Cannot start a disposed tracker")
        if self._state is not TrackerState.IDLE:
            return

        self._loop = asyncio.get_running_loop()
        self._thread_id = threading.get_ident()
        self._subscriptions.append(self.position_source.subscribe(self._dispatch(self._on_position_event)))
        self._subscriptions.append(self.lifecycle.subscribe(self._dispatch(self._on_lifecycle_event)))
        self._transition(TrackerState.ACTIVE)

        if self.position_source.requires_authorization:
            self.position_source.request_authorization()
        else:
            self.position_source.start()

    def subscribe(
        self, callback: Callable[[LocationOutcome], None], *, replay: bool = False
    ) -> Subscription:
        """Register `callback` for every outcome published from now on.

        Args:
            callback: Called synchronously on the tracker's loop. Exceptions
                are logged and do not affect other subscribers.
            replay: Call `callback` with `current_outcome` before returning.

        Returns:
            Handle whose `cancel()` stops delivery.

        Raises:
            TrackerStateError: If the tracker has been disposed.
        """
        if self._state is TrackerState.TERMINATED:
            raise TrackerStateError("Cannot subscribe to a disposed tracker")
        subscription = self._registry.subscribe(callback)
        if replay:
            try:
                callback(self._last_outcome)
            except Exception:
                logger.exception("Subscriber raised on replay of the current outcome")
        return subscription

    def updates(self, *, include_current: bool = True) -> ObserverStream[LocationOutcome]:
        """Async iterator over published outcomes.

        Args:
            include_current: Yield `current_outcome` first.

        The iterator ends when the tracker is disposed.

        Raises:
            TrackerStateError: If the tracker has been disposed.
        """
        if self._state is TrackerState.TERMINATED:
            raise TrackerStateError("Cannot subscribe to a disposed tracker")
        initial = (self._last_outcome,) if include_current else ()
        return self._registry.stream(initial)

    async def wait_for_pending(self) -> None:
        """Wait until every in-flight geocode has published or been cancelled."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def dispose(self) -> None:
        """Stop tracking and release adapter subscriptions. Idempotent.

        Cancels throttle timers and in-flight geocodes; their results are
        never published. Subscribers are dropped and `updates()` iterators
        end.
        """
        if self._state is TrackerState.TERMINATED:
            return
        previous = self._state
        self._transition(TrackerState.TERMINATED)

        for subscription in self._subscriptions:
            subscription.cancel()
        self._subscriptions.clear()
        self.policy.reset()
        for task in list(self._tasks):
            task.cancel()
        self._outbox.clear()

        if previous is TrackerState.ACTIVE:
            self.position_source.stop()
        self._registry.close()

    async def aclose(self) -> None:
        """Dispose the tracker and close the adapters it created."""
        self.dispose()
        if self._owns_adapters:
            self.position_source.close()
            await self.geocoder.close()

    async def __aenter__(self) -> "LocationTracker":
        self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    # =========================================================================
    # Adapter events
    # =========================================================================

    def _dispatch(self, handler: Callable[[E], None]) -> Callable[[E], None]:
        def deliver(event: E) -> None:
            if threading.get_ident() == self._thread_id:
                handler(event)
                return
            assert self._loop is not None
            self._loop.call_soon_threadsafe(handler, event)

        return deliver

    def _on_position_event(self, event: PositionEvent) -> None:
        if self._state is TrackerState.TERMINATED:
            return
        if isinstance(event, FixBatch):
            fix = event.first
            if fix is None:
                logger.debug("Empty fix batch")
                self._publish(Failed.unknown())
                return
            self.policy.submit(fix)
        elif isinstance(event, PositionFailure):
            logger.warning(
                "Position source reported an error",
                extra={"error_type": type(event.error).__name__, "error": str(event.error)},
            )
            self._publish(Failed.upstream(event.error))
        elif isinstance(event, AuthorizationChange):
            self._on_authorization_change(event.status)

    def _on_authorization_change(self, status: AuthorizationStatus) -> None:
        if self._state is not TrackerState.ACTIVE:
            logger.debug(
                "Authorization change ignored", extra={"status": status.value, "state": self._state.value}
            )
            return
        logger.info("Authorization changed", extra={"status": status.value})
        if self.position_source.requires_authorization and not status.is_granted:
            self.position_source.request_authorization()
        else:
            self.position_source.start()

    def _on_lifecycle_event(self, event: LifecycleEvent) -> None:
        if event is LifecycleEvent.WILL_RESIGN_ACTIVE and self._state is TrackerState.ACTIVE:
            self._transition(TrackerState.SUSPENDED)
            self.position_source.stop()
        elif event is LifecycleEvent.DID_BECOME_ACTIVE and self._state is TrackerState.SUSPENDED:
            self._transition(TrackerState.ACTIVE)
            self.position_source.start()
        else:
            logger.debug("Lifecycle event ignored", extra={"event": event.value, "state": self._state.value})

    # =========================================================================
    # Geocoding and publication
    # =========================================================================

    def _geocode(self, fix: RawFix) -> None:
        if self._state is TrackerState.TERMINATED:
            return
        if self.serialize_geocoding and self._latest_task is not None and not self._latest_task.done():
            logger.debug("Cancelling stale geocode")
            self._latest_task.cancel()

        assert self._loop is not None
        task = self._loop.create_task(self._resolve(fix))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        self._latest_task = task

    async def _resolve(self, fix: RawFix) -> None:
        try:
            candidates = await self.geocoder.resolve(fix.coordinate)
        except GeocodingNotFoundError:
            outcome: LocationOutcome = Failed.unknown()
        except Exception as e:
            logger.warning(
                "Reverse geocoding failed",
                extra={
                    "latitude": fix.coordinate.latitude,
                    "longitude": fix.coordinate.longitude,
                    "error_type": type(e).__name__,
                    "error": str(e),
                },
            )
            outcome = Failed.upstream(e)
        else:
            outcome = self._outcome_for(fix, candidates)

        if self._state is TrackerState.TERMINATED:
            logger.debug("Discarding geocode result after dispose")
            return
        self._publish(outcome)

    def _outcome_for(self, fix: RawFix, candidates: list[PlaceCandidate]) -> LocationOutcome:
        if not candidates:
            return Failed.unknown()
        candidate = candidates[0]
        if not candidate.is_usable(require_neighborhood=self.policy.require_neighborhood):
            logger.debug(
                "Place candidate missing required fields",
                extra={"city": candidate.city, "state": candidate.state, "neighborhood": candidate.neighborhood},
            )
            return Failed.unknown()
        return Resolved(Location.from_candidate(fix, candidate))

    def _publish(self, outcome: LocationOutcome) -> None:
        """Deliver `outcome` to subscribers, then record it as current.

        A publication requested while another is being delivered (a
        subscriber that triggers one) is queued behind it.
        """
        if self._state is TrackerState.TERMINATED:
            return
        self._outbox.append(outcome)
        if self._publishing:
            return
        self._publishing = True
        try:
            while self._outbox:
                current = self._outbox.popleft()
                self._registry.notify(current)
                self._last_outcome = current
        finally:
            self._publishing = False

    def _transition(self, new_state: TrackerState) -> None:
        logger.info(
            "Tracker state changed",
            extra={"from_state": self._state.value, "to_state": new_state.value},
        )
        self._state = new_state
