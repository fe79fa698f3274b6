"""Schedulers for time-based stream operators.

The tracker never reads the clock or sleeps directly; it goes through a
`Scheduler`, which supports "run this callback after a duration" with
cancellation. Two implementations are provided:

- `AsyncioScheduler`: backed by the running event loop (`loop.call_later`).
- `VirtualScheduler`: a manually advanced clock for deterministic tests and
  simulations. Nothing runs until `advance()` is called.

Example:
    ```python
    scheduler = VirtualScheduler()
    fired: list[float] = []
    scheduler.call_later(60.0, lambda: fired.append(scheduler.now()))
    scheduler.advance(60.0)
    assert fired == [60.0]
    ```
"""

from __future__ import annotations

import asyncio
import heapq
import itertools
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Protocol

import attrs


class Cancellable(Protocol):
    """Handle for a scheduled callback."""

    def cancel(self) -> None: ...

    def cancelled(self) -> bool: ...


class Scheduler(ABC):
    """Abstract time source with delayed, cancellable callbacks."""

    @abstractmethod
    def now(self) -> float:
        """Return the current time in seconds (monotonic, arbitrary origin)."""

    @abstractmethod
    def call_later(self, delay: float, callback: Callable[[], None]) -> Cancellable:
        """Schedule `callback` to run once after `delay` seconds.

        Args:
            delay: Delay in seconds. Negative values are treated as zero.
            callback: Zero-argument callable.

        Returns:
            A handle whose `cancel()` prevents the callback from running.
        """


@attrs.define(slots=True)
class AsyncioScheduler(Scheduler):
    """Scheduler backed by an asyncio event loop.

    Attributes:
        loop: Event loop to schedule on. If None, the running loop at the
            time of the first call is used.
    """

    loop: asyncio.AbstractEventLoop | None = None

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        if self.loop is None:
            self.loop = asyncio.get_running_loop()
        return self.loop

    def now(self) -> float:
        return self._get_loop().time()

    def call_later(self, delay: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
        return self._get_loop().call_later(max(0.0, delay), callback)


@attrs.define(slots=True, eq=False)
class VirtualTimer:
    """Handle for a callback scheduled on a `VirtualScheduler`."""

    due: float
    callback: Callable[[], None]
    _cancelled: bool = attrs.field(default=False, init=False)

    def cancel(self) -> None:
        self._cancelled = True

    def cancelled(self) -> bool:
        return self._cancelled


@attrs.define(slots=True)
class VirtualScheduler(Scheduler):
    """Manually advanced scheduler.

    Callbacks run synchronously inside `advance()`, in due-time order
    (ties run in scheduling order). During a callback `now()` reports the
    callback's due time, so callbacks that schedule further work are
    anchored correctly.
    """

    _now: float = attrs.field(default=0.0, alias="start")
    _timers: list[tuple[float, int, VirtualTimer]] = attrs.field(factory=list, init=False)
    _sequence: itertools.count = attrs.field(factory=itertools.count, init=False)

    def now(self) -> float:
        return self._now

    def call_later(self, delay: float, callback: Callable[[], None]) -> VirtualTimer:
        timer = VirtualTimer(due=self._now + max(0.0, delay), callback=callback)
        heapq.heappush(self._timers, (timer.due, next(self._sequence), timer))
        return timer

    @property
    def pending(self) -> int:
        """Number of scheduled callbacks that have not run or been cancelled."""
        return sum(1 for _, _, timer in self._timers if not timer.cancelled())

    @property
    def next_due(self) -> float | None:
        """Due time of the earliest live callback, or None if nothing is scheduled."""
        while self._timers and self._timers[0][2].cancelled():
            heapq.heappop(self._timers)
        return self._timers[0][0] if self._timers else None

    def advance(self, seconds: float) -> None:
        """Move the clock forward, running every callback that becomes due.

        Args:
            seconds: Amount of time to advance. Must not be negative.

        Raises:
            ValueError: If seconds is negative.
        """
        if seconds < 0:
            raise ValueError("cannot advance a scheduler backwards")
        target = self._now + seconds
        while self._timers and self._timers[0][0] <= target:
            due, _, timer = heapq.heappop(self._timers)
            if timer.cancelled():
                continue
            self._now = due
            timer.callback()
        self._now = target

    def advance_to(self, when: float) -> None:
        """Advance the clock to the absolute time `when`."""
        self.advance(max(0.0, when - self._now))
