"""Trailing-edge, latest-wins throttle.

A window of `interval` seconds opens either explicitly (`open_window()`) or
when a value is offered while the throttle is idle. Values offered while a
window is open replace each other; when the window closes the latest one is
emitted and the throttle goes idle until the next offer. Consecutive
emissions are therefore always at least `interval` apart.

Timeline for a 60 s interval where the window is opened explicitly at t=0::

    offer B@10, C@55   -> emit C@60, idle
    offer D@61         -> window [61, 121) -> emit D@121
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Generic, TypeVar

import attrs

from waypoints.foundation.scheduler import Cancellable, Scheduler

T = TypeVar("T")


@attrs.define(slots=True, eq=False)
class TrailingThrottle(Generic[T]):
    """Emit at most one value per interval, on the trailing edge.

    Attributes:
        interval: Window length in seconds. Must not be negative.
        scheduler: Time source used for the windows.
        on_emit: Callback receiving each emitted value.
    """

    interval: float = attrs.field(validator=attrs.validators.ge(0.0))
    scheduler: Scheduler
    on_emit: Callable[[T], None]
    _timer: Cancellable | None = attrs.field(default=None, init=False)
    _pending: T | None = attrs.field(default=None, init=False)
    _has_pending: bool = attrs.field(default=False, init=False)

    @property
    def window_open(self) -> bool:
        return self._timer is not None

    @property
    def has_pending(self) -> bool:
        return self._has_pending

    def open_window(self) -> None:
        """Start a window now if none is open."""
        if self._timer is None:
            self._timer = self.scheduler.call_later(self.interval, self._close_window)

    def offer(self, value: T) -> None:
        """Hold `value` as the latest candidate for the current window."""
        self._pending = value
        self._has_pending = True
        self.open_window()

    def cancel(self) -> None:
        """Drop any held value and cancel the open window."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self._pending = None
        self._has_pending = False

    def _close_window(self) -> None:
        self._timer = None
        if not self._has_pending:
            return
        value = self._pending
        self._pending = None
        self._has_pending = False
        self.on_emit(value)  # type: ignore[arg-type]
