"""Observer registry: explicit multicast of values to subscribers.

`ObserverRegistry` keeps callbacks in registration order and invokes them
synchronously on `notify()`. Each registration returns a `Subscription`
handle whose `cancel()` removes it. `stream()` exposes the same fan-out as an
async iterator for consumers that prefer `async for`.

The registry is used both by the tracker (to publish outcomes) and by the
in-memory adapters (to emit position and lifecycle events).

Example:
    ```python
    registry: ObserverRegistry[int] = ObserverRegistry(name="numbers")
    seen: list[int] = []
    subscription = registry.subscribe(seen.append)
    registry.notify(1)
    subscription.cancel()
    registry.notify(2)
    assert seen == [1]
    ```
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from collections.abc import Callable, Iterable
from typing import Any, Generic, TypeVar

import attrs

T = TypeVar("T")

logger = logging.getLogger(__name__)

_CLOSED = object()


@attrs.define(slots=True, eq=False)
class Subscription:
    """Handle for one registration. Cancelling is idempotent.

    Can be used as a context manager to scope a registration to a block.
    """

    _on_cancel: Callable[[], None] | None = None
    _cancelled: bool = attrs.field(default=False, init=False)

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        on_cancel, self._on_cancel = self._on_cancel, None
        if on_cancel is not None:
            on_cancel()

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.cancel()


@attrs.define(slots=True, eq=False)
class ObserverRegistry(Generic[T]):
    """Registration-ordered fan-out of values to callbacks.

    Attributes:
        name: Label used in log records.
    """

    name: str = "observers"
    _observers: dict[int, Callable[[T], None]] = attrs.field(factory=dict, init=False)
    _close_listeners: dict[int, Callable[[], None]] = attrs.field(factory=dict, init=False)
    _ids: itertools.count = attrs.field(factory=itertools.count, init=False)
    _closed: bool = attrs.field(default=False, init=False)

    def __len__(self) -> int:
        return len(self._observers)

    @property
    def closed(self) -> bool:
        return self._closed

    def subscribe(self, observer: Callable[[T], None]) -> Subscription:
        """Register `observer` for every value notified from now on.

        Subscribing to a closed registry returns an already-cancelled handle.
        """
        if self._closed:
            subscription = Subscription()
            subscription.cancel()
            return subscription
        key = next(self._ids)
        self._observers[key] = observer
        return Subscription(lambda: self._observers.pop(key, None))

    def notify(self, value: T) -> None:
        """Deliver `value` to every current observer, in registration order.

        An observer that raises is logged and does not prevent delivery to
        the others. Observers cancelled by an earlier observer during the same
        notification are skipped.
        """
        if self._closed:
            return
        for key, observer in list(self._observers.items()):
            if key not in self._observers:
                continue
            try:
                observer(value)
            except Exception:
                logger.exception("Observer raised during notification", extra={"registry": self.name})

    def close(self) -> None:
        """Drop every observer and end all streams. Idempotent."""
        if self._closed:
            return
        self._closed = True
        self._observers.clear()
        listeners = list(self._close_listeners.values())
        self._close_listeners.clear()
        for listener in listeners:
            listener()

    def stream(self, initial: Iterable[T] = ()) -> "ObserverStream[T]":
        """Subscribe now and return an async iterator over notified values.

        Args:
            initial: Values yielded before any notified value.
        """
        return ObserverStream(self, initial)

    def _on_close(self, listener: Callable[[], None]) -> Subscription:
        if self._closed:
            listener()
            return Subscription()
        key = next(self._ids)
        self._close_listeners[key] = listener
        return Subscription(lambda: self._close_listeners.pop(key, None))


class ObserverStream(Generic[T]):
    """Async iterator view of an `ObserverRegistry`.

    The subscription is taken when the stream is created, so no value
    notified after creation is missed even if iteration starts later. The
    stream ends when the registry closes or `aclose()` is called.
    """

    def __init__(self, registry: ObserverRegistry[T], initial: Iterable[T] = ()) -> None:
        self._queue: asyncio.Queue[Any] = asyncio.Queue()
        for value in initial:
            self._queue.put_nowait(value)
        self._subscription = registry.subscribe(self._queue.put_nowait)
        self._close_subscription = registry._on_close(lambda: self._queue.put_nowait(_CLOSED))
        self._done = False

    def __aiter__(self) -> "ObserverStream[T]":
        return self

    async def __anext__(self) -> T:
        if self._done:
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _CLOSED:
            self._finish()
            raise StopAsyncIteration
        return item

    async def aclose(self) -> None:
        self._finish()

    async def __aenter__(self) -> "ObserverStream[T]":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    def _finish(self) -> None:
        self._done = True
        self._subscription.cancel()
        self._close_subscription.cancel()
