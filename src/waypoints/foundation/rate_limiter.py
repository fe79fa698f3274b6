"""Request pacing for network geocoders.

Nominatim's usage policy allows one request per second per client. A
`RateLimiter` hands out request slots spaced `1 / rate_per_sec` apart.
Claiming a slot is synchronous, so concurrent lookups are queued in call
order without a lock; each caller then sleeps until its own slot.

Time is read through a `Scheduler`. With a `VirtualScheduler` the slot
arithmetic can be checked without waiting:

```python
scheduler = VirtualScheduler()
limiter = RateLimiter(rate_per_sec=1.0, scheduler=scheduler)
assert limiter.reserve() == 0.0
assert limiter.reserve() == 1.0
```
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable

import attrs

from waypoints.foundation.scheduler import AsyncioScheduler, Scheduler


def _positive(instance: object, attribute: attrs.Attribute, value: float) -> None:
    if value <= 0:
        raise ValueError(f"{attribute.name} must be greater than 0")


@attrs.define(slots=True, eq=False)
class RateLimiter:
    """Slot-based rate limiter for async lookups.

    Attributes:
        rate_per_sec: Maximum requests per second. Must be greater than 0.
        scheduler: Time source. Defaults to the running event loop's clock.
        sleep: Coroutine function used to wait for a slot.
    """

    rate_per_sec: float = attrs.field(validator=_positive)
    scheduler: Scheduler = attrs.field(factory=AsyncioScheduler)
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    _next_slot: float | None = attrs.field(default=None, init=False)

    @property
    def interval(self) -> float:
        return 1.0 / self.rate_per_sec

    def reserve(self) -> float:
        """Claim the next free slot.

        Returns:
            Seconds until the claimed slot starts; 0.0 if it starts now.
        """
        now = self.scheduler.now()
        slot = now if self._next_slot is None else max(now, self._next_slot)
        self._next_slot = slot + self.interval
        return slot - now

    async def acquire_permission(self) -> None:
        """Wait until this caller's slot starts."""
        delay = self.reserve()
        if delay > 0:
            await self.sleep(delay)

    def get_rate(self) -> float:
        return self.rate_per_sec
