"""Position source that replays a recorded track.

A track is a CSV file with one fix per line::

    offset_seconds,latitude,longitude[,accuracy]
    0,25.7877,-80.2241,5
    12.5,25.7880,-80.2238,8

The header row, blank lines and lines starting with `#` are skipped.
Offsets are seconds from the start of the track and must not decrease.

While started, each point is emitted as a single-fix `FixBatch` at its
offset, timed through the scheduler. `stop()` pauses playback and `start()`
resumes it at the next unplayed point; the gap to that point is counted from
the resume. With `loop=True` the track restarts after its last point.
"""

from __future__ import annotations

import csv
from collections.abc import Callable, Iterable, Sequence
from datetime import datetime, timezone
from pathlib import Path

import attrs

from waypoints.config import PositionSourceConfig
from waypoints.core.models import FixBatch, PositionEvent, RawFix
from waypoints.core.observers import ObserverRegistry, Subscription
from waypoints.foundation.scheduler import AsyncioScheduler, Cancellable, Scheduler

from .interfaces.position import PositionSource
from .mixins import ConfigValidationMixin, LoggerMixin

HEADER = ("offset_seconds", "latitude", "longitude", "accuracy")


@attrs.define(frozen=True, slots=True)
class ReplayPoint:
    """One fix of a recorded track, `offset_seconds` after the track start."""

    offset_seconds: float = attrs.field(converter=float, validator=attrs.validators.ge(0.0))
    fix: RawFix


def parse_track(lines: Iterable[str], source: str = "<track>") -> list[ReplayPoint]:
    """Parse CSV rows into replay points.

    Args:
        lines: CSV text lines.
        source: Name used in error messages.

    Raises:
        ValueError: If a row is malformed or offsets decrease.
    """
    points: list[ReplayPoint] = []
    for line_number, row in enumerate(csv.reader(lines), start=1):
        cells = [cell.strip() for cell in row]
        if not cells or not cells[0] or cells[0].startswith("#"):
            continue
        if cells[0] == HEADER[0]:
            continue
        if len(cells) not in (3, 4):
            msg = f"{source}:{line_number}: expected 3 or 4 columns, got {len(cells)}"
            raise ValueError(msg)
        try:
            offset, latitude, longitude = (float(cell) for cell in cells[:3])
            accuracy = float(cells[3]) if len(cells) == 4 and cells[3] else None
            point = ReplayPoint(offset, RawFix.at(latitude, longitude, horizontal_accuracy=accuracy))
        except ValueError as e:
            msg = f"{source}:{line_number}: {e}"
            raise ValueError(msg) from e
        if points and point.offset_seconds < points[-1].offset_seconds:
            msg = f"{source}:{line_number}: offsets must not decrease"
            raise ValueError(msg)
        points.append(point)
    return points


class ReplayPositionSource(ConfigValidationMixin, LoggerMixin, PositionSource):
    """Plays a recorded track through the scheduler.

    Attributes:
        loop: Restart the track after its last point.
    """

    def __init__(
        self,
        points: Sequence[ReplayPoint],
        *,
        scheduler: Scheduler | None = None,
        loop: bool = False,
    ) -> None:
        if not points:
            raise ValueError("replay track must contain at least one point")
        if loop and points[-1].offset_seconds <= 0:
            raise ValueError("a looping replay track must span a positive duration")
        self._points = tuple(points)
        self._scheduler = scheduler if scheduler is not None else AsyncioScheduler()
        self.loop = loop
        self._events: ObserverRegistry[PositionEvent] = ObserverRegistry(name="replay-position")
        self._index = 0
        self._cursor = 0.0
        self._timer: Cancellable | None = None
        self._started = False

    @classmethod
    def from_csv(
        cls, path: str | Path, *, scheduler: Scheduler | None = None, loop: bool = False
    ) -> "ReplayPositionSource":
        """Load a track from a CSV file.

        Raises:
            ValueError: If the file holds no points or a row is malformed.
            OSError: If the file cannot be read.
        """
        path = Path(path)
        with path.open(newline="", encoding="utf-8") as f:
            points = parse_track(f.readlines(), source=str(path))
        return cls(points, scheduler=scheduler, loop=loop)

    @classmethod
    def from_config(
        cls, config: PositionSourceConfig, *, scheduler: Scheduler | None = None
    ) -> "ReplayPositionSource":
        cls._validate_config(config, "replay", ["replay_path"])
        assert config.replay_path is not None
        return cls.from_csv(config.replay_path, scheduler=scheduler, loop=config.replay_loop)

    @property
    def started(self) -> bool:
        return self._started

    @property
    def position(self) -> int:
        """Index of the next point to play."""
        return self._index

    @property
    def finished(self) -> bool:
        return not self.loop and self._index >= len(self._points)

    def start(self) -> None:
        if self._started:
            return
        self._started = True
        self._logger.info(  # type: ignore[attr-defined]
            "Replay started", extra={"position": self._index, "points": len(self._points)}
        )
        self._schedule_next()

    def stop(self) -> None:
        if not self._started:
            return
        self._started = False
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self._logger.info("Replay paused", extra={"position": self._index})  # type: ignore[attr-defined]

    def request_authorization(self) -> None:
        """Recorded tracks need no permission."""

    def subscribe(self, observer: Callable[[PositionEvent], None]) -> Subscription:
        return self._events.subscribe(observer)

    def close(self) -> None:
        self.stop()
        self._events.close()

    def _schedule_next(self) -> None:
        if self._index >= len(self._points):
            if not self.loop:
                self._logger.info("Replay finished", extra={"points": len(self._points)})  # type: ignore[attr-defined]
                return
            self._index = 0
            self._cursor = 0.0
        delay = self._points[self._index].offset_seconds - self._cursor
        self._timer = self._scheduler.call_later(delay, self._emit)

    def _emit(self) -> None:
        self._timer = None
        point = self._points[self._index]
        self._index += 1
        self._cursor = point.offset_seconds
        fix = attrs.evolve(point.fix, timestamp=datetime.now(timezone.utc))
        self._events.notify(FixBatch([fix]))
        if self._started and self._timer is None:
            self._schedule_next()
