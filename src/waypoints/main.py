"""Command line entrypoint.

- `waypoints replay TRACK.csv`: play a recorded track through a tracker and
  print every outcome as one JSON line.
- `waypoints resolve LAT LON`: reverse geocode one coordinate with the
  configured geocoder.

Options not given on the command line come from the environment (see
`waypoints.config`).
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Annotated, Any

import typer

from waypoints.clients import ManualGeocoder, ReplayPositionSource, create_geocoder
from waypoints.config import GeocoderConfig, Settings, TrackerConfig, get_settings
from waypoints.core.exceptions import UpstreamError
from waypoints.core.models import Coordinate, Failed, LocationOutcome, PlaceCandidate, Resolved
from waypoints.core.policies import create_update_policy
from waypoints.core.services import LocationTracker
from waypoints.foundation.logger import configure_logging
from waypoints.foundation.scheduler import AsyncioScheduler, VirtualScheduler

logger = logging.getLogger("waypoints.main")

app = typer.Typer(pretty_exceptions_enable=False)

_POLL_SECONDS = 0.1


def outcome_to_dict(outcome: LocationOutcome) -> dict[str, Any]:
    if isinstance(outcome, Resolved):
        location = outcome.location
        return {
            "outcome": "resolved",
            "latitude": location.physical.latitude,
            "longitude": location.physical.longitude,
            "city": location.city,
            "state": location.state,
            "neighborhood": location.neighborhood,
        }
    assert isinstance(outcome, Failed)
    return {"outcome": "failed", "reason": str(outcome.failure)}


def _settings_with(settings: Settings, **tracker_overrides: Any) -> Settings:
    values = {k: v for k, v in tracker_overrides.items() if v is not None}
    if not values:
        return settings
    tracker = TrackerConfig(**{**settings.tracker.model_dump(), **values})
    return settings.model_copy(update={"tracker": tracker})


async def _replay(tracker: LocationTracker, source: ReplayPositionSource, scheduler: VirtualScheduler | None) -> None:
    async with tracker:
        tracker.subscribe(lambda outcome: typer.echo(json.dumps(outcome_to_dict(outcome))))
        if scheduler is None:
            # Drain the fix the policy still holds for its trailing edge
            while not source.finished or tracker.policy.holds_fix:
                await asyncio.sleep(_POLL_SECONDS)
        else:
            while (due := scheduler.next_due) is not None:
                scheduler.advance_to(due)
                await tracker.wait_for_pending()
        await tracker.wait_for_pending()


@app.command()
def replay(
    track: Annotated[Path, typer.Argument(exists=True, dir_okay=False, help="CSV track to replay.")],
    policy: Annotated[str | None, typer.Option(help="Update policy: throttle or distance.")] = None,
    interval: Annotated[float | None, typer.Option(help="Throttle window in seconds.")] = None,
    threshold: Annotated[float | None, typer.Option(help="Distance threshold in meters.")] = None,
    fast: Annotated[bool, typer.Option(help="Run on a virtual clock instead of real time.")] = False,
    offline: Annotated[
        bool, typer.Option(help="Resolve every fix to a fixed placeholder place instead of calling the geocoder.")
    ] = False,
) -> None:
    """Replay a recorded track and print the published outcomes."""
    settings = _settings_with(
        get_settings(),
        policy=policy,
        update_interval_seconds=interval,
        distance_threshold_meters=threshold,
    )
    configure_logging(settings.log_level)

    async def run() -> None:
        scheduler = VirtualScheduler() if fast else AsyncioScheduler()
        source = ReplayPositionSource.from_csv(track, scheduler=scheduler)
        geocoder = (
            ManualGeocoder(default=[PlaceCandidate(city="Offline", state="Offline", neighborhood="Offline")])
            if offline
            else create_geocoder(settings.geocoder)
        )
        tracker = LocationTracker(
            position_source=source,
            geocoder=geocoder,
            policy=create_update_policy(settings.tracker),
            scheduler=scheduler,
            serialize_geocoding=settings.tracker.serialize_geocoding,
        )
        logger.info("Replaying track", extra={"track": str(track), "policy": settings.tracker.policy})
        try:
            await _replay(tracker, source, scheduler if fast else None)
        finally:
            source.close()
            await geocoder.close()

    asyncio.run(run())


@app.command()
def resolve(
    latitude: Annotated[float, typer.Argument(help="Latitude in degrees.")],
    longitude: Annotated[float, typer.Argument(help="Longitude in degrees.")],
) -> None:
    """Reverse geocode one coordinate and print the candidates."""
    settings = get_settings()
    configure_logging(settings.log_level)
    config: GeocoderConfig = settings.geocoder

    async def run() -> list[PlaceCandidate]:
        geocoder = create_geocoder(config)
        try:
            return await geocoder.resolve(Coordinate(latitude, longitude))
        finally:
            await geocoder.close()

    try:
        candidates = asyncio.run(run())
    except UpstreamError as e:
        typer.echo(f"Reverse geocoding failed: {e}", err=True)
        raise typer.Exit(code=1) from e

    for candidate in candidates:
        typer.echo(json.dumps({
            "city": candidate.city,
            "state": candidate.state,
            "neighborhood": candidate.neighborhood,
            "country": candidate.country,
            "name": candidate.name,
        }))


if __name__ == "__main__":
    app()
