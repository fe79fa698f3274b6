"""Configuration management for waypoints.

This module provides the configuration system for location trackers using
Pydantic Settings. All settings are loaded from environment variables with
sensible defaults.

## Configuration Sources

Configuration is read from environment variables. The `get_settings()`
function uses `@lru_cache` so settings are loaded once per process; call
`get_settings.cache_clear()` after changing the environment in tests.

## Environment Variables

**Tracker**
- `TRACKER_POLICY`: Update policy, `throttle` or `distance`
  (default: `throttle`)
- `TRACKER_UPDATE_INTERVAL_SECONDS`: Throttle window in seconds
  (default: `60`)
- `TRACKER_DISTANCE_THRESHOLD_METERS`: Distance policy threshold in meters
  (default: `0`)
- `TRACKER_SERIALIZE_GEOCODING`: Cancel a stale geocode when a newer fix
  is accepted (default: `false`)

**Geocoder**
- `GEOCODER_PROVIDER`: `nominatim` or `memory` (default: `nominatim`)
- `NOMINATIM_URL`: Nominatim service URL
  (default: `https://nominatim.openstreetmap.org`)
- `NOMINATIM_USER_AGENT`: User-Agent sent to Nominatim
  (default: `waypoints/0.1`)
- `NOMINATIM_TIMEOUT`: Request timeout in seconds (default: `10`)
- `NOMINATIM_LANGUAGE`: Preferred language for place names (optional)
- `NOMINATIM_RATE_PER_SEC`: Maximum requests per second (default: `1.0`)
- `NOMINATIM_MAX_RETRIES`: Attempts per lookup (default: `3`)
- `NOMINATIM_CIRCUIT_BREAKER_THRESHOLD`: Failures before circuit opens
  (default: `5`)
- `NOMINATIM_CIRCUIT_BREAKER_TIMEOUT`: Circuit recovery timeout in seconds
  (default: `60`)

**Position source**
- `POSITION_PROVIDER`: `memory` or `replay` (default: `memory`)
- `POSITION_REQUIRES_AUTHORIZATION`: Whether the source must be authorized
  before it produces fixes (default: `false`)
- `POSITION_REPLAY_PATH`: CSV track to replay (required for `replay`)
- `POSITION_REPLAY_LOOP`: Restart the track after its last point
  (default: `false`)

**Lifecycle**
- `LIFECYCLE_PROVIDER`: `none` or `memory` (default: `none`)

**Logging**
- `WAYPOINTS_LOG_LEVEL`: Level of the `waypoints` logger (default: `INFO`)

## Usage

```python
from waypoints.config import get_settings
from waypoints.core.services import LocationTracker

settings = get_settings()
async with LocationTracker.from_settings(settings) as tracker:
    async for outcome in tracker.updates():
        print(outcome)
```
"""

import os
from functools import lru_cache
from typing import Literal

from pydantic import BaseModel, Field
from pydantic_settings import SettingsConfigDict

_TRUE_VALUES = ("1", "true", "yes", "on")


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in _TRUE_VALUES


def _env_choice(name: str, default: str, valid: tuple[str, ...]) -> str:
    value = os.getenv(name, default).strip().lower()
    if value not in valid:
        msg = f"Invalid {name}: {value}. Must be one of: {', '.join(valid)}"
        raise ValueError(msg)
    return value


class TrackerConfig(BaseModel):
    """Configuration for a location tracker's update policy.

    Attributes:
        policy: "throttle" (default) or "distance".
        update_interval_seconds: Throttle window in seconds. Default: 60.
        distance_threshold_meters: Minimum movement for the distance policy,
            exclusive. Default: 0.
        serialize_geocoding: Cancel an in-flight geocode when a newer fix is
            accepted. Default: False.
    """

    policy: Literal["throttle", "distance"] = "throttle"
    update_interval_seconds: float = Field(default=60.0, ge=0.0)
    distance_threshold_meters: float = Field(default=0.0, ge=0.0)
    serialize_geocoding: bool = False

    model_config = SettingsConfigDict(frozen=True)

    @classmethod
    def from_env(cls) -> "TrackerConfig":
        """Create TrackerConfig from environment variables.

        Raises:
            ValueError: If TRACKER_POLICY is not a known policy.
        """
        return cls(
            policy=_env_choice("TRACKER_POLICY", "throttle", ("throttle", "distance")),
            update_interval_seconds=float(os.getenv("TRACKER_UPDATE_INTERVAL_SECONDS", "60")),
            distance_threshold_meters=float(os.getenv("TRACKER_DISTANCE_THRESHOLD_METERS", "0")),
            serialize_geocoding=_env_bool("TRACKER_SERIALIZE_GEOCODING"),
        )


class GeocoderConfig(BaseModel):
    """Configuration for the reverse geocoder.

    Attributes:
        provider_type: "nominatim" or "memory".
        nominatim_url: Nominatim service URL.
        nominatim_user_agent: User-Agent header; Nominatim rejects requests
            without an identifying agent.
        nominatim_timeout: Request timeout in seconds. Default: 10.
        nominatim_language: Optional `accept-language` value.
        nominatim_rate_per_sec: Maximum requests per second. Default: 1.0.
        nominatim_max_retries: Attempts per lookup. Default: 3.
        circuit_breaker_threshold: Failures before circuit opens. Default: 5.
        circuit_breaker_timeout: Circuit recovery timeout in seconds.
            Default: 60.
    """

    provider_type: Literal["nominatim", "memory"] = "nominatim"
    nominatim_url: str = "https://nominatim.openstreetmap.org"
    nominatim_user_agent: str = "waypoints/0.1"
    nominatim_timeout: float = Field(default=10.0, gt=0.0)
    nominatim_language: str | None = None
    nominatim_rate_per_sec: float = Field(default=1.0, gt=0.0)
    nominatim_max_retries: int = Field(default=3, ge=1)
    circuit_breaker_threshold: int = Field(default=5, ge=1)
    circuit_breaker_timeout: int = Field(default=60, ge=0)

    model_config = SettingsConfigDict(frozen=True)

    @classmethod
    def from_env(cls) -> "GeocoderConfig":
        """Create GeocoderConfig from environment variables.

        Raises:
            ValueError: If GEOCODER_PROVIDER is not a known provider.
        """
        return cls(
            provider_type=_env_choice("GEOCODER_PROVIDER", "nominatim", ("nominatim", "memory")),
            nominatim_url=os.getenv("NOMINATIM_URL", "https://nominatim.openstreetmap.org"),
            nominatim_user_agent=os.getenv("NOMINATIM_USER_AGENT", "waypoints/0.1"),
            nominatim_timeout=float(os.getenv("NOMINATIM_TIMEOUT", "10")),
            nominatim_language=os.getenv("NOMINATIM_LANGUAGE") or None,
            nominatim_rate_per_sec=float(os.getenv("NOMINATIM_RATE_PER_SEC", "1.0")),
            nominatim_max_retries=int(os.getenv("NOMINATIM_MAX_RETRIES", "3")),
            circuit_breaker_threshold=int(os.getenv("NOMINATIM_CIRCUIT_BREAKER_THRESHOLD", "5")),
            circuit_breaker_timeout=int(os.getenv("NOMINATIM_CIRCUIT_BREAKER_TIMEOUT", "60")),
        )


class PositionSourceConfig(BaseModel):
    """Configuration for the position source.

    Attributes:
        provider_type: "memory" or "replay".
        requires_authorization: Whether the source needs permission first.
        replay_path: CSV track file. Required if provider_type="replay".
        replay_loop: Restart the track after its last point.
    """

    provider_type: Literal["memory", "replay"] = "memory"
    requires_authorization: bool = False
    replay_path: str | None = None
    replay_loop: bool = False

    model_config = SettingsConfigDict(frozen=True)

    @classmethod
    def from_env(cls) -> "PositionSourceConfig":
        provider_type = _env_choice("POSITION_PROVIDER", "memory", ("memory", "replay"))
        replay_path = os.getenv("POSITION_REPLAY_PATH") or None
        if provider_type == "replay" and replay_path is None:
            raise ValueError("POSITION_REPLAY_PATH is required when POSITION_PROVIDER=replay")
        return cls(
            provider_type=provider_type,
            requires_authorization=_env_bool("POSITION_REQUIRES_AUTHORIZATION"),
            replay_path=replay_path,
            replay_loop=_env_bool("POSITION_REPLAY_LOOP"),
        )


class LifecycleConfig(BaseModel):
    """Configuration for the lifecycle source.

    Attributes:
        provider_type: "none" (always active) or "memory".
    """

    provider_type: Literal["none", "memory"] = "none"

    model_config = SettingsConfigDict(frozen=True)

    @classmethod
    def from_env(cls) -> "LifecycleConfig":
        return cls(provider_type=_env_choice("LIFECYCLE_PROVIDER", "none", ("none", "memory")))


class Settings(BaseModel):
    """Immutable runtime configuration for waypoints.

    Attributes:
        tracker: Update policy configuration.
        geocoder: Reverse geocoder configuration.
        position: Position source configuration.
        lifecycle: Lifecycle source configuration.
        log_level: Level of the `waypoints` logger.
    """

    tracker: TrackerConfig = Field(default_factory=TrackerConfig)
    geocoder: GeocoderConfig = Field(default_factory=GeocoderConfig)
    position: PositionSourceConfig = Field(default_factory=PositionSourceConfig)
    lifecycle: LifecycleConfig = Field(default_factory=LifecycleConfig)
    log_level: str = "INFO"

    model_config = SettingsConfigDict(frozen=True)

    @classmethod
    def from_env(cls) -> "Settings":
        """Create Settings from environment variables."""
        return cls(
            tracker=TrackerConfig.from_env(),
            geocoder=GeocoderConfig.from_env(),
            position=PositionSourceConfig.from_env(),
            lifecycle=LifecycleConfig.from_env(),
            log_level=os.getenv("WAYPOINTS_LOG_LEVEL", "INFO").upper(),
        )


@lru_cache(maxsize=1)
def get_settings() -> "Settings":
    """Load and return application settings (cached per process).

    Returns:
        A frozen `Settings` instance with all configuration values.
    """
    return Settings.from_env()
