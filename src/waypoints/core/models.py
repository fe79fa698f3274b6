"""Domain models for location tracking.

This module defines the value types that flow through the tracker:
coordinates and raw fixes from a position source, place candidates from a
geocoder, resolved locations, and the outcome union delivered to
subscribers. Position and lifecycle events exchanged with adapters are
defined here as well.

All classes use `attrs` and are immutable (frozen).
"""

import enum
import uuid
from datetime import datetime
from typing import TypeAlias

import attrs
from geopy.distance import great_circle

# =============================================================================
# Positions
# =============================================================================


@attrs.define(frozen=True, slots=True)
class Coordinate:
    """A point on the Earth's surface in decimal degrees.

    Attributes:
        latitude: Latitude in degrees, within [-90, 90].
        longitude: Longitude in degrees, within [-180, 180].
    """

    latitude: float = attrs.field(
        converter=float,
        validator=[attrs.validators.ge(-90.0), attrs.validators.le(90.0)],
    )
    longitude: float = attrs.field(
        converter=float,
        validator=[attrs.validators.ge(-180.0), attrs.validators.le(180.0)],
    )

    def distance_to(self, other: "Coordinate") -> float:
        """Great-circle distance to `other`, in meters."""
        return great_circle(
            (self.latitude, self.longitude),
            (other.latitude, other.longitude),
        ).meters

    def as_tuple(self) -> tuple[float, float]:
        return (self.latitude, self.longitude)


@attrs.define(frozen=True, slots=True)
class RawFix:
    """One position sample reported by a position source.

    Attributes:
        coordinate: Reported position.
        timestamp: Provider timestamp, if any.
        horizontal_accuracy: Radius of uncertainty in meters, if known.
        altitude: Altitude in meters, if known.
        speed: Ground speed in meters per second, if known.
        course: Heading in degrees from true north, if known.
    """

    coordinate: Coordinate
    timestamp: datetime | None = None
    horizontal_accuracy: float | None = None
    altitude: float | None = None
    speed: float | None = None
    course: float | None = None

    @classmethod
    def at(cls, latitude: float, longitude: float, **metadata: object) -> "RawFix":
        """Build a fix from bare latitude/longitude plus optional metadata."""
        return cls(Coordinate(latitude, longitude), **metadata)  # type: ignore[arg-type]


# =============================================================================
# Geocoding
# =============================================================================


@attrs.define(frozen=True, slots=True)
class PlaceCandidate:
    """A reverse-geocoding match for a coordinate.

    Attributes:
        city: Locality name.
        state: Administrative area (state, region, province).
        neighborhood: Sub-locality, if the provider reports one.
        country: Country name, if reported.
        name: Provider display name, if reported.
    """

    city: str | None = None
    state: str | None = None
    neighborhood: str | None = None
    country: str | None = None
    name: str | None = None

    def is_usable(self, *, require_neighborhood: bool = False) -> bool:
        """Whether this candidate carries every field needed to build a Location."""
        if not self.city or not self.state:
            return False
        return bool(self.neighborhood) or not require_neighborhood


@attrs.define(frozen=True, slots=True)
class Location:
    """A resolved position with its human-readable place.

    Equality and hashing consider only `physical`: two locations at the same
    coordinate are equal even if they were resolved to different places.

    Attributes:
        physical: The coordinate the location was resolved for.
        city: Locality name.
        state: Administrative area.
        neighborhood: Sub-locality, if resolved.
        fix: The raw fix the location came from, if any.
        id: Unique identifier of this instance.
    """

    physical: Coordinate
    city: str = attrs.field(eq=False)
    state: str = attrs.field(eq=False)
    neighborhood: str | None = attrs.field(default=None, eq=False)
    fix: RawFix | None = attrs.field(default=None, eq=False, repr=False)
    id: uuid.UUID = attrs.field(factory=uuid.uuid4, eq=False, repr=False)

    @classmethod
    def from_candidate(cls, fix: RawFix, candidate: PlaceCandidate) -> "Location":
        """Combine a fix with a usable candidate.

        Raises:
            ValueError: If the candidate lacks city or state.
        """
        if not candidate.is_usable():
            raise ValueError("candidate must provide city and state")
        assert candidate.city is not None
        assert candidate.state is not None
        return cls(
            physical=fix.coordinate,
            city=candidate.city,
            state=candidate.state,
            neighborhood=candidate.neighborhood,
            fix=fix,
        )


# =============================================================================
# Outcomes
# =============================================================================


@attrs.define(frozen=True, slots=True)
class Unknown:
    """No usable location: no fix yet, an empty fix batch, or nothing geocoded."""

    def __str__(self) -> str:
        return "unknown location"


@attrs.define(frozen=True, slots=True)
class Upstream:
    """A positioning or geocoding provider reported an error.

    Attributes:
        error: The provider's exception, passed through unmodified.
    """

    error: BaseException

    def __str__(self) -> str:
        return f"upstream failure: {self.error}"


LocationFailure: TypeAlias = Unknown | Upstream


@attrs.define(frozen=True, slots=True)
class Resolved:
    """Outcome carrying a resolved location."""

    location: Location


@attrs.define(frozen=True, slots=True)
class Failed:
    """Outcome carrying the reason no location could be resolved."""

    failure: LocationFailure

    @classmethod
    def unknown(cls) -> "Failed":
        return cls(Unknown())

    @classmethod
    def upstream(cls, error: BaseException) -> "Failed":
        return cls(Upstream(error))


LocationOutcome: TypeAlias = Resolved | Failed


# =============================================================================
# Adapter events
# =============================================================================


class AuthorizationStatus(enum.Enum):
    """Location permission state reported by a position source."""

    NOT_DETERMINED = "not_determined"
    RESTRICTED = "restricted"
    DENIED = "denied"
    AUTHORIZED_ALWAYS = "authorized_always"
    AUTHORIZED_WHEN_IN_USE = "authorized_when_in_use"

    @property
    def is_granted(self) -> bool:
        return self in (AuthorizationStatus.AUTHORIZED_ALWAYS, AuthorizationStatus.AUTHORIZED_WHEN_IN_USE)


@attrs.define(frozen=True, slots=True)
class FixBatch:
    """Fixes delivered together by a position source, most recent first."""

    fixes: tuple[RawFix, ...] = attrs.field(converter=tuple)

    @property
    def first(self) -> RawFix | None:
        return self.fixes[0] if self.fixes else None


@attrs.define(frozen=True, slots=True)
class PositionFailure:
    """A position source reported an error instead of fixes."""

    error: BaseException


@attrs.define(frozen=True, slots=True)
class AuthorizationChange:
    """The position source's authorization status changed."""

    status: AuthorizationStatus


PositionEvent: TypeAlias = FixBatch | PositionFailure | AuthorizationChange


class LifecycleEvent(enum.Enum):
    """Host application foreground/background transitions."""

    WILL_RESIGN_ACTIVE = "will_resign_active"
    DID_BECOME_ACTIVE = "did_become_active"


class TrackerState(enum.Enum):
    """States of a location tracker."""

    IDLE = "idle"
    ACTIVE = "active"
    SUSPENDED = "suspended"
    TERMINATED = "terminated"
