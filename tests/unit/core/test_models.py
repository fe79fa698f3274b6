"""Unit tests for core.models module.

# Test Coverage

The tests cover:
  - Coordinate: range validation, great-circle distance
  - PlaceCandidate: usability with and without a neighborhood
  - Location: construction from a candidate, equality by coordinate
  - Outcomes: Failed constructors and string forms
  - Adapter events: FixBatch ordering, AuthorizationStatus.is_granted

# Running Tests

Run with: pytest tests/unit/core/test_models.py
"""

import attrs
import pytest

from waypoints.core.models import (
    AuthorizationStatus,
    Coordinate,
    Failed,
    FixBatch,
    Location,
    PlaceCandidate,
    RawFix,
    Unknown,
    Upstream,
)

# =============================================================================
# Coordinate Tests
# =============================================================================


class TestCoordinate:
    """Test suite for Coordinate."""

    def test_converts_to_float(self) -> None:
        coordinate = Coordinate(25, -80)

        assert coordinate.as_tuple() == (25.0, -80.0)
        assert isinstance(coordinate.latitude, float)

    @pytest.mark.parametrize(
        ("latitude", "longitude"),
        [(90.1, 0.0), (-90.1, 0.0), (0.0, 180.1), (0.0, -180.1)],
    )
    def test_rejects_out_of_range(self, latitude: float, longitude: float) -> None:
        with pytest.raises(ValueError):
            Coordinate(latitude, longitude)

    def test_accepts_range_bounds(self) -> None:
        Coordinate(90.0, 180.0)
        Coordinate(-90.0, -180.0)

    def test_distance_to_self_is_zero(self) -> None:
        point = Coordinate(25.7877, -80.2241)

        assert point.distance_to(point) == 0.0

    def test_distance_one_degree_of_latitude(self) -> None:
        """Test great-circle distance on a known arc.

        **Why this test is important:**
          - The distance policy compares this value against its threshold

        **What it tests:**
          - One degree along a meridian is about 111.2 km
          - Distance is symmetric
        """
        a = Coordinate(0.0, 0.0)
        b = Coordinate(1.0, 0.0)

        assert a.distance_to(b) == pytest.approx(111_195, rel=1e-3)
        assert a.distance_to(b) == pytest.approx(b.distance_to(a))

    def test_is_frozen(self) -> None:
        with pytest.raises(attrs.exceptions.FrozenInstanceError):
            Coordinate(0, 0).latitude = 1.0  # type: ignore[misc]


class TestRawFix:
    def test_at_builds_coordinate_and_metadata(self) -> None:
        fix = RawFix.at(25.7877, -80.2241, horizontal_accuracy=5.0)

        assert fix.coordinate == Coordinate(25.7877, -80.2241)
        assert fix.horizontal_accuracy == 5.0
        assert fix.timestamp is None


# =============================================================================
# PlaceCandidate / Location Tests
# =============================================================================


class TestPlaceCandidate:
    """Test suite for PlaceCandidate.is_usable."""

    def test_complete_candidate_is_usable(self, wynwood: PlaceCandidate) -> None:
        assert wynwood.is_usable()
        assert wynwood.is_usable(require_neighborhood=True)

    def test_missing_neighborhood(self) -> None:
        candidate = PlaceCandidate(city="Miami", state="Florida")

        assert candidate.is_usable()
        assert not candidate.is_usable(require_neighborhood=True)

    @pytest.mark.parametrize(
        "candidate",
        [
            PlaceCandidate(state="Florida", neighborhood="Wynwood"),
            PlaceCandidate(city="Miami", neighborhood="Wynwood"),
            PlaceCandidate(city="", state="Florida"),
        ],
    )
    def test_missing_city_or_state(self, candidate: PlaceCandidate) -> None:
        assert not candidate.is_usable()


class TestLocation:
    """Test suite for Location."""

    def test_from_candidate(self, wynwood: PlaceCandidate) -> None:
        fix = RawFix.at(25.7877, -80.2241)

        location = Location.from_candidate(fix, wynwood)

        assert location.physical == fix.coordinate
        assert (location.city, location.state, location.neighborhood) == ("Miami", "Florida", "Wynwood")
        assert location.fix is fix

    def test_from_candidate_rejects_incomplete(self) -> None:
        with pytest.raises(ValueError, match="city and state"):
            Location.from_candidate(RawFix.at(0, 0), PlaceCandidate(city="Miami"))

    def test_equality_considers_only_coordinate(self) -> None:
        """Test that two locations at one coordinate compare equal.

        **Why this test is important:**
          - Consumers deduplicate locations by position, not by place name

        **What it tests:**
          - Different place names and ids at the same coordinate are equal
          - Equal locations hash equal
          - Different coordinates are not equal
        """
        fix = RawFix.at(25.7877, -80.2241)
        a = Location.from_candidate(fix, PlaceCandidate(city="Miami", state="Florida"))
        b = Location.from_candidate(fix, PlaceCandidate(city="Other", state="Elsewhere", neighborhood="X"))
        c = Location.from_candidate(RawFix.at(25.0, -80.0), PlaceCandidate(city="Miami", state="Florida"))

        assert a.id != b.id
        assert a == b
        assert hash(a) == hash(b)
        assert a != c


# =============================================================================
# Outcome / Event Tests
# =============================================================================


class TestOutcomes:
    def test_failed_unknown(self) -> None:
        outcome = Failed.unknown()

        assert outcome == Failed(Unknown())
        assert str(outcome.failure) == "unknown location"

    def test_failed_upstream_keeps_error(self) -> None:
        error = ConnectionError("offline")

        outcome = Failed.upstream(error)

        assert isinstance(outcome.failure, Upstream)
        assert outcome.failure.error is error
        assert str(outcome.failure) == "upstream failure: offline"


class TestAdapterEvents:
    def test_fix_batch_first_is_most_recent(self) -> None:
        newest = RawFix.at(1, 1)
        batch = FixBatch([newest, RawFix.at(0, 0)])

        assert batch.first is newest
        assert isinstance(batch.fixes, tuple)

    def test_empty_batch_has_no_first(self) -> None:
        assert FixBatch([]).first is None

    @pytest.mark.parametrize(
        ("status", "granted"),
        [
            (AuthorizationStatus.AUTHORIZED_ALWAYS, True),
            (AuthorizationStatus.AUTHORIZED_WHEN_IN_USE, True),
            (AuthorizationStatus.NOT_DETERMINED, False),
            (AuthorizationStatus.DENIED, False),
            (AuthorizationStatus.RESTRICTED, False),
        ],
    )
    def test_authorization_is_granted(self, status: AuthorizationStatus, granted: bool) -> None:
        assert status.is_granted is granted
