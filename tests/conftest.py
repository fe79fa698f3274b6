"""Shared pytest configuration and fixtures.

This module provides global fixtures and configuration that are available
to all tests in the test suite.

Fixtures defined here are automatically available to all tests without explicit
import statements. Keep fixtures small, composable, and focused on setup/teardown.
Do NOT put business logic in fixtures.
"""

# pylint: disable=redefined-outer-name

from collections.abc import Iterator

import pytest

from waypoints.config import get_settings
from waypoints.core.models import PlaceCandidate
from waypoints.foundation.scheduler import VirtualScheduler

_ENV_PREFIXES = ("TRACKER_", "GEOCODER_", "NOMINATIM_", "POSITION_", "LIFECYCLE_", "WAYPOINTS_")


@pytest.fixture(autouse=True)
def clean_settings(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Isolate every test from waypoints environment variables and cached settings."""
    import os

    for name in list(os.environ):
        if name.startswith(_ENV_PREFIXES):
            monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def scheduler() -> VirtualScheduler:
    """Virtual clock starting at t=0."""
    return VirtualScheduler()


@pytest.fixture
def wynwood() -> PlaceCandidate:
    """A complete place candidate (city, state and neighborhood)."""
    return PlaceCandidate(city="Miami", state="Florida", neighborhood="Wynwood", country="United States")
