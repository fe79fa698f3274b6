"""Shared fixtures for client tests.

This module provides common fixtures used across the adapter test modules,
including fake HTTP responses and a Nominatim geocoder wired to a mocked
`httpx.AsyncClient`.
"""

# pylint: disable=redefined-outer-name
# Pytest fixtures intentionally redefine fixture names - this is expected behavior

from collections.abc import Callable
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from waypoints.clients.nominatim import NominatimGeocoder

NOMINATIM_URL = "http://nominatim.example.com"

_WYNWOOD_PAYLOAD: dict[str, Any] = {
    "place_id": 12345,
    "lat": "25.7877",
    "lon": "-80.2241",
    "display_name": "Wynwood, Miami, Miami-Dade County, Florida, United States",
    "address": {
        "neighbourhood": "Wynwood",
        "city": "Miami",
        "county": "Miami-Dade County",
        "state": "Florida",
        "country": "United States",
        "country_code": "us",
    },
}


@pytest.fixture
def wynwood_payload() -> dict[str, Any]:
    """A jsonv2 `/reverse` response for Wynwood, Miami."""
    return _WYNWOOD_PAYLOAD


# =============================================================================
# HTTP Fixtures
# =============================================================================


@pytest.fixture
def make_response() -> Callable[..., httpx.Response]:
    """Build httpx responses bound to a request so raise_for_status() works."""

    def _make(status_code: int = 200, json: Any = None, content: bytes | None = None) -> httpx.Response:
        request = httpx.Request("GET", f"{NOMINATIM_URL}/reverse")
        if content is not None:
            return httpx.Response(status_code, content=content, request=request)
        return httpx.Response(status_code, json=json, request=request)

    return _make


@pytest.fixture
def mock_http_client() -> MagicMock:
    """Create a mock httpx.AsyncClient with an async `get`."""
    client = MagicMock(spec=httpx.AsyncClient)
    client.get = AsyncMock()
    return client


# =============================================================================
# Nominatim Fixtures
# =============================================================================


@pytest.fixture
def nominatim_geocoder(mock_http_client: MagicMock) -> NominatimGeocoder:
    """Create a NominatimGeocoder with no rate limiting or backoff delays.

    Args:
        mock_http_client: Mock httpx.AsyncClient fixture.

    Returns:
        NominatimGeocoder: Geocoder using the mocked client.
    """
    return NominatimGeocoder(
        base_url=NOMINATIM_URL,
        user_agent="waypoints-tests/1.0",
        rate_per_sec=1000.0,
        retry_wait_min=0,
        retry_wait_max=0,
        client=mock_http_client,
    )
