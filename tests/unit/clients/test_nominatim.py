"""Unit tests for clients.nominatim module.

This file tests NominatimGeocoder which reverse geocodes coordinates through
the Nominatim `/reverse` endpoint.

# Test Coverage

The tests cover:
  - Request building: URL, query parameters, User-Agent, language
  - Response mapping: address keys to PlaceCandidate fields, fallbacks,
    "Unable to geocode" responses
  - Error handling: HTTP status errors, transport errors, invalid bodies
  - Resilience: retries on 5xx/429/transport errors, circuit breaker
  - Configuration: from_config validation
  - Short-lived client path when no client is injected

# Test Structure

Tests inject a mocked httpx.AsyncClient through the `client` argument.
Backoff and rate limiting are disabled by the `nominatim_geocoder` fixture.

# Running Tests

Run with: pytest tests/unit/clients/test_nominatim.py
"""

from collections.abc import Callable
from typing import Any
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from waypoints.clients.nominatim import NominatimErrorClassifier, NominatimGeocoder
from waypoints.config import GeocoderConfig
from waypoints.core.exceptions import UpstreamError
from waypoints.core.models import Coordinate, PlaceCandidate

NOMINATIM_URL = "http://nominatim.example.com"
WYNWOOD = Coordinate(25.7877, -80.2241)

# =============================================================================
# Request Tests
# =============================================================================


class TestNominatimRequest:
    """Test suite for the request sent to Nominatim."""

    @pytest.mark.asyncio
    async def test_sends_reverse_request(
        self,
        nominatim_geocoder: NominatimGeocoder,
        mock_http_client: MagicMock,
        make_response: Callable[..., httpx.Response],
        wynwood_payload: dict[str, Any],
    ) -> None:
        """Test the URL, query parameters and headers of a lookup.

        **Why this test is important:**
          - Nominatim rejects requests without an identifying User-Agent
          - addressdetails=1 is what returns the structured address

        **What it tests:**
          - GET {base_url}/reverse with jsonv2 format and lat/lon
          - User-Agent header and timeout are passed
          - No accept-language parameter when language is unset
        """
        mock_http_client.get.return_value = make_response(json=wynwood_payload)

        await nominatim_geocoder.resolve(WYNWOOD)

        mock_http_client.get.assert_awaited_once_with(
            f"{NOMINATIM_URL}/reverse",
            params={"format": "jsonv2", "lat": 25.7877, "lon": -80.2241, "addressdetails": 1},
            headers={"User-Agent": "waypoints-tests/1.0"},
            timeout=10.0,
        )

    @pytest.mark.asyncio
    async def test_sends_accept_language(
        self,
        mock_http_client: MagicMock,
        make_response: Callable[..., httpx.Response],
        wynwood_payload: dict[str, Any],
    ) -> None:
        geocoder = NominatimGeocoder(
            base_url=f"{NOMINATIM_URL}/", language="es", rate_per_sec=1000.0, client=mock_http_client
        )
        mock_http_client.get.return_value = make_response(json=wynwood_payload)

        await geocoder.resolve(WYNWOOD)

        args, kwargs = mock_http_client.get.call_args
        assert args[0] == f"{NOMINATIM_URL}/reverse"
        assert kwargs["params"]["accept-language"] == "es"

    @pytest.mark.asyncio
    async def test_uses_short_lived_client_without_injection(
        self, make_response: Callable[..., httpx.Response], wynwood_payload: dict[str, Any]
    ) -> None:
        geocoder = NominatimGeocoder(base_url=NOMINATIM_URL, rate_per_sec=1000.0, timeout_s=3.0)
        client = MagicMock()
        client.get = AsyncMock(return_value=make_response(json=wynwood_payload))

        with patch("waypoints.clients.nominatim.httpx.AsyncClient") as client_cls:
            client_cls.return_value.__aenter__ = AsyncMock(return_value=client)
            client_cls.return_value.__aexit__ = AsyncMock(return_value=None)
            candidates = await geocoder.resolve(WYNWOOD)

        client_cls.assert_called_once_with(timeout=3.0)
        assert candidates[0].city == "Miami"


# =============================================================================
# Response Mapping Tests
# =============================================================================


class TestNominatimResponseMapping:
    """Test suite for mapping Nominatim responses to candidates."""

    @pytest.mark.asyncio
    async def test_maps_address_to_candidate(
        self,
        nominatim_geocoder: NominatimGeocoder,
        mock_http_client: MagicMock,
        make_response: Callable[..., httpx.Response],
        wynwood_payload: dict[str, Any],
    ) -> None:
        mock_http_client.get.return_value = make_response(json=wynwood_payload)

        candidates = await nominatim_geocoder.resolve(WYNWOOD)

        assert candidates == [
            PlaceCandidate(
                city="Miami",
                state="Florida",
                neighborhood="Wynwood",
                country="United States",
                name="Wynwood, Miami, Miami-Dade County, Florida, United States",
            )
        ]

    @pytest.mark.asyncio
    async def test_falls_back_to_alternative_keys(
        self,
        nominatim_geocoder: NominatimGeocoder,
        mock_http_client: MagicMock,
        make_response: Callable[..., httpx.Response],
    ) -> None:
        """Test that towns, regions and suburbs fill the candidate.

        **What it tests:**
          - town is used when city is absent
          - region is used when state is absent
          - suburb wins over neighbourhood
        """
        payload = {
            "display_name": "Somewhere",
            "address": {"town": "Sintra", "region": "Lisboa", "suburb": "Centro", "neighbourhood": "Vila"},
        }
        mock_http_client.get.return_value = make_response(json=payload)

        [candidate] = await nominatim_geocoder.resolve(Coordinate(38.8, -9.38))

        assert (candidate.city, candidate.state, candidate.neighborhood) == ("Sintra", "Lisboa", "Centro")

    @pytest.mark.asyncio
    async def test_missing_address_gives_empty_candidate(
        self,
        nominatim_geocoder: NominatimGeocoder,
        mock_http_client: MagicMock,
        make_response: Callable[..., httpx.Response],
    ) -> None:
        mock_http_client.get.return_value = make_response(json={"display_name": "Atlantic Ocean"})

        [candidate] = await nominatim_geocoder.resolve(Coordinate(30.0, -40.0))

        assert not candidate.is_usable()
        assert candidate.name == "Atlantic Ocean"

    @pytest.mark.asyncio
    async def test_unable_to_geocode_returns_empty_list(
        self,
        nominatim_geocoder: NominatimGeocoder,
        mock_http_client: MagicMock,
        make_response: Callable[..., httpx.Response],
    ) -> None:
        mock_http_client.get.return_value = make_response(json={"error": "Unable to geocode"})

        assert await nominatim_geocoder.resolve(Coordinate(0.0, -160.0)) == []

    @pytest.mark.asyncio
    async def test_non_object_body_raises(
        self,
        nominatim_geocoder: NominatimGeocoder,
        mock_http_client: MagicMock,
        make_response: Callable[..., httpx.Response],
    ) -> None:
        mock_http_client.get.return_value = make_response(json=[1, 2, 3])

        with pytest.raises(UpstreamError, match="not a JSON object"):
            await nominatim_geocoder.resolve(WYNWOOD)

    @pytest.mark.asyncio
    async def test_invalid_json_raises(
        self,
        nominatim_geocoder: NominatimGeocoder,
        mock_http_client: MagicMock,
        make_response: Callable[..., httpx.Response],
    ) -> None:
        mock_http_client.get.return_value = make_response(content=b"<html>busy</html>")

        with pytest.raises(UpstreamError, match="invalid JSON body"):
            await nominatim_geocoder.resolve(WYNWOOD)


# =============================================================================
# Error Handling and Resilience Tests
# =============================================================================


class TestNominatimErrors:
    """Test suite for error mapping, retries and the circuit breaker."""

    @pytest.mark.asyncio
    async def test_client_error_is_not_retried(
        self,
        nominatim_geocoder: NominatimGeocoder,
        mock_http_client: MagicMock,
        make_response: Callable[..., httpx.Response],
    ) -> None:
        mock_http_client.get.return_value = make_response(status_code=403)

        with pytest.raises(UpstreamError, match="failed with status 403"):
            await nominatim_geocoder.resolve(WYNWOOD)

        assert mock_http_client.get.await_count == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status_code", [429, 500, 503])
    async def test_transient_status_is_retried(
        self,
        nominatim_geocoder: NominatimGeocoder,
        mock_http_client: MagicMock,
        make_response: Callable[..., httpx.Response],
        wynwood_payload: dict[str, Any],
        status_code: int,
    ) -> None:
        """Test that rate limiting and server errors are retried.

        **Why this test is important:**
          - Nominatim answers 429 when the shared instance is busy
          - A single retry usually succeeds and avoids an Upstream outcome

        **What it tests:**
          - A transient status followed by success returns candidates
          - Two requests are made
        """
        mock_http_client.get.side_effect = [
            make_response(status_code=status_code),
            make_response(json=wynwood_payload),
        ]

        candidates = await nominatim_geocoder.resolve(WYNWOOD)

        assert candidates[0].neighborhood == "Wynwood"
        assert mock_http_client.get.await_count == 2

    @pytest.mark.asyncio
    async def test_retries_exhausted_raises_upstream_error(
        self,
        nominatim_geocoder: NominatimGeocoder,
        mock_http_client: MagicMock,
        make_response: Callable[..., httpx.Response],
    ) -> None:
        mock_http_client.get.return_value = make_response(status_code=502)

        with pytest.raises(UpstreamError, match="failed with status 502"):
            await nominatim_geocoder.resolve(WYNWOOD)

        assert mock_http_client.get.await_count == 3

    @pytest.mark.asyncio
    async def test_transport_error_raises_upstream_error(
        self, nominatim_geocoder: NominatimGeocoder, mock_http_client: MagicMock
    ) -> None:
        mock_http_client.get.side_effect = httpx.ConnectError("connection refused")

        with pytest.raises(UpstreamError, match="Nominatim request failed: connection refused"):
            await nominatim_geocoder.resolve(WYNWOOD)

        assert mock_http_client.get.await_count == 3

    @pytest.mark.asyncio
    async def test_circuit_opens_after_repeated_failures(
        self, mock_http_client: MagicMock, make_response: Callable[..., httpx.Response]
    ) -> None:
        """Test that the circuit breaker stops calling a failing service.

        **What it tests:**
          - Failures up to the threshold surface as UpstreamError
          - Once open, lookups fail fast without an HTTP request
        """
        geocoder = NominatimGeocoder(
            base_url=NOMINATIM_URL,
            rate_per_sec=1000.0,
            max_retries=1,
            circuit_breaker_threshold=2,
            client=mock_http_client,
        )
        mock_http_client.get.return_value = make_response(status_code=500)

        for _ in range(2):
            with pytest.raises(UpstreamError):
                await geocoder.resolve(WYNWOOD)
        assert mock_http_client.get.await_count == 2

        with pytest.raises(UpstreamError, match="currently unavailable"):
            await geocoder.resolve(WYNWOOD)
        assert mock_http_client.get.await_count == 2

    @pytest.mark.asyncio
    async def test_circuit_recovers_after_timeout(
        self,
        mock_http_client: MagicMock,
        make_response: Callable[..., httpx.Response],
        wynwood_payload: dict[str, Any],
    ) -> None:
        """Test that lookups reach Nominatim again once the circuit recovers.

        **Why this test is important:**
          - After an outage, later fixes must resolve normally instead of
            failing for the rest of the process

        **What it tests:**
          - The failure that trips the circuit surfaces as UpstreamError
          - After the recovery timeout the next lookup makes a request and
            returns candidates
        """
        geocoder = NominatimGeocoder(
            base_url=NOMINATIM_URL,
            rate_per_sec=1000.0,
            max_retries=1,
            circuit_breaker_threshold=1,
            circuit_breaker_timeout=0,
            client=mock_http_client,
        )
        mock_http_client.get.side_effect = [
            make_response(status_code=500),
            make_response(json=wynwood_payload),
        ]

        with pytest.raises(UpstreamError, match="currently unavailable"):
            await geocoder.resolve(WYNWOOD)

        candidates = await geocoder.resolve(WYNWOOD)

        assert candidates[0].neighborhood == "Wynwood"
        assert mock_http_client.get.await_count == 2


class TestNominatimErrorClassifier:
    """Test suite for NominatimErrorClassifier."""

    def test_transport_errors_are_retriable(self) -> None:
        assert NominatimErrorClassifier().is_retriable(httpx.ReadTimeout("slow"))

    @pytest.mark.parametrize(("status_code", "expected"), [(429, True), (500, True), (404, False), (400, False)])
    def test_status_classification(
        self, make_response: Callable[..., httpx.Response], status_code: int, expected: bool
    ) -> None:
        response = make_response(status_code=status_code)
        error = httpx.HTTPStatusError("status", request=response.request, response=response)

        assert NominatimErrorClassifier().is_retriable(error) is expected

    def test_other_exceptions_are_not_retriable(self) -> None:
        assert not NominatimErrorClassifier().is_retriable(ValueError("bad json"))

    def test_error_details_include_status(self, make_response: Callable[..., httpx.Response]) -> None:
        response = make_response(status_code=503)
        error = httpx.HTTPStatusError("status", request=response.request, response=response)

        details = NominatimErrorClassifier().get_error_details(error)

        assert details == {"status_code": 503, "url": f"{NOMINATIM_URL}/reverse"}


# =============================================================================
# Configuration Tests
# =============================================================================


class TestNominatimFromConfig:
    """Test suite for NominatimGeocoder.from_config."""

    def test_from_config(self) -> None:
        config = GeocoderConfig(
            nominatim_url=NOMINATIM_URL,
            nominatim_user_agent="app/2.0",
            nominatim_timeout=4.0,
            nominatim_language="fr",
            nominatim_rate_per_sec=0.5,
            nominatim_max_retries=2,
            circuit_breaker_threshold=7,
            circuit_breaker_timeout=30,
        )

        geocoder = NominatimGeocoder.from_config(config)

        assert geocoder.base_url == NOMINATIM_URL
        assert geocoder.user_agent == "app/2.0"
        assert geocoder.timeout_s == 4.0
        assert geocoder.language == "fr"
        assert geocoder.rate_per_sec == 0.5
        assert geocoder.max_retries == 2
        assert geocoder._breaker.fail_max == 7

    def test_from_config_wrong_provider_raises(self) -> None:
        with pytest.raises(ValueError, match="Config provider_type must be 'nominatim', got 'memory'"):
            NominatimGeocoder.from_config(GeocoderConfig(provider_type="memory"))

    def test_from_config_missing_user_agent_raises(self) -> None:
        with pytest.raises(ValueError, match="Nominatim provider requires: nominatim_user_agent"):
            NominatimGeocoder.from_config(GeocoderConfig(nominatim_user_agent=""))
