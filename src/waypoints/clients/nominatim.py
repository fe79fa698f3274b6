"""Nominatim reverse geocoder.

This module provides a `Geocoder` backed by the Nominatim `/reverse`
endpoint (OpenStreetMap). Requests go through `httpx.AsyncClient` and are
protected three ways: a circuit breaker (aiobreaker) fails fast while the
service is down, a rate limiter keeps to Nominatim's usage policy, and
transient failures (transport errors, 429, 5xx) are retried with
exponential backoff (tenacity).

## Usage

```python
from waypoints.clients.nominatim import NominatimGeocoder

geocoder = NominatimGeocoder(user_agent="my-app/1.0 (ops@example.com)")
candidates = await geocoder.resolve(Coordinate(25.7877, -80.2241))
# [PlaceCandidate(city='Miami', state='Florida', neighborhood='Wynwood', ...)]
```

## Address mapping

| PlaceCandidate | Nominatim `address` keys, first present wins |
|---|---|
| city | city, town, village, hamlet, municipality |
| state | state, region, province |
| neighborhood | suburb, neighbourhood, quarter, city_district |
"""

from typing import Any

import attrs
import httpx

from waypoints.config import GeocoderConfig
from waypoints.core.exceptions import UpstreamError
from waypoints.core.models import Coordinate, PlaceCandidate
from waypoints.foundation.circuit_breaker import with_circuit_breaker_async
from waypoints.foundation.rate_limiter import RateLimiter
from waypoints.foundation.retry import (
    RETRIABLE_HTTP_STATUS_CODES,
    AsyncRetryWithBackoff,
    HTTPErrorClassifier,
)

from .interfaces.geocoding import Geocoder
from .mixins import CircuitBreakerMixin, ConfigValidationMixin, LoggerMixin

CITY_KEYS = ("city", "town", "village", "hamlet", "municipality")
STATE_KEYS = ("state", "region", "province")
NEIGHBORHOOD_KEYS = ("suburb", "neighbourhood", "quarter", "city_district")


def _first_present(address: dict[str, Any], keys: tuple[str, ...]) -> str | None:
    for key in keys:
        value = address.get(key)
        if value:
            return str(value)
    return None


class NominatimErrorClassifier(HTTPErrorClassifier):
    """Retry transport errors, 5xx responses and 429 (rate limited)."""

    retriable_http_codes = RETRIABLE_HTTP_STATUS_CODES | frozenset({"429"})

    def is_retriable(self, exc: BaseException) -> bool:
        if isinstance(exc, httpx.TransportError):
            return True
        if isinstance(exc, httpx.HTTPStatusError):
            return self.is_retriable_http_status(exc.response.status_code)
        return False

    def get_error_details(self, exc: BaseException) -> dict[str, Any]:
        if isinstance(exc, httpx.HTTPStatusError):
            return {"status_code": exc.response.status_code, "url": str(exc.request.url)}
        return {"error": str(exc)}


@attrs.define(frozen=False, slots=True)
class NominatimGeocoder(CircuitBreakerMixin, ConfigValidationMixin, LoggerMixin, Geocoder):
    """Reverse geocoder for the Nominatim API.

    Attributes:
        base_url: Nominatim service URL.
        user_agent: Identifying User-Agent, required by the Nominatim usage
            policy.
        timeout_s: Request timeout in seconds (default: 10).
        language: Optional `accept-language` value for place names.
        rate_per_sec: Maximum requests per second (default: 1.0).
        max_retries: Maximum attempts per lookup, including the first.
        retry_wait_min: Minimum backoff between attempts in seconds.
        retry_wait_max: Maximum backoff between attempts in seconds.
        circuit_breaker_threshold: Failures before the circuit opens.
        circuit_breaker_timeout: Seconds before an open circuit is retried.
        client: Optional shared `httpx.AsyncClient`. When None, each lookup
            uses a short-lived client.
    """

    base_url: str = "https://nominatim.openstreetmap.org"
    user_agent: str = "waypoints/0.1"
    timeout_s: float = 10.0
    language: str | None = None
    rate_per_sec: float = 1.0
    max_retries: int = 3
    retry_wait_min: float = 1.0
    retry_wait_max: float = 10.0
    circuit_breaker_threshold: int = 5
    circuit_breaker_timeout: int = 60
    _client: httpx.AsyncClient | None = attrs.field(default=None, alias="client")
    _rate_limiter: RateLimiter = attrs.field(init=False)
    _retry: AsyncRetryWithBackoff = attrs.field(init=False)

    def _circuit_breaker_config(self) -> tuple[str, int, int]:
        return ("nominatim", self.circuit_breaker_threshold, self.circuit_breaker_timeout)

    def __attrs_post_init__(self) -> None:
        self._init_circuit_breaker()
        self._rate_limiter = RateLimiter(rate_per_sec=self.rate_per_sec)
        self._retry = AsyncRetryWithBackoff(
            max_attempts=self.max_retries,
            wait_min=self.retry_wait_min,
            wait_max=self.retry_wait_max,
            classifier=NominatimErrorClassifier(),
            logger=self._logger,  # type: ignore[attr-defined]
        )

    @classmethod
    def from_config(
        cls, config: GeocoderConfig, client: httpx.AsyncClient | None = None
    ) -> "NominatimGeocoder":
        """Create NominatimGeocoder from GeocoderConfig.

        Raises:
            ValueError: If the config is not a Nominatim config or lacks the
                URL or User-Agent.
        """
        cls._validate_config(config, "nominatim", ["nominatim_url", "nominatim_user_agent"])
        return cls(
            base_url=config.nominatim_url,
            user_agent=config.nominatim_user_agent,
            timeout_s=config.nominatim_timeout,
            language=config.nominatim_language,
            rate_per_sec=config.nominatim_rate_per_sec,
            max_retries=config.nominatim_max_retries,
            circuit_breaker_threshold=config.circuit_breaker_threshold,
            circuit_breaker_timeout=config.circuit_breaker_timeout,
            client=client,
        )

    @with_circuit_breaker_async("nominatim")
    async def resolve(self, coordinate: Coordinate) -> list[PlaceCandidate]:
        """Reverse geocode a coordinate.

        Returns:
            A single-element list with the best match, or an empty list when
            Nominatim reports that the coordinate cannot be geocoded.

        Raises:
            UpstreamError: If the request fails after retries, the response
                has a non-success status, the body is not valid JSON, or the
                circuit breaker is open.
        """
        try:
            payload = await self._retry.call(self._fetch, coordinate)
        except httpx.HTTPStatusError as e:
            msg = f"Nominatim reverse lookup failed with status {e.response.status_code}"
            raise UpstreamError(msg) from e
        except httpx.RequestError as e:
            msg = f"Nominatim request failed: {e}"
            raise UpstreamError(msg) from e
        except ValueError as e:
            raise UpstreamError("Nominatim returned an invalid JSON body") from e

        return self._parse(payload, coordinate)

    async def _fetch(self, coordinate: Coordinate) -> Any:
        await self._rate_limiter.acquire_permission()
        url = f"{self.base_url.rstrip('/')}/reverse"
        params: dict[str, Any] = {
            "format": "jsonv2",
            "lat": coordinate.latitude,
            "lon": coordinate.longitude,
            "addressdetails": 1,
        }
        if self.language:
            params["accept-language"] = self.language
        headers = {"User-Agent": self.user_agent}

        if self._client is not None:
            resp = await self._client.get(url, params=params, headers=headers, timeout=self.timeout_s)
        else:
            async with httpx.AsyncClient(timeout=self.timeout_s) as client:
                resp = await client.get(url, params=params, headers=headers)
        resp.raise_for_status()
        return resp.json()

    def _parse(self, payload: Any, coordinate: Coordinate) -> list[PlaceCandidate]:
        if not isinstance(payload, dict):
            raise UpstreamError("Nominatim response is not a JSON object")

        if "error" in payload:
            self._logger.debug(  # type: ignore[attr-defined]
                "Nominatim found no place",
                extra={
                    "latitude": coordinate.latitude,
                    "longitude": coordinate.longitude,
                    "reason": payload["error"],
                },
            )
            return []

        address = payload.get("address") or {}
        return [
            PlaceCandidate(
                city=_first_present(address, CITY_KEYS),
                state=_first_present(address, STATE_KEYS),
                neighborhood=_first_present(address, NEIGHBORHOOD_KEYS),
                country=address.get("country"),
                name=payload.get("display_name"),
            )
        ]
