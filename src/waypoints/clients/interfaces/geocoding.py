"""Reverse geocoder interface and factory.

This module defines the `Geocoder` ABC and the provider registry for
reverse geocoders. Concrete implementations live in the parent `clients`
package (e.g., `NominatimGeocoder`, `ManualGeocoder`).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

import httpx

from waypoints.core.models import Coordinate, PlaceCandidate

if TYPE_CHECKING:
    from waypoints.config import GeocoderConfig


class Geocoder(ABC):
    """Abstract base class for reverse geocoding providers.

    Example:
        ```python
        class MyGeocoder(Geocoder):
            async def resolve(self, coordinate: Coordinate) -> list[PlaceCandidate]:
                payload = await self._lookup(coordinate.latitude, coordinate.longitude)
                return [PlaceCandidate(city=payload["city"], state=payload["state"])]
        ```
    """

    @abstractmethod
    async def resolve(self, coordinate: Coordinate) -> list[PlaceCandidate]:
        """Resolve a coordinate to place candidates, best match first.

        Args:
            coordinate: Position to resolve.

        Returns:
            Candidates ordered by relevance. An empty list means no place
            was found.

        Raises:
            UpstreamError: If the geocoding service is unreachable or returns
                an error.
            GeocodingNotFoundError: May be raised instead of returning an
                empty list.
        """

    async def close(self) -> None:  # noqa: B027
        """Close HTTP sessions and cleanup resources.

        Note:
            Not abstract because in-memory geocoders hold no resources.
        """

    @classmethod
    @abstractmethod
    def from_config(
        cls, config: GeocoderConfig, client: httpx.AsyncClient | None = None
    ) -> "Geocoder":
        """Create a geocoder from `GeocoderConfig`.

        Args:
            config: Geocoder configuration.
            client: Optional shared `httpx.AsyncClient` for HTTP-based
                providers.

        Returns:
            Configured Geocoder instance.

        Raises:
            ValueError: If config is invalid or missing required fields.
        """


# Provider registry: maps provider_type to geocoder class
_PROVIDER_REGISTRY: dict[str, type[Geocoder]] = {}


def register_provider(provider_type: str, provider_class: type[Geocoder]) -> None:
    """Register a geocoder class under `provider_type`."""
    _PROVIDER_REGISTRY[provider_type] = provider_class


def create_geocoder(
    config: GeocoderConfig,
    client: httpx.AsyncClient | None = None,
) -> Geocoder:
    """Create a geocoder based on configuration.

    Args:
        config: Geocoder configuration.
        client: Optional shared HTTP client.

    Returns:
        Geocoder instance (NominatimGeocoder, ManualGeocoder, etc.).

    Raises:
        ValueError: If the provider type is not registered.

    Example:
        ```python
        from waypoints.config import GeocoderConfig
        from waypoints.clients.interfaces.geocoding import create_geocoder

        geocoder = create_geocoder(GeocoderConfig.from_env())
        candidates = await geocoder.resolve(Coordinate(25.7877, -80.2241))
        ```
    """
    provider_class = _PROVIDER_REGISTRY.get(config.provider_type)
    if provider_class is None:
        msg = (
            f"Geocoder provider '{config.provider_type}' is not registered. "
            f"Available providers: {list(_PROVIDER_REGISTRY.keys())}"
        )
        raise ValueError(msg)

    return provider_class.from_config(config, client=client)
