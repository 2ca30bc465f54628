"""Yelp Fusion API client."""

from dataclasses import dataclass
from typing import Protocol

import httpx


class YelpClient(Protocol):
    """Interface for Yelp business search."""

    async def search_businesses(  # noqa: PLR0913
        self,
        *,
        latitude: float | None = None,
        longitude: float | None = None,
        location: str | None = None,
        radius: int | None = None,
        limit: int = 20,
        categories: list[str] | None = None,
    ) -> dict[str, object]:
        """Search restaurants and return raw API data."""


@dataclass
class HttpxYelpClient(YelpClient):
    """HTTPX-backed Yelp client."""

    api_key: str
    base_url: str
    http_client: httpx.AsyncClient

    @classmethod
    def create(cls, api_key: str, base_url: str) -> "HttpxYelpClient":
        """Create a Yelp client with a managed httpx session."""
        return cls(api_key=api_key, base_url=base_url, http_client=httpx.AsyncClient())

    async def search_businesses(  # noqa: PLR0913
        self,
        *,
        latitude: float | None = None,
        longitude: float | None = None,
        location: str | None = None,
        radius: int | None = None,
        limit: int = 20,
        categories: list[str] | None = None,
    ) -> dict[str, object]:
        """Search restaurants near a point or an address."""
        params: dict[str, object] = {"term": "restaurants", "limit": limit}
        if latitude is not None and longitude is not None:
            params["latitude"] = latitude
            params["longitude"] = longitude
        if location is not None:
            params["location"] = location
        if radius is not None:
            params["radius"] = radius
        if categories:
            params["categories"] = ",".join(categories)
        response = await self.http_client.get(
            f"{self.base_url}/businesses/search",
            params=params,
            headers={"Authorization": f"Bearer {self.api_key}"},
            timeout=15,
        )
        response.raise_for_status()
        return response.json()

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()
