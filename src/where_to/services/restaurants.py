"""Restaurant catalog service backed by Yelp."""

import asyncio
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

import httpx

from where_to.adapters.yelp_client import YelpClient
from where_to.domain.restaurants import Location, RestaurantRecord, SearchFilters
from where_to.errors import CatalogRequestFailed, NoLocationForAddress
from where_to.services.cache import Cache

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

_MAX_RADIUS_METERS = 40000
_SERVER_ERROR = 500

_logger = logging.getLogger(__name__)


@dataclass
class RestaurantCatalogService:
    """Looks up candidate restaurants near a location."""

    client: YelpClient
    cache: Cache
    search_ttl_seconds: int = 300
    retry_attempts: int = 1
    retry_delay_seconds: float = 0.3

    async def search_near(
        self, location: Location, filters: SearchFilters
    ) -> list[RestaurantRecord]:
        """Return restaurants near a location."""
        radius = min(filters.radius_meters, _MAX_RADIUS_METERS)
        cache_key = (
            f"yelp:search:{location.latitude:.5f}:{location.longitude:.5f}:"
            f"{radius}:{filters.limit}:{','.join(filters.categories)}"
        )
        cached = self.cache.get(cache_key)
        if isinstance(cached, list):
            return cached

        payload = await self._call_with_retry(
            lambda: self.client.search_businesses(
                latitude=location.latitude,
                longitude=location.longitude,
                radius=radius,
                limit=filters.limit,
                categories=list(filters.categories) or None,
            ),
            action="search",
        )
        restaurants = parse_businesses(payload)
        self.cache.set(cache_key, restaurants, ttl_seconds=self.search_ttl_seconds)
        _logger.info(
            "Catalog search near %.4f,%.4f returned %s restaurants",
            location.latitude,
            location.longitude,
            len(restaurants),
        )
        return restaurants

    async def locate(self, address: str) -> Location:
        """Resolve an address to the center of Yelp's search region."""
        payload = await self._call_with_retry(
            lambda: self.client.search_businesses(location=address, limit=1),
            action="locate",
        )
        region = payload.get("region")
        center = region.get("center") if isinstance(region, dict) else None
        if not isinstance(center, dict):
            raise NoLocationForAddress(f"No location found for {address!r}")
        try:
            return Location(
                latitude=float(center["latitude"]),
                longitude=float(center["longitude"]),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise NoLocationForAddress(f"No location found for {address!r}") from exc

    async def _call_with_retry(
        self, func: "Callable[[], Awaitable[dict[str, object]]]", *, action: str
    ) -> dict[str, object]:
        """Call the catalog, retrying transport and server errors briefly."""
        attempt = 0
        while True:
            try:
                return await func()
            except httpx.HTTPStatusError as exc:
                if _yelp_error_code(exc.response) == "LOCATION_NOT_FOUND":
                    raise NoLocationForAddress() from exc
                attempt += 1
                if exc.response.status_code < _SERVER_ERROR or (
                    attempt > self.retry_attempts
                ):
                    raise CatalogRequestFailed(
                        f"Catalog {action} failed with status "
                        f"{exc.response.status_code}"
                    ) from exc
            except httpx.TransportError as exc:
                attempt += 1
                if attempt > self.retry_attempts:
                    raise CatalogRequestFailed(f"Catalog {action} failed") from exc
            _logger.warning(
                "Catalog %s failed (attempt %s/%s), retrying",
                action,
                attempt,
                self.retry_attempts + 1,
            )
            await asyncio.sleep(self.retry_delay_seconds)


def parse_businesses(payload: dict[str, object]) -> list[RestaurantRecord]:
    """Convert a Yelp search payload into restaurant records."""
    restaurants = []
    for business in payload.get("businesses", []):
        if not isinstance(business, dict) or not business.get("id"):
            continue
        coordinates = business.get("coordinates") or {}
        restaurants.append(
            RestaurantRecord(
                id=str(business["id"]),
                name=str(business.get("name", "")),
                latitude=_optional_float(coordinates.get("latitude")),
                longitude=_optional_float(coordinates.get("longitude")),
                rating=_optional_float(business.get("rating")),
                is_open=_open_status(business),
                categories=frozenset(
                    str(category["alias"])
                    for category in business.get("categories", [])
                    if isinstance(category, dict) and category.get("alias")
                ),
            )
        )
    return restaurants


def _open_status(business: dict[str, object]) -> bool | None:
    """Return whether a business is open now, or None when unknown."""
    if business.get("is_closed") is True:
        return False
    hours = business.get("business_hours") or business.get("hours")
    if isinstance(hours, list) and hours and isinstance(hours[0], dict):
        is_open_now = hours[0].get("is_open_now")
        if isinstance(is_open_now, bool):
            return is_open_now
    return None


def _optional_float(value: object) -> float | None:
    if isinstance(value, int | float):
        return float(value)
    return None


def _yelp_error_code(response: httpx.Response) -> str | None:
    try:
        body = response.json()
    except ValueError:
        return None
    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict):
        return error.get("code")
    return None
