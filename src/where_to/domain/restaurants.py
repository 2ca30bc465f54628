"""Restaurant catalog domain models."""

from dataclasses import dataclass

_MAX_LATITUDE = 90.0
_MAX_LONGITUDE = 180.0


@dataclass(frozen=True)
class Location:
    """A geographic point."""

    latitude: float
    longitude: float

    def __post_init__(self) -> None:
        if not -_MAX_LATITUDE <= self.latitude <= _MAX_LATITUDE:
            raise ValueError(f"Latitude out of range: {self.latitude}")
        if not -_MAX_LONGITUDE <= self.longitude <= _MAX_LONGITUDE:
            raise ValueError(f"Longitude out of range: {self.longitude}")


@dataclass(frozen=True)
class RestaurantRecord:
    """A restaurant returned by the catalog."""

    id: str
    name: str
    latitude: float | None
    longitude: float | None
    rating: float | None
    is_open: bool | None
    categories: frozenset[str]

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("Restaurant id is required")


@dataclass(frozen=True)
class SearchFilters:
    """Filters passed to the catalog search."""

    radius_meters: int
    limit: int
    categories: tuple[str, ...] = ()
