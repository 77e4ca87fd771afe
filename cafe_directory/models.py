"""Record types shared by the collection run and the listing pipeline."""
from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional

BRAND_CHAIN = "chain"
BRAND_INDEPENDENT = "independent"

ALL = "all"
BRAND_FILTERS = (ALL, BRAND_CHAIN, BRAND_INDEPENDENT)

SORT_POPULARITY = "popularity"
SORT_NEAREST = "nearest"
SORT_RECENT = "recent"
SORT_NAME = "name"
SORT_ORDERS = (SORT_POPULARITY, SORT_NEAREST, SORT_RECENT, SORT_NAME)


@dataclass(frozen=True)
class Place:
    id: Optional[str]
    name: str
    longitude: float
    latitude: float
    road_address: str = ""
    address: str = ""
    phone: str = ""
    region_label: Optional[str] = None
    brand: str = BRAND_INDEPENDENT

    @property
    def key(self) -> str:
        return identity_key(self.id, self.longitude, self.latitude, self.name)

    @property
    def display_address(self) -> str:
        return self.road_address or self.address


@dataclass(frozen=True)
class InteractionRecord:
    favorite: bool = False
    click_count: int = 0
    last_seen_at: Optional[float] = None


@dataclass(frozen=True)
class ReferencePoint:
    latitude: float
    longitude: float


@dataclass(frozen=True)
class FilterState:
    query: str = ""
    region: str = ALL
    brand: str = ALL
    # Meters; None means no radius limit.
    radius: Optional[float] = None
    sort_order: str = SORT_POPULARITY
    favorites_only: bool = False


def identity_key(
    place_id: Optional[str], longitude: float, latitude: float, name: str
) -> str:
    """Stable identity for a place.

    The provider id when present, otherwise the composite of coordinates and
    name. Every dedup and lookup site must go through this function.
    """
    if place_id:
        return str(place_id)
    return f"{longitude!r},{latitude!r},{name}"


def place_to_dict(place: Place) -> Dict[str, Any]:
    return asdict(place)


def place_from_dict(data: Dict[str, Any]) -> Place:
    region = data.get("region_label")
    return Place(
        id=data.get("id") or None,
        name=str(data.get("name") or ""),
        longitude=float(data["longitude"]),
        latitude=float(data["latitude"]),
        road_address=str(data.get("road_address") or ""),
        address=str(data.get("address") or ""),
        phone=str(data.get("phone") or ""),
        region_label=None if region is None else str(region),
        brand=str(data.get("brand") or BRAND_INDEPENDENT),
    )
