"""Geospatial helpers."""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from .models import Place, ReferencePoint

EARTH_RADIUS_M = 6371000.0


@dataclass(frozen=True)
class GeoBounds:
    sw_lat: float
    sw_lon: float
    ne_lat: float
    ne_lon: float

    @classmethod
    def from_dict(cls, data: Dict[str, float]) -> "GeoBounds":
        bounds = cls(
            sw_lat=float(data["sw_lat"]),
            sw_lon=float(data["sw_lon"]),
            ne_lat=float(data["ne_lat"]),
            ne_lon=float(data["ne_lon"]),
        )
        if bounds.sw_lat > bounds.ne_lat or bounds.sw_lon > bounds.ne_lon:
            raise ValueError(f"Bounds are inverted: {data}")
        return bounds

    def contains(self, latitude: float, longitude: float) -> bool:
        return (
            self.sw_lat <= latitude <= self.ne_lat
            and self.sw_lon <= longitude <= self.ne_lon
        )

    def to_rect(self) -> str:
        """Provider rect parameter: "left,bottom,right,top" in lon/lat order."""
        return f"{self.sw_lon},{self.sw_lat},{self.ne_lon},{self.ne_lat}"


def haversine_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlambda = math.radians(lon2 - lon1)

    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_M * c


def distance_m(place: Place, reference: Optional[ReferencePoint]) -> float:
    """Great-circle distance in meters, or +inf when it cannot be computed."""
    if reference is None:
        return math.inf
    coords = (place.latitude, place.longitude, reference.latitude, reference.longitude)
    try:
        if not all(math.isfinite(float(v)) for v in coords):
            return math.inf
    except (TypeError, ValueError):
        return math.inf
    return haversine_m(*(float(v) for v in coords))


def _edges(start: float, stop: float, n: int) -> List[float]:
    span = stop - start
    return [stop if i == n else start + span * i / n for i in range(n + 1)]


def split_bounds(bounds: GeoBounds, rows: int = 4, cols: int = 4) -> List[GeoBounds]:
    """Split a region into rows x cols equal tiles, south-west first, row-major."""
    if rows < 1 or cols < 1:
        raise ValueError("Grid rows and cols must be >= 1")
    lat_edges = _edges(bounds.sw_lat, bounds.ne_lat, rows)
    lon_edges = _edges(bounds.sw_lon, bounds.ne_lon, cols)

    tiles = []
    for r in range(rows):
        for c in range(cols):
            tiles.append(
                GeoBounds(
                    sw_lat=lat_edges[r],
                    sw_lon=lon_edges[c],
                    ne_lat=lat_edges[r + 1],
                    ne_lon=lon_edges[c + 1],
                )
            )
    return tiles


def normalize_coordinates(latitude: float, longitude: float) -> Optional[Tuple[float, float]]:
    """Validate a (lat, lon) pair, repairing a swapped order.

    Returns None when the pair is non-finite or out of range.
    """
    if not (math.isfinite(latitude) and math.isfinite(longitude)):
        return None
    if abs(latitude) > 90 and abs(longitude) <= 90:
        latitude, longitude = longitude, latitude
    if abs(latitude) > 90 or abs(longitude) > 180:
        return None
    return latitude, longitude
