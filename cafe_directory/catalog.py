"""Last-collected place list: persistence and detail lookup by identity key."""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional
from urllib.parse import quote

from . import config
from .cache import KeyValueStore, load_json, save_json
from .models import Place, place_from_dict, place_to_dict

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LookupResult:
    key: str
    place: Optional[Place] = None

    @property
    def found(self) -> bool:
        return self.place is not None


def save_places(
    store: KeyValueStore,
    places: Iterable[Place],
    namespace: str = config.PLACES_CACHE_NAMESPACE,
) -> None:
    save_json(store, namespace, [place_to_dict(p) for p in places])


def load_places(
    store: KeyValueStore,
    namespace: str = config.PLACES_CACHE_NAMESPACE,
) -> List[Place]:
    raw = load_json(store, namespace, [])
    places: List[Place] = []
    skipped = 0
    for item in raw:
        if not isinstance(item, dict):
            skipped += 1
            continue
        try:
            places.append(place_from_dict(item))
        except (KeyError, TypeError, ValueError):
            skipped += 1
    if skipped:
        logger.warning("Skipped %s malformed cached places", skipped)
    return places


def index_by_key(places: Iterable[Place]) -> Dict[str, Place]:
    index: Dict[str, Place] = {}
    for place in places:
        index.setdefault(place.key, place)
    return index


def lookup_place(places: Iterable[Place], key: str) -> LookupResult:
    return LookupResult(key=key, place=index_by_key(places).get(key))


def dial_uri(phone: str) -> Optional[str]:
    digits = re.sub(r"[^0-9+]", "", phone or "")
    return f"tel:{digits}" if digits else None


def directions_url(place: Place) -> str:
    return config.DIRECTIONS_URL_TEMPLATE.format(
        name=quote(place.name, safe=""),
        lat=place.latitude,
        lon=place.longitude,
    )


def place_links(place: Place) -> Dict[str, Optional[str]]:
    return {
        "directions": directions_url(place),
        "dial": dial_uri(place.phone),
    }
