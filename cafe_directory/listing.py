"""Filter/sort pipeline producing the display list.

``build_listing`` is a pure function of its inputs: the place snapshot, the
filter state, the optional reference point and an interaction snapshot. It
recomputes the whole pass on every call.
"""
from __future__ import annotations

import math
import time
import unicodedata
from collections import Counter
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from . import config
from .geo import distance_m
from .models import (
    ALL,
    SORT_NAME,
    SORT_NEAREST,
    SORT_ORDERS,
    SORT_POPULARITY,
    SORT_RECENT,
    FilterState,
    InteractionRecord,
    Place,
    ReferencePoint,
)
from .scoring import popularity_score


@dataclass(frozen=True)
class ListingEntry:
    place: Place
    key: str
    distance_m: float
    score: float
    record: Optional[InteractionRecord]


_HANGUL_RANGES = (
    (0x1100, 0x11FF),  # conjoining jamo
    (0x3130, 0x318F),  # compatibility jamo
    (0xA960, 0xA97F),
    (0xAC00, 0xD7A3),  # syllables
    (0xD7B0, 0xD7FF),
)
_HAN_RANGES = (
    (0x3400, 0x4DBF),
    (0x4E00, 0x9FFF),
    (0xF900, 0xFAFF),
)

NameKey = Tuple[Tuple[Tuple[int, str], ...], str, str]


def _in_ranges(code: int, ranges: Tuple[Tuple[int, int], ...]) -> bool:
    return any(lo <= code <= hi for lo, hi in ranges)


def _collation_group(ch: str) -> int:
    """Korean collation script order: symbols and digits, Hangul, Hanja, the rest."""
    if not unicodedata.category(ch).startswith("L"):
        return 0
    code = ord(ch)
    if _in_ranges(code, _HANGUL_RANGES):
        return 1
    if _in_ranges(code, _HAN_RANGES):
        return 2
    return 3


def name_sort_key(name: str) -> NameKey:
    """Korean-locale ordering for place names.

    Primary level ignores case and accents; decomposed Hangul jamo compare
    in dictionary order. Ties fall back to the casefolded then the exact
    NFC form, so the ordering is total.
    """
    normalized = unicodedata.normalize("NFC", name or "")
    folded = unicodedata.normalize("NFKD", normalized.casefold())
    primary = tuple(
        (_collation_group(ch), ch)
        for ch in folded
        if not unicodedata.combining(ch)
    )
    return (primary, normalized.casefold(), normalized)


def search_text(place: Place) -> str:
    parts = (
        place.name,
        place.region_label or "",
        place.road_address,
        place.address,
        place.phone,
    )
    return " ".join(p for p in parts if p).casefold()


def matches_filters(entry: ListingEntry, state: FilterState, reference: Optional[ReferencePoint]) -> bool:
    place = entry.place
    if state.favorites_only and not (entry.record and entry.record.favorite):
        return False
    if state.region != ALL and (place.region_label or "") != state.region:
        return False
    if state.brand != ALL and place.brand != state.brand:
        return False
    query = state.query.strip().casefold()
    if query and query not in search_text(place):
        return False
    if reference is not None and state.radius is not None:
        if not entry.distance_m <= state.radius:
            return False
    return True


def nearest_sort_key(entry: ListingEntry) -> Tuple[float, NameKey, str]:
    return (entry.distance_m, name_sort_key(entry.place.name), entry.key)


def recent_sort_key(entry: ListingEntry) -> Tuple[float, NameKey, str]:
    last_seen = entry.record.last_seen_at if entry.record else None
    return (-(last_seen or 0.0), name_sort_key(entry.place.name), entry.key)


def name_sort_key_entry(entry: ListingEntry) -> Tuple[NameKey, str]:
    return (name_sort_key(entry.place.name), entry.key)


def popularity_sort_key(entry: ListingEntry) -> Tuple[float, NameKey, str]:
    return (-entry.score, name_sort_key(entry.place.name), entry.key)


SORT_KEYS: Dict[str, Callable[[ListingEntry], tuple]] = {
    SORT_POPULARITY: popularity_sort_key,
    SORT_NEAREST: nearest_sort_key,
    SORT_RECENT: recent_sort_key,
    SORT_NAME: name_sort_key_entry,
}


def sort_entries(entries: Iterable[ListingEntry], sort_order: str) -> List[ListingEntry]:
    if sort_order not in SORT_ORDERS:
        raise ValueError(f"sort_order must be one of: {', '.join(SORT_ORDERS)}")
    return sorted(entries, key=SORT_KEYS[sort_order])


def build_entries(
    places: Sequence[Place],
    reference: Optional[ReferencePoint],
    interactions: Mapping[str, InteractionRecord],
    now: float,
) -> List[ListingEntry]:
    entries = []
    for place in places:
        key = place.key
        record = interactions.get(key)
        entries.append(
            ListingEntry(
                place=place,
                key=key,
                distance_m=distance_m(place, reference),
                score=popularity_score(record, now=now),
                record=record,
            )
        )
    return entries


def build_listing(
    places: Sequence[Place],
    state: FilterState,
    reference: Optional[ReferencePoint] = None,
    interactions: Optional[Mapping[str, InteractionRecord]] = None,
    now: Optional[float] = None,
) -> List[ListingEntry]:
    if now is None:
        now = time.time()
    entries = build_entries(places, reference, interactions or {}, now)
    kept = [e for e in entries if matches_filters(e, state, reference)]
    return sort_entries(kept, state.sort_order)


def region_options(places: Iterable[Place]) -> List[Tuple[str, str, int]]:
    """(filter value, display label, count) for a region picker.

    Places without a region share the catch-all label; their filter value
    stays the empty string.
    """
    counts = Counter((p.region_label or "") for p in places)
    options = [
        (value, value or config.REGION_CATCH_ALL_LABEL, count)
        for value, count in counts.items()
    ]
    return sorted(options, key=lambda o: (o[0] == "", name_sort_key(o[1])))


def format_distance(meters: float) -> str:
    if not math.isfinite(meters):
        return ""
    if meters < 1000:
        return f"{int(round(meters))}m"
    return f"{meters / 1000:.1f}km"
