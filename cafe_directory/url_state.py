"""Mapping between FilterState and the page query string.

Only fields that differ from their default are written, so a default state
produces an empty query string. Unrecognized or invalid values load as the
field default.
"""
from __future__ import annotations

import math
from typing import Any, Dict, List, Optional
from urllib.parse import parse_qs, urlencode, urlsplit, urlunsplit

from .models import ALL, BRAND_FILTERS, SORT_ORDERS, FilterState

KEY_QUERY = "q"
KEY_REGION = "region"
KEY_BRAND = "brand"
KEY_RADIUS = "r"
KEY_SORT = "sort"
KEY_FAVORITES = "fav"

_TRUE_VALUES = {"1", "true", "yes", "on"}

DEFAULT_STATE = FilterState()


def _first(params: Dict[str, List[str]], key: str) -> Optional[str]:
    values = params.get(key)
    if not values:
        return None
    return values[0]


def parse_radius(value: Optional[str]) -> Optional[float]:
    if value is None or value == ALL:
        return None
    try:
        radius = float(value)
    except ValueError:
        return None
    if not math.isfinite(radius) or radius <= 0:
        return None
    return int(radius) if radius.is_integer() else radius


def format_radius(radius: float) -> str:
    if float(radius).is_integer():
        return str(int(radius))
    return repr(float(radius))


def load_filter_state(query_string: str) -> FilterState:
    params = parse_qs(query_string.lstrip("?"), keep_blank_values=True)
    fields: Dict[str, Any] = {}

    query = _first(params, KEY_QUERY)
    if query is not None:
        fields["query"] = query

    region = _first(params, KEY_REGION)
    if region is not None:
        fields["region"] = region

    brand = _first(params, KEY_BRAND)
    if brand in BRAND_FILTERS:
        fields["brand"] = brand

    radius = parse_radius(_first(params, KEY_RADIUS))
    if radius is not None:
        fields["radius"] = radius

    sort_order = _first(params, KEY_SORT)
    if sort_order in SORT_ORDERS:
        fields["sort_order"] = sort_order

    fav = _first(params, KEY_FAVORITES)
    if fav is not None:
        fields["favorites_only"] = fav.strip().lower() in _TRUE_VALUES

    return FilterState(**fields)


def save_filter_state(state: FilterState) -> str:
    pairs = []
    if state.query != DEFAULT_STATE.query:
        pairs.append((KEY_QUERY, state.query))
    if state.region != DEFAULT_STATE.region:
        pairs.append((KEY_REGION, state.region))
    if state.brand != DEFAULT_STATE.brand:
        pairs.append((KEY_BRAND, state.brand))
    if state.radius != DEFAULT_STATE.radius and state.radius is not None:
        pairs.append((KEY_RADIUS, format_radius(state.radius)))
    if state.sort_order != DEFAULT_STATE.sort_order:
        pairs.append((KEY_SORT, state.sort_order))
    if state.favorites_only != DEFAULT_STATE.favorites_only:
        pairs.append((KEY_FAVORITES, "1"))
    return urlencode(pairs)


def replace_query_string(url: str, state: FilterState) -> str:
    """Return ``url`` with its query string rebuilt from ``state``.

    Path and fragment are kept; the result is meant to replace the current
    location rather than push a new history entry.
    """
    parts = urlsplit(url)
    return urlunsplit(parts._replace(query=save_filter_state(state)))
