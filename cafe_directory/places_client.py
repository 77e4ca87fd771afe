"""Category search client with pagination and response parsing."""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from . import config
from .brands import classify
from .geo import GeoBounds, normalize_coordinates
from .http import (
    BudgetExceededError,
    HttpClient,
    ProviderUnavailableError,
    RequestBudget,
    RequestMetrics,
)
from .models import Place

logger = logging.getLogger(__name__)


class PlacesClient:
    def __init__(
        self,
        http_client: HttpClient,
        budget: RequestBudget,
        category_group_code: str = config.CATEGORY_GROUP_CODE,
        page_size: int = config.PLACES_PAGE_SIZE,
        max_pages: int = config.PLACES_MAX_PAGES,
        metrics: Optional[RequestMetrics] = None,
    ) -> None:
        self.http = http_client
        self.budget = budget
        self.category_group_code = category_group_code
        self.page_size = page_size
        self.max_pages = max_pages
        self.metrics = metrics
        self.budget_exceeded = False

    async def search_category(self, bounds: GeoBounds, page: int = 1) -> Dict[str, Any]:
        params = build_category_search_params(
            self.category_group_code, bounds, page, self.page_size
        )
        self.budget.consume("search")
        return await self.http.get_json(config.KAKAO_CATEGORY_SEARCH_URL, params)

    async def search_category_all(self, bounds: GeoBounds, liveness: Any = None) -> List[Place]:
        """Follow pagination for one tile until the provider reports the end.

        A failed page ends the tile; records from earlier pages are kept.
        """
        places: List[Place] = []
        for page in range(1, self.max_pages + 1):
            if liveness is not None and not liveness.alive:
                break
            try:
                resp = await self.search_category(bounds, page=page)
            except BudgetExceededError as exc:
                logger.warning("%s; stopping tile %s", exc, bounds.to_rect())
                self.budget_exceeded = True
                break
            except ProviderUnavailableError as exc:
                logger.warning("Search failed for tile %s page %s: %s", bounds.to_rect(), page, exc)
                if self.metrics is not None:
                    self.metrics.inc_failure("search")
                break
            places.extend(parse_places_response(resp))
            if not has_next_page(resp):
                break
        return places


def build_category_search_params(
    category_group_code: str,
    bounds: GeoBounds,
    page: int,
    size: int,
) -> Dict[str, Any]:
    return {
        "category_group_code": category_group_code,
        "rect": bounds.to_rect(),
        "page": int(page),
        "size": int(size),
        "sort": config.PLACES_SORT,
    }


def has_next_page(response: Dict[str, Any]) -> bool:
    documents = response.get("documents") or []
    if not documents:
        return False
    meta = response.get("meta") or {}
    return meta.get("is_end") is False


# Adapter/mapper for category search documents

def parse_places_response(response: Dict[str, Any]) -> List[Place]:
    documents = response.get("documents") or []
    parsed: List[Place] = []
    for doc in documents:
        if not isinstance(doc, dict):
            continue
        place = parse_place(doc)
        if place is None:
            logger.debug("Dropping record with invalid coordinates: %r", doc.get("place_name"))
            continue
        parsed.append(place)
    return parsed


def parse_place(doc: Dict[str, Any]) -> Optional[Place]:
    try:
        lon = float(doc.get("x"))
        lat = float(doc.get("y"))
    except (TypeError, ValueError):
        return None
    coords = normalize_coordinates(lat, lon)
    if coords is None:
        return None
    lat, lon = coords

    name = str(doc.get("place_name") or doc.get("name") or "")
    place_id = doc.get("id")
    return Place(
        id=str(place_id) if place_id not in (None, "") else None,
        name=name,
        longitude=lon,
        latitude=lat,
        road_address=str(doc.get("road_address_name") or ""),
        address=str(doc.get("address_name") or ""),
        phone=str(doc.get("phone") or doc.get("tel") or ""),
        brand=classify(name),
    )
