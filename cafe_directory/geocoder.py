"""Reverse-geocoding client: coordinates to administrative region names."""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from . import config
from .http import (
    BudgetExceededError,
    HttpClient,
    ProviderUnavailableError,
    RequestBudget,
    RequestMetrics,
)

logger = logging.getLogger(__name__)

REGION_TYPE_ADMINISTRATIVE = "H"


class RegionGeocoder:
    def __init__(
        self,
        http_client: HttpClient,
        budget: RequestBudget,
        metrics: Optional[RequestMetrics] = None,
    ) -> None:
        self.http = http_client
        self.budget = budget
        self.metrics = metrics
        self.budget_exceeded = False

    async def region_label(self, longitude: float, latitude: float) -> str:
        """Dong-level region name, or "" when the service cannot answer."""
        if self.budget_exceeded:
            return ""
        params = {"x": longitude, "y": latitude}
        try:
            self.budget.consume("geocode")
            resp = await self.http.get_json(config.KAKAO_COORD_TO_REGION_URL, params)
        except BudgetExceededError as exc:
            logger.warning("%s; remaining places get no region", exc)
            self.budget_exceeded = True
            return ""
        except ProviderUnavailableError as exc:
            logger.warning("Reverse geocode failed for %s,%s: %s", longitude, latitude, exc)
            if self.metrics is not None:
                self.metrics.inc_failure("geocode")
            return ""
        return pick_region_name(resp)


def pick_region_name(response: Dict[str, Any]) -> str:
    documents = [d for d in (response.get("documents") or []) if isinstance(d, dict)]
    if not documents:
        return ""
    chosen: Dict[str, Any] = next(
        (d for d in documents if d.get("region_type") == REGION_TYPE_ADMINISTRATIVE),
        documents[0],
    )
    return _text(chosen.get("region_3depth_name")) or _text(chosen.get("region_2depth_name"))


def _text(value: Any) -> str:
    return str(value).strip() if value else ""
