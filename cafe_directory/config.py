"""Project configuration.

Loads user-defined region parameters from search_config.json when available,
falling back to the Chuncheon defaults. Keep API request shapes centralized here.
"""
from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Optional

_REPO_ROOT = Path(__file__).resolve().parent.parent

# --- API endpoints ---

KAKAO_CATEGORY_SEARCH_URL = "https://dapi.kakao.com/v2/local/search/category.json"
KAKAO_COORD_TO_REGION_URL = "https://dapi.kakao.com/v2/local/geo/coord2regioncode.json"
KAKAO_API_KEY_ENV = "KAKAO_REST_API_KEY"
DIRECTIONS_URL_TEMPLATE = "https://map.kakao.com/link/to/{name},{lat},{lon}"

# --- Category search request shape ---

CATEGORY_GROUP_CODE = "CE7"  # cafes
PLACES_PAGE_SIZE = 15
PLACES_MAX_PAGES = 45
PLACES_SORT = "accuracy"

# --- Region (defaults used when no search_config.json) ---

_DEFAULT_REGION_BOUNDS: Dict[str, float] = {
    "sw_lat": 37.7500,
    "sw_lon": 127.5500,
    "ne_lat": 38.0300,
    "ne_lon": 127.9000,
}
_DEFAULT_REGION_NAME = "춘천시"

REGION_BOUNDS: Dict[str, float] = dict(_DEFAULT_REGION_BOUNDS)
REGION_NAME_FRAGMENT = _DEFAULT_REGION_NAME
REGION_CATCH_ALL_LABEL = "기타"

# --- Tiling and pacing ---

GRID_ROWS = 4
GRID_COLS = 4
TILE_PAUSE_SECONDS = 0.12
ANNOTATE_BATCH_SIZE = 10
ANNOTATE_PAUSE_SECONDS = 0.05

# --- Budgets ---

MAX_SEARCH_REQUESTS_PER_RUN = 800
MAX_GEOCODE_REQUESTS_PER_RUN = 3000

# --- HTTP ---

HTTP_TIMEOUT_SECONDS = 10
HTTP_RETRY_MAX = 3
HTTP_BACKOFF_BASE = 0.5
HTTP_BACKOFF_MAX = 8.0

# --- Reference point ---

GEOLOCATION_TIMEOUT_SECONDS = 7.0

# --- Durable store and outputs ---

STORE_DB_PATH = "store.db"
INTERACTIONS_NAMESPACE = "interaction_stats"
PLACES_CACHE_NAMESPACE = "places_cache"
OUTPUT_DIR = "out"
PROGRESS_LOG_EVERY = 50
PROGRESS_WRITE_INTERVAL_SECONDS = 5.0


def load_search_config(path: Optional[str] = None) -> bool:
    """Load region configuration from a JSON file.

    Updates module-level globals with values from the config file.
    Returns True if config was loaded, False if file not found.
    """
    if path is None:
        path = str(_REPO_ROOT / "search_config.json")

    config_path = Path(path)
    if not config_path.exists():
        return False

    with open(config_path, "r", encoding="utf-8") as f:
        data: Dict[str, Any] = json.load(f)

    globals_ref = globals()

    region = data.get("region", {})
    bounds = region.get("bounds")
    if bounds:
        globals_ref["REGION_BOUNDS"] = {
            key: float(bounds[key]) for key in ("sw_lat", "sw_lon", "ne_lat", "ne_lon")
        }
    name = region.get("name_fragment")
    if name:
        globals_ref["REGION_NAME_FRAGMENT"] = str(name)

    grid = data.get("grid", {})
    if "rows" in grid:
        globals_ref["GRID_ROWS"] = int(grid["rows"])
    if "cols" in grid:
        globals_ref["GRID_COLS"] = int(grid["cols"])

    pacing = data.get("pacing", {})
    if "tile_pause_seconds" in pacing:
        globals_ref["TILE_PAUSE_SECONDS"] = float(pacing["tile_pause_seconds"])
    if "annotate_batch_size" in pacing:
        globals_ref["ANNOTATE_BATCH_SIZE"] = int(pacing["annotate_batch_size"])
    if "annotate_pause_seconds" in pacing:
        globals_ref["ANNOTATE_PAUSE_SECONDS"] = float(pacing["annotate_pause_seconds"])

    category = data.get("category_group_code")
    if category:
        globals_ref["CATEGORY_GROUP_CODE"] = str(category)

    return True
