"""Collection run orchestration: tiles -> search -> dedup -> containment -> regions."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, replace
from typing import Any, Dict, List, Optional, Sequence

from . import config
from .cache import KeyValueStore
from .catalog import save_places
from .geo import GeoBounds, split_bounds
from .geocoder import RegionGeocoder
from .http import HttpClient, RequestBudget, RequestMetrics
from .models import BRAND_CHAIN, Place
from .places_client import PlacesClient
from .reporting import (
    ProgressReporter,
    ensure_dir,
    write_json_object,
    write_places_csv,
    write_places_json,
)

logger = logging.getLogger(__name__)


class Liveness:
    """Checked before every state mutation; ``stop()`` ends a run early."""

    def __init__(self) -> None:
        self.alive = True

    def stop(self) -> None:
        self.alive = False


@dataclass
class PipelineResult:
    places: List[Place]
    summary: Dict[str, Any]


async def collect_tiles(
    places_client: PlacesClient,
    tiles: Sequence[GeoBounds],
    pause_seconds: float = config.TILE_PAUSE_SECONDS,
    liveness: Optional[Liveness] = None,
    progress: Optional[ProgressReporter] = None,
) -> List[Place]:
    """Search tiles strictly one after another, in partition order."""
    collected: List[Place] = []
    for idx, tile in enumerate(tiles):
        if liveness is not None and not liveness.alive:
            break
        part = await places_client.search_category_all(tile, liveness=liveness)
        if liveness is not None and not liveness.alive:
            break
        collected.extend(part)
        logger.debug("Tile %s/%s %s: %s records", idx + 1, len(tiles), tile.to_rect(), len(part))
        if progress:
            progress.advance()
        if places_client.budget_exceeded:
            break
        if pause_seconds > 0:
            await asyncio.sleep(pause_seconds)
    return collected


def dedupe_places(places: Sequence[Place]) -> List[Place]:
    """Keep the first record per identity key, preserving order."""
    seen = set()
    unique: List[Place] = []
    for place in places:
        key = place.key
        if key in seen:
            continue
        seen.add(key)
        unique.append(place)
    return unique


def filter_contained(
    places: Sequence[Place],
    bounds: GeoBounds,
    name_fragment: str,
) -> List[Place]:
    """Keep places inside the box, or whose address names the region."""
    kept = []
    for place in places:
        in_box = bounds.contains(place.latitude, place.longitude)
        address = place.road_address or place.address
        by_address = bool(name_fragment) and name_fragment in address
        if in_box or by_address:
            kept.append(place)
    return kept


async def annotate_regions(
    places: Sequence[Place],
    geocoder: RegionGeocoder,
    batch_size: int = config.ANNOTATE_BATCH_SIZE,
    pause_seconds: float = config.ANNOTATE_PAUSE_SECONDS,
    liveness: Optional[Liveness] = None,
    progress: Optional[ProgressReporter] = None,
) -> List[Place]:
    """Attach a region label to each place, one geocode call at a time.

    Every returned place carries a string label; "" means unknown.
    """
    batch_size = max(1, int(batch_size))
    out: List[Place] = []
    for i, place in enumerate(places):
        label = ""
        if liveness is None or liveness.alive:
            label = await geocoder.region_label(place.longitude, place.latitude)
        out.append(replace(place, region_label=label))
        if progress:
            progress.advance()
        if i % batch_size == 0 and pause_seconds > 0 and (liveness is None or liveness.alive):
            await asyncio.sleep(pause_seconds)
    return out


def summarize(
    tiles: int,
    raw: int,
    unique: int,
    places: Sequence[Place],
    metrics: RequestMetrics,
    budget_exceeded: bool,
    stopped: bool,
) -> Dict[str, Any]:
    chain = sum(1 for p in places if p.brand == BRAND_CHAIN)
    return {
        "tiles": tiles,
        "raw_records": raw,
        "unique_records": unique,
        "contained_records": len(places),
        "chain": chain,
        "independent": len(places) - chain,
        "empty_region": sum(1 for p in places if not p.region_label),
        "search_requests": metrics.network_search,
        "geocode_requests": metrics.network_geocode,
        "failed_search": metrics.failed_search,
        "failed_geocode": metrics.failed_geocode,
        "budget_exceeded": budget_exceeded,
        "stopped": stopped,
    }


def render_summary(summary: Dict[str, Any]) -> List[str]:
    return [
        f"Tiles searched: {summary['tiles']}",
        f"Raw records: {summary['raw_records']}",
        f"Unique records: {summary['unique_records']}",
        f"In region: {summary['contained_records']}",
        f"Chain / independent: {summary['chain']} / {summary['independent']}",
        f"Without region label: {summary['empty_region']}",
        f"Requests (search / geocode): {summary['search_requests']} / {summary['geocode_requests']}",
        f"Budget exceeded: {summary['budget_exceeded']}",
    ]


async def run(
    api_key: Optional[str],
    store: Optional[KeyValueStore] = None,
    bounds: Optional[GeoBounds] = None,
    name_fragment: Optional[str] = None,
    rows: Optional[int] = None,
    cols: Optional[int] = None,
    tile_pause_seconds: Optional[float] = None,
    annotate_batch_size: Optional[int] = None,
    annotate_pause_seconds: Optional[float] = None,
    max_search: int = config.MAX_SEARCH_REQUESTS_PER_RUN,
    max_geocode: int = config.MAX_GEOCODE_REQUESTS_PER_RUN,
    output_dir: str = config.OUTPUT_DIR,
    write_outputs: bool = True,
    places_client: Optional[PlacesClient] = None,
    geocoder: Optional[RegionGeocoder] = None,
    metrics: Optional[RequestMetrics] = None,
    liveness: Optional[Liveness] = None,
) -> PipelineResult:
    if bounds is None:
        bounds = GeoBounds.from_dict(config.REGION_BOUNDS)
    if name_fragment is None:
        name_fragment = config.REGION_NAME_FRAGMENT
    rows = config.GRID_ROWS if rows is None else rows
    cols = config.GRID_COLS if cols is None else cols
    if tile_pause_seconds is None:
        tile_pause_seconds = config.TILE_PAUSE_SECONDS
    if annotate_batch_size is None:
        annotate_batch_size = config.ANNOTATE_BATCH_SIZE
    if annotate_pause_seconds is None:
        annotate_pause_seconds = config.ANNOTATE_PAUSE_SECONDS
    if metrics is None:
        metrics = RequestMetrics()
    if liveness is None:
        liveness = Liveness()

    if write_outputs:
        ensure_dir(output_dir)

    progress = ProgressReporter(
        output_path=f"{output_dir}/progress.json" if write_outputs else None,
        log_every=config.PROGRESS_LOG_EVERY,
        write_interval_seconds=config.PROGRESS_WRITE_INTERVAL_SECONDS,
        logger=logger,
        metrics=metrics,
    )

    budget = RequestBudget(
        max_search=max_search,
        max_geocode=max_geocode,
        on_consume=progress.on_request,
        metrics=metrics,
    )

    http_client: Optional[HttpClient] = None
    if places_client is None or geocoder is None:
        if not api_key:
            raise ValueError("API key is required when using real API clients")
        http_client = HttpClient(
            api_key,
            timeout=config.HTTP_TIMEOUT_SECONDS,
            retry_max=config.HTTP_RETRY_MAX,
            backoff_base=config.HTTP_BACKOFF_BASE,
            backoff_max=config.HTTP_BACKOFF_MAX,
        )
        if places_client is None:
            places_client = PlacesClient(
                http_client,
                budget,
                category_group_code=config.CATEGORY_GROUP_CODE,
                metrics=metrics,
            )
        if geocoder is None:
            geocoder = RegionGeocoder(http_client, budget, metrics=metrics)

    try:
        tiles = split_bounds(bounds, rows, cols)
        logger.info("Stage 1: tiled collection (%s tiles)", len(tiles))
        progress.set_stage("collect", total_estimate=len(tiles))
        raw = await collect_tiles(
            places_client,
            tiles,
            pause_seconds=tile_pause_seconds,
            liveness=liveness,
            progress=progress,
        )

        logger.info("Stage 2: dedup and containment (%s raw records)", len(raw))
        unique = dedupe_places(raw)
        contained = filter_contained(unique, bounds, name_fragment)

        logger.info("Stage 3: region annotation (%s places)", len(contained))
        progress.set_stage("annotate", total_estimate=len(contained))
        annotated = await annotate_regions(
            contained,
            geocoder,
            batch_size=annotate_batch_size,
            pause_seconds=annotate_pause_seconds,
            liveness=liveness,
            progress=progress,
        )
    finally:
        if http_client is not None:
            await http_client.close()

    summary = summarize(
        tiles=len(tiles),
        raw=len(raw),
        unique=len(unique),
        places=annotated,
        metrics=metrics,
        budget_exceeded=places_client.budget_exceeded or geocoder.budget_exceeded,
        stopped=not liveness.alive,
    )

    if not liveness.alive:
        logger.info("Run stopped before completion; results not published")
        return PipelineResult(places=annotated, summary=summary)

    if store is not None:
        save_places(store, annotated)

    if write_outputs:
        logger.info("Stage 4: outputs")
        progress.set_stage("outputs", total_estimate=3)
        write_places_csv(f"{output_dir}/places.csv", annotated)
        progress.advance()
        write_places_json(f"{output_dir}/places.json", annotated)
        progress.advance()
        write_json_object(f"{output_dir}/summary.json", summary)
        progress.advance()
        progress.flush()

    for line in render_summary(summary):
        logger.info(line)

    return PipelineResult(places=annotated, summary=summary)
