"""CLI entrypoint."""
from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional

from cafe_directory import config
from cafe_directory.brands import BRAND_LABELS
from cafe_directory.cache import KeyValueStore
from cafe_directory.catalog import load_places, lookup_place, place_links
from cafe_directory.geo import GeoBounds
from cafe_directory.interactions import InteractionStore
from cafe_directory.listing import build_listing, format_distance, region_options
from cafe_directory.location import acquire_reference_point, static_provider
from cafe_directory.models import ReferencePoint
from cafe_directory.pipeline import run
from cafe_directory.reporting import write_places_csv
from cafe_directory.scoring import popularity_score
from cafe_directory.url_state import load_filter_state, save_filter_state

from dotenv import load_dotenv as _load_dotenv


def _repo_root() -> Path:
    return Path(__file__).resolve().parent


def load_env(path: str = ".env", root_dir: Optional[Path] = None) -> None:
    """Optionally load a repo-root .env file without overriding real env vars."""
    root = Path(root_dir) if root_dir else _repo_root()
    env_path = (root / path).resolve()
    if not env_path.exists():
        return
    _load_dotenv(dotenv_path=env_path, override=False)


def _env_len(name: str) -> int:
    return len((os.environ.get(name) or "").strip())


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Collect, rank and browse cafes in a region")
    group = parser.add_mutually_exclusive_group(required=True)
    group.add_argument("--preflight", action="store_true", help="Run offline checks only")
    group.add_argument("--collect", action="store_true", help="Run a full tiled collection")
    group.add_argument("--list", action="store_true", help="Filter and sort the cached places")
    group.add_argument("--regions", action="store_true", help="List region picker options")
    group.add_argument("--show", metavar="KEY", help="Show one cached place by identity key")
    group.add_argument("--click", metavar="KEY", help="Record a click on a place")
    group.add_argument("--toggle-favorite", metavar="KEY", help="Flip the favorite flag of a place")

    parser.add_argument("--config", type=str, default=None, help="Path to search_config.json")
    parser.add_argument("--store-path", type=str, default=config.STORE_DB_PATH)
    parser.add_argument("--out", type=str, default=config.OUTPUT_DIR)
    parser.add_argument("--rows", type=int, default=None)
    parser.add_argument("--cols", type=int, default=None)
    parser.add_argument("--max-search", type=int, default=config.MAX_SEARCH_REQUESTS_PER_RUN)
    parser.add_argument("--max-geocode", type=int, default=config.MAX_GEOCODE_REQUESTS_PER_RUN)
    parser.add_argument(
        "--query-string",
        type=str,
        default="",
        help='Filter state as a page query string, e.g. "q=라떼&brand=chain&sort=name"',
    )
    parser.add_argument("--lat", type=float, default=None, help="Reference point latitude")
    parser.add_argument("--lon", type=float, default=None, help="Reference point longitude")
    parser.add_argument("--limit", type=int, default=50, help="Rows to print (default: 50)")
    parser.add_argument("--csv", type=str, default=None, help="Export the listing as CSV")
    parser.add_argument("--verbose", action="store_true")
    return parser.parse_args(argv)


def run_preflight(args: argparse.Namespace) -> int:
    ok = True
    print("Preflight (redacted):")
    print(f"- {config.KAKAO_API_KEY_ENV} length: {_env_len(config.KAKAO_API_KEY_ENV)}")
    if not _env_len(config.KAKAO_API_KEY_ENV):
        ok = False
    try:
        bounds = GeoBounds.from_dict(config.REGION_BOUNDS)
        print(f"- region bounds: {bounds.to_rect()}")
    except (KeyError, ValueError) as exc:
        print(f"- region bounds invalid: {exc}")
        ok = False
    print(f"- region name fragment: {config.REGION_NAME_FRAGMENT}")
    print(f"- grid: {config.GRID_ROWS}x{config.GRID_COLS}")
    print(f"- store: {Path(args.store_path).resolve()}")
    return 0 if ok else 1


def _reference_point(args: argparse.Namespace) -> Optional[ReferencePoint]:
    if args.lat is None or args.lon is None:
        return None
    return asyncio.run(acquire_reference_point(static_provider(args.lat, args.lon)))


def run_list(args: argparse.Namespace, store: KeyValueStore) -> int:
    places = load_places(store)
    if not places:
        print("No cached places. Run --collect first.", file=sys.stderr)
        return 1
    state = load_filter_state(args.query_string)
    reference = _reference_point(args)
    interactions = InteractionStore(store).snapshot()
    entries = build_listing(places, state, reference=reference, interactions=interactions)

    print(f"Filter: ?{save_filter_state(state)}  ({len(entries)} of {len(places)} places)")
    for entry in entries[: max(0, args.limit)]:
        place = entry.place
        region = place.region_label or config.REGION_CATCH_ALL_LABEL
        fav = "*" if entry.record and entry.record.favorite else " "
        print(
            f"{fav} {place.name}\t{region}\t{BRAND_LABELS[place.brand]}"
            f"\t{format_distance(entry.distance_m)}\tscore={entry.score:g}\t{entry.key}"
        )
    if args.csv:
        write_places_csv(args.csv, [e.place for e in entries])
        print(f"CSV written to {args.csv}")
    return 0


def run_regions(store: KeyValueStore) -> int:
    for value, label, count in region_options(load_places(store)):
        print(f"{label}\t{count}\tregion={value}")
    return 0


def run_show(key: str, store: KeyValueStore) -> int:
    result = lookup_place(load_places(store), key)
    if not result.found:
        print(f"Place not found: {key}", file=sys.stderr)
        return 1
    place = result.place
    record = InteractionStore(store).get(key)
    links = place_links(place)
    print(f"{place.name} ({BRAND_LABELS[place.brand]})")
    print(f"- region: {place.region_label or config.REGION_CATCH_ALL_LABEL}")
    print(f"- address: {place.display_address}")
    print(f"- phone: {place.phone or '-'}")
    print(f"- location: {place.latitude:.6f}, {place.longitude:.6f}")
    print(f"- directions: {links['directions']}")
    if links["dial"]:
        print(f"- dial: {links['dial']}")
    if record is not None:
        print(f"- favorite: {record.favorite}, clicks: {record.click_count}")
    print(f"- popularity: {popularity_score(record):g}")
    return 0


def run_interaction(args: argparse.Namespace, store: KeyValueStore) -> int:
    key = args.click if args.click is not None else args.toggle_favorite
    if not lookup_place(load_places(store), key).found:
        print(f"Place not found: {key}", file=sys.stderr)
        return 1
    interactions = InteractionStore(store)
    if args.click is not None:
        record = interactions.record_click(key)
    else:
        record = interactions.toggle_favorite(key)
    print(f"{key}: favorite={record.favorite} clicks={record.click_count}")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    load_env()
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )
    config.load_search_config(args.config)

    if args.preflight:
        return run_preflight(args)

    store = KeyValueStore(args.store_path)
    try:
        if args.list:
            return run_list(args, store)
        if args.regions:
            return run_regions(store)
        if args.show is not None:
            return run_show(args.show, store)
        if args.click is not None or args.toggle_favorite is not None:
            return run_interaction(args, store)

        api_key = os.environ.get(config.KAKAO_API_KEY_ENV)
        if not api_key:
            print(f"Missing {config.KAKAO_API_KEY_ENV} in environment", file=sys.stderr)
            return 1
        result = asyncio.run(
            run(
                api_key=api_key,
                store=store,
                rows=args.rows,
                cols=args.cols,
                max_search=args.max_search,
                max_geocode=args.max_geocode,
                output_dir=args.out,
                write_outputs=True,
            )
        )
    except Exception as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    finally:
        store.close()

    print(
        f"Done. {len(result.places)} places written to {args.out}/places.csv and {args.out}/places.json"
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
