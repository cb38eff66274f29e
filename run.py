"""CLI entrypoint."""
from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv as _load_dotenv

from emojimap import config
from emojimap.cache import Cache
from emojimap.categories import KEY_TO_EMOJI
from emojimap.home import HomeViewModel
from emojimap.http import HttpClient, RequestMetrics
from emojimap.models import Coordinate, Place, ViewportRegion
from emojimap.places_client import PlacesClient, PlacesService
from emojimap.preferences import JsonPreferenceStore, PreferenceStore
from emojimap.reporting import (
    ensure_dir,
    format_place,
    render_summary,
    write_places_csv,
    write_places_json,
)

DEFAULT_SPAN_DEGREES = 0.05


def _repo_root() -> Path:
    return Path(__file__).resolve().parent


def load_env(path: str = ".env", root_dir: Optional[Path] = None) -> None:
    """Load a repo-root .env file without overriding real env vars."""
    root = Path(root_dir) if root_dir else _repo_root()
    env_path = (root / path).resolve()
    if not env_path.exists():
        return
    _load_dotenv(dotenv_path=env_path, override=False)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Emoji map places explorer")
    parser.add_argument("--preflight", action="store_true", help="Run offline checks and exit")
    parser.add_argument(
        "--preflight-online",
        action="store_true",
        help="Run offline checks + one nearby search against the backend",
    )
    parser.add_argument("--lat", type=float, default=None, help="Viewport center latitude")
    parser.add_argument("--lon", type=float, default=None, help="Viewport center longitude")
    parser.add_argument(
        "--span",
        type=float,
        default=DEFAULT_SPAN_DEGREES,
        help=f"Viewport span in degrees (default: {DEFAULT_SPAN_DEGREES})",
    )
    parser.add_argument(
        "--category",
        type=int,
        action="append",
        default=None,
        help="Category key to select (repeatable; default: all categories)",
    )
    parser.add_argument("--favorites-only", action="store_true")
    parser.add_argument("--price", type=int, nargs="+", default=None, help="Price levels 1-4")
    parser.add_argument("--open-now", action="store_true")
    parser.add_argument("--min-rating", type=int, default=0, help="Minimum rating 0-5")
    parser.add_argument(
        "--local-ratings",
        action="store_true",
        help="Compare --min-rating against your own ratings instead of Google's",
    )
    parser.add_argument("--random", action="store_true", help="Pick a random place from the results")
    parser.add_argument("--refresh", action="store_true", help="Bypass cache reads")
    parser.add_argument("--list-categories", action="store_true", help="Print category keys and exit")
    parser.add_argument("--cache-path", type=str, default=None)
    parser.add_argument("--prefs", type=str, default=None, help="Preferences JSON path")
    parser.add_argument("--out", type=str, default=config.OUTPUT_DIR)
    parser.add_argument("--verbose", action="store_true")
    return parser.parse_args(argv)


def _has_filters(args: argparse.Namespace) -> bool:
    return bool(args.price) or args.open_now or args.min_rating > 0 or args.local_ratings


async def run_session(
    args: argparse.Namespace,
    service: PlacesService,
    preferences: PreferenceStore,
) -> HomeViewModel:
    vm = HomeViewModel(service, preferences, debounce_seconds=0)
    try:
        for key in args.category or []:
            vm.toggle_category(key)
        if args.favorites_only:
            vm.toggle_favorites_only()
        if _has_filters(args):
            vm.set_filters(
                price_levels=args.price,
                minimum_rating=args.min_rating,
                use_local_ratings=args.local_ratings,
                show_open_now_only=args.open_now,
            )

        center = Coordinate(args.lat, args.lon)
        vm.handle_viewport_change(ViewportRegion(center, args.span, args.span))
        await vm.wait_idle()
        if args.refresh:
            vm.refresh()
            await vm.wait_idle()
        if args.random and vm.select_random_place() is not None:
            await vm.wait_idle()
    finally:
        vm.close()
    return vm


def build_summary(vm: HomeViewModel, metrics: RequestMetrics) -> Dict[str, Any]:
    summary: Dict[str, Any] = {
        "all_places": len(vm.all_places),
        "filtered_places": len(vm.filtered_places),
        "categories": sorted(vm.selected_category_keys),
        "network_filters": vm.has_network_dependent_filters,
        "error_message": vm.error_message,
    }
    summary.update(metrics.as_dict())
    return summary


def format_place_details(vm: HomeViewModel) -> List[str]:
    lines: List[str] = []
    details = vm.selected_place_details
    if details is not None:
        if details.editorial_summary:
            lines.append(f"  {details.editorial_summary}")
        for review in details.reviews:
            lines.append(f"  [{review.rating}/5] {review.author}: {review.text}")
    if vm.selected_place_photos:
        lines.append(f"  Photos: {len(vm.selected_place_photos)}")
    for error in (vm.details_error, vm.photos_error):
        if error:
            lines.append(f"  {error}")
    return lines


def write_outputs(out_dir: str, places: List[Place]) -> None:
    ensure_dir(out_dir)
    write_places_csv(os.path.join(out_dir, "places.csv"), places)
    write_places_json(os.path.join(out_dir, "places.json"), places)


def run_preflight(
    online: bool,
    cache_path: str,
    prefs_path: str,
    location: Optional[Coordinate] = None,
) -> int:
    ok = True

    url = config.places_search_url()
    if url.startswith(("http://", "https://")):
        print(f"Backend URL: OK ({url})")
    else:
        print(f"Backend URL: FAIL ({url})")
        ok = False

    radius = config.DEFAULT_SEARCH_RADIUS_M
    if config.MIN_SEARCH_RADIUS_M <= radius <= config.MAX_SEARCH_RADIUS_M:
        print(f"Search radius: OK ({radius}m)")
    else:
        print(f"Search radius: FAIL ({radius}m)")
        ok = False

    cache: Optional[Cache] = None
    try:
        cache = Cache(cache_path, ttl_seconds=config.CACHE_EXPIRATION_SECONDS)
        print(f"Cache: OK ({cache.count()} entries)")
    except Exception as exc:
        print(f"Cache: FAIL ({exc})")
        ok = False

    try:
        prefs = JsonPreferenceStore(prefs_path)
        print(f"Preferences: OK ({len(prefs.favorite_place_ids)} favorites, {len(prefs.ratings)} ratings)")
    except Exception as exc:
        print(f"Preferences: FAIL ({exc})")
        ok = False

    if online and ok and cache is not None:
        client = PlacesClient(_make_http_client(), cache)
        try:
            places = asyncio.run(client.fetch_nearby(location or Coordinate(0.0, 0.0)))
            print(f"Online: OK ({len(places)} places)")
        except Exception as exc:
            print(f"Online: FAIL ({exc})")
            ok = False

    if cache is not None:
        cache.close()
    print("Preflight: PASS" if ok else "Preflight: FAIL")
    return 0 if ok else 1


def _make_http_client() -> HttpClient:
    return HttpClient(
        timeout=config.HTTP_TIMEOUT_SECONDS,
        retry_max=config.HTTP_RETRY_MAX,
        backoff_base=config.HTTP_BACKOFF_BASE,
        backoff_max=config.HTTP_BACKOFF_MAX,
        auth_token=os.environ.get("EMOJIMAP_API_TOKEN") or None,
    )


def main(argv: Optional[List[str]] = None) -> int:
    load_env()
    config.load_client_config()
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    cache_path = args.cache_path or config.CACHE_DB_PATH
    prefs_path = args.prefs or config.PREFERENCES_PATH

    if args.preflight or args.preflight_online:
        location = None
        if args.lat is not None and args.lon is not None:
            location = Coordinate(args.lat, args.lon)
        return run_preflight(args.preflight_online, cache_path, prefs_path, location)

    if args.list_categories:
        for key, emoji in sorted(KEY_TO_EMOJI.items()):
            print(f"{key:>2} {emoji}")
        return 0

    if args.lat is None or args.lon is None:
        print("--lat and --lon are required", file=sys.stderr)
        return 1

    metrics = RequestMetrics()
    cache = Cache(cache_path, ttl_seconds=config.CACHE_EXPIRATION_SECONDS)
    try:
        preferences = JsonPreferenceStore(prefs_path)
        client = PlacesClient(_make_http_client(), cache, metrics=metrics)
        vm = asyncio.run(run_session(args, client, preferences))
    except Exception as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    finally:
        cache.close()

    for place in vm.filtered_places:
        print(format_place(place))
    for line in render_summary(build_summary(vm, metrics)):
        print(line)
    if vm.selected_place is not None:
        print(f"Random pick: {format_place(vm.selected_place)}")
        for line in format_place_details(vm):
            print(line)

    write_outputs(args.out, vm.filtered_places)
    print(f"Done. Results written to {args.out}/places.csv and {args.out}/places.json")
    return 1 if vm.error_message else 0


if __name__ == "__main__":
    raise SystemExit(main())
