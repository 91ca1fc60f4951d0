"""CLI entrypoint."""
from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv as _load_dotenv

from restaurant_booking import config
from restaurant_booking.booking import booking_instructions
from restaurant_booking.geocoding import ResolutionError
from restaurant_booking.http import UpstreamError
from restaurant_booking.models import Coordinate, SearchRequest
from restaurant_booking.reporting import build_search_report, write_json_object
from restaurant_booking.scoring import rank
from restaurant_booking.search import SearchOrchestrator, build_orchestrator

NO_RESULTS_MESSAGE = (
    "No restaurants found matching your criteria. "
    "Try expanding your search radius or adjusting your preferences."
)


def _repo_root() -> Path:
    return Path(__file__).resolve().parent


def load_env(path: str = ".env", root_dir: Optional[Path] = None) -> None:
    """Optionally load a repo-root .env file without overriding real env vars."""
    root = Path(root_dir) if root_dir else _repo_root()
    env_path = (root / path).resolve()
    if not env_path.exists():
        return
    _load_dotenv(dotenv_path=env_path, override=False)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Search and rank nearby restaurants")
    parser.add_argument("--lat", type=float, default=None, help="Search origin latitude")
    parser.add_argument("--lon", type=float, default=None, help="Search origin longitude")
    parser.add_argument("--place", type=str, default=None, help="Place name to search near (geocoded)")
    parser.add_argument(
        "--cuisine",
        action="append",
        default=[],
        help="Preferred cuisine; repeat for several (e.g. --cuisine Italian --cuisine Japanese)",
    )
    parser.add_argument("--keyword", type=str, default=None, help="Specific dish or food type (e.g. ramen)")
    parser.add_argument("--radius", type=int, default=None, help="Search radius in meters")
    parser.add_argument("--price", type=int, choices=[1, 2, 3, 4], default=None, help="Price level 1-4")
    parser.add_argument("--locale", type=str, default=None, help="Result language (e.g. en, zh-TW, ja)")
    parser.add_argument("--mood", type=str, default="", help="Desired mood (romantic, casual, upscale, ...)")
    parser.add_argument("--event", type=str, default="", help="Occasion (dating, business meeting, ...)")
    parser.add_argument("--top", type=int, default=None, help="Number of recommendations")
    parser.add_argument("--concurrency", type=int, default=None, help="Parallel detail requests")
    parser.add_argument("--booking", action="store_true", help="Include booking guidance per recommendation")
    parser.add_argument("--metrics", action="store_true", help="Print performance metrics to stderr")
    parser.add_argument("--out", type=str, default=None, help="Also write the JSON report to this path")
    parser.add_argument("--config", type=str, default=None, help="Path to search_config.json")
    parser.add_argument("--verbose", action="store_true")
    return parser.parse_args(argv)


def _option_or_default(value: Optional[int], default: int) -> int:
    return default if value is None else value


def build_request(args: argparse.Namespace) -> SearchRequest:
    origin: Optional[Coordinate] = None
    if not args.place:
        lat = args.lat if args.lat is not None else config.DEFAULT_LATITUDE
        lon = args.lon if args.lon is not None else config.DEFAULT_LONGITUDE
        origin = Coordinate(lat, lon)
    return SearchRequest(
        origin=origin,
        place_name=args.place,
        cuisine_filters=tuple(args.cuisine or ()),
        keyword=args.keyword,
        radius_meters=_option_or_default(args.radius, config.DEFAULT_SEARCH_RADIUS_M),
        price_tier=args.price,
        locale=args.locale or config.DEFAULT_LOCALE,
        max_results=config.MAX_CANDIDATES,
        mood=args.mood or "",
        event=args.event or "",
    )


def run_search(
    orchestrator: SearchOrchestrator,
    request: SearchRequest,
    top_n: int,
    with_booking: bool = False,
) -> Optional[dict]:
    """Search, rank and build the report; ``None`` when nothing matched."""
    places = orchestrator.search(request)
    if not places:
        return None
    ranked = rank(places, request, top_n=top_n)
    guidance = None
    if with_booking:
        guidance = {r.place.place_id: booking_instructions(r.place) for r in ranked}
    return build_search_report(request, places, ranked, booking_guidance=guidance)


def main(argv: Optional[List[str]] = None, orchestrator: Optional[SearchOrchestrator] = None) -> int:
    load_env()
    args = parse_args(argv)
    config.load_search_config(args.config)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    top_n = _option_or_default(args.top, config.TOP_N_RECOMMENDATIONS)
    concurrency = _option_or_default(args.concurrency, config.DETAIL_CONCURRENCY)
    try:
        if top_n <= 0:
            raise ValueError(f"--top must be positive: {top_n}")
        if concurrency <= 0:
            raise ValueError(f"--concurrency must be positive: {concurrency}")
        request = build_request(args)
    except ValueError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2

    if orchestrator is None:
        api_key = (os.environ.get("GOOGLE_MAPS_API_KEY") or "").strip()
        if not api_key:
            print("Missing GOOGLE_MAPS_API_KEY in environment", file=sys.stderr)
            return 1
        orchestrator = build_orchestrator(
            api_key,
            cache_ttl_seconds=config.CACHE_TTL_SECONDS,
            failure_threshold=config.CIRCUIT_FAILURE_THRESHOLD,
            cool_down_seconds=config.CIRCUIT_COOLDOWN_SECONDS,
            max_latency_samples=config.MAX_LATENCY_SAMPLES,
            concurrency=concurrency,
            max_candidates=config.MAX_CANDIDATES,
            http_timeout=config.HTTP_TIMEOUT_SECONDS,
        )

    try:
        report = run_search(orchestrator, request, top_n=top_n, with_booking=args.booking)
    except (ResolutionError, UpstreamError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    finally:
        if args.metrics:
            print(json.dumps(orchestrator.get_performance_metrics(), indent=2), file=sys.stderr)

    if report is None:
        print(NO_RESULTS_MESSAGE)
        return 0

    print(json.dumps(report, ensure_ascii=False, indent=2))
    if args.out:
        write_json_object(args.out, report)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
