"""Project configuration.

Loads user-defined search defaults from search_config.json when available,
falling back to sensible defaults. Keep API request shapes centralized here.
"""
from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Optional

_REPO_ROOT = Path(__file__).resolve().parent.parent

# --- API endpoints ---

PLACES_NEARBY_SEARCH_URL = "https://maps.googleapis.com/maps/api/place/nearbysearch/json"
PLACES_DETAILS_URL = "https://maps.googleapis.com/maps/api/place/details/json"
GEOCODE_URL = "https://maps.googleapis.com/maps/api/geocode/json"
MAPS_PLACE_URL_TEMPLATE = "https://www.google.com/maps/search/?api=1&query=Google&query_place_id={place_id}"

# --- Detail field sets ---

BASIC_DETAIL_FIELDS: List[str] = [
    "place_id",
    "name",
    "formatted_address",
    "geometry",
    "types",
    "formatted_phone_number",
    "website",
    "opening_hours",
    "rating",
    "user_ratings_total",
    "price_level",
]
EXTENDED_DETAIL_FIELDS: List[str] = BASIC_DETAIL_FIELDS + [
    "reviews",
    "reservable",
    "curbside_pickup",
    "delivery",
    "dine_in",
    "takeout",
    "serves_breakfast",
    "serves_lunch",
    "serves_dinner",
    "serves_brunch",
    "serves_beer",
    "serves_wine",
    "serves_vegetarian_food",
]

# --- Search defaults ---

SEARCH_PLACE_TYPE = "restaurant"
GENERIC_SEARCH_TERM = "restaurant"
DEFAULT_SEARCH_RADIUS_M = 2000
DEFAULT_LOCALE = "en"
DEFAULT_LATITUDE = 25.0330
DEFAULT_LONGITUDE = 121.5654
MAX_CANDIDATES = 15
MAX_REVIEWS = 5

# --- Cache ---

CACHE_TTL_SECONDS = 300.0

# --- Circuit breaker and perf counters ---

CIRCUIT_FAILURE_THRESHOLD = 5
CIRCUIT_COOLDOWN_SECONDS = 60.0
MAX_LATENCY_SAMPLES = 100

# --- Concurrency ---

DETAIL_CONCURRENCY = 5

# --- HTTP ---

HTTP_TIMEOUT_SECONDS = 10
HTTP_RETRY_MAX = 3
HTTP_BACKOFF_BASE = 0.5
HTTP_BACKOFF_MAX = 8.0
HTTP_USER_AGENT = "restaurant-booking/1.0"

# --- Scoring ---

TOP_N_RECOMMENDATIONS = 3
SCORE_WEIGHT_RATING = 40.0
SCORE_WEIGHT_REVIEWS = 20.0
SCORE_WEIGHT_CUISINE = 20.0
SCORE_WEIGHT_EVENT = 10.0
SCORE_WEIGHT_MOOD = 10.0
REVIEW_COUNT_SATURATION = 100

# Keys in search_config.json and the module globals they override.
_CONFIG_KEYS: Dict[str, tuple] = {
    "default_radius_m": ("DEFAULT_SEARCH_RADIUS_M", int),
    "default_locale": ("DEFAULT_LOCALE", str),
    "max_candidates": ("MAX_CANDIDATES", int),
    "cache_ttl_seconds": ("CACHE_TTL_SECONDS", float),
    "circuit_failure_threshold": ("CIRCUIT_FAILURE_THRESHOLD", int),
    "circuit_cooldown_seconds": ("CIRCUIT_COOLDOWN_SECONDS", float),
    "max_latency_samples": ("MAX_LATENCY_SAMPLES", int),
    "detail_concurrency": ("DETAIL_CONCURRENCY", int),
    "http_timeout_seconds": ("HTTP_TIMEOUT_SECONDS", int),
    "top_n": ("TOP_N_RECOMMENDATIONS", int),
}


def load_search_config(path: Optional[str] = None) -> bool:
    """Load search configuration from a JSON file.

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

    center = data.get("default_center", {})
    if center.get("lat") is not None and center.get("lon") is not None:
        globals_ref["DEFAULT_LATITUDE"] = float(center["lat"])
        globals_ref["DEFAULT_LONGITUDE"] = float(center["lon"])

    for key, (name, cast) in _CONFIG_KEYS.items():
        value = data.get(key)
        if value is not None:
            globals_ref[name] = cast(value)

    scoring = data.get("scoring", {})
    for key in ("rating", "reviews", "cuisine", "event", "mood"):
        if f"{key}_weight" in scoring:
            globals_ref[f"SCORE_WEIGHT_{key.upper()}"] = float(scoring[f"{key}_weight"])

    return True
