"""Per-candidate detail enrichment.

Every detail fetch goes through the shared ResultCache (dedup + TTL) and the
RateLimitedFetcher breaker. Raw upstream records are mapped to ``Place`` here
and nowhere else; failures never escape ``enrich``.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, Iterable, List, Optional

from . import config
from .booking import analyze_booking_profile
from .cache import NOT_FOUND, ResultCache, make_detail_cache_key
from .fetcher import CircuitOpenError, RateLimitedFetcher
from .http import UpstreamError
from .models import CandidateStub, OpeningStatus, Place, Review, ServiceFlags
from .places_client import STATUS_OK, PlacesClient, parse_location

logger = logging.getLogger(__name__)

CUISINE_LABELS: Dict[str, str] = {
    "chinese_restaurant": "Chinese",
    "japanese_restaurant": "Japanese",
    "korean_restaurant": "Korean",
    "thai_restaurant": "Thai",
    "vietnamese_restaurant": "Vietnamese",
    "indian_restaurant": "Indian",
    "italian_restaurant": "Italian",
    "french_restaurant": "French",
    "mexican_restaurant": "Mexican",
    "american_restaurant": "American",
    "mediterranean_restaurant": "Mediterranean",
    "greek_restaurant": "Greek",
    "turkish_restaurant": "Turkish",
    "spanish_restaurant": "Spanish",
    "german_restaurant": "German",
    "brazilian_restaurant": "Brazilian",
    "seafood_restaurant": "Seafood",
    "steak_house": "Steakhouse",
    "steakhouse": "Steakhouse",
    "pizza_restaurant": "Pizza",
    "bakery": "Bakery",
    "cafe": "Cafe",
    "fast_food_restaurant": "Fast Food",
    "fine_dining_restaurant": "Fine Dining",
    "buffet_restaurant": "Buffet",
    "barbecue_restaurant": "BBQ",
    "sushi_restaurant": "Sushi",
    "vegetarian_restaurant": "Vegetarian",
    "vegan_restaurant": "Vegan",
}
GENERIC_CUISINE_TYPES = ("restaurant", "establishment")
GENERIC_CUISINE_LABEL = "Restaurant"

NOT_FOUND_STATUSES = ("NOT_FOUND", "ZERO_RESULTS")

SERVICE_FLAG_FIELDS = (
    "reservable",
    "dine_in",
    "takeout",
    "delivery",
    "curbside_pickup",
    "serves_breakfast",
    "serves_lunch",
    "serves_dinner",
    "serves_brunch",
    "serves_beer",
    "serves_wine",
    "serves_vegetarian_food",
)


class MalformedRecordError(ValueError):
    pass


@dataclass(frozen=True)
class DetailFetchFailure:
    place_id: str
    reason: str


@dataclass(frozen=True)
class EnrichResult:
    place_id: str
    place: Optional[Place] = None
    failure: Optional[DetailFetchFailure] = None

    @property
    def ok(self) -> bool:
        return self.place is not None


class DetailEnricher:
    def __init__(
        self,
        places_client: PlacesClient,
        cache: ResultCache,
        fetcher: RateLimitedFetcher,
        extended_fields: bool = True,
    ) -> None:
        self.places = places_client
        self.cache = cache
        self.fetcher = fetcher
        self.extended_fields = extended_fields

    @property
    def fields(self) -> List[str]:
        return config.EXTENDED_DETAIL_FIELDS if self.extended_fields else config.BASIC_DETAIL_FIELDS

    def enrich(self, candidate: CandidateStub, locale: str = config.DEFAULT_LOCALE) -> Optional[Place]:
        return self.enrich_result(candidate, locale).place

    def enrich_result(self, candidate: CandidateStub, locale: str = config.DEFAULT_LOCALE) -> EnrichResult:
        place_id = candidate.place_id
        key = make_detail_cache_key(place_id, locale, self.extended_fields)
        try:
            payload = self.cache.get_or_fetch(key, lambda: self._fetch(place_id, locale))
        except CircuitOpenError:
            logger.debug("Circuit open, skipping details for %s", place_id)
            return _failed(place_id, "circuit_open")
        except UpstreamError as exc:
            logger.warning("Details failed for %s: %s", place_id, exc)
            return _failed(place_id, f"status:{exc.status}" if exc.status else "transport")
        except MalformedRecordError:
            logger.warning("Details for %s missing required fields", place_id)
            return _failed(place_id, "malformed")
        except Exception as exc:
            logger.warning("Details failed for %s: %r", place_id, exc)
            return _failed(place_id, f"exception:{type(exc).__name__}")

        if payload is NOT_FOUND:
            return _failed(place_id, "not_found")
        return EnrichResult(place_id=place_id, place=payload)

    def _fetch(self, place_id: str, locale: str) -> Any:
        # Runs once per key per TTL window; cache stores whatever this returns.
        # Mapping runs inside the breaker call: a malformed record is a failure, not a latency sample.
        return self.fetcher.call(lambda: self._load(place_id, locale))

    def _load(self, place_id: str, locale: str) -> Any:
        response = self.places.place_details(place_id, fields=self.fields, language=locale)
        status = response.get("status")
        if status in NOT_FOUND_STATUSES:
            logger.warning("Place %s not found upstream (%s)", place_id, status)
            return NOT_FOUND
        if status != STATUS_OK:
            raise UpstreamError(f"Place details API error: {status}", status=status)

        raw = response.get("result")
        if not isinstance(raw, dict):
            raise MalformedRecordError(f"{place_id}: result is {type(raw).__name__}")
        try:
            place = map_place_details(raw)
        except (TypeError, ValueError, AttributeError) as exc:
            raise MalformedRecordError(place_id) from exc
        if place is None:
            raise MalformedRecordError(place_id)
        return place


def _failed(place_id: str, reason: str) -> EnrichResult:
    return EnrichResult(place_id=place_id, failure=DetailFetchFailure(place_id=place_id, reason=reason))


# Adapter/mapper for place detail fields

def extract_cuisine_tags(types: Iterable[str]) -> FrozenSet[str]:
    types = list(types or [])
    tags = {CUISINE_LABELS[t] for t in types if t in CUISINE_LABELS}
    if not tags and any(t in GENERIC_CUISINE_TYPES for t in types):
        tags.add(GENERIC_CUISINE_LABEL)
    return frozenset(tags)


def maps_url_for(place_id: str) -> str:
    return config.MAPS_PLACE_URL_TEMPLATE.format(place_id=place_id)


def _parse_price_tier(value: Any) -> Optional[int]:
    try:
        tier = int(value)
    except (TypeError, ValueError):
        return None
    return tier if 1 <= tier <= 4 else None


def _parse_reviews(raw: Any) -> List[Review]:
    reviews: List[Review] = []
    for r in (raw or [])[: config.MAX_REVIEWS]:
        if not isinstance(r, dict):
            continue
        reviews.append(
            Review(
                author=str(r.get("author_name") or ""),
                rating=float(r.get("rating") or 0),
                text=str(r.get("text") or ""),
                timestamp=int(r.get("time") or 0),
            )
        )
    return reviews


def _parse_opening_status(raw: Any) -> Optional[OpeningStatus]:
    if not isinstance(raw, dict):
        return None
    return OpeningStatus(
        is_open_now=bool(raw.get("open_now")),
        weekly_schedule_text=tuple(raw.get("weekday_text") or ()),
    )


def map_place_details(raw: Dict[str, Any]) -> Optional[Place]:
    """Map a raw detail record; ``None`` when a required field is missing."""
    place_id = raw.get("place_id")
    name = raw.get("name")
    address = raw.get("formatted_address")
    coordinate = parse_location(raw.get("geometry"))
    if not place_id or not name or not address or coordinate is None:
        return None

    phone = raw.get("formatted_phone_number") or None
    website = raw.get("website") or None
    try:
        rating = float(raw.get("rating") or 0.0)
    except (TypeError, ValueError):
        rating = 0.0

    return Place(
        place_id=place_id,
        display_name=name,
        address=address,
        coordinate=coordinate,
        maps_url=maps_url_for(place_id),
        rating_value=min(max(rating, 0.0), 5.0),
        rating_count=max(int(raw.get("user_ratings_total") or 0), 0),
        price_tier=_parse_price_tier(raw.get("price_level")),
        cuisine_tags=extract_cuisine_tags(raw.get("types") or []),
        phone=phone,
        website_url=website,
        booking_profile=analyze_booking_profile(website, phone),
        service_flags=ServiceFlags(**{f: bool(raw.get(f)) for f in SERVICE_FLAG_FIELDS}),
        opening_status=_parse_opening_status(raw.get("opening_hours")),
        recent_reviews=tuple(_parse_reviews(raw.get("reviews"))),
    )
