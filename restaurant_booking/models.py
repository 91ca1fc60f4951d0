"""Domain entities for restaurant search results."""
from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import FrozenSet, Optional, Tuple

from . import config


@dataclass(frozen=True)
class Coordinate:
    latitude: float
    longitude: float

    def __post_init__(self) -> None:
        if not (math.isfinite(self.latitude) and math.isfinite(self.longitude)):
            raise ValueError(f"Coordinate must be finite: {self.latitude}, {self.longitude}")


class BookingPlatform(str, Enum):
    OPENTABLE = "opentable"
    RESY = "resy"
    YELP = "yelp"
    RESTAURANT_WEBSITE = "restaurant_website"
    GOOGLE_RESERVE = "google_reserve"
    OTHER = "other"
    NONE = "none"


@dataclass(frozen=True)
class BookingProfile:
    is_reservable: bool = False
    online_booking_supported: bool = False
    phone_required: bool = False
    booking_url: Optional[str] = None
    platform: BookingPlatform = BookingPlatform.NONE


@dataclass(frozen=True)
class ServiceFlags:
    reservable: bool = False
    dine_in: bool = False
    takeout: bool = False
    delivery: bool = False
    curbside_pickup: bool = False
    serves_breakfast: bool = False
    serves_lunch: bool = False
    serves_dinner: bool = False
    serves_brunch: bool = False
    serves_beer: bool = False
    serves_wine: bool = False
    serves_vegetarian_food: bool = False


@dataclass(frozen=True)
class OpeningStatus:
    is_open_now: bool
    weekly_schedule_text: Tuple[str, ...] = ()


@dataclass(frozen=True)
class Review:
    author: str
    rating: float
    text: str
    timestamp: int


@dataclass(frozen=True)
class CandidateStub:
    """Coarse nearby-search hit, before detail enrichment."""

    place_id: str
    name: Optional[str]
    coordinate: Optional[Coordinate]
    types: Tuple[str, ...] = ()
    distance_meters: Optional[float] = None


@dataclass(frozen=True)
class Place:
    place_id: str
    display_name: str
    address: str
    coordinate: Coordinate
    maps_url: str
    rating_value: float = 0.0
    rating_count: int = 0
    price_tier: Optional[int] = None
    cuisine_tags: FrozenSet[str] = frozenset()
    phone: Optional[str] = None
    website_url: Optional[str] = None
    booking_profile: BookingProfile = field(default_factory=BookingProfile)
    service_flags: ServiceFlags = field(default_factory=ServiceFlags)
    opening_status: Optional[OpeningStatus] = None
    recent_reviews: Tuple[Review, ...] = ()
    distance_meters: Optional[float] = None

    def with_distance(self, distance_meters: float) -> "Place":
        # Cached instances are shared between searches; stamp a copy.
        return replace(self, distance_meters=distance_meters)


@dataclass(frozen=True)
class SearchRequest:
    origin: Optional[Coordinate] = None
    place_name: Optional[str] = None
    cuisine_filters: Tuple[str, ...] = ()
    keyword: Optional[str] = None
    radius_meters: int = config.DEFAULT_SEARCH_RADIUS_M
    price_tier: Optional[int] = None
    locale: str = config.DEFAULT_LOCALE
    max_results: int = config.MAX_CANDIDATES
    mood: str = ""
    event: str = ""

    def __post_init__(self) -> None:
        if int(self.radius_meters) <= 0:
            raise ValueError(f"radius_meters must be positive: {self.radius_meters}")
        if self.price_tier is not None and not 1 <= int(self.price_tier) <= 4:
            raise ValueError(f"price_tier must be within 1..4: {self.price_tier}")
        if int(self.max_results) <= 0:
            raise ValueError(f"max_results must be positive: {self.max_results}")
        # Accept any iterable of filters but store an immutable tuple.
        object.__setattr__(self, "cuisine_filters", tuple(self.cuisine_filters or ()))
