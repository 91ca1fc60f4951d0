"""Nearby search with client-side radius enforcement."""
from __future__ import annotations

import logging
from dataclasses import replace
from typing import List, Optional, Sequence

from . import config
from .geo import distance_meters
from .models import CandidateStub, Coordinate
from .places_client import PlacesClient, parse_nearby_response

logger = logging.getLogger(__name__)


def compose_search_query(keyword: Optional[str], cuisine_filters: Sequence[str]) -> str:
    """Keyword first, cuisines as OR terms; generic term when nothing is given."""
    cuisines = [c.strip() for c in cuisine_filters if c and c.strip()]
    keyword = (keyword or "").strip()
    if keyword:
        if cuisines:
            return f"{keyword} {' OR '.join(cuisines)}"
        return keyword
    if cuisines:
        return " OR ".join(cuisines)
    return config.GENERIC_SEARCH_TERM


class NearbySearch:
    def __init__(self, places_client: PlacesClient, max_candidates: int = config.MAX_CANDIDATES) -> None:
        self.places = places_client
        self.max_candidates = max_candidates

    def fetch_candidates(
        self,
        origin: Coordinate,
        query: str,
        radius_meters: int,
        price_tier: Optional[int] = None,
        locale: str = config.DEFAULT_LOCALE,
        max_candidates: Optional[int] = None,
    ) -> List[CandidateStub]:
        # Upstream treats the radius as a hint; UpstreamError propagates to the caller.
        response = self.places.nearby_search(origin, query, radius_meters, language=locale, price_tier=price_tier)
        raw = parse_nearby_response(response)

        cap = self.max_candidates if max_candidates is None else min(max_candidates, self.max_candidates)
        candidates = filter_by_radius(raw, origin, radius_meters)
        logger.info(
            "Nearby search %r: %s raw, %s within %sm, keeping %s",
            query,
            len(raw),
            len(candidates),
            radius_meters,
            min(len(candidates), cap),
        )
        return candidates[:cap]


def filter_by_radius(
    candidates: Sequence[CandidateStub], origin: Coordinate, radius_meters: float
) -> List[CandidateStub]:
    """Stamp distances, drop anything outside the radius, sort nearest first."""
    kept: List[CandidateStub] = []
    for candidate in candidates:
        if candidate.coordinate is None:
            continue
        distance = distance_meters(origin, candidate.coordinate)
        if distance > radius_meters:
            continue
        kept.append(replace(candidate, distance_meters=distance))
    kept.sort(key=lambda c: (c.distance_meters, c.place_id))
    return kept
