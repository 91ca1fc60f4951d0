"""Recommendation scoring: rating, review volume, cuisine, event and mood fit."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Sequence

from . import config
from .models import Place, SearchRequest


@dataclass(frozen=True)
class EventProfile:
    preferred_price_tiers: tuple
    preferred_cuisines: tuple
    avoid_cuisines: tuple
    min_rating: float


EVENT_PROFILES: Dict[str, EventProfile] = {
    "dating": EventProfile(
        (2, 3, 4), ("italian", "french", "japanese", "mediterranean", "fine dining"), ("fast food", "buffet"), 4.0
    ),
    "family gathering": EventProfile(
        (1, 2, 3), ("american", "italian", "chinese", "mexican", "pizza"), ("fine dining",), 3.5
    ),
    "business meeting": EventProfile(
        (2, 3, 4), ("american", "italian", "steakhouse", "seafood"), ("fast food", "buffet"), 4.0
    ),
    "casual dining": EventProfile((1, 2), ("american", "pizza", "cafe", "mexican", "asian"), (), 3.0),
    "celebration": EventProfile(
        (3, 4), ("fine dining", "steakhouse", "seafood", "french", "italian"), ("fast food", "cafe"), 4.2
    ),
}

MOOD_KEYWORDS: Dict[str, tuple] = {
    "romantic": ("intimate", "cozy", "candlelit", "wine", "date", "romantic"),
    "casual": ("casual", "relaxed", "friendly", "laid-back", "comfortable"),
    "upscale": ("upscale", "elegant", "sophisticated", "fine", "luxury"),
    "fun": ("lively", "energetic", "vibrant", "entertainment", "music"),
    "quiet": ("quiet", "peaceful", "serene", "calm", "tranquil"),
    "adventurous": ("unique", "exotic", "fusion", "creative", "innovative"),
    "traditional": ("traditional", "authentic", "classic", "heritage", "original"),
}

PRICE_LABELS = {1: "Budget-friendly", 2: "Moderately priced", 3: "Upscale", 4: "High-end"}

NEUTRAL_SCORE = 5.0


@dataclass(frozen=True)
class RankedPlace:
    place: Place
    score: float
    reasoning: str
    event_suitability: float
    mood_match: float


def _clamp(value: float, low: float = 1.0, high: float = 10.0) -> float:
    return max(low, min(high, value))


def _cuisines_lower(place: Place) -> List[str]:
    return sorted(c.lower() for c in place.cuisine_tags)


def _overlaps(a: str, b: str) -> bool:
    return a in b or b in a


def cuisine_match(place: Place, wanted: Sequence[str]) -> float:
    """Fraction of requested cuisines the place serves (1.0 when none requested)."""
    if not wanted:
        return 1.0
    served = _cuisines_lower(place)
    matches = 0
    for cuisine in (w.lower() for w in wanted):
        if any(_overlaps(cuisine, s) for s in served):
            matches += 1
    return matches / len(wanted)


def event_suitability(place: Place, event: str) -> float:
    profile = EVENT_PROFILES.get((event or "").lower())
    if profile is None:
        return NEUTRAL_SCORE

    score = NEUTRAL_SCORE
    if place.price_tier and place.price_tier in profile.preferred_price_tiers:
        score += 2
    served = _cuisines_lower(place)
    if any(pref in s for pref in profile.preferred_cuisines for s in served):
        score += 2
    if any(avoid in s for avoid in profile.avoid_cuisines for s in served):
        score -= 3
    if place.rating_value >= profile.min_rating:
        score += 1
    else:
        score -= 2
    return _clamp(score)


def mood_match(place: Place, mood: str) -> float:
    mood = (mood or "").lower()
    keywords = MOOD_KEYWORDS.get(mood)
    if not keywords:
        return NEUTRAL_SCORE

    text = " ".join([place.display_name, *sorted(place.cuisine_tags), *(r.text for r in place.recent_reviews)]).lower()
    matches = sum(1 for k in keywords if k in text)

    score = NEUTRAL_SCORE
    if matches:
        score += min(matches * 1.5, 4)
    if place.price_tier:
        if mood == "upscale" and place.price_tier >= 3:
            score += 1
        elif mood == "casual" and place.price_tier <= 2:
            score += 1
    return _clamp(score)


def place_score(place: Place, request: SearchRequest) -> float:
    score = 0.0
    if place.rating_value > 0:
        score += (place.rating_value / 5.0) * config.SCORE_WEIGHT_RATING
    if place.rating_count > 0:
        score += min(place.rating_count / config.REVIEW_COUNT_SATURATION, 1.0) * config.SCORE_WEIGHT_REVIEWS
    score += cuisine_match(place, request.cuisine_filters) * config.SCORE_WEIGHT_CUISINE
    score += (event_suitability(place, request.event) / 10.0) * config.SCORE_WEIGHT_EVENT
    score += (mood_match(place, request.mood) / 10.0) * config.SCORE_WEIGHT_MOOD
    return score


def build_reasoning(place: Place, request: SearchRequest, suitability: float, mood_fit: float) -> str:
    reasons: List[str] = []

    if place.rating_value >= 4.5:
        reasons.append(f"Excellent rating of {place.rating_value}/5 with {place.rating_count} reviews")
    elif place.rating_value >= 4.0:
        reasons.append(f"High rating of {place.rating_value}/5 with {place.rating_count} reviews")
    elif place.rating_value >= 3.5:
        reasons.append(f"Good rating of {place.rating_value}/5")

    if request.cuisine_filters:
        wanted = [c.lower() for c in request.cuisine_filters]
        matching = [c for c in sorted(place.cuisine_tags) if any(_overlaps(c.lower(), w) for w in wanted)]
        if matching:
            reasons.append(f"Serves {', '.join(matching)} cuisine as requested")

    if request.event:
        if suitability >= 8:
            reasons.append(f"Perfect for {request.event}")
        elif suitability >= 6:
            reasons.append(f"Well-suited for {request.event}")

    if request.mood:
        if mood_fit >= 8:
            reasons.append(f"Excellent match for {request.mood} mood")
        elif mood_fit >= 6:
            reasons.append(f"Good fit for {request.mood} atmosphere")

    if place.price_tier in PRICE_LABELS:
        reasons.append(PRICE_LABELS[place.price_tier])

    if place.opening_status is not None and place.opening_status.is_open_now:
        reasons.append("Currently open")

    if not reasons:
        return "Recommended based on location and general criteria."
    return ". ".join(reasons) + "."


def rank(places: Sequence[Place], request: SearchRequest, top_n: int = config.TOP_N_RECOMMENDATIONS) -> List[RankedPlace]:
    ranked: List[RankedPlace] = []
    for place in places:
        suitability = event_suitability(place, request.event)
        mood_fit = mood_match(place, request.mood)
        ranked.append(
            RankedPlace(
                place=place,
                score=place_score(place, request),
                reasoning=build_reasoning(place, request, suitability, mood_fit),
                event_suitability=suitability,
                mood_match=mood_fit,
            )
        )
    # Stable sort keeps distance order among equal scores.
    ranked.sort(key=lambda r: -r.score)
    return ranked[: max(0, top_n)]
