"""Output reporting helpers."""
from __future__ import annotations

import json
import os
import tempfile
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Sequence, TextIO

from .models import Place, SearchRequest
from .scoring import RankedPlace


def _fsync_dir(path: str) -> None:
    try:
        dir_fd = os.open(path, os.O_DIRECTORY)
    except OSError:
        return
    try:
        os.fsync(dir_fd)
    except OSError:
        pass
    finally:
        os.close(dir_fd)


@contextmanager
def atomic_writer(
    path: str,
    mode: str = "w",
    encoding: str = "utf-8",
    newline: Optional[str] = None,
) -> Iterator[TextIO]:
    dir_path = os.path.dirname(path) or "."
    base = os.path.basename(path)
    fd, tmp_path = tempfile.mkstemp(prefix=f".{base}.", suffix=".tmp", dir=dir_path)
    try:
        with os.fdopen(fd, mode, encoding=encoding, newline=newline) as f:
            yield f
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, path)
        _fsync_dir(dir_path)
    except BaseException:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise


def write_json_object(path: str, payload: Dict[str, Any]) -> None:
    with atomic_writer(path, mode="w", encoding="utf-8") as f:
        json.dump(payload, f, ensure_ascii=False, indent=2)


def place_to_dict(place: Place) -> Dict[str, Any]:
    profile = place.booking_profile
    flags = place.service_flags
    status = place.opening_status
    return {
        "placeId": place.place_id,
        "name": place.display_name,
        "address": place.address,
        "location": {"latitude": place.coordinate.latitude, "longitude": place.coordinate.longitude},
        "rating": place.rating_value,
        "userRatingsTotal": place.rating_count,
        "priceLevel": place.price_tier,
        "cuisineTypes": sorted(place.cuisine_tags),
        "phoneNumber": place.phone,
        "website": place.website_url,
        "googleMapsUrl": place.maps_url,
        "distance": round(place.distance_meters) if place.distance_meters is not None else None,
        "bookingInfo": {
            "reservable": profile.is_reservable,
            "bookingUrl": profile.booking_url,
            "bookingPlatform": profile.platform.value,
            "supportsOnlineBooking": profile.online_booking_supported,
            "requiresPhone": profile.phone_required,
        },
        "openingHours": (
            {"openNow": status.is_open_now, "weekdayText": list(status.weekly_schedule_text)}
            if status is not None
            else None
        ),
        "reservable": flags.reservable,
        "curbsidePickup": flags.curbside_pickup,
        "delivery": flags.delivery,
        "dineIn": flags.dine_in,
        "takeout": flags.takeout,
        "servesBreakfast": flags.serves_breakfast,
        "servesLunch": flags.serves_lunch,
        "servesDinner": flags.serves_dinner,
        "servesBrunch": flags.serves_brunch,
        "servesBeer": flags.serves_beer,
        "servesWine": flags.serves_wine,
        "servesVegetarianFood": flags.serves_vegetarian_food,
    }


def ranked_to_dict(ranked: RankedPlace) -> Dict[str, Any]:
    return {
        "restaurant": place_to_dict(ranked.place),
        "score": round(ranked.score, 1),
        "reasoning": ranked.reasoning,
        "suitabilityForEvent": ranked.event_suitability,
        "moodMatch": ranked.mood_match,
    }


def request_to_dict(request: SearchRequest) -> Dict[str, Any]:
    out: Dict[str, Any] = {
        "cuisineTypes": list(request.cuisine_filters),
        "keyword": request.keyword,
        "mood": request.mood,
        "event": request.event,
        "radius": request.radius_meters,
        "priceLevel": request.price_tier,
        "locale": request.locale,
    }
    if request.place_name:
        out["placeName"] = request.place_name
    elif request.origin is not None:
        out["location"] = {"latitude": request.origin.latitude, "longitude": request.origin.longitude}
    return out


def build_search_report(
    request: SearchRequest,
    places: Sequence[Place],
    ranked: Sequence[RankedPlace],
    booking_guidance: Optional[Dict[str, str]] = None,
) -> Dict[str, Any]:
    recommendations: List[Dict[str, Any]] = []
    for item in ranked:
        row = ranked_to_dict(item)
        if booking_guidance and item.place.place_id in booking_guidance:
            row["bookingInstructions"] = booking_guidance[item.place.place_id]
        recommendations.append(row)
    return {
        "searchCriteria": request_to_dict(request),
        "totalFound": len(places),
        "recommendations": recommendations,
    }
