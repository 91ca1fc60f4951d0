"""Places Web Service client and response parsing."""
from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

import requests

from . import config
from .http import HttpClient, RequestMetrics, UpstreamError
from .models import CandidateStub, Coordinate


STATUS_OK = "OK"
STATUS_ZERO_RESULTS = "ZERO_RESULTS"


class PlacesClient:
    def __init__(self, http_client: HttpClient, metrics: Optional[RequestMetrics] = None) -> None:
        self.http = http_client
        self.metrics = metrics

    def _get(self, kind: str, url: str, params: Dict[str, Any]) -> Dict[str, Any]:
        if self.metrics is not None:
            self.metrics.inc_network(kind)
        try:
            return self.http.get_json(url, params)
        except (requests.RequestException, ValueError) as exc:
            raise UpstreamError(f"{kind} request failed: {exc}") from exc

    def nearby_search(
        self,
        origin: Coordinate,
        keyword: str,
        radius_m: int,
        language: str = config.DEFAULT_LOCALE,
        price_tier: Optional[int] = None,
    ) -> Dict[str, Any]:
        params = build_nearby_search_params(origin, keyword, radius_m, language, price_tier)
        response = self._get("search", config.PLACES_NEARBY_SEARCH_URL, params)
        check_status(response, "Places nearby search", allow_zero_results=True)
        return response

    def place_details(
        self,
        place_id: str,
        fields: Sequence[str] = config.EXTENDED_DETAIL_FIELDS,
        language: str = config.DEFAULT_LOCALE,
    ) -> Dict[str, Any]:
        """Fetch a detail record. Non-OK statuses come back as-is for the caller to classify."""
        params = build_details_params(place_id, fields, language)
        return self._get("details", config.PLACES_DETAILS_URL, params)

    def geocode(self, address: str, language: str = config.DEFAULT_LOCALE) -> Dict[str, Any]:
        params = {"address": address, "language": language}
        response = self._get("geocode", config.GEOCODE_URL, params)
        check_status(response, "Geocoding", allow_zero_results=True)
        return response


def check_status(response: Dict[str, Any], label: str, allow_zero_results: bool = False) -> None:
    status = response.get("status")
    if status == STATUS_OK:
        return
    if allow_zero_results and status == STATUS_ZERO_RESULTS:
        return
    message = response.get("error_message")
    detail = f"{label} API error: {status}"
    if message:
        detail = f"{detail} ({message})"
    raise UpstreamError(detail, status=status)


def build_nearby_search_params(
    origin: Coordinate,
    keyword: str,
    radius_m: int,
    language: str,
    price_tier: Optional[int] = None,
) -> Dict[str, Any]:
    params: Dict[str, Any] = {
        "location": f"{origin.latitude},{origin.longitude}",
        "radius": int(radius_m),
        "type": config.SEARCH_PLACE_TYPE,
        "keyword": keyword,
        "language": language,
    }
    if price_tier:
        params["minprice"] = int(price_tier)
        params["maxprice"] = int(price_tier)
    return params


def build_details_params(place_id: str, fields: Sequence[str], language: str) -> Dict[str, Any]:
    return {
        "place_id": place_id,
        "fields": ",".join(fields),
        "language": language,
    }


# Adapter/mapper for nearby search response fields

def parse_location(raw: Any) -> Optional[Coordinate]:
    if not isinstance(raw, dict):
        return None
    location = raw.get("location") if "location" in raw else raw
    if not isinstance(location, dict):
        return None
    lat = location.get("lat", location.get("latitude"))
    lon = location.get("lng", location.get("longitude"))
    if lat is None or lon is None:
        return None
    try:
        return Coordinate(float(lat), float(lon))
    except (TypeError, ValueError):
        return None


def parse_nearby_response(response: Dict[str, Any]) -> List[CandidateStub]:
    results = response.get("results") or []
    parsed: List[CandidateStub] = []
    seen = set()
    for r in results:
        place_id = r.get("place_id") or r.get("id")
        if not place_id or place_id in seen:
            continue
        seen.add(place_id)
        parsed.append(
            CandidateStub(
                place_id=place_id,
                name=r.get("name"),
                coordinate=parse_location(r.get("geometry")),
                types=tuple(r.get("types") or ()),
            )
        )
    return parsed
