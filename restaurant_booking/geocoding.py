"""Place-name to coordinate resolution."""
from __future__ import annotations

import logging

from . import config
from .http import UpstreamError
from .models import Coordinate
from .places_client import PlacesClient, parse_location

logger = logging.getLogger(__name__)


class ResolutionError(RuntimeError):
    """No coordinate could be resolved for the search."""


class PlaceLookup:
    def __init__(self, places_client: PlacesClient) -> None:
        self.places = places_client

    def resolve(self, place_name: str, locale: str = config.DEFAULT_LOCALE) -> Coordinate:
        """Geocode ``place_name``; the first (most relevant) hit wins."""
        if not place_name or not place_name.strip():
            raise ResolutionError("Place name is empty")
        try:
            response = self.places.geocode(place_name, language=locale)
        except UpstreamError as exc:
            logger.error("Geocoding failed for %r: %s", place_name, exc)
            raise ResolutionError(f"Failed to geocode place name: {exc}") from exc

        results = response.get("results") or []
        if not results:
            raise ResolutionError(f"No location found for place name: {place_name}")

        coordinate = parse_location(results[0].get("geometry"))
        if coordinate is None:
            raise ResolutionError(f"Geocoding result has no location for: {place_name}")
        logger.info("Resolved %r to %.5f,%.5f", place_name, coordinate.latitude, coordinate.longitude)
        return coordinate
