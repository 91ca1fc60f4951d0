import threading

from restaurant_booking import config
from restaurant_booking.cache import ResultCache
from restaurant_booking.enricher import DetailEnricher, extract_cuisine_tags, map_place_details
from restaurant_booking.fetcher import RateLimitedFetcher
from restaurant_booking.http import UpstreamError
from restaurant_booking.models import BookingPlatform, CandidateStub, Coordinate


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


def detail_record(place_id="p1", **overrides):
    record = {
        "place_id": place_id,
        "name": "Trattoria Uno",
        "formatted_address": "1 Main St",
        "geometry": {"location": {"lat": 37.78, "lng": -122.41}},
        "types": ["italian_restaurant", "restaurant", "food"],
        "formatted_phone_number": "+1 555 0100",
        "website": "https://www.opentable.com/r/trattoria-uno",
        "rating": 4.6,
        "user_ratings_total": 321,
        "price_level": 2,
        "opening_hours": {"open_now": True, "weekday_text": ["Monday: 11:00 AM - 10:00 PM"]},
        "reviews": [{"author_name": f"r{i}", "rating": 5, "text": "great", "time": i} for i in range(7)],
        "dine_in": True,
        "takeout": True,
        "serves_wine": True,
    }
    record.update(overrides)
    return record


class FakePlacesClient:
    def __init__(self, records=None, statuses=None, fail_ids=()):
        self.records = records or {}
        self.statuses = statuses or {}
        self.fail_ids = set(fail_ids)
        self.calls = []
        self.metrics = None
        self._lock = threading.Lock()

    def place_details(self, place_id, fields=config.EXTENDED_DETAIL_FIELDS, language="en"):
        with self._lock:
            self.calls.append((place_id, language, tuple(fields)))
        if place_id in self.fail_ids:
            raise UpstreamError("details request failed: timeout")
        if place_id in self.statuses:
            return {"status": self.statuses[place_id]}
        if place_id in self.records:
            return {"status": "OK", "result": self.records[place_id]}
        return {"status": "NOT_FOUND"}


def stub(place_id="p1"):
    return CandidateStub(place_id=place_id, name=place_id, coordinate=Coordinate(37.78, -122.41))


def make_enricher(places, clock=None, ttl=60, threshold=5, extended=True):
    clock = clock or FakeClock()
    cache = ResultCache(ttl_seconds=ttl, clock=clock)
    fetcher = RateLimitedFetcher(failure_threshold=threshold, cool_down_seconds=30, clock=clock)
    return DetailEnricher(places, cache, fetcher, extended_fields=extended), cache, fetcher


def test_maps_full_record():
    place = map_place_details(detail_record())

    assert place.place_id == "p1"
    assert place.display_name == "Trattoria Uno"
    assert place.coordinate == Coordinate(37.78, -122.41)
    assert place.rating_value == 4.6
    assert place.rating_count == 321
    assert place.price_tier == 2
    assert place.cuisine_tags == frozenset({"Italian"})
    assert "query_place_id=p1" in place.maps_url
    assert place.booking_profile.platform == BookingPlatform.OPENTABLE
    assert place.service_flags.dine_in and place.service_flags.serves_wine
    assert not place.service_flags.delivery
    assert place.opening_status.is_open_now
    assert len(place.recent_reviews) == 5
    assert place.distance_meters is None


def test_missing_required_field_maps_to_none():
    assert map_place_details(detail_record(formatted_address=None)) is None
    assert map_place_details(detail_record(geometry={})) is None
    assert map_place_details({}) is None


def test_optional_fields_default():
    place = map_place_details(
        detail_record(rating=None, user_ratings_total=None, price_level=None, website=None, reviews=None)
    )
    assert place.rating_value == 0.0
    assert place.rating_count == 0
    assert place.price_tier is None
    assert place.website_url is None
    assert place.recent_reviews == ()


def test_cuisine_tags_generic_only_when_nothing_specific():
    assert extract_cuisine_tags(["restaurant", "food"]) == frozenset({"Restaurant"})
    assert extract_cuisine_tags(["ramen_shop", "food"]) == frozenset()
    assert extract_cuisine_tags(["sushi_restaurant", "japanese_restaurant", "restaurant"]) == frozenset(
        {"Sushi", "Japanese"}
    )


def test_second_enrich_is_served_from_cache():
    places = FakePlacesClient(records={"p1": detail_record()})
    enricher, _, _ = make_enricher(places)

    first = enricher.enrich(stub())
    second = enricher.enrich(stub())

    assert first is not None
    assert second == first
    assert len(places.calls) == 1


def test_locale_is_part_of_cache_key():
    places = FakePlacesClient(records={"p1": detail_record()})
    enricher, _, _ = make_enricher(places)

    enricher.enrich(stub(), locale="en")
    enricher.enrich(stub(), locale="ja")

    assert [c[1] for c in places.calls] == ["en", "ja"]


def test_field_set_follows_mode():
    places = FakePlacesClient(records={"p1": detail_record()})
    enricher, _, _ = make_enricher(places, extended=False)
    enricher.enrich(stub())
    assert places.calls[0][2] == tuple(config.BASIC_DETAIL_FIELDS)


def test_cache_expiry_triggers_refetch():
    clock = FakeClock()
    places = FakePlacesClient(records={"p1": detail_record()})
    enricher, _, _ = make_enricher(places, clock=clock, ttl=10)

    enricher.enrich(stub())
    clock.advance(10)
    enricher.enrich(stub())

    assert len(places.calls) == 2


def test_non_ok_status_is_absent_and_counts_failure():
    places = FakePlacesClient(statuses={"p1": "OVER_QUERY_LIMIT"})
    enricher, _, fetcher = make_enricher(places)

    result = enricher.enrich_result(stub())

    assert result.place is None
    assert result.failure.reason == "status:OVER_QUERY_LIMIT"
    assert fetcher.metrics().failure_count == 1


def test_transport_error_is_absent():
    places = FakePlacesClient(fail_ids={"p1"})
    enricher, _, fetcher = make_enricher(places)

    result = enricher.enrich_result(stub())

    assert not result.ok
    assert result.failure.reason == "transport"
    assert fetcher.metrics().failure_count == 1


def test_failed_fetch_is_not_cached():
    places = FakePlacesClient(fail_ids={"p1"})
    enricher, cache, _ = make_enricher(places)

    enricher.enrich(stub())
    places.fail_ids.clear()
    places.records["p1"] = detail_record()

    assert enricher.enrich(stub()) is not None
    assert len(places.calls) == 2
    assert cache.size() == 1


def test_not_found_is_cached_without_tripping_breaker():
    places = FakePlacesClient()
    enricher, _, fetcher = make_enricher(places)

    first = enricher.enrich_result(stub("gone"))
    second = enricher.enrich_result(stub("gone"))

    assert first.failure.reason == second.failure.reason == "not_found"
    assert len(places.calls) == 1
    assert fetcher.metrics().failure_count == 0


def test_malformed_record_is_absent_and_counts_failure():
    places = FakePlacesClient(records={"p1": detail_record(name=None)})
    enricher, _, fetcher = make_enricher(places)

    result = enricher.enrich_result(stub())

    assert result.failure.reason == "malformed"
    snapshot = fetcher.metrics()
    assert snapshot.failure_count == 1
    assert snapshot.total_samples == 0


def test_non_mapping_result_is_malformed_and_trips_breaker():
    places = FakePlacesClient(records={"p1": ["junk"], "p2": detail_record("p2")})
    enricher, _, fetcher = make_enricher(places, threshold=1)

    result = enricher.enrich_result(stub("p1"))

    assert result.failure.reason == "malformed"
    assert fetcher.metrics().failure_count == 1
    assert fetcher.should_skip()
    assert enricher.enrich_result(stub("p2")).failure.reason == "circuit_open"
    assert [c[0] for c in places.calls] == ["p1"]


def test_open_circuit_skips_upstream():
    places = FakePlacesClient(records={"p1": detail_record()})
    enricher, _, fetcher = make_enricher(places, threshold=2)
    fetcher.record_failure()
    fetcher.record_failure()

    result = enricher.enrich_result(stub())

    assert result.failure.reason == "circuit_open"
    assert places.calls == []


def test_unexpected_exception_is_contained():
    class ExplodingClient(FakePlacesClient):
        def place_details(self, place_id, fields=config.EXTENDED_DETAIL_FIELDS, language="en"):
            raise KeyError("boom")

    enricher, _, _ = make_enricher(ExplodingClient())
    result = enricher.enrich_result(stub())
    assert result.failure.reason == "exception:KeyError"
