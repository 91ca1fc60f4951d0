from restaurant_booking.models import (
    BookingPlatform,
    BookingProfile,
    Coordinate,
    OpeningStatus,
    Place,
    SearchRequest,
)
from restaurant_booking.reporting import build_search_report, place_to_dict
from restaurant_booking.scoring import rank


def make_place(place_id, **overrides):
    fields = dict(
        place_id=place_id,
        display_name=f"Place {place_id}",
        address="1 Main St",
        coordinate=Coordinate(25.03, 121.56),
        maps_url=f"https://maps.example/{place_id}",
        rating_value=4.5,
        rating_count=150,
        price_tier=2,
        cuisine_tags=frozenset({"Japanese", "Sushi"}),
        booking_profile=BookingProfile(
            is_reservable=True,
            online_booking_supported=True,
            booking_url="https://resy.com/x",
            platform=BookingPlatform.RESY,
        ),
        opening_status=OpeningStatus(is_open_now=True),
        distance_meters=412.6,
    )
    fields.update(overrides)
    return Place(**fields)


def test_place_to_dict_fields():
    row = place_to_dict(make_place("p1"))

    assert row["placeId"] == "p1"
    assert row["location"] == {"latitude": 25.03, "longitude": 121.56}
    assert row["cuisineTypes"] == ["Japanese", "Sushi"]
    assert row["distance"] == 413
    assert row["bookingInfo"]["bookingPlatform"] == "resy"
    assert row["bookingInfo"]["supportsOnlineBooking"] is True
    assert row["openingHours"] == {"openNow": True, "weekdayText": []}
    assert row["dineIn"] is False


def test_place_to_dict_without_optional_parts():
    row = place_to_dict(make_place("p1", opening_status=None, distance_meters=None))
    assert row["openingHours"] is None
    assert row["distance"] is None


def test_build_search_report_with_booking_guidance():
    request = SearchRequest(place_name="Taipei 101", cuisine_filters=("Japanese",))
    places = [make_place("p1"), make_place("p2", rating_value=3.0)]
    ranked = rank(places, request, top_n=1)

    report = build_search_report(request, places, ranked, booking_guidance={"p1": "Book online via Resy"})

    assert report["totalFound"] == 2
    assert report["searchCriteria"]["placeName"] == "Taipei 101"
    assert "location" not in report["searchCriteria"]
    assert len(report["recommendations"]) == 1
    top = report["recommendations"][0]
    assert top["restaurant"]["placeId"] == "p1"
    assert top["bookingInstructions"] == "Book online via Resy"
    assert isinstance(top["score"], float)
