import math

from restaurant_booking.geo import EARTH_RADIUS_M, distance_meters, haversine_m
from restaurant_booking.models import Coordinate


def test_same_point_is_zero():
    p = Coordinate(37.7749, -122.4194)
    assert distance_meters(p, p) == 0.0


def test_meridian_offset_matches_arc_length():
    origin = Coordinate(37.7749, -122.4194)
    north = Coordinate(37.7749 + math.degrees(500 / EARTH_RADIUS_M), -122.4194)
    assert abs(distance_meters(origin, north) - 500.0) < 1e-6


def test_known_city_pair():
    # San Francisco -> Los Angeles is roughly 559 km.
    d = haversine_m(37.7749, -122.4194, 34.0522, -118.2437)
    assert 550_000 < d < 565_000


def test_symmetric():
    a = Coordinate(52.2297, 21.0122)
    b = Coordinate(48.8566, 2.3522)
    assert distance_meters(a, b) == distance_meters(b, a)


def test_out_of_range_inputs_still_numeric():
    d = haversine_m(120.0, 400.0, -95.0, -500.0)
    assert math.isfinite(d)
