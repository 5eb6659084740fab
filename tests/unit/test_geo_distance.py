"""Tests for great-circle helpers."""

import math

import pytest

from routeplan.geo.distance import haversine_m, median, nearest_distance_m
from routeplan.models.common import Coordinate


def test_haversine_zero_for_same_point() -> None:
    point = Coordinate(latitude=23.657, longitude=116.621)
    assert haversine_m(point, point) == 0.0


def test_haversine_one_degree_of_latitude() -> None:
    """One degree along a meridian is about 111.2 km."""
    a = Coordinate(latitude=10.0, longitude=20.0)
    b = Coordinate(latitude=11.0, longitude=20.0)
    assert haversine_m(a, b) == pytest.approx(111195.08, abs=1.0)


def test_haversine_is_symmetric() -> None:
    a = Coordinate(latitude=39.9, longitude=116.4)
    b = Coordinate(latitude=31.2, longitude=121.5)
    assert haversine_m(a, b) == pytest.approx(haversine_m(b, a))


def test_nearest_distance_picks_closest_candidate() -> None:
    point = Coordinate(latitude=0.0, longitude=0.0)
    far = Coordinate(latitude=1.0, longitude=0.0)
    near = Coordinate(latitude=0.001, longitude=0.0)
    assert nearest_distance_m(point, [far, near]) == pytest.approx(haversine_m(point, near))


def test_nearest_distance_empty_is_infinite() -> None:
    assert math.isinf(nearest_distance_m(Coordinate(latitude=0.0, longitude=0.0), []))


@pytest.mark.parametrize(
    ("values", "expected"),
    [
        ([], 0.0),
        ([5.0], 5.0),
        ([3.0, 1.0, 2.0], 2.0),
        ([4.0, 1.0, 3.0, 2.0], 2.5),
    ],
)
def test_median(values: list[float], expected: float) -> None:
    assert median(values) == expected
