"""Tests for the offline geocoder and route optimizer."""

import json
from pathlib import Path

import pytest

from routeplan.adapters.fixtures import FixtureGeocoder, GazetteerEntry, StraightLineRouteOptimizer
from routeplan.geo.transform import wgs84_to_gcj02
from routeplan.models.common import Coordinate, CoordinateSystem, TransportMode
from routeplan.models.waypoint import Waypoint


@pytest.fixture
def gazetteer() -> FixtureGeocoder:
    return FixtureGeocoder(
        [
            GazetteerEntry("开元寺", 23.6700, 116.6450, city="潮州"),
            GazetteerEntry("开元寺", 24.9090, 118.5860, city="泉州"),
            GazetteerEntry("West Lake", 30.2500, 120.1500),
        ]
    )


@pytest.mark.asyncio
async def test_search_matches_normalized_name(gazetteer: FixtureGeocoder) -> None:
    results = await gazetteer.search("  west lake ")

    assert results == [Coordinate(latitude=30.25, longitude=120.15)]


@pytest.mark.asyncio
async def test_search_filters_by_city(gazetteer: FixtureGeocoder) -> None:
    unrestricted = await gazetteer.search("开元寺")
    chaozhou = await gazetteer.search("开元寺", city_hint="潮州")

    assert len(unrestricted) == 2
    assert chaozhou == [Coordinate(latitude=23.67, longitude=116.645)]


@pytest.mark.asyncio
async def test_search_unknown_is_empty(gazetteer: FixtureGeocoder) -> None:
    assert await gazetteer.search("Atlantis") == []


@pytest.mark.asyncio
async def test_from_json(tmp_path: Path) -> None:
    path = tmp_path / "gazetteer.json"
    path.write_text(
        json.dumps({"places": [{"name": "Pier", "latitude": "22.5", "longitude": 114.1}]}),
        encoding="utf-8",
    )

    geocoder = FixtureGeocoder.from_json(path)

    assert await geocoder.search("pier") == [Coordinate(latitude=22.5, longitude=114.1)]


class TestStraightLineRouteOptimizer:
    """Test the straight-leg route builder."""

    @pytest.mark.asyncio
    async def test_polyline_and_segments(self) -> None:
        optimizer = StraightLineRouteOptimizer(points_per_leg=4)
        waypoints = [
            Waypoint(name="A", latitude=23.0, longitude=116.0),
            Waypoint(name="B", latitude=23.01, longitude=116.0),
            Waypoint(name="C", latitude=23.01, longitude=116.01),
        ]

        route = await optimizer.optimize(waypoints, TransportMode.walking)

        assert len(route.polyline) == 1 + 2 * 4
        assert route.polyline[0] == waypoints[0].raw_coordinate
        assert route.polyline[-1].latitude == pytest.approx(23.01)
        assert route.polyline[-1].longitude == pytest.approx(116.01)
        assert [s.instruction for s in route.segments] == ["Head to B", "Head to C"]
        assert route.total_distance_meters == pytest.approx(1112 + 1023, abs=5)
        # 5 km/h walking
        assert route.segments[0].duration_seconds == pytest.approx(800, abs=2)
        assert route.total_duration_seconds == sum(s.duration_seconds for s in route.segments)

    @pytest.mark.asyncio
    async def test_stops_converted_to_gcj02(self) -> None:
        optimizer = StraightLineRouteOptimizer(points_per_leg=1)
        a = Waypoint(name="A", latitude=23.0, longitude=116.0, coordinate_system=CoordinateSystem.wgs84)
        b = Waypoint(name="B", latitude=23.1, longitude=116.1)

        route = await optimizer.optimize([a, b], TransportMode.driving)

        assert route.polyline[0] == wgs84_to_gcj02(a.raw_coordinate)
        assert route.polyline[-1].latitude == pytest.approx(23.1)

    @pytest.mark.asyncio
    async def test_requires_two_waypoints(self) -> None:
        with pytest.raises(ValueError, match="At least 2"):
            await StraightLineRouteOptimizer().optimize(
                [Waypoint(name="A", latitude=1.0, longitude=1.0)], TransportMode.driving
            )
