"""Offline implementations of the geocoding and route-optimization ports."""

import json
import math
from dataclasses import dataclass
from pathlib import Path

from routeplan.config import get_settings
from routeplan.geo.distance import haversine_m
from routeplan.geo.transform import to_gcj02
from routeplan.models.common import Coordinate, TransportMode
from routeplan.models.route import OptimizedRoute, RouteSegment
from routeplan.models.waypoint import Waypoint


@dataclass(frozen=True)
class GazetteerEntry:
    """Known place with a GCJ02 position."""

    name: str
    latitude: float
    longitude: float
    city: str | None = None


class FixtureGeocoder:
    """Geocoder backed by a static gazetteer."""

    def __init__(self, entries: list[GazetteerEntry]) -> None:
        self._entries = list(entries)

    @classmethod
    def from_json(cls, path: Path | str) -> "FixtureGeocoder":
        """Load a gazetteer file shaped like ``{"places": [{name, latitude, longitude, city}]}``."""
        with open(path, encoding="utf-8") as f:
            data = json.load(f)

        entries = [
            GazetteerEntry(
                name=p["name"],
                latitude=float(p["latitude"]),
                longitude=float(p["longitude"]),
                city=p.get("city"),
            )
            for p in data.get("places", [])
        ]
        return cls(entries)

    async def search(self, name: str, city_hint: str | None = None) -> list[Coordinate]:
        wanted = name.strip().lower()
        results = []
        for entry in self._entries:
            if entry.name.strip().lower() != wanted:
                continue
            if city_hint is not None and entry.city != city_hint:
                continue
            results.append(Coordinate(latitude=entry.latitude, longitude=entry.longitude))
        return results


class StraightLineRouteOptimizer:
    """Route optimizer that connects waypoints with straight legs.

    Each leg is densified so the polyline resembles a real navigation
    result, and its duration comes from a fixed per-mode speed.
    """

    def __init__(self, points_per_leg: int = 8, speeds_kmh: dict[TransportMode, float] | None = None):
        settings = get_settings()
        self._points_per_leg = max(1, points_per_leg)
        self._speeds_kmh = speeds_kmh or {
            TransportMode.driving: settings.driving_speed_kmh,
            TransportMode.walking: settings.walking_speed_kmh,
            TransportMode.cycling: settings.cycling_speed_kmh,
        }

    async def optimize(self, waypoints: list[Waypoint], mode: TransportMode) -> OptimizedRoute:
        if len(waypoints) < 2:
            raise ValueError("At least 2 waypoints are required")

        stops = [to_gcj02(w.raw_coordinate, w.coordinate_system) for w in waypoints]
        speed_mps = self._speeds_kmh.get(mode, 20.0) * 1000 / 3600

        polyline: list[Coordinate] = [stops[0]]
        segments: list[RouteSegment] = []
        total_m = 0.0
        for i in range(len(stops) - 1):
            a, b = stops[i], stops[i + 1]
            for step in range(1, self._points_per_leg + 1):
                t = step / self._points_per_leg
                polyline.append(
                    Coordinate(
                        latitude=a.latitude + (b.latitude - a.latitude) * t,
                        longitude=a.longitude + (b.longitude - a.longitude) * t,
                    )
                )
            leg_m = haversine_m(a, b)
            total_m += leg_m
            segments.append(
                RouteSegment(
                    instruction=f"Head to {waypoints[i + 1].name}",
                    distance_meters=int(round(leg_m)),
                    duration_seconds=int(math.ceil(leg_m / speed_mps)),
                    action="straight",
                )
            )

        return OptimizedRoute(
            polyline=polyline,
            total_distance_meters=int(round(total_m)),
            total_duration_seconds=sum(s.duration_seconds for s in segments),
            congestion_index=0.0,
            traffic_light_count=0,
            segments=segments,
        )
