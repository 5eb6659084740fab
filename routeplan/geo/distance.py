"""Geodesic helpers used for calibration and stop ordering."""

import math

from routeplan.models.common import Coordinate

EARTH_RADIUS_M = 6371008.8


def haversine_m(a: Coordinate, b: Coordinate) -> float:
    """Great-circle distance in meters."""
    lat1, lon1 = math.radians(a.latitude), math.radians(a.longitude)
    lat2, lon2 = math.radians(b.latitude), math.radians(b.longitude)

    dlat = lat2 - lat1
    dlon = lon2 - lon1

    h = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2) ** 2
    c = 2 * math.asin(min(1.0, math.sqrt(h)))
    return EARTH_RADIUS_M * c


def nearest_distance_m(point: Coordinate, candidates: list[Coordinate]) -> float:
    """Distance from ``point`` to the closest candidate (inf when empty)."""
    best = math.inf
    for candidate in candidates:
        d = haversine_m(point, candidate)
        if d < best:
            best = d
    return best


def median(values: list[float]) -> float:
    """Median of ``values``; 0 for an empty list."""
    ordered = sorted(values)
    if not ordered:
        return 0.0
    mid = len(ordered) // 2
    if len(ordered) % 2 == 0:
        return (ordered[mid - 1] + ordered[mid]) / 2
    return ordered[mid]
