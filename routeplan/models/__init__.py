"""Models package - re-exports for convenience."""

from routeplan.models.adjustment import (
    DeviationWarning,
    GeocodeCacheEntry,
    MapJumpTarget,
    WaypointAdjustment,
    WaypointAdjustmentRecord,
)
from routeplan.models.common import (
    Coordinate,
    CoordinateSystem,
    TransportMode,
    TravelMode,
    WaypointKind,
    round_to_places,
)
from routeplan.models.itinerary import Activity, DayPlan, Itinerary
from routeplan.models.route import OptimizedRoute, RouteSegment
from routeplan.models.waypoint import Waypoint, make_stable_key, normalize_coordinate

__all__ = [
    # Common
    "Coordinate",
    "CoordinateSystem",
    "TransportMode",
    "TravelMode",
    "WaypointKind",
    "round_to_places",
    # Itinerary
    "Itinerary",
    "DayPlan",
    "Activity",
    # Waypoint
    "Waypoint",
    "make_stable_key",
    "normalize_coordinate",
    # Route
    "OptimizedRoute",
    "RouteSegment",
    # Calibration
    "WaypointAdjustment",
    "WaypointAdjustmentRecord",
    "DeviationWarning",
    "MapJumpTarget",
    "GeocodeCacheEntry",
]
