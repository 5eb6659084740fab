"""Optimized route models - produced wholesale by the route optimizer."""

from pydantic import BaseModel, ConfigDict, Field

from routeplan.models.common import Coordinate


class RouteSegment(BaseModel):
    """Turn-by-turn step."""

    model_config = ConfigDict(frozen=True)

    instruction: str
    distance_meters: int
    duration_seconds: int
    action: str | None = None


class OptimizedRoute(BaseModel):
    """Route result with a GCJ02 polyline."""

    model_config = ConfigDict(frozen=True)

    polyline: list[Coordinate]
    total_distance_meters: int
    total_duration_seconds: int
    congestion_index: float = 0.0
    traffic_light_count: int = 0
    segments: list[RouteSegment] = Field(default_factory=list)
