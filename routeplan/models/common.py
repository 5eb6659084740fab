"""Common types and enums shared across all models."""

import math
from enum import Enum

from pydantic import BaseModel, ConfigDict


class CoordinateSystem(str, Enum):
    """Geographic coordinate reference system."""

    wgs84 = "wgs84"
    gcj02 = "gcj02"
    bd09 = "bd09"


class WaypointKind(str, Enum):
    """Role of a waypoint within the route."""

    start = "start"
    stop = "stop"
    end = "end"


class TransportMode(str, Enum):
    """Mode passed to the route optimizer."""

    driving = "driving"
    walking = "walking"
    cycling = "cycling"


class TravelMode(str, Enum):
    """How the traveller gets around; walking reorders stops."""

    driving = "driving"
    taxi = "taxi"
    transit = "transit"
    walking = "walking"


class Coordinate(BaseModel):
    """Latitude/longitude pair in degrees.

    No range validation: raw upstream data may carry swapped or out-of-range
    values, which callers check with ``is_valid``.
    """

    model_config = ConfigDict(frozen=True)

    latitude: float
    longitude: float

    @property
    def is_valid(self) -> bool:
        """True when both components are finite and within geographic range."""
        return (
            math.isfinite(self.latitude)
            and math.isfinite(self.longitude)
            and -90.0 <= self.latitude <= 90.0
            and -180.0 <= self.longitude <= 180.0
        )

    def rounded(self, places: int = 6) -> "Coordinate":
        return Coordinate(
            latitude=round_to_places(self.latitude, places),
            longitude=round_to_places(self.longitude, places),
        )


def round_to_places(value: float, places: int = 6) -> float:
    """Round half away from zero to a fixed number of decimal places."""
    if places < 0 or not math.isfinite(value):
        return value
    divisor = 10.0**places
    scaled = value * divisor
    if not math.isfinite(scaled):
        return value
    if scaled >= 0:
        return math.floor(scaled + 0.5) / divisor
    return math.ceil(scaled - 0.5) / divisor
