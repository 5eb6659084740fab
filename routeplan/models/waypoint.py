"""Waypoint model and stable identity keys."""

from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field

from routeplan.models.common import Coordinate, CoordinateSystem, WaypointKind, round_to_places


def make_stable_key(name: str, latitude: float, longitude: float) -> str:
    """Join key for adjustments, completion flags, and caches."""
    normalized_name = name.strip().lower()
    return f"{normalized_name}|{latitude:.6f}|{longitude:.6f}"


def normalize_coordinate(latitude: float, longitude: float) -> Coordinate:
    """Undo upstream lat/lon field swaps and round to 6 decimal places."""
    if abs(latitude) > 90 and abs(longitude) <= 90:
        latitude, longitude = longitude, latitude
    return Coordinate(
        latitude=round_to_places(latitude, 6),
        longitude=round_to_places(longitude, 6),
    )


class Waypoint(BaseModel):
    """One ordered stop in a planned route."""

    model_config = ConfigDict(frozen=True)

    id: UUID = Field(default_factory=uuid4)
    name: str
    latitude: float
    longitude: float
    eta: str = ""
    stay_duration_minutes: int = 60
    kind: WaypointKind = WaypointKind.stop
    coordinate_system: CoordinateSystem = CoordinateSystem.gcj02
    is_auto_coordinate_system: bool = False

    @property
    def raw_coordinate(self) -> Coordinate:
        return Coordinate(latitude=self.latitude, longitude=self.longitude)

    @property
    def stable_key(self) -> str:
        return make_stable_key(self.name, self.latitude, self.longitude)

    def with_coordinate_system(self, system: CoordinateSystem, auto: bool) -> "Waypoint":
        return self.model_copy(
            update={"coordinate_system": system, "is_auto_coordinate_system": auto}
        )

    def with_kind(self, kind: WaypointKind) -> "Waypoint":
        return self.model_copy(update={"kind": kind})


def kind_for_position(index: int, count: int) -> WaypointKind:
    """First entry starts, last entry ends, everything else is a stop."""
    if index == 0:
        return WaypointKind.start
    if index == count - 1:
        return WaypointKind.end
    return WaypointKind.stop
