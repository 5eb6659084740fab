"""Itinerary models - input produced by the itinerary generator."""

from pydantic import BaseModel, ConfigDict, Field

from routeplan.models.common import Coordinate, CoordinateSystem
from routeplan.models.waypoint import Waypoint, kind_for_position, normalize_coordinate


class Activity(BaseModel):
    """Single activity in a day plan.

    Field aliases follow the generator's camelCase JSON.
    """

    model_config = ConfigDict(populate_by_name=True)

    time: str = ""
    poi_name: str = Field(alias="poiName")
    description: str = ""
    type: str = ""
    latitude: float | None = None
    longitude: float | None = None
    eta: str | None = None
    stay_duration_minutes: int | None = Field(default=None, alias="stayDurationMinutes")
    coordinate_system: CoordinateSystem | None = Field(default=None, alias="coordinateSystem")

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None


class DayPlan(BaseModel):
    """Activities for a single day."""

    day: int
    activities: list[Activity] = Field(default_factory=list)


class Itinerary(BaseModel):
    """Multi-day itinerary."""

    title: str = ""
    days: list[DayPlan] = Field(default_factory=list)

    def ordered_activities(self) -> list[Activity]:
        """Activities with days ascending and in-day order preserved."""
        ordered: list[Activity] = []
        for day in sorted(self.days, key=lambda d: d.day):
            ordered.extend(day.activities)
        return ordered

    def to_waypoints(self, default_stay_minutes: int = 60) -> list[Waypoint]:
        """Convert activities carrying explicit coordinates into waypoints.

        Activities without coordinates, or whose coordinates are out of range
        after swap repair, are skipped; roles are assigned over
        the resulting list so the start/end invariant always holds.
        """
        located: list[tuple[Activity, Coordinate]] = []
        for activity in self.ordered_activities():
            if not activity.has_coordinates:
                continue
            coordinate = normalize_coordinate(activity.latitude, activity.longitude)  # type: ignore[arg-type]
            if coordinate.is_valid:
                located.append((activity, coordinate))

        waypoints: list[Waypoint] = []
        for index, (activity, coordinate) in enumerate(located):
            waypoints.append(
                Waypoint(
                    name=activity.poi_name,
                    latitude=coordinate.latitude,
                    longitude=coordinate.longitude,
                    eta=activity.eta or activity.time,
                    stay_duration_minutes=(
                        activity.stay_duration_minutes
                        if activity.stay_duration_minutes is not None
                        else default_stay_minutes
                    ),
                    kind=kind_for_position(index, len(located)),
                    coordinate_system=activity.coordinate_system or CoordinateSystem.wgs84,
                    is_auto_coordinate_system=activity.coordinate_system is None,
                )
            )
        return waypoints
