"""Calibration state models: manual offsets, history, warnings, caches."""

from datetime import UTC, datetime
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field

from routeplan.models.common import Coordinate, CoordinateSystem


class WaypointAdjustmentRecord(BaseModel):
    """Manual correction event with the absolute target that was set."""

    id: UUID = Field(default_factory=uuid4)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    latitude: float
    longitude: float

    @property
    def coordinate(self) -> Coordinate:
        return Coordinate(latitude=self.latitude, longitude=self.longitude)


class WaypointAdjustment(BaseModel):
    """Per-stable-key calibration state."""

    offset_latitude: float = 0.0
    offset_longitude: float = 0.0
    is_locked: bool = False
    history: list[WaypointAdjustmentRecord] = Field(default_factory=list)
    resolved_coordinate_system: CoordinateSystem | None = None


class DeviationWarning(BaseModel):
    """Displayed position differs materially from the computed base."""

    model_config = ConfigDict(frozen=True)

    id: UUID = Field(default_factory=uuid4)
    name: str
    meters: float


class MapJumpTarget(BaseModel):
    """One-off location the map should focus on."""

    model_config = ConfigDict(frozen=True)

    id: UUID = Field(default_factory=uuid4)
    name: str
    latitude: float
    longitude: float
    source: str = ""

    @property
    def coordinate(self) -> Coordinate:
        return Coordinate(latitude=self.latitude, longitude=self.longitude)


class GeocodeCacheEntry(BaseModel):
    """Geocoded position (GCJ02) for a normalized POI name."""

    latitude: float
    longitude: float
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @property
    def coordinate(self) -> Coordinate:
        return Coordinate(latitude=self.latitude, longitude=self.longitude)
