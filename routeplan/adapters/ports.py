"""Port protocol interfaces for the engine's external collaborators."""

from typing import Protocol

from routeplan.models.common import Coordinate, TransportMode
from routeplan.models.route import OptimizedRoute
from routeplan.models.waypoint import Waypoint


class GeocodingError(Exception):
    """Geocoding service or network failure."""

    pass


class RouteOptimizationError(Exception):
    """Route optimization service or network failure."""

    pass


class Geocoder(Protocol):
    """Resolves a place name to candidate coordinates."""

    async def search(self, name: str, city_hint: str | None = None) -> list[Coordinate]:
        """Search for a place.

        Args:
            name: Free-text place name
            city_hint: Optional city restricting the search

        Returns:
            Candidate GCJ02 coordinates, best first; empty when nothing matched

        Raises:
            GeocodingError: On network or service errors
        """
        ...


class RouteOptimizer(Protocol):
    """Computes a navigable route through an ordered list of waypoints."""

    async def optimize(self, waypoints: list[Waypoint], mode: TransportMode) -> OptimizedRoute:
        """Compute a route.

        Args:
            waypoints: Ordered waypoints, start first and end last
            mode: Transport mode

        Returns:
            OptimizedRoute with a GCJ02 polyline

        Raises:
            RouteOptimizationError: On network or service errors
        """
        ...


class KeyValueStore(Protocol):
    """Blob persistence keyed by string."""

    def load(self, key: str) -> bytes | None:
        """Return the stored blob or None."""
        ...

    def save(self, key: str, data: bytes) -> None:
        """Store a blob, replacing any previous value."""
        ...
