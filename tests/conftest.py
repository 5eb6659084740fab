"""Shared pytest fixtures for all test suites."""

import asyncio
from collections.abc import Callable

import pytest

from routeplan.adapters.fixtures import StraightLineRouteOptimizer
from routeplan.adapters.ports import GeocodingError
from routeplan.adapters.storage import InMemoryKeyValueStore
from routeplan.config import Settings
from routeplan.models.common import Coordinate, TransportMode
from routeplan.models.itinerary import Activity, DayPlan, Itinerary
from routeplan.models.route import OptimizedRoute
from routeplan.models.waypoint import Waypoint
from routeplan.store.route_plan import RoutePlanStore
from routeplan.tools.executor import CallExecutor


async def instant_sleep(_seconds: float) -> None:
    """Retry delay that does not wait."""
    return None


class FakeGeocoder:
    """Geocoder with scripted answers.

    ``places`` maps a lowercased name to either a coordinate list for any city,
    or a dict of city hint (None for unrestricted) to coordinate list. Names in
    ``failing`` raise GeocodingError. When ``gate`` is set, every search waits
    on it first.
    """

    def __init__(
        self,
        places: dict[str, list[Coordinate] | dict[str | None, list[Coordinate]]] | None = None,
        failing: set[str] | None = None,
        gate: asyncio.Event | None = None,
    ) -> None:
        self.places = places or {}
        self.failing = failing or set()
        self.gate = gate
        self.calls: list[tuple[str, str | None]] = []
        self.started = asyncio.Event()

    async def search(self, name: str, city_hint: str | None = None) -> list[Coordinate]:
        self.calls.append((name, city_hint))
        self.started.set()
        if self.gate is not None:
            await self.gate.wait()

        key = name.strip().lower()
        if key in self.failing:
            raise GeocodingError(f"service unavailable for {name}")

        answer = self.places.get(key, [])
        if isinstance(answer, dict):
            return list(answer.get(city_hint, []))
        return list(answer)


class FakeRouteOptimizer:
    """Route optimizer returning a fixed route or a straight line.

    Set ``error`` to make every call fail; set ``gate`` to hold calls open.
    """

    def __init__(
        self,
        route: OptimizedRoute | None = None,
        error: Exception | None = None,
        gate: asyncio.Event | None = None,
    ) -> None:
        self.route = route
        self.error = error
        self.gate = gate
        self.calls: list[tuple[list[Waypoint], TransportMode]] = []
        self._fallback = StraightLineRouteOptimizer(points_per_leg=4)

    async def optimize(self, waypoints: list[Waypoint], mode: TransportMode) -> OptimizedRoute:
        self.calls.append((list(waypoints), mode))
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        if self.route is not None:
            return self.route
        return await self._fallback.optimize(waypoints, mode)


def build_itinerary(
    *names: str, title: str = "Trip", coords: dict[str, tuple[float, float]] | None = None
) -> Itinerary:
    """Single-day itinerary; ``coords`` gives explicit positions by activity name."""
    coords = coords or {}
    activities = []
    for name in names:
        lat_lon = coords.get(name)
        activities.append(
            Activity(
                poi_name=name,
                latitude=lat_lon[0] if lat_lon else None,
                longitude=lat_lon[1] if lat_lon else None,
            )
        )
    return Itinerary(title=title, days=[DayPlan(day=1, activities=activities)])


@pytest.fixture
def settings() -> Settings:
    return Settings()


@pytest.fixture
def kv_store() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture
def executor() -> CallExecutor:
    return CallExecutor(sleep_fn=instant_sleep)


@pytest.fixture
def geocoder() -> FakeGeocoder:
    return FakeGeocoder()


@pytest.fixture
def route_optimizer() -> FakeRouteOptimizer:
    return FakeRouteOptimizer()


@pytest.fixture
def make_store(
    kv_store: InMemoryKeyValueStore, settings: Settings, executor: CallExecutor
) -> Callable[..., RoutePlanStore]:
    """Build a store over the shared in-memory persistence."""

    def _make(
        geocoder: FakeGeocoder | None = None,
        route_optimizer: FakeRouteOptimizer | None = None,
    ) -> RoutePlanStore:
        return RoutePlanStore(
            geocoder or FakeGeocoder(),
            route_optimizer or FakeRouteOptimizer(),
            kv_store,
            settings=settings,
            executor=executor,
        )

    return _make


@pytest.fixture
def make_itinerary() -> Callable[..., Itinerary]:
    return build_itinerary
