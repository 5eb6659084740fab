"""Itinerary-to-waypoint resolution with two-tier geocode caching.

Activities that already carry coordinates are normalized in place. Everything
else is geocoded by name through the Geocoder port, trying each city hint found
in the activity text before an unrestricted search. Activities that cannot be
resolved are placed at a deterministic fallback position so the route still
renders.
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import UTC, datetime

from routeplan.adapters.ports import Geocoder
from routeplan.config import Settings, get_settings
from routeplan.models.adjustment import GeocodeCacheEntry
from routeplan.models.common import Coordinate, CoordinateSystem
from routeplan.models.itinerary import Activity, Itinerary
from routeplan.models.waypoint import Waypoint, kind_for_position, normalize_coordinate
from routeplan.store.persistence import PlanPersistence
from routeplan.tools.executor import (
    CallCancelledError,
    CallConfig,
    CallContext,
    CallExecutionError,
    CallExecutor,
    CallTimeoutError,
    CancelToken,
)
from routeplan.utils.metrics import record_geocode_cache_hit, record_geocode_fallback

logger = logging.getLogger(__name__)

FALLBACK_ADVISORY = "Some locations could not be geocoded; fallback positions shown."


def normalize_geocode_key(name: str) -> str:
    return name.strip().lower()


class GeocodeCache:
    """In-memory tier over a persisted tier, both keyed by normalized name."""

    def __init__(self, persistence: PlanPersistence) -> None:
        self._persistence = persistence
        self._memory: dict[str, Coordinate] = {}
        self._disk: dict[str, GeocodeCacheEntry] = persistence.load_geocode_cache()

    def get(self, key: str) -> Coordinate | None:
        cached = self._memory.get(key)
        if cached is not None:
            record_geocode_cache_hit("memory")
            return cached

        entry = self._disk.get(key)
        if entry is not None:
            coordinate = entry.coordinate
            self._memory[key] = coordinate
            record_geocode_cache_hit("disk")
            return coordinate

        return None

    def put(self, key: str, coordinate: Coordinate) -> None:
        """Write through both tiers and persist the disk tier immediately."""
        self._memory[key] = coordinate
        self._disk[key] = GeocodeCacheEntry(
            latitude=coordinate.latitude,
            longitude=coordinate.longitude,
            updated_at=datetime.now(UTC),
        )
        self._persistence.save_geocode_cache(self._disk)

    def clear_memory(self) -> None:
        self._memory.clear()

    def __contains__(self, key: str) -> bool:
        return key in self._memory or key in self._disk


@dataclass
class ResolutionResult:
    """Outcome of one resolution pass."""

    waypoints: list[Waypoint] = field(default_factory=list)
    failed_count: int = 0

    @property
    def advisory(self) -> str | None:
        return FALLBACK_ADVISORY if self.failed_count > 0 else None


@dataclass(frozen=True)
class _ResolvedInput:
    activity: Activity
    coordinate: Coordinate
    coordinate_system: CoordinateSystem
    is_auto: bool


class GeocodeResolver:
    """Turns an itinerary into ordered, coordinate-bearing waypoints."""

    def __init__(
        self,
        geocoder: Geocoder,
        cache: GeocodeCache,
        executor: CallExecutor | None = None,
        settings: Settings | None = None,
    ) -> None:
        self._geocoder = geocoder
        self._cache = cache
        self._executor = executor or CallExecutor()
        self._settings = settings or get_settings()

    @property
    def cache(self) -> GeocodeCache:
        return self._cache

    async def resolve(
        self, itinerary: Itinerary, cancel_token: CancelToken | None = None
    ) -> ResolutionResult:
        """Resolve every activity of ``itinerary`` in order.

        Raises:
            CallCancelledError: If ``cancel_token`` was cancelled mid-pass
        """
        if cancel_token is None:
            cancel_token = CancelToken()

        activities = itinerary.ordered_activities()
        logger.info(f"Resolve waypoints start: activities={len(activities)}")
        if not activities:
            return ResolutionResult()

        resolved: list[_ResolvedInput] = []
        failed_count = 0
        for index, activity in enumerate(activities):
            cancel_token.throw_if_cancelled()

            explicit = self._explicit_coordinate(activity)
            if explicit is not None:
                resolved.append(
                    _ResolvedInput(
                        activity=activity,
                        coordinate=explicit,
                        coordinate_system=activity.coordinate_system or CoordinateSystem.wgs84,
                        is_auto=activity.coordinate_system is None,
                    )
                )
                continue

            hints = self.city_hints(activity, itinerary.title)
            coordinate = await self.geocode(activity.poi_name, hints, cancel_token)
            if coordinate is not None:
                logger.debug(
                    f"Geocode success: {activity.poi_name} -> "
                    f"{coordinate.latitude},{coordinate.longitude}"
                )
                resolved.append(
                    _ResolvedInput(activity, coordinate, CoordinateSystem.gcj02, False)
                )
                continue

            logger.warning(f"Geocode failed, using fallback position: {activity.poi_name}")
            failed_count += 1
            record_geocode_fallback()
            resolved.append(
                _ResolvedInput(
                    activity, self.fallback_coordinate(index), CoordinateSystem.gcj02, False
                )
            )

        cancel_token.throw_if_cancelled()
        waypoints = self._build_waypoints(resolved)
        logger.info(f"Resolve waypoints done: success={len(waypoints)}, failed={failed_count}")
        return ResolutionResult(waypoints=waypoints, failed_count=failed_count)

    def _explicit_coordinate(self, activity: Activity) -> Coordinate | None:
        if not activity.has_coordinates:
            return None
        lat, lon = activity.latitude, activity.longitude
        # Neither component of a valid pair, swapped or not, exceeds 180 degrees
        bounded = all(math.isfinite(v) and abs(v) <= 180.0 for v in (lat, lon))  # type: ignore[arg-type]
        coordinate = normalize_coordinate(lat, lon) if bounded else None  # type: ignore[arg-type]
        if coordinate is None or not coordinate.is_valid:
            logger.warning(
                f"Ignoring out-of-range coordinate for {activity.poi_name}: "
                f"{activity.latitude},{activity.longitude}"
            )
            return None
        return coordinate

    def _build_waypoints(self, resolved: list[_ResolvedInput]) -> list[Waypoint]:
        count = len(resolved)
        waypoints = []
        for index, item in enumerate(resolved):
            activity = item.activity
            coordinate = item.coordinate.rounded(6)
            waypoints.append(
                Waypoint(
                    name=activity.poi_name,
                    latitude=coordinate.latitude,
                    longitude=coordinate.longitude,
                    eta=activity.eta or activity.time,
                    stay_duration_minutes=(
                        activity.stay_duration_minutes
                        if activity.stay_duration_minutes is not None
                        else self._settings.default_stay_minutes
                    ),
                    kind=kind_for_position(index, count),
                    coordinate_system=item.coordinate_system,
                    is_auto_coordinate_system=item.is_auto,
                )
            )
        return waypoints

    def city_hints(self, activity: Activity, itinerary_title: str) -> list[str]:
        """Known cities mentioned in the activity text or itinerary title."""
        corpus = f"{activity.poi_name} {activity.description} {itinerary_title}"
        hints: list[str] = []
        for city in self._settings.known_cities:
            if city in corpus and city not in hints:
                hints.append(city)
        return hints

    def fallback_coordinate(self, index: int) -> Coordinate:
        """Deterministic placeholder near the configured regional center."""
        offset = index * self._settings.fallback_step_deg
        return Coordinate(
            latitude=self._settings.fallback_center_lat + offset,
            longitude=self._settings.fallback_center_lon + offset * self._settings.fallback_lon_factor,
        )

    async def geocode(
        self, name: str, city_hints: list[str], cancel_token: CancelToken
    ) -> Coordinate | None:
        """Resolve ``name`` through the caches, then the Geocoder port.

        Returns:
            Rounded GCJ02 coordinate, or None when every candidate failed

        Raises:
            CallCancelledError: If cancelled while waiting on the port
        """
        key = normalize_geocode_key(name)
        cached = self._cache.get(key)
        if cached is not None:
            logger.debug(f"Geocode cache hit: {name}")
            return cached

        config = CallConfig(
            hard_timeout_ms=self._settings.geocode_hard_timeout_ms,
            attempts=self._settings.geocode_attempts,
            retry_delay_ms=self._settings.geocode_retry_delay_ms,
        )
        candidates: list[str | None] = [*city_hints, None]
        for city in candidates:
            ctx = CallContext(call_name="geocode", subject=f"{name}|{city or '*'}")
            try:
                results = await self._executor.execute(
                    ctx,
                    config,
                    lambda city=city: self._geocoder.search(name, city),
                    cancel_token,
                )
            except CallCancelledError:
                raise
            except (CallExecutionError, CallTimeoutError) as e:
                logger.warning(f"Geocode error: {name}, city={city}: {e}")
                continue

            cancel_token.throw_if_cancelled()
            if results:
                coordinate = results[0].rounded(6)
                self._cache.put(key, coordinate)
                return coordinate
            logger.debug(f"Geocode empty result: {name}, city={city}")

        return None
