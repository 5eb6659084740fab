"""Authoritative route plan state.

RoutePlanStore owns the waypoint list, the optimized route, manual adjustments,
completion flags and transport settings. It is the single writer of that
state: all mutations run on the asyncio loop that owns the store, while
geocoding and route optimization run as tasks on the same loop and only
commit their results if no newer work has superseded them.
"""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from uuid import UUID

from routeplan.adapters.ports import Geocoder, KeyValueStore, RouteOptimizer
from routeplan.config import Settings, get_settings
from routeplan.geo.distance import haversine_m, median, nearest_distance_m
from routeplan.geo.transform import to_gcj02, wgs84_to_gcj02
from routeplan.models.adjustment import (
    DeviationWarning,
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
)
from routeplan.models.itinerary import Itinerary
from routeplan.models.route import OptimizedRoute
from routeplan.models.waypoint import Waypoint, kind_for_position
from routeplan.resolution.geocode import GeocodeCache, GeocodeResolver
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
from routeplan.utils.logging import StructuredCallLogger
from routeplan.utils.metrics import PrometheusCallMetrics

logger = logging.getLogger(__name__)

RESOLUTION_FAILED_ADVISORY = "Locations could not be resolved; the plan is empty."


class StoreEvent(str, Enum):
    """Kind of state change delivered to subscribers."""

    waypoints = "waypoints"
    route = "route"
    adjustments = "adjustments"
    completion = "completion"
    deviation = "deviation"
    focus = "focus"
    status = "status"


Listener = Callable[[StoreEvent], None]


@dataclass(frozen=True)
class RoutePlanSnapshot:
    """Immutable view of the store for polling consumers."""

    waypoints: tuple[Waypoint, ...]
    optimized_route: OptimizedRoute | None
    transport_mode: TransportMode
    travel_mode: TravelMode
    is_optimizing: bool
    advisory: str | None
    last_optimization_error: str | None
    deviation_warning: DeviationWarning | None
    completed_keys: frozenset[str]
    highlight_waypoints: tuple[Waypoint, ...]
    map_jump_target: MapJumpTarget | None
    map_focus_token: int
    map_tab_jump_token: int


@dataclass(frozen=True)
class _CoordinateCacheEntry:
    base: Coordinate
    offset_latitude: float
    offset_longitude: float
    adjusted: Coordinate


def _with_positional_kinds(waypoints: list[Waypoint]) -> list[Waypoint]:
    count = len(waypoints)
    result = []
    for index, waypoint in enumerate(waypoints):
        kind = kind_for_position(index, count)
        result.append(waypoint if waypoint.kind == kind else waypoint.with_kind(kind))
    return result


def reorder_for_walking(waypoints: list[Waypoint]) -> list[Waypoint]:
    """Greedy nearest-neighbour order with the first and last stop fixed."""
    if len(waypoints) <= 2:
        return list(waypoints)

    start, end = waypoints[0], waypoints[-1]
    remaining = list(waypoints[1:-1])
    ordered = [start]
    current = start
    while remaining:
        best_index = min(
            range(len(remaining)),
            key=lambda i: haversine_m(current.raw_coordinate, remaining[i].raw_coordinate),
        )
        current = remaining.pop(best_index)
        ordered.append(current)
    ordered.append(end)
    return ordered


class RoutePlanStore:
    """Single owner of route plan state."""

    def __init__(
        self,
        geocoder: Geocoder,
        route_optimizer: RouteOptimizer,
        kv_store: KeyValueStore,
        *,
        settings: Settings | None = None,
        executor: CallExecutor | None = None,
    ) -> None:
        """Initialize the store and load persisted state.

        Args:
            geocoder: Geocoding port
            route_optimizer: Route optimization port
            kv_store: Blob persistence for adjustments, completion and geocode cache
            settings: Engine settings (default: environment)
            executor: Port call executor shared by geocoding and optimization
        """
        self._settings = settings or get_settings()
        self._executor = executor or CallExecutor(
            metrics=PrometheusCallMetrics(), logger=StructuredCallLogger()
        )
        self._route_optimizer = route_optimizer
        self._persistence = PlanPersistence(kv_store, self._settings)
        self._resolver = GeocodeResolver(
            geocoder, GeocodeCache(self._persistence), self._executor, self._settings
        )

        self._waypoints: list[Waypoint] = []
        self._waypoints_version = 0
        self._optimized_route: OptimizedRoute | None = None
        self._transport_mode = TransportMode.driving
        self._travel_mode = TravelMode.driving
        self._optimizing_count = 0
        self._advisory: str | None = None
        self._last_optimization_error: str | None = None
        self._deviation_warning: DeviationWarning | None = None
        self._highlight_waypoints: list[Waypoint] = []
        self._map_jump_target: MapJumpTarget | None = None
        self._map_focus_token = 0
        self._map_tab_jump_token = 0

        self._adjustments: dict[str, WaypointAdjustment] = self._persistence.load_adjustments()
        self._completed_keys: set[str] = self._persistence.load_completed()
        self._coordinate_cache: dict[str, _CoordinateCacheEntry] = {}

        self._generation = 0
        self._resolve_task: asyncio.Task[None] | None = None
        self._resolve_token: CancelToken | None = None
        self._route_tasks: set[asyncio.Task[None]] = set()
        self._listeners: list[Listener] = []

    # ------------------------------------------------------------------ #
    # Queries
    # ------------------------------------------------------------------ #

    @property
    def waypoints(self) -> list[Waypoint]:
        return list(self._waypoints)

    @property
    def optimized_route(self) -> OptimizedRoute | None:
        return self._optimized_route

    @property
    def transport_mode(self) -> TransportMode:
        return self._transport_mode

    @property
    def travel_mode(self) -> TravelMode:
        return self._travel_mode

    @property
    def is_optimizing(self) -> bool:
        return self._optimizing_count > 0

    @property
    def advisory(self) -> str | None:
        """Non-fatal note from the last itinerary resolution."""
        return self._advisory

    @property
    def last_optimization_error(self) -> str | None:
        return self._last_optimization_error

    @property
    def deviation_warning(self) -> DeviationWarning | None:
        return self._deviation_warning

    @property
    def highlight_waypoints(self) -> list[Waypoint]:
        return list(self._highlight_waypoints)

    @property
    def map_jump_target(self) -> MapJumpTarget | None:
        return self._map_jump_target

    @property
    def map_focus_token(self) -> int:
        return self._map_focus_token

    @property
    def map_tab_jump_token(self) -> int:
        return self._map_tab_jump_token

    @property
    def completed_keys(self) -> frozenset[str]:
        return frozenset(self._completed_keys)

    @property
    def adjustments(self) -> dict[str, WaypointAdjustment]:
        return {k: v.model_copy(deep=True) for k, v in self._adjustments.items()}

    @property
    def geocode_cache(self) -> GeocodeCache:
        return self._resolver.cache

    def snapshot(self) -> RoutePlanSnapshot:
        return RoutePlanSnapshot(
            waypoints=tuple(self._waypoints),
            optimized_route=self._optimized_route,
            transport_mode=self._transport_mode,
            travel_mode=self._travel_mode,
            is_optimizing=self.is_optimizing,
            advisory=self._advisory,
            last_optimization_error=self._last_optimization_error,
            deviation_warning=self._deviation_warning,
            completed_keys=frozenset(self._completed_keys),
            highlight_waypoints=tuple(self._highlight_waypoints),
            map_jump_target=self._map_jump_target,
            map_focus_token=self._map_focus_token,
            map_tab_jump_token=self._map_tab_jump_token,
        )

    # ------------------------------------------------------------------ #
    # Change notification
    # ------------------------------------------------------------------ #

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener``; returns a callable that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, event: StoreEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception(f"Store listener failed on {event.value}")

    # ------------------------------------------------------------------ #
    # Itinerary ingestion
    # ------------------------------------------------------------------ #

    def update_from_itinerary(self, itinerary: Itinerary) -> asyncio.Task[None]:
        """Replace the plan with ``itinerary``, superseding any in-flight resolution.

        Must be called from the store's event loop. The returned task completes
        once waypoints are committed and route optimization has been requested.
        """
        self._cancel_resolution()
        self._generation += 1
        generation = self._generation

        self._optimized_route = None
        self._advisory = None
        self._last_optimization_error = None
        self._coordinate_cache.clear()
        self._resolver.cache.clear_memory()
        self._set_waypoints([])
        self._notify(StoreEvent.route)

        token = CancelToken()
        self._resolve_token = token
        self._resolve_task = asyncio.get_running_loop().create_task(
            self._resolve(itinerary, generation, token)
        )
        return self._resolve_task

    def _cancel_resolution(self) -> None:
        if self._resolve_token is not None:
            self._resolve_token.cancel()
        if self._resolve_task is not None and not self._resolve_task.done():
            self._resolve_task.cancel()

    async def _resolve(self, itinerary: Itinerary, generation: int, token: CancelToken) -> None:
        try:
            result = await self._resolver.resolve(itinerary, token)
        except CallCancelledError:
            logger.debug(f"Resolution {generation} cancelled")
            return
        except Exception:
            logger.exception(f"Resolution {generation} failed")
            if generation == self._generation and not token.cancelled:
                self._advisory = RESOLUTION_FAILED_ADVISORY
                self._notify(StoreEvent.status)
            return

        if generation != self._generation or token.cancelled:
            logger.debug(f"Discarding superseded resolution {generation}")
            return

        waypoints = result.waypoints
        if self._travel_mode == TravelMode.walking:
            waypoints = reorder_for_walking(waypoints)

        self._coordinate_cache.clear()
        self._set_waypoints(waypoints)
        self._prune_completed()
        self._advisory = result.advisory
        self._notify(StoreEvent.status)
        self.optimize_route_if_possible()

    # ------------------------------------------------------------------ #
    # Route optimization
    # ------------------------------------------------------------------ #

    def optimize_route_if_possible(self) -> asyncio.Task[None] | None:
        """Request a route for the current waypoints.

        Clears the route and returns None when fewer than 2 waypoints exist.
        """
        if len(self._waypoints) < 2:
            if self._optimized_route is not None:
                self._optimized_route = None
                self._notify(StoreEvent.route)
            return None

        self._optimizing_count += 1
        self._last_optimization_error = None
        self._notify(StoreEvent.status)

        task = asyncio.get_running_loop().create_task(
            self._optimize(list(self._waypoints), self._transport_mode, self._waypoints_version)
        )
        self._route_tasks.add(task)
        task.add_done_callback(self._route_tasks.discard)
        return task

    async def _optimize(
        self, waypoints: list[Waypoint], mode: TransportMode, version: int
    ) -> None:
        config = CallConfig(hard_timeout_ms=self._settings.optimize_hard_timeout_ms)
        ctx = CallContext(call_name="optimize_route", subject=f"{mode.value}:{len(waypoints)}")
        try:
            route = await self._executor.execute(
                ctx, config, lambda: self._route_optimizer.optimize(waypoints, mode)
            )
        except (CallExecutionError, CallTimeoutError) as e:
            reason = e.__cause__ or e
            logger.warning(f"Route optimization failed: {reason}")
            if self._is_current(version, mode):
                self._last_optimization_error = f"Route optimization failed: {reason}"
            return
        finally:
            self._optimizing_count -= 1
            self._notify(StoreEvent.status)

        if not self._is_current(version, mode):
            logger.debug("Discarding route computed for a superseded waypoint list")
            return

        logger.info(
            f"Route optimized: waypoints={len(waypoints)}, polyline={len(route.polyline)}, "
            f"distance={route.total_distance_meters}, duration={route.total_duration_seconds}"
        )
        self._optimized_route = route
        self._notify(StoreEvent.route)
        self._resolve_coordinate_system(route)

    def _is_current(self, version: int, mode: TransportMode) -> bool:
        return version == self._waypoints_version and mode == self._transport_mode

    def set_transport_mode(self, mode: TransportMode) -> asyncio.Task[None] | None:
        self._transport_mode = mode
        self._notify(StoreEvent.status)
        return self.optimize_route_if_possible()

    def set_travel_mode(self, mode: TravelMode) -> None:
        """Walking reorders stops on the next itinerary update."""
        self._travel_mode = mode
        self._notify(StoreEvent.status)

    async def wait_until_idle(self) -> None:
        """Wait for in-flight resolution and optimization to finish."""
        while True:
            pending = [t for t in self._route_tasks if not t.done()]
            if self._resolve_task is not None and not self._resolve_task.done():
                pending.append(self._resolve_task)
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    # ------------------------------------------------------------------ #
    # Coordinate-system inference
    # ------------------------------------------------------------------ #

    def _resolve_coordinate_system(self, route: OptimizedRoute) -> None:
        """Decide whether auto-detected waypoints were WGS84 or GCJ02.

        Compares how well the raw and the WGS84-converted positions fit the
        returned polyline; the converted fit must win by a margin to pick WGS84.
        """
        auto = [w for w in self._waypoints if w.is_auto_coordinate_system]
        if not auto or not route.polyline:
            return

        sampled = route.polyline[:: max(1, self._settings.polyline_sample_stride)]
        raw_distances = [nearest_distance_m(w.raw_coordinate, sampled) for w in auto]
        converted_distances = [
            nearest_distance_m(wgs84_to_gcj02(w.raw_coordinate), sampled) for w in auto
        ]
        raw_median = median(raw_distances)
        converted_median = median(converted_distances)

        if converted_median + self._settings.inference_margin_m < raw_median:
            resolved = CoordinateSystem.wgs84
        else:
            resolved = CoordinateSystem.gcj02
        logger.info(
            f"Inferred {resolved.value} for {len(auto)} waypoint(s): "
            f"raw median={raw_median:.1f}m, converted median={converted_median:.1f}m"
        )
        self._set_resolved_coordinate_system([w.stable_key for w in auto], resolved)

    def _set_resolved_coordinate_system(self, keys: list[str], system: CoordinateSystem) -> None:
        changed = False
        for key in keys:
            adjustment = self._adjustments.get(key) or WaypointAdjustment()
            if adjustment.is_locked:
                logger.debug(f"Skipping locked waypoint {key}")
                continue
            if adjustment.resolved_coordinate_system != system:
                adjustment.resolved_coordinate_system = system
                self._adjustments[key] = adjustment
                changed = True

        if changed:
            self._coordinate_cache.clear()
            self._persistence.save_adjustments(self._adjustments)
            self._notify(StoreEvent.adjustments)

    def resolved_coordinate_system(self, waypoint: Waypoint) -> CoordinateSystem:
        """Inferred system if one was written, else the declared one."""
        adjustment = self._adjustments.get(waypoint.stable_key)
        if adjustment is not None and adjustment.resolved_coordinate_system is not None:
            return adjustment.resolved_coordinate_system
        return waypoint.coordinate_system

    # ------------------------------------------------------------------ #
    # Display coordinates and manual adjustments
    # ------------------------------------------------------------------ #

    def base_coordinate(self, waypoint: Waypoint) -> Coordinate:
        """Waypoint position in GCJ02 before any manual offset."""
        return to_gcj02(waypoint.raw_coordinate, self.resolved_coordinate_system(waypoint))

    def display_coordinate(self, waypoint: Waypoint) -> Coordinate:
        """GCJ02 position to render: base coordinate plus manual offset."""
        key = waypoint.stable_key
        base = self.base_coordinate(waypoint)
        adjustment = self._adjustments.get(key)
        offset_lat = adjustment.offset_latitude if adjustment else 0.0
        offset_lon = adjustment.offset_longitude if adjustment else 0.0

        cached = self._coordinate_cache.get(key)
        if (
            cached is not None
            and cached.base == base
            and cached.offset_latitude == offset_lat
            and cached.offset_longitude == offset_lon
        ):
            return cached.adjusted

        adjusted = Coordinate(
            latitude=base.latitude + offset_lat, longitude=base.longitude + offset_lon
        )
        rounded = adjusted.rounded(6)
        self._coordinate_cache[key] = _CoordinateCacheEntry(
            base=base, offset_latitude=offset_lat, offset_longitude=offset_lon, adjusted=rounded
        )
        self._update_deviation_warning(waypoint.name, base, adjusted)
        return rounded

    def apply_manual_adjustment(self, waypoint: Waypoint, target: Coordinate) -> None:
        """Move ``waypoint`` so it displays at ``target`` (GCJ02)."""
        self._apply_adjustment(waypoint, target, record_history=True)

    def apply_known_coordinate(
        self,
        waypoint: Waypoint,
        coordinate: Coordinate,
        system: CoordinateSystem,
        should_lock: bool = False,
    ) -> None:
        """Pin ``waypoint`` to a coordinate given in ``system``, optionally locking it."""
        target = to_gcj02(coordinate, system)
        self._apply_adjustment(waypoint, target, record_history=True)
        if should_lock:
            self._adjustments[waypoint.stable_key].is_locked = True
            self._persistence.save_adjustments(self._adjustments)
            self._notify(StoreEvent.adjustments)

    def restore_history(self, waypoint: Waypoint, record_id: UUID) -> bool:
        """Re-apply a previous correction without recording a new history entry.

        Returns:
            False if no such record exists for the waypoint
        """
        adjustment = self._adjustments.get(waypoint.stable_key)
        if adjustment is None:
            return False
        record = next((r for r in adjustment.history if r.id == record_id), None)
        if record is None:
            return False
        self._apply_adjustment(waypoint, record.coordinate, record_history=False)
        return True

    def _apply_adjustment(self, waypoint: Waypoint, target: Coordinate, record_history: bool) -> None:
        key = waypoint.stable_key
        base = self.base_coordinate(waypoint)
        adjustment = self._adjustments.get(key) or WaypointAdjustment()
        adjustment.offset_latitude = target.latitude - base.latitude
        adjustment.offset_longitude = target.longitude - base.longitude
        if record_history:
            record = WaypointAdjustmentRecord(latitude=target.latitude, longitude=target.longitude)
            adjustment.history = (adjustment.history + [record])[-self._settings.history_limit :]
        self._adjustments[key] = adjustment
        self._coordinate_cache.pop(key, None)
        self._update_deviation_warning(waypoint.name, base, target)
        self._persistence.save_adjustments(self._adjustments)
        self._notify(StoreEvent.adjustments)

    def toggle_lock(self, waypoint: Waypoint) -> bool:
        """Flip the lock flag; returns the new state."""
        key = waypoint.stable_key
        adjustment = self._adjustments.get(key) or WaypointAdjustment()
        adjustment.is_locked = not adjustment.is_locked
        self._adjustments[key] = adjustment
        self._persistence.save_adjustments(self._adjustments)
        self._notify(StoreEvent.adjustments)
        return adjustment.is_locked

    def is_locked(self, waypoint: Waypoint) -> bool:
        adjustment = self._adjustments.get(waypoint.stable_key)
        return adjustment.is_locked if adjustment else False

    def history(self, waypoint: Waypoint) -> list[WaypointAdjustmentRecord]:
        adjustment = self._adjustments.get(waypoint.stable_key)
        return list(adjustment.history) if adjustment else []

    def prune_orphaned_adjustments(self) -> int:
        """Drop unlocked adjustments for keys not in the current waypoint list."""
        live = {w.stable_key for w in self._waypoints}
        orphaned = [k for k, a in self._adjustments.items() if k not in live and not a.is_locked]
        for key in orphaned:
            del self._adjustments[key]
            self._coordinate_cache.pop(key, None)
        if orphaned:
            self._persistence.save_adjustments(self._adjustments)
            self._notify(StoreEvent.adjustments)
        return len(orphaned)

    def _update_deviation_warning(self, name: str, base: Coordinate, adjusted: Coordinate) -> None:
        distance = haversine_m(base, adjusted)
        if distance > self._settings.deviation_threshold_m:
            self._deviation_warning = DeviationWarning(name=name, meters=distance)
            self._notify(StoreEvent.deviation)
        elif self._deviation_warning is not None:
            self._deviation_warning = None
            self._notify(StoreEvent.deviation)

    # ------------------------------------------------------------------ #
    # Waypoint list mutators
    # ------------------------------------------------------------------ #

    def _set_waypoints(self, waypoints: list[Waypoint]) -> None:
        self._waypoints = waypoints
        self._waypoints_version += 1
        self._notify(StoreEvent.waypoints)

    def add_waypoint(self, waypoint: Waypoint) -> asyncio.Task[None] | None:
        self._set_waypoints(_with_positional_kinds([*self._waypoints, waypoint]))
        return self.optimize_route_if_possible()

    def remove_waypoint(self, waypoint_id: UUID) -> asyncio.Task[None] | None:
        remaining = [w for w in self._waypoints if w.id != waypoint_id]
        self._set_waypoints(_with_positional_kinds(remaining))
        return self.optimize_route_if_possible()

    def remove_waypoint_by_key(self, stable_key: str) -> asyncio.Task[None] | None:
        remaining = [w for w in self._waypoints if w.stable_key != stable_key]
        self._set_waypoints(_with_positional_kinds(remaining))
        return self.optimize_route_if_possible()

    def replace_waypoints(self, waypoints: list[Waypoint]) -> asyncio.Task[None] | None:
        self._set_waypoints(_with_positional_kinds(list(waypoints)))
        return self.optimize_route_if_possible()

    def clear_waypoints(self) -> None:
        self._set_waypoints([])
        self._optimized_route = None
        self._notify(StoreEvent.route)

    # ------------------------------------------------------------------ #
    # Completion tracking
    # ------------------------------------------------------------------ #

    def mark_completed(self, waypoint: Waypoint) -> None:
        self._completed_keys.add(waypoint.stable_key)
        self._persistence.save_completed(self._completed_keys)
        self._notify(StoreEvent.completion)

    def unmark_completed(self, waypoint: Waypoint) -> None:
        self._completed_keys.discard(waypoint.stable_key)
        self._persistence.save_completed(self._completed_keys)
        self._notify(StoreEvent.completion)

    def is_completed(self, waypoint: Waypoint) -> bool:
        return waypoint.stable_key in self._completed_keys

    def next_uncompleted_index(self) -> int | None:
        for i, waypoint in enumerate(self._waypoints):
            if not self.is_completed(waypoint):
                return i
        return None

    def _prune_completed(self) -> None:
        valid = {w.stable_key for w in self._waypoints}
        filtered = self._completed_keys & valid
        if filtered != self._completed_keys:
            self._completed_keys = filtered
            self._persistence.save_completed(self._completed_keys)
            self._notify(StoreEvent.completion)

    # ------------------------------------------------------------------ #
    # Map focus
    # ------------------------------------------------------------------ #

    def jump_to_map_target(self, target: MapJumpTarget) -> None:
        """Highlight ``target`` and bump the focus tokens consumers watch."""
        self._map_jump_target = target
        self._highlight_waypoints = [
            Waypoint(
                name=target.name,
                latitude=target.latitude,
                longitude=target.longitude,
                eta="Located result",
                stay_duration_minutes=30,
                kind=WaypointKind.stop,
                coordinate_system=CoordinateSystem.gcj02,
                is_auto_coordinate_system=False,
            )
        ]
        self._map_focus_token += 1
        self._map_tab_jump_token += 1
        self._notify(StoreEvent.focus)
