"""Encode/decode of the three persisted blobs.

Each blob lives under its own key so a corrupt one never takes the others
down. Read or decode failures fall back to empty defaults.
"""

import logging
from datetime import UTC, datetime, timedelta

from pydantic import TypeAdapter, ValidationError

from routeplan.adapters.ports import KeyValueStore
from routeplan.config import Settings
from routeplan.models.adjustment import GeocodeCacheEntry, WaypointAdjustment

logger = logging.getLogger(__name__)

_adjustments_adapter = TypeAdapter(dict[str, WaypointAdjustment])
_completed_adapter = TypeAdapter(list[str])
_geocode_adapter = TypeAdapter(dict[str, GeocodeCacheEntry])


def prune_geocode_entries(
    entries: dict[str, GeocodeCacheEntry],
    ttl_days: int,
    max_entries: int,
    now: datetime | None = None,
) -> dict[str, GeocodeCacheEntry]:
    """Drop expired entries, then the oldest ones beyond ``max_entries``.

    A zero ``ttl_days`` or ``max_entries`` disables that limit.
    """
    if now is None:
        now = datetime.now(UTC)

    kept = dict(entries)
    if ttl_days > 0:
        cutoff = now - timedelta(days=ttl_days)
        kept = {k: e for k, e in kept.items() if _aware(e.updated_at) >= cutoff}

    if max_entries > 0 and len(kept) > max_entries:
        newest = sorted(kept.items(), key=lambda kv: _aware(kv[1].updated_at), reverse=True)
        kept = dict(newest[:max_entries])

    return kept


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo is not None else value.replace(tzinfo=UTC)


class PlanPersistence:
    """Loads and saves adjustments, completion flags and the geocode cache."""

    def __init__(self, kv: KeyValueStore, settings: Settings) -> None:
        self._kv = kv
        self._settings = settings

    def _load(self, key: str) -> bytes | None:
        try:
            return self._kv.load(key)
        except Exception as e:
            logger.warning(f"Failed to read '{key}', using defaults: {e}")
            return None

    def _save(self, key: str, data: bytes) -> None:
        try:
            self._kv.save(key, data)
        except Exception as e:
            logger.error(f"Failed to persist '{key}': {e}")

    def load_adjustments(self) -> dict[str, WaypointAdjustment]:
        data = self._load(self._settings.adjustments_key)
        if data is None:
            return {}
        try:
            return _adjustments_adapter.validate_json(data)
        except ValidationError as e:
            logger.warning(f"Discarding undecodable adjustments: {e.error_count()} error(s)")
            return {}

    def save_adjustments(self, adjustments: dict[str, WaypointAdjustment]) -> None:
        self._save(self._settings.adjustments_key, _adjustments_adapter.dump_json(adjustments))

    def load_completed(self) -> set[str]:
        data = self._load(self._settings.completed_key)
        if data is None:
            return set()
        try:
            return set(_completed_adapter.validate_json(data))
        except ValidationError as e:
            logger.warning(f"Discarding undecodable completion set: {e.error_count()} error(s)")
            return set()

    def save_completed(self, keys: set[str]) -> None:
        self._save(self._settings.completed_key, _completed_adapter.dump_json(sorted(keys)))

    def load_geocode_cache(self) -> dict[str, GeocodeCacheEntry]:
        data = self._load(self._settings.geocode_cache_key)
        if data is None:
            return {}
        try:
            entries = _geocode_adapter.validate_json(data)
        except ValidationError as e:
            logger.warning(f"Discarding undecodable geocode cache: {e.error_count()} error(s)")
            return {}
        return prune_geocode_entries(
            entries,
            self._settings.geocode_cache_ttl_days,
            self._settings.geocode_cache_max_entries,
        )

    def save_geocode_cache(self, entries: dict[str, GeocodeCacheEntry]) -> None:
        pruned = prune_geocode_entries(
            entries,
            self._settings.geocode_cache_ttl_days,
            self._settings.geocode_cache_max_entries,
        )
        self._save(self._settings.geocode_cache_key, _geocode_adapter.dump_json(pruned))
