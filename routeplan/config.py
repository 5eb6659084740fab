"""Typed settings configuration - single source of truth."""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_KNOWN_CITIES = [
    "潮州", "汕头", "揭阳", "普宁", "广州", "深圳", "珠海", "佛山", "东莞",
    "北京", "上海", "杭州", "南京", "苏州", "武汉", "长沙", "成都", "重庆",
    "西安", "天津", "青岛", "大连", "厦门", "福州", "昆明", "海口", "三亚",
]


class Settings(BaseSettings):
    """Engine settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="ROUTEPLAN_", env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    # Persistence keys
    adjustments_key: str = "route_waypoint_adjustments_v1"
    completed_key: str = "route_completed_v1"
    geocode_cache_key: str = "route_geocode_cache_v1"

    # Fallback positions for stops that could not be geocoded
    fallback_center_lat: float = 23.657
    fallback_center_lon: float = 116.621
    fallback_step_deg: float = 0.004
    fallback_lon_factor: float = 0.6

    # Geocoding
    geocode_attempts: int = 2
    geocode_retry_delay_ms: int = 600
    geocode_hard_timeout_ms: int = 4000
    known_cities: list[str] = Field(default_factory=lambda: list(DEFAULT_KNOWN_CITIES))

    # Route optimization
    optimize_hard_timeout_ms: int = 30000

    # Geocode disk cache retention (0 = no limit)
    geocode_cache_ttl_days: int = 90
    geocode_cache_max_entries: int = 2000

    # Calibration
    deviation_threshold_m: float = 5.0
    inference_margin_m: float = 20.0
    polyline_sample_stride: int = 4
    history_limit: int = 20
    default_stay_minutes: int = 60

    # Clustering (pixels)
    cluster_bucket_px: float = 60.0

    # Straight-line optimizer speeds (km/h)
    driving_speed_kmh: float = 40.0
    walking_speed_kmh: float = 5.0
    cycling_speed_kmh: float = 15.0


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
