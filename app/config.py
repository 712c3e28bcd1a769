import logging
from pydantic_settings import BaseSettings
from pydantic import field_validator, model_validator
from functools import lru_cache
from typing import Self

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    # App settings
    app_name: str = "ACS Ring Analyzer"
    debug: bool = False

    # CORS - comma-separated list of allowed origins
    cors_origins: str = "http://localhost:5173,http://127.0.0.1:5173"

    # Durable storage for the census cache, saved rings and layer flags
    database_url: str = "sqlite+aiosqlite:///./acs_cache.db"

    # Census ACS API
    census_api_key: str = ""
    census_base_url: str = "https://api.census.gov/data/2022/acs/acs5"
    census_batch_size: int = 30  # Keeps request URLs under length limits
    census_min_batch_size: int = 5  # Sub-batch size when a batch fails outright
    census_request_timeout_seconds: float = 30.0
    # Ordered transport fallbacks; "direct" means no proxy prefix
    census_endpoint_prefixes: str = "direct,https://corsproxy.io/?,https://api.allorigins.win/raw?url="

    # Census cache
    census_cache_ttl_days: int = 90
    census_memory_cache_size: int = 500
    census_cache_prefix: str = "acs_2022_"

    # ZIP index
    zip_data_path: str = "data/uszips.json"
    excluded_territories: str = "PR,GU,VI,MP,AS,UM"
    load_data_on_startup: bool = True

    # Hotspots
    enable_hotspots: bool = True
    hotspot_grid_size: float = 0.1  # degrees, ~11km at the equator
    hotspot_max_count: int = 50
    hotspot_cache_seconds: int = 300

    # Analysis rings (miles)
    ring_inner_miles: float = 5.0
    ring_middle_miles: float = 10.0
    ring_outer_miles: float = 25.0
    ring_weight_multipliers: str = "3,2,1"
    ring_min_draw_meters: float = 100.0
    ring_max_draw_miles: float = 5.0
    ring_stats_mode: str = "donut"  # "donut" or "cumulative"

    # Marker navigation
    navigation_cooldown_ms: int = 300

    # Rate limit for data reloads (slowapi syntax)
    reload_rate_limit: str = "5/minute"

    # Sentry Error Monitoring
    sentry_dsn: str = ""
    sentry_environment: str = "development"

    @property
    def endpoint_prefixes(self) -> list[str]:
        """Transport prefixes in fallback order ("" is a direct request)."""
        prefixes = []
        for raw in self.census_endpoint_prefixes.split(","):
            prefix = raw.strip()
            if not prefix:
                continue
            prefixes.append("" if prefix.lower() == "direct" else prefix)
        return prefixes or [""]

    @property
    def excluded_territory_codes(self) -> list[str]:
        return [t.strip().upper() for t in self.excluded_territories.split(",") if t.strip()]

    @property
    def weight_multipliers(self) -> tuple[float, float, float]:
        inner, middle, outer = (float(v) for v in self.ring_weight_multipliers.split(","))
        return inner, middle, outer

    @field_validator("database_url")
    @classmethod
    def validate_database_url(cls, v: str) -> str:
        """Validate database URL format."""
        if not v:
            raise ValueError("DATABASE_URL is required")
        if not v.startswith(("sqlite+aiosqlite://", "postgresql://", "postgresql+asyncpg://")):
            raise ValueError("DATABASE_URL must be a sqlite+aiosqlite or PostgreSQL connection string")
        return v

    @field_validator("ring_stats_mode")
    @classmethod
    def validate_ring_stats_mode(cls, v: str) -> str:
        mode = v.strip().lower()
        if mode not in ("donut", "cumulative"):
            raise ValueError("RING_STATS_MODE must be 'donut' or 'cumulative'")
        return mode

    @field_validator("ring_weight_multipliers")
    @classmethod
    def validate_weight_multipliers(cls, v: str) -> str:
        parts = [p.strip() for p in v.split(",")]
        if len(parts) != 3:
            raise ValueError("RING_WEIGHT_MULTIPLIERS needs exactly three values (inner,middle,outer)")
        for part in parts:
            if float(part) <= 0:
                raise ValueError("Ring weight multipliers must be positive")
        return v

    @model_validator(mode="after")
    def validate_config(self) -> Self:
        """Validate configuration at startup and warn about missing optional configs."""
        if not (0 < self.ring_inner_miles < self.ring_middle_miles < self.ring_outer_miles):
            raise ValueError("Ring radii must be strictly increasing: inner < middle < outer")
        if self.census_batch_size < 1 or self.census_min_batch_size < 1:
            raise ValueError("Census batch sizes must be at least 1")
        if self.census_memory_cache_size < 1:
            raise ValueError("CENSUS_MEMORY_CACHE_SIZE must be at least 1")

        missing_warnings = []

        if not self.census_api_key:
            missing_warnings.append("CENSUS_API_KEY not set - requests will use the keyless daily quota")

        for warning in missing_warnings:
            logger.warning(f"Config: {warning}")

        configured = []
        if self.census_api_key:
            configured.append("Census API key")
        if self.enable_hotspots:
            configured.append("Hotspots")
        if self.sentry_dsn:
            configured.append("Sentry")

        if configured:
            logger.info(f"Config: Enabled features - {', '.join(configured)}")

        return self

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache
def get_settings() -> Settings:
    return Settings()
