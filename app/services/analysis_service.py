"""
Map Analysis Service

Application-level orchestration. One instance is built in the FastAPI
lifespan and shared by every router through app.state.

Startup:
1. Initialize the Census cache (creates tables, sweeps expired rows)
2. Load layer visibility and saved rings from the durable store
3. Load the ZIP index
4. Load Census data for every state ZIP and build markers (background task)

Reloading re-runs step 4, recomputes every ring against the new markers and
invalidates the hotspot cache.
"""

import asyncio
import logging
from typing import Optional

import httpx
from sqlalchemy.ext.asyncio import AsyncEngine

from app.config import Settings
from app.services.census_api_service import CensusAPIClient
from app.services.census_cache_service import CacheCounters, CensusCache
from app.services.census_data_service import CensusDataService
from app.services.hotspot_service import HotspotService
from app.services.marker_service import build_markers, summarize_markers
from app.services.preferences_service import LayerPreferenceStore, RingStore
from app.services.ring_service import (
    DrawOutcome,
    Ring,
    RingDrawingSession,
    RingManager,
    RingPolicy,
    StatsMode,
)
from app.services.spatial.aggregation import CircleSummary, circle_summary
from app.services.spatial.hotspots import Hotspot
from app.services.spatial.geo import GeoPoint
from app.services.spatial.markers import MarkerRecord
from app.services.spatial.navigation import Direction, MarkerNavigator
from app.services.zip_index_service import ZipCodeIndex

logger = logging.getLogger(__name__)


class MapAnalysisService:
    def __init__(
        self,
        settings: Settings,
        zip_index: ZipCodeIndex,
        cache: CensusCache,
        census: CensusDataService,
        rings: RingManager,
        hotspots: HotspotService,
        navigator: MarkerNavigator,
    ):
        self.settings = settings
        self.zip_index = zip_index
        self.cache = cache
        self.census = census
        self.rings = rings
        self.hotspots = hotspots
        self.navigator = navigator
        self.drawing = RingDrawingSession(rings)

        # Replaced in startup() once the durable store is known to be usable
        self.ring_store = RingStore(None)
        self.layer_store = LayerPreferenceStore(None)

        self.markers: list[MarkerRecord] = []
        self.counts: dict[str, int] = summarize_markers([])
        self.loaded = False
        self.missing_zips = 0
        self._load_lock = asyncio.Lock()

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def startup(self) -> None:
        await self.cache.initialize()

        self.ring_store = RingStore(self.cache.session_factory)
        self.layer_store = LayerPreferenceStore(self.cache.session_factory)
        await self.layer_store.load()

        saved = await self.ring_store.load_all()
        if saved:
            restored = self.rings.deserialize(saved)
            logger.info(f"Restored {restored} saved rings")

        if not self.zip_index.loaded and self.settings.zip_data_path:
            try:
                self.zip_index.load_from_json(self.settings.zip_data_path)
            except (OSError, ValueError) as e:
                logger.error(f"Could not load ZIP data from {self.settings.zip_data_path}: {e}")

    async def load_data(self) -> dict:
        """
        Fetch Census data for every state ZIP and rebuild the markers.

        Concurrent calls are serialized; each one performs a full load.

        Returns:
            Load summary with marker counts and the number of ZIPs without data
        """
        async with self._load_lock:
            zip_codes = self.zip_index.get_all_state_zips(self.settings.excluded_territory_codes)
            if not zip_codes:
                logger.warning("ZIP index is empty, no markers to build")

            logger.info(f"Processing {len(zip_codes)} ZIP codes...")
            payloads = await self.census.fetch_combined_data(zip_codes)

            markers = build_markers(self.zip_index, payloads)
            self.markers = markers
            self.counts = summarize_markers(markers)
            self.missing_zips = len(zip_codes) - len(payloads)
            self.loaded = True

            self.hotspots.invalidate()
            if len(self.rings):
                self.rings.recompute_all(markers)
                await self.ring_store.save_all(self.rings.list_rings())

            logger.info(
                f"Markers built: {self.counts['education_only']} education, "
                f"{self.counts['income_only']} income, {self.counts['both']} both"
            )
            return {"loaded": self.counts["total"], "missing": self.missing_zips, "counts": dict(self.counts)}

    async def reload_data(self) -> dict:
        return await self.load_data()

    async def shutdown(self) -> None:
        self.drawing.cancel()

    # =========================================================================
    # Markers & navigation
    # =========================================================================

    def visible_markers(self) -> list[MarkerRecord]:
        flags = self.layer_store.flags
        return [m for m in self.markers if m.marker_type and flags.get(m.marker_type.value, True)]

    def navigate(self, direction: Direction, current: GeoPoint) -> Optional[MarkerRecord]:
        return self.navigator.navigate(self.markers, current, direction, self.layer_store.flags)

    # =========================================================================
    # Hotspots
    # =========================================================================

    async def get_hotspots(self, force_refresh: bool = False) -> list[Hotspot]:
        return await self.hotspots.get_hotspots(self.markers, force_refresh=force_refresh)

    # =========================================================================
    # Rings
    # =========================================================================

    async def create_ring(self, center: GeoPoint, drawn_radius_meters: float) -> Optional[Ring]:
        ring = self.rings.create_ring(center, drawn_radius_meters, self.markers)
        if ring is not None:
            await self.ring_store.save(ring)
        return ring

    async def commit_drawing(self, point: GeoPoint) -> DrawOutcome:
        outcome = self.drawing.commit(point, self.markers)
        if outcome.ring is not None:
            await self.ring_store.save(outcome.ring)
        return outcome

    async def remove_ring(self, ring_id: str) -> bool:
        removed = self.rings.remove_ring(ring_id)
        if removed:
            await self.ring_store.delete(ring_id)
        return removed

    async def clear_rings(self) -> int:
        count = self.rings.clear_rings()
        await self.ring_store.clear()
        return count

    async def recompute_ring(self, ring_id: str) -> Optional[Ring]:
        ring = self.rings.recompute_ring(ring_id, self.markers)
        if ring is not None:
            await self.ring_store.save(ring)
        return ring

    def circle_summary(self, center: GeoPoint, radius_meters: float) -> CircleSummary:
        return circle_summary(self.markers, center, radius_meters)

    # =========================================================================
    # Layers
    # =========================================================================

    async def update_layers(self, flags: dict[str, bool]) -> dict[str, bool]:
        return await self.layer_store.save(flags)


def create_analysis_service(
    settings: Settings,
    engine: Optional[AsyncEngine] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    zip_index: Optional[ZipCodeIndex] = None,
) -> MapAnalysisService:
    """Wire the service graph from settings."""
    counters = CacheCounters()
    cache = CensusCache(
        engine,
        ttl_days=settings.census_cache_ttl_days,
        memory_size=settings.census_memory_cache_size,
        key_prefix=settings.census_cache_prefix,
        counters=counters,
    )
    client = CensusAPIClient(
        api_key=settings.census_api_key,
        base_url=settings.census_base_url,
        endpoint_prefixes=settings.endpoint_prefixes,
        batch_size=settings.census_batch_size,
        min_batch_size=settings.census_min_batch_size,
        timeout_seconds=settings.census_request_timeout_seconds,
        counters=counters,
        transport=transport,
    )
    policy = RingPolicy(
        inner_miles=settings.ring_inner_miles,
        middle_miles=settings.ring_middle_miles,
        outer_miles=settings.ring_outer_miles,
        multipliers=settings.weight_multipliers,
        stats_mode=StatsMode(settings.ring_stats_mode),
        min_draw_meters=settings.ring_min_draw_meters,
        max_draw_miles=settings.ring_max_draw_miles,
    )

    return MapAnalysisService(
        settings=settings,
        zip_index=zip_index or ZipCodeIndex(),
        cache=cache,
        census=CensusDataService(cache, client),
        rings=RingManager(policy),
        hotspots=HotspotService(
            grid_size=settings.hotspot_grid_size,
            max_hotspots=settings.hotspot_max_count,
            cache_seconds=settings.hotspot_cache_seconds,
        ),
        navigator=MarkerNavigator(cooldown_ms=settings.navigation_cooldown_ms),
    )
