"""
Hotspot Service

Runs the grid clusterer on demand and keeps the result for a bounded time.
The cache is keyed only by recency, so callers must invalidate it after
reloading markers (or pass force_refresh). Concurrent callers share one
in-flight computation.
"""

import asyncio
import logging
import time
from typing import Callable, Iterable, Optional

from app.services.spatial.hotspots import Hotspot, find_hotspots
from app.services.spatial.markers import MarkerRecord

logger = logging.getLogger(__name__)


class HotspotService:
    def __init__(
        self,
        grid_size: float = 0.1,
        max_hotspots: int = 50,
        cache_seconds: float = 300,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.grid_size = grid_size
        self.max_hotspots = max_hotspots
        self.cache_seconds = cache_seconds
        self._clock = clock
        self._cached: Optional[list[Hotspot]] = None
        self._calculated_at: float = 0.0
        # Bumped by invalidate(); results from an older generation are not cached
        self._generation = 0
        self._in_flight: Optional[asyncio.Future] = None
        self._in_flight_generation = -1

    def cached(self) -> Optional[list[Hotspot]]:
        """The cached hotspots if still fresh."""
        if self._cached is not None and self._clock() - self._calculated_at < self.cache_seconds:
            return self._cached
        return None

    def invalidate(self) -> None:
        self._cached = None
        self._calculated_at = 0.0
        self._generation += 1

    async def get_hotspots(
        self,
        markers: Iterable[MarkerRecord],
        force_refresh: bool = False,
    ) -> list[Hotspot]:
        if force_refresh:
            self.invalidate()

        cached = self.cached()
        if cached is not None:
            logger.debug("Returning cached hotspots")
            return cached

        if self._in_flight is not None and self._in_flight_generation == self._generation:
            return await self._in_flight

        generation = self._generation
        future: asyncio.Future = asyncio.get_running_loop().create_future()
        self._in_flight = future
        self._in_flight_generation = generation
        try:
            # Let pending I/O run before the CPU-bound pass
            await asyncio.sleep(0)
            marker_list = list(markers)
            logger.info(f"Calculating hotspots from {len(marker_list)} markers...")
            hotspots = find_hotspots(marker_list, self.grid_size, self.max_hotspots)
            logger.info(f"Found {len(hotspots)} hotspots")

            if generation == self._generation:
                self._cached = hotspots
                self._calculated_at = self._clock()
            else:
                logger.debug("Hotspots invalidated during calculation, not caching")
            future.set_result(hotspots)
            return hotspots
        except asyncio.CancelledError:
            future.cancel()
            raise
        except Exception as e:
            future.set_exception(e)
            # Mark retrieved so an unawaited future doesn't warn
            future.exception()
            raise
        finally:
            if self._in_flight is future:
                self._in_flight = None
