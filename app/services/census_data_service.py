"""
Census Data Service

Combines the cache and the API client: cached ZIPs are served from the
cache, the rest are fetched in batches and written back.

Concurrent requests for the same ZIP share one in-flight lookup instead of
fetching it twice.
"""

import asyncio
import logging
from typing import Iterable, Optional

from pydantic import ValidationError

from app.models.schemas import CensusPayload
from app.services.census_api_service import CensusAPIClient
from app.services.census_cache_service import CensusCache

logger = logging.getLogger(__name__)


class CensusDataService:
    """Cache-first access to per-ZIP Census payloads."""

    def __init__(self, cache: CensusCache, client: CensusAPIClient):
        self.cache = cache
        self.client = client
        self._in_flight: dict[str, asyncio.Future] = {}

    async def _split_cached(self, zip_codes: list[str]) -> tuple[dict[str, CensusPayload], list[str]]:
        hits: dict[str, CensusPayload] = {}
        misses: list[str] = []

        for zip_code in zip_codes:
            entry = await self.cache.get(zip_code)
            if entry is None:
                misses.append(zip_code)
                continue
            try:
                hits[zip_code] = CensusPayload.model_validate(entry.data)
            except ValidationError as e:
                logger.warning(f"Discarding unreadable cache entry for {zip_code}: {e}")
                misses.append(zip_code)

        return hits, misses

    async def fetch_combined_data(self, zip_codes: Iterable[str]) -> dict[str, CensusPayload]:
        """
        Payloads for the requested ZIPs. ZIPs that could not be fetched are
        absent from the result.
        """
        unique_zips = list(dict.fromkeys(zip_codes))
        if not unique_zips:
            return {}

        loop = asyncio.get_running_loop()
        owned: list[str] = []
        waiting: dict[str, asyncio.Future] = {}

        for zip_code in unique_zips:
            future = self._in_flight.get(zip_code)
            if future is not None:
                waiting[zip_code] = future
            else:
                self._in_flight[zip_code] = loop.create_future()
                owned.append(zip_code)

        logger.info(f"Fetching {len(unique_zips)} ZIP codes ({len(waiting)} already in flight)")

        results: dict[str, CensusPayload] = {}
        try:
            hits, misses = await self._split_cached(owned)
            results.update(hits)
            logger.info(f"Cache stats: {len(hits)} hits, {len(misses)} misses")

            if misses:
                fetched = await self.client.fetch_many(misses)
                for zip_code, payload in fetched.items():
                    await self.cache.put(zip_code, payload.model_dump())
                results.update(fetched)
        finally:
            for zip_code in owned:
                future = self._in_flight.pop(zip_code)
                if not future.done():
                    future.set_result(results.get(zip_code))

        for zip_code, future in waiting.items():
            payload: Optional[CensusPayload] = await future
            if payload is not None:
                results[zip_code] = payload

        self.cache.log_stats()
        return results

    async def cache_stats(self) -> dict:
        return await self.cache.stats()

    async def clear_cache(self) -> bool:
        return await self.cache.clear()

    async def sweep_expired(self) -> int:
        return await self.cache.sweep_expired()
