"""
Census cache API endpoints.
"""

import logging

from fastapi import APIRouter

from app.api.deps import AnalysisService
from app.models.schemas import CacheClearResponse, CacheStatsResponse, CacheSweepResponse

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/stats", response_model=CacheStatsResponse)
async def cache_stats(service: AnalysisService):
    """Entry counts and hit/miss counters."""
    return CacheStatsResponse(**await service.census.cache_stats())


@router.post("/sweep", response_model=CacheSweepResponse)
async def sweep_cache(service: AnalysisService):
    """Remove expired entries now."""
    removed = await service.census.sweep_expired()
    return CacheSweepResponse(removed=removed)


@router.delete("", response_model=CacheClearResponse)
async def clear_cache(service: AnalysisService):
    """Empty the cache. The next reload refetches everything."""
    cleared = await service.census.clear_cache()
    logger.info(f"Cache clear requested (durable cleared: {cleared})")
    return CacheClearResponse(cleared=cleared)
