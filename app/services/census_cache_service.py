"""
Census Cache Service

Two-tier TTL cache for Census ACS payloads, keyed by ZIP code:

- Memory tier: bounded dict with oldest-inserted-first eviction
- Durable tier: SQL table (census_cache_entries)

Expired entries are removed lazily on read and eagerly by sweep_expired()
at startup. If the durable store cannot be initialized, or an operation on
it fails, the cache keeps working from memory and logs a warning.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from app.db.database import build_session_factory, init_db
from app.db.models import CensusCacheEntry

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 24 * 60 * 60


@dataclass
class CacheEntry:
    """A cached payload and its validity window (epoch seconds)."""
    key: str
    zip: str
    data: dict
    expiry: float
    cached_at: float

    def is_valid(self, now: float) -> bool:
        return now < self.expiry


@dataclass
class CacheCounters:
    """Access counters shared between the cache and the fetch client."""
    hits: int = 0
    misses: int = 0
    api_calls: int = 0

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        if total == 0:
            return 0.0
        return round(self.hits / total * 100, 1)


class CensusCache:
    """Memory-over-durable TTL cache for per-ZIP Census payloads."""

    def __init__(
        self,
        engine: Optional[AsyncEngine],
        ttl_days: float = 90,
        memory_size: int = 500,
        key_prefix: str = "acs_2022_",
        clock: Callable[[], float] = time.time,
        counters: Optional[CacheCounters] = None,
    ):
        self.ttl_seconds = ttl_days * SECONDS_PER_DAY
        self.memory_size = memory_size
        self.key_prefix = key_prefix
        self.counters = counters or CacheCounters()
        self._clock = clock
        self._engine = engine
        self._session_factory = build_session_factory(engine) if engine is not None else None
        self._memory: dict[str, CacheEntry] = {}
        self._initialized = False
        self._init_lock = asyncio.Lock()

    @property
    def durable_available(self) -> bool:
        return self._session_factory is not None

    @property
    def session_factory(self) -> Optional[async_sessionmaker[AsyncSession]]:
        """The durable store's session factory, or None when running memory-only."""
        return self._session_factory

    def cache_key(self, zip_code: str) -> str:
        return f"{self.key_prefix}{zip_code}"

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def initialize(self) -> None:
        """Create the durable table and sweep expired rows. Runs once."""
        async with self._init_lock:
            if self._initialized:
                return
            self._initialized = True

            if self._engine is None:
                logger.warning("No durable store configured, using memory cache only")
                return

            try:
                await init_db(self._engine)
            except Exception as e:
                logger.warning(f"Durable cache initialization failed, using memory cache only: {e}")
                self._session_factory = None
                return

            ttl_days = self.ttl_seconds / SECONDS_PER_DAY
            logger.info(f"Census cache initialized ({ttl_days:g}-day TTL)")
            await self.sweep_expired()

    # =========================================================================
    # Memory tier
    # =========================================================================

    def _remember(self, entry: CacheEntry) -> None:
        self._memory.pop(entry.zip, None)
        if len(self._memory) >= self.memory_size:
            oldest = next(iter(self._memory))
            del self._memory[oldest]
        self._memory[entry.zip] = entry

    # =========================================================================
    # Public API
    # =========================================================================

    async def get(self, zip_code: str) -> Optional[CacheEntry]:
        """Return a valid entry for zip_code, or None on a miss or expiry."""
        await self.initialize()
        now = self._clock()

        entry = self._memory.get(zip_code)
        if entry is not None:
            if entry.is_valid(now):
                self.counters.hits += 1
                return entry
            del self._memory[zip_code]
            await self._durable_delete(zip_code)
            self.counters.misses += 1
            return None

        entry = await self._durable_get(zip_code, now)
        if entry is None:
            self.counters.misses += 1
            return None

        self._remember(entry)
        self.counters.hits += 1
        return entry

    async def put(self, zip_code: str, data: dict) -> CacheEntry:
        """Store data in both tiers with expiry = now + TTL."""
        await self.initialize()
        now = self._clock()
        entry = CacheEntry(
            key=self.cache_key(zip_code),
            zip=zip_code,
            data=data,
            expiry=now + self.ttl_seconds,
            cached_at=now,
        )
        self._remember(entry)
        await self._durable_put(entry)
        return entry

    async def put_many(self, items: dict[str, dict]) -> None:
        for zip_code, data in items.items():
            await self.put(zip_code, data)

    async def sweep_expired(self) -> int:
        """Remove every expired entry. Returns how many were removed."""
        now = self._clock()

        expired_memory = [z for z, e in self._memory.items() if not e.is_valid(now)]
        for zip_code in expired_memory:
            del self._memory[zip_code]

        if self._session_factory is None:
            return len(expired_memory)

        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    delete(CensusCacheEntry).where(CensusCacheEntry.expiry <= now)
                )
                await session.commit()
                cleaned = result.rowcount or 0
        except Exception as e:
            logger.warning(f"Failed to sweep durable cache: {e}")
            return len(expired_memory)

        if cleaned > 0:
            logger.info(f"Cleaned {cleaned} expired cache entries")
        return cleaned

    async def clear(self) -> bool:
        """Empty both tiers. Returns False if the durable tier could not be cleared."""
        self._memory.clear()

        if self._session_factory is None:
            return True

        try:
            async with self._session_factory() as session:
                await session.execute(delete(CensusCacheEntry))
                await session.commit()
        except Exception as e:
            logger.warning(f"Failed to clear durable cache: {e}")
            return False

        logger.info("Cache cleared")
        return True

    async def stats(self) -> dict:
        total_durable = 0
        if self._session_factory is not None:
            try:
                async with self._session_factory() as session:
                    result = await session.execute(select(func.count()).select_from(CensusCacheEntry))
                    total_durable = result.scalar_one()
            except Exception as e:
                logger.warning(f"Failed to count durable cache entries: {e}")

        return {
            "total_durable": total_durable,
            "total_memory": len(self._memory),
            "hits": self.counters.hits,
            "misses": self.counters.misses,
            "api_calls": self.counters.api_calls,
            "hit_rate": self.counters.hit_rate,
            "durable_available": self.durable_available,
        }

    def log_stats(self) -> None:
        if self.counters.hits + self.counters.misses > 0:
            logger.info(f"Cache performance: {self.counters.hit_rate:.1f}% hit rate")

    # =========================================================================
    # Durable tier
    # =========================================================================

    async def _durable_get(self, zip_code: str, now: float) -> Optional[CacheEntry]:
        if self._session_factory is None:
            return None

        key = self.cache_key(zip_code)
        try:
            async with self._session_factory() as session:
                row = await session.get(CensusCacheEntry, key)
                if row is None:
                    return None

                if now >= row.expiry:
                    await session.delete(row)
                    await session.commit()
                    return None

                return CacheEntry(
                    key=row.key,
                    zip=row.zip,
                    data=row.data,
                    expiry=row.expiry,
                    cached_at=row.cached_at,
                )
        except Exception as e:
            logger.warning(f"Durable cache read failed for {zip_code}: {e}")
            return None

    async def _durable_put(self, entry: CacheEntry) -> None:
        if self._session_factory is None:
            return

        try:
            async with self._session_factory() as session:
                await session.merge(CensusCacheEntry(
                    key=entry.key,
                    zip=entry.zip,
                    data=entry.data,
                    expiry=entry.expiry,
                    cached_at=entry.cached_at,
                ))
                await session.commit()
        except Exception as e:
            logger.warning(f"Durable cache write failed for {entry.zip}: {e}")

    async def _durable_delete(self, zip_code: str) -> None:
        if self._session_factory is None:
            return

        try:
            async with self._session_factory() as session:
                await session.execute(
                    delete(CensusCacheEntry).where(CensusCacheEntry.key == self.cache_key(zip_code))
                )
                await session.commit()
        except Exception as e:
            logger.warning(f"Durable cache delete failed for {zip_code}: {e}")
