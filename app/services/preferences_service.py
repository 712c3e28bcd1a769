"""
Preferences Service

Durable local state that outlives a restart: the saved analysis rings and
the layer visibility flags. Both stores are best effort. When the database
is unavailable they log and carry on, and the in-memory state stays
authoritative for the session.
"""

import logging
from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.db.models import AnalysisRing, LayerPreference
from app.services.ring_service import Ring

logger = logging.getLogger(__name__)

DEFAULT_PREFERENCE_ID = "default"

DEFAULT_LAYER_VISIBILITY = {
    "education": True,
    "income": True,
    "both": True,
    "rings": True,
    "hotspots": True,
}


class RingStore:
    """Saves rings to the analysis_rings table."""

    def __init__(self, session_factory: Optional[async_sessionmaker[AsyncSession]]):
        self._session_factory = session_factory

    @property
    def available(self) -> bool:
        return self._session_factory is not None

    async def save(self, ring: Ring) -> bool:
        if self._session_factory is None:
            return False

        data = ring.to_dict()
        try:
            async with self._session_factory() as session:
                await session.merge(AnalysisRing(
                    id=ring.id,
                    center_lat=ring.center.lat,
                    center_lng=ring.center.lng,
                    radii=data["radii"],
                    stats=data["stats"],
                    weighted_stats=data["weighted_stats"],
                    locations=data["locations"],
                    created_at=ring.created_at,
                ))
                await session.commit()
            return True
        except Exception as e:
            logger.error(f"Error saving ring {ring.id}: {e}")
            return False

    async def save_all(self, rings: list[Ring]) -> None:
        for ring in rings:
            await self.save(ring)

    async def delete(self, ring_id: str) -> bool:
        if self._session_factory is None:
            return False

        try:
            async with self._session_factory() as session:
                await session.execute(delete(AnalysisRing).where(AnalysisRing.id == ring_id))
                await session.commit()
            return True
        except Exception as e:
            logger.error(f"Error deleting ring {ring_id}: {e}")
            return False

    async def clear(self) -> bool:
        if self._session_factory is None:
            return False

        try:
            async with self._session_factory() as session:
                await session.execute(delete(AnalysisRing))
                await session.commit()
            return True
        except Exception as e:
            logger.error(f"Error clearing saved rings: {e}")
            return False

    async def load_all(self) -> list[dict]:
        """Saved rings as dicts, oldest first. Empty if the store is unavailable."""
        if self._session_factory is None:
            return []

        try:
            async with self._session_factory() as session:
                result = await session.execute(select(AnalysisRing).order_by(AnalysisRing.created_at))
                rows = result.scalars().all()
        except Exception as e:
            logger.error(f"Error loading saved rings: {e}")
            return []

        return [
            {
                "id": row.id,
                "center": {"lat": row.center_lat, "lng": row.center_lng},
                "radii": row.radii,
                "stats": row.stats or {},
                "weighted_stats": row.weighted_stats or {},
                "locations": row.locations or {},
                "created_at": row.created_at,
            }
            for row in rows
        ]


class LayerPreferenceStore:
    """Layer visibility flags, one row per preference id."""

    def __init__(
        self,
        session_factory: Optional[async_sessionmaker[AsyncSession]],
        preference_id: str = DEFAULT_PREFERENCE_ID,
    ):
        self._session_factory = session_factory
        self.preference_id = preference_id
        self._flags = dict(DEFAULT_LAYER_VISIBILITY)

    @property
    def flags(self) -> dict[str, bool]:
        return dict(self._flags)

    async def load(self) -> dict[str, bool]:
        """Load saved flags over the defaults. Unknown keys are ignored."""
        if self._session_factory is None:
            return self.flags

        try:
            async with self._session_factory() as session:
                row = await session.get(LayerPreference, self.preference_id)
        except Exception as e:
            logger.warning(f"Could not load layer preferences, using defaults: {e}")
            return self.flags

        if row is not None and isinstance(row.flags, dict):
            for key, value in row.flags.items():
                if key in self._flags:
                    self._flags[key] = bool(value)
        return self.flags

    async def save(self, flags: dict[str, bool]) -> dict[str, bool]:
        """Merge flags into the current state and persist it."""
        for key, value in flags.items():
            if key in self._flags:
                self._flags[key] = bool(value)

        if self._session_factory is None:
            return self.flags

        try:
            async with self._session_factory() as session:
                await session.merge(LayerPreference(id=self.preference_id, flags=self.flags))
                await session.commit()
        except Exception as e:
            logger.warning(f"Could not save layer preferences: {e}")
        return self.flags
