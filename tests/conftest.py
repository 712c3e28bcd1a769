import pytest
from sqlalchemy.ext.asyncio import AsyncEngine

from app.db.database import build_engine


class FakeClock:
    """Manually advanced clock for TTL and cooldown tests."""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
async def sqlite_engine(tmp_path) -> AsyncEngine:
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'cache.db'}")
    yield engine
    await engine.dispose()


@pytest.fixture
async def broken_engine(tmp_path) -> AsyncEngine:
    """An engine whose database file can never be opened."""
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'missing' / 'nested' / 'cache.db'}")
    yield engine
    await engine.dispose()
