import pytest

from app.db.database import build_session_factory, init_db
from app.services.preferences_service import DEFAULT_LAYER_VISIBILITY, LayerPreferenceStore, RingStore
from app.services.ring_service import RingManager, RingPolicy
from app.services.spatial.geo import GeoPoint
from tests.helpers import make_marker


@pytest.fixture
async def session_factory(sqlite_engine):
    await init_db(sqlite_engine)
    return build_session_factory(sqlite_engine)


async def test_rings_survive_a_restart(session_factory, clock):
    manager = RingManager(RingPolicy(), clock=clock)
    markers = [make_marker("68001", lat=40.01, lng=-100.0, county="Lincoln", state="NE")]
    ring = manager.create_ring(GeoPoint(40.0, -100.0), 500, markers)

    store = RingStore(session_factory)
    assert await store.save(ring)

    restored = RingManager(RingPolicy(), clock=clock)
    restored.deserialize(await RingStore(session_factory).load_all(), markers)

    copy = restored.get_ring(ring.id)
    assert copy.center == ring.center
    assert copy.stats == ring.stats
    assert copy.locations["inner"].counties == ["Lincoln"]


async def test_ring_delete_and_clear(session_factory, clock):
    manager = RingManager(RingPolicy(), clock=clock)
    first = manager.create_ring(GeoPoint(40.0, -100.0), 500, [])
    second = manager.create_ring(GeoPoint(41.0, -100.0), 500, [])

    store = RingStore(session_factory)
    await store.save_all([first, second])
    await store.delete(first.id)
    assert [r["id"] for r in await store.load_all()] == [second.id]

    await store.clear()
    assert await store.load_all() == []


async def test_ring_store_without_database(clock):
    store = RingStore(None)
    ring = RingManager(RingPolicy(), clock=clock).create_ring(GeoPoint(40.0, -100.0), 500, [])

    assert not store.available
    assert await store.save(ring) is False
    assert await store.load_all() == []


async def test_layer_flags_default_to_visible(session_factory):
    store = LayerPreferenceStore(session_factory)
    assert await store.load() == DEFAULT_LAYER_VISIBILITY


async def test_layer_flags_persist(session_factory):
    await LayerPreferenceStore(session_factory).save({"income": False, "unknown": False})

    flags = await LayerPreferenceStore(session_factory).load()
    assert flags["income"] is False
    assert flags["education"] is True
    assert "unknown" not in flags


async def test_layer_flags_without_tables(sqlite_engine):
    # Tables were never created, so every query fails
    store = LayerPreferenceStore(build_session_factory(sqlite_engine))

    assert await store.load() == DEFAULT_LAYER_VISIBILITY
    assert (await store.save({"both": False}))["both"] is False
