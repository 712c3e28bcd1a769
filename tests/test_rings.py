import pytest

from app.services.ring_service import (
    RING_TOO_SMALL_WARNING,
    DrawState,
    RingDrawingSession,
    RingManager,
    RingPolicy,
    StatsMode,
    primary_location,
)
from app.services.spatial.geo import GeoPoint, miles_to_meters
from tests.helpers import make_marker, north_of

CENTER = GeoPoint(40.0, -100.0)


def _marker_at(zip_code: str, miles: float, **kwargs):
    point = north_of(CENTER, miles)
    return make_marker(zip_code, lat=point.lat, lng=point.lng, **kwargs)


@pytest.fixture
def markers():
    return [
        _marker_at("68001", 4, county="Lincoln", city="North Platte", state="NE", median_income=50000),
        _marker_at("68002", 7, education=True, income=True, county="Logan", city="Stapleton", state="NE"),
    ]


@pytest.fixture
def manager(clock):
    policy = RingPolicy(inner_miles=5, middle_miles=10, outer_miles=20)
    return RingManager(policy, clock=clock)


def test_marker_counts_only_in_its_donut(manager, markers):
    ring = manager.create_ring(CENTER, 500, markers)

    assert ring.stats["inner"].total_markers == 1
    assert ring.stats["inner"].education_only == 1
    assert ring.stats["middle"].total_markers == 1
    assert ring.stats["middle"].both_criteria == 1
    assert ring.stats["outer"].total_markers == 0


def test_cumulative_mode_counts_inner_markers_in_every_band(markers, clock):
    policy = RingPolicy(inner_miles=5, middle_miles=10, outer_miles=20, stats_mode=StatsMode.CUMULATIVE)
    ring = RingManager(policy, clock=clock).create_ring(CENTER, 500, markers)

    assert ring.stats["inner"].total_markers == 1
    assert ring.stats["middle"].total_markers == 2
    assert ring.stats["outer"].total_markers == 2


def test_radii_come_from_policy_not_drag(manager, markers):
    ring = manager.create_ring(CENTER, 2000, markers)
    assert ring.radii == {"inner": 5, "middle": 10, "outer": 20}


def test_weighted_outer_equals_plain_outer(markers, clock):
    far = _marker_at("68003", 14)
    manager = RingManager(RingPolicy(inner_miles=5, middle_miles=10, outer_miles=20), clock=clock)
    ring = manager.create_ring(CENTER, 500, markers + [far])

    assert ring.stats["outer"].total_markers == 1
    assert ring.weighted_stats["outer"] == ring.stats["outer"]
    # Weighted inner reaches 15 miles, covering all three
    assert ring.weighted_stats["inner"].total_markers == 3


def test_weighted_ranges_in_miles(manager, markers):
    ring = manager.create_ring(CENTER, 500, markers)
    ranges = manager.weighted_ranges(ring)

    assert ranges["inner"] == {"min": 0.0, "max": 15.0}
    assert ranges["middle"] == {"min": 15.0, "max": 20.0}
    assert ranges["outer"] == {"min": 10.0, "max": 20.0}


def test_small_drag_is_rejected(manager, markers):
    assert manager.create_ring(CENTER, 100, markers) is None
    assert manager.create_ring(CENTER, 0, markers) is None
    assert len(manager) == 0
    assert manager.create_ring(CENTER, 101, markers) is not None


def test_remove_is_idempotent(manager, markers):
    ring = manager.create_ring(CENTER, 500, markers)

    assert manager.remove_ring(ring.id) is True
    assert manager.remove_ring(ring.id) is False
    assert manager.remove_ring("no-such-ring") is False
    assert manager.get_ring(ring.id) is None


def test_rings_listed_oldest_first(manager, markers, clock):
    first = manager.create_ring(CENTER, 500, markers)
    clock.advance(10)
    second = manager.create_ring(GeoPoint(41.0, -99.0), 500, markers)

    assert [r.id for r in manager.list_rings()] == [first.id, second.id]
    assert manager.clear_rings() == 2
    assert manager.list_rings() == []


def test_summary_totals_across_rings(manager, markers):
    manager.create_ring(CENTER, 500, markers)
    manager.create_ring(CENTER, 500, markers)

    summary = manager.summary()
    assert summary["total_rings"] == 2
    assert summary["total_markers"] == 4
    assert summary["total_both"] == 2


def test_recompute_uses_new_markers(manager, markers):
    ring = manager.create_ring(CENTER, 500, markers)
    assert ring.stats["outer"].total_markers == 0

    manager.recompute_all(markers + [_marker_at("68003", 15)])
    assert ring.stats["outer"].total_markers == 1

    assert manager.recompute_ring("missing", markers) is None


def test_serialize_and_deserialize(manager, markers, clock):
    ring = manager.create_ring(CENTER, 500, markers)
    records = manager.serialize()

    restored = RingManager(manager.policy, clock=clock)
    assert restored.deserialize(records) == 1

    copy = restored.get_ring(ring.id)
    assert copy.stale
    assert copy.center == ring.center
    assert copy.stats["middle"] == ring.stats["middle"]

    restored.recompute_all(markers)
    assert not copy.stale
    assert copy.stats == ring.stats
    assert copy.weighted_stats == ring.weighted_stats


def test_deserialize_skips_unreadable_records(manager):
    records = [{"id": "broken"}, {"id": "ok", "center": {"lat": 40, "lng": -100},
                                  "radii": {"inner": 5, "middle": 10, "outer": 20}}]
    assert manager.deserialize(records) == 1
    assert manager.get_ring("ok") is not None


def test_locations_and_label(manager, markers):
    ring = manager.create_ring(CENTER, 500, markers)

    assert ring.locations["inner"].counties == ["Lincoln"]
    assert ring.locations["middle"].cities == ["Stapleton"]
    assert primary_location(ring) == "Lincoln, NE"


def test_label_falls_back_to_coordinates(manager):
    ring = manager.create_ring(CENTER, 500, [])
    assert primary_location(ring) == "Rings at 40.0000, -100.0000"


# =============================================================================
# Drawing state machine
# =============================================================================

@pytest.fixture
def session(manager):
    return RingDrawingSession(manager)


def test_drag_creates_ring(session, manager, markers):
    assert session.begin(CENTER)
    assert session.state is DrawState.DRAGGING

    radius = session.update(north_of(CENTER, 1))
    assert radius == pytest.approx(miles_to_meters(1))
    assert not session.at_limit

    outcome = session.commit(north_of(CENTER, 1), markers)
    assert outcome.ring is not None
    assert outcome.warning is None
    assert session.state is DrawState.IDLE
    assert len(manager) == 1


def test_preview_radius_is_capped(session):
    session.begin(CENTER)
    radius = session.update(north_of(CENTER, 30))

    assert radius == pytest.approx(miles_to_meters(5))
    assert session.at_limit


def test_begin_while_dragging_is_ignored(session):
    session.begin(CENTER)
    assert not session.begin(GeoPoint(45.0, -90.0))
    assert session.start == CENTER


def test_short_drag_warns(session, manager, markers):
    session.begin(CENTER)
    outcome = session.commit(north_of(CENTER, 0.05), markers)

    assert outcome.ring is None
    assert outcome.warning == RING_TOO_SMALL_WARNING
    assert session.state is DrawState.IDLE
    assert len(manager) == 0


def test_commit_without_drag(session, markers):
    outcome = session.commit(CENTER, markers)
    assert outcome.ring is None
    assert outcome.warning


def test_cancel_resets(session):
    session.begin(CENTER)
    session.update(north_of(CENTER, 2))
    session.cancel()

    snapshot = session.snapshot()
    assert snapshot == {"state": "idle", "start": None, "radius_meters": 0.0, "at_limit": False}
    assert session.update(north_of(CENTER, 3)) == 0.0
