"""
Ring Service

Owns the user-drawn analysis rings: three concentric regions (inner, middle,
outer) around a center, each with region statistics.

Rings always use the configured radii; the drawn distance only has to pass
the minimum-size gate. Stats are either donuts (each band excludes the one
inside it) or cumulative circles, depending on configuration. Weighted stats
scale each band by a fixed multiplier; with an outer multiplier of 1 the
weighted outer band is the plain outer band.

Drawing is modelled as a small state machine (IDLE -> DRAGGING -> IDLE) fed
with abstract pointer events by the map front-end.
"""

import logging
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Iterable, Optional

from app.services.spatial.aggregation import (
    RegionLocations,
    RegionStats,
    band_stats,
    collect_locations,
)
from app.services.spatial.geo import GeoPoint, haversine_distance, meters_to_miles, miles_to_meters
from app.services.spatial.markers import MarkerRecord
from app.utils.datetime_utils import from_epoch

logger = logging.getLogger(__name__)

BAND_NAMES = ("inner", "middle", "outer")

RING_TOO_SMALL_WARNING = "Ring too small, try again"

# Preview radius within this many meters of the cap is reported as at the limit
LIMIT_TOLERANCE_METERS = 100


class StatsMode(str, Enum):
    DONUT = "donut"
    CUMULATIVE = "cumulative"


@dataclass(frozen=True)
class RingPolicy:
    """Fixed ring geometry and statistics convention."""
    inner_miles: float = 5.0
    middle_miles: float = 10.0
    outer_miles: float = 25.0
    multipliers: tuple[float, float, float] = (3.0, 2.0, 1.0)
    stats_mode: StatsMode = StatsMode.DONUT
    min_draw_meters: float = 100.0
    max_draw_miles: float = 5.0

    @property
    def radii(self) -> dict[str, float]:
        return {"inner": self.inner_miles, "middle": self.middle_miles, "outer": self.outer_miles}

    @property
    def max_draw_meters(self) -> float:
        return miles_to_meters(self.max_draw_miles)

    def band_bounds(self, radii: dict[str, float]) -> dict[str, tuple[float, float]]:
        """(min, max) meters per band for the plain stats."""
        inner = miles_to_meters(radii["inner"])
        middle = miles_to_meters(radii["middle"])
        outer = miles_to_meters(radii["outer"])

        if self.stats_mode is StatsMode.CUMULATIVE:
            return {"inner": (0.0, inner), "middle": (0.0, middle), "outer": (0.0, outer)}
        return {"inner": (0.0, inner), "middle": (inner, middle), "outer": (middle, outer)}

    def weighted_bounds(self, radii: dict[str, float]) -> dict[str, tuple[float, float]]:
        """
        (min, max) meters per band for the weighted stats.

        Inner and middle donuts chain from the previous weighted edge; the
        outer donut scales the plain outer band, so a multiplier of 1 leaves
        it unchanged.
        """
        inner_m, middle_m, outer_m = self.multipliers
        inner_edge = miles_to_meters(radii["inner"] * inner_m)
        middle_edge = miles_to_meters(radii["middle"] * middle_m)
        outer_start = miles_to_meters(radii["middle"] * outer_m)
        outer_edge = miles_to_meters(radii["outer"] * outer_m)

        if self.stats_mode is StatsMode.CUMULATIVE:
            return {"inner": (0.0, inner_edge), "middle": (0.0, middle_edge), "outer": (0.0, outer_edge)}
        return {
            "inner": (0.0, inner_edge),
            "middle": (inner_edge, middle_edge),
            "outer": (outer_start, outer_edge),
        }


def _bounds_in_miles(bounds: dict[str, tuple[float, float]]) -> dict[str, dict[str, float]]:
    return {
        name: {"min": round(meters_to_miles(lo), 2), "max": round(meters_to_miles(hi), 2)}
        for name, (lo, hi) in bounds.items()
    }


@dataclass
class Ring:
    """A triple-radius analysis region."""
    id: str
    center: GeoPoint
    radii: dict[str, float]
    created_at: float
    stats: dict[str, RegionStats] = field(default_factory=dict)
    weighted_stats: dict[str, RegionStats] = field(default_factory=dict)
    locations: dict[str, RegionLocations] = field(default_factory=dict)
    stale: bool = False  # True until recomputed against live markers

    @property
    def timestamp(self) -> str:
        return from_epoch(self.created_at).isoformat()

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "center": self.center.to_dict(),
            "radii": dict(self.radii),
            "stats": {name: s.to_dict() for name, s in self.stats.items()},
            "weighted_stats": {name: s.to_dict() for name, s in self.weighted_stats.items()},
            "locations": {name: loc.to_dict() for name, loc in self.locations.items()},
            "created_at": self.created_at,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Ring":
        return cls(
            id=str(data["id"]),
            center=GeoPoint.from_dict(data["center"]),
            radii={name: float(data["radii"][name]) for name in BAND_NAMES},
            created_at=float(data.get("created_at") or time.time()),
            stats={n: RegionStats.from_dict(s) for n, s in (data.get("stats") or {}).items()},
            weighted_stats={n: RegionStats.from_dict(s) for n, s in (data.get("weighted_stats") or {}).items()},
            locations={n: RegionLocations.from_dict(loc) for n, loc in (data.get("locations") or {}).items()},
            stale=True,
        )


# =============================================================================
# Ring Manager
# =============================================================================

class RingManager:
    """In-memory repository of rings, indexed by id in creation order."""

    def __init__(self, policy: Optional[RingPolicy] = None, clock: Callable[[], float] = time.time):
        self.policy = policy or RingPolicy()
        self._clock = clock
        self._rings: dict[str, Ring] = {}

    def __len__(self) -> int:
        return len(self._rings)

    def get_ring(self, ring_id: str) -> Optional[Ring]:
        return self._rings.get(ring_id)

    def list_rings(self) -> list[Ring]:
        """Rings oldest first."""
        return sorted(self._rings.values(), key=lambda r: r.created_at)

    def _compute(self, ring: Ring, markers: Iterable[MarkerRecord]) -> None:
        marker_list = list(markers)
        bounds = self.policy.band_bounds(ring.radii)
        weighted = self.policy.weighted_bounds(ring.radii)

        ring.stats = {
            name: band_stats(marker_list, ring.center, lo, hi) for name, (lo, hi) in bounds.items()
        }
        ring.weighted_stats = {
            name: band_stats(marker_list, ring.center, lo, hi) for name, (lo, hi) in weighted.items()
        }
        ring.locations = {
            name: collect_locations(marker_list, ring.center, lo, hi) for name, (lo, hi) in bounds.items()
        }
        ring.stale = False

    def create_ring(
        self,
        center: GeoPoint,
        drawn_radius_meters: float,
        markers: Iterable[MarkerRecord],
    ) -> Optional[Ring]:
        """
        Create a ring at the policy radii.

        Returns:
            The new ring, or None if the drawn radius did not pass the minimum size gate
        """
        if drawn_radius_meters <= self.policy.min_draw_meters:
            logger.warning(f"Rejected ring: drawn radius {drawn_radius_meters:.0f}m is too small")
            return None

        ring = Ring(
            id=str(uuid.uuid4()),
            center=center,
            radii=self.policy.radii,
            created_at=self._clock(),
        )
        self._compute(ring, markers)
        self._rings[ring.id] = ring

        radii = ring.radii
        logger.info(
            f"Analysis rings created: {radii['inner']:g}mi / {radii['middle']:g}mi / {radii['outer']:g}mi "
            f"({self.policy.stats_mode.value})"
        )
        return ring

    def remove_ring(self, ring_id: str) -> bool:
        """Remove a ring. Removing an unknown id is a no-op."""
        return self._rings.pop(ring_id, None) is not None

    def clear_rings(self) -> int:
        count = len(self._rings)
        self._rings.clear()
        return count

    def recompute_ring(self, ring_id: str, markers: Iterable[MarkerRecord]) -> Optional[Ring]:
        ring = self._rings.get(ring_id)
        if ring is None:
            return None
        self._compute(ring, markers)
        return ring

    def recompute_all(self, markers: Iterable[MarkerRecord]) -> int:
        marker_list = list(markers)
        for ring in self._rings.values():
            self._compute(ring, marker_list)
        return len(self._rings)

    def serialize(self) -> list[dict]:
        return [ring.to_dict() for ring in self.list_rings()]

    def deserialize(self, records: Iterable[dict], markers: Optional[Iterable[MarkerRecord]] = None) -> int:
        """
        Replace the current rings with records. Cached stats are kept for
        display until markers are supplied, at which point every ring is
        recomputed. Unreadable records are skipped.
        """
        self._rings.clear()
        for record in records:
            try:
                ring = Ring.from_dict(record)
            except (KeyError, TypeError, ValueError) as e:
                logger.error(f"Skipping unreadable saved ring: {e}")
                continue
            self._rings[ring.id] = ring

        if markers is not None:
            self.recompute_all(markers)

        return len(self._rings)

    def weighted_ranges(self, ring: Ring) -> dict[str, dict[str, float]]:
        """Weighted band edges in miles, for display."""
        return _bounds_in_miles(self.policy.weighted_bounds(ring.radii))

    def summary(self) -> dict:
        """Totals across the bands of every ring."""
        totals = {
            "total_rings": len(self._rings),
            "total_markers": 0,
            "total_education": 0.0,
            "total_high_income": 0.0,
            "total_both": 0,
        }
        for ring in self._rings.values():
            for stats in ring.stats.values():
                totals["total_markers"] += stats.total_markers
                totals["total_education"] += stats.total_education
                totals["total_high_income"] += stats.total_high_income
                totals["total_both"] += stats.both_criteria
        return totals


def primary_location(ring: Ring) -> str:
    """Display label: first inner county (or city) with its state, else the coordinates."""
    inner = ring.locations.get("inner")
    state = f", {inner.states[0]}" if inner and inner.states else ""
    if inner and inner.counties:
        return inner.counties[0] + state
    if inner and inner.cities:
        return inner.cities[0] + state
    return f"Rings at {ring.center.lat:.4f}, {ring.center.lng:.4f}"


# =============================================================================
# Drawing State Machine
# =============================================================================

class DrawState(str, Enum):
    IDLE = "idle"
    DRAGGING = "dragging"


@dataclass
class DrawOutcome:
    ring: Optional[Ring] = None
    warning: Optional[str] = None


class RingDrawingSession:
    """
    Drag-to-draw gesture: begin(point), update(point)*, then commit(point) or cancel().

    The preview radius is capped at the policy maximum. A begin() while a
    drag is in progress is ignored.
    """

    def __init__(self, manager: RingManager):
        self.manager = manager
        self.state = DrawState.IDLE
        self.start: Optional[GeoPoint] = None
        self.radius_meters = 0.0

    @property
    def max_radius_meters(self) -> float:
        return self.manager.policy.max_draw_meters

    @property
    def at_limit(self) -> bool:
        return self.state is DrawState.DRAGGING and \
            self.radius_meters >= self.max_radius_meters - LIMIT_TOLERANCE_METERS

    def _radius_to(self, point: GeoPoint) -> float:
        return min(haversine_distance(self.start, point), self.max_radius_meters)

    def begin(self, point: GeoPoint) -> bool:
        if self.state is DrawState.DRAGGING:
            return False
        self.state = DrawState.DRAGGING
        self.start = point
        self.radius_meters = 0.0
        return True

    def update(self, point: GeoPoint) -> float:
        if self.state is not DrawState.DRAGGING:
            return 0.0
        self.radius_meters = self._radius_to(point)
        return self.radius_meters

    def commit(self, point: GeoPoint, markers: Iterable[MarkerRecord]) -> DrawOutcome:
        if self.state is not DrawState.DRAGGING:
            return DrawOutcome(warning="No ring is being drawn")

        radius = self._radius_to(point)
        center = self.start
        self.cancel()

        ring = self.manager.create_ring(center, radius, markers)
        if ring is None:
            return DrawOutcome(warning=RING_TOO_SMALL_WARNING)
        return DrawOutcome(ring=ring)

    def cancel(self) -> None:
        self.state = DrawState.IDLE
        self.start = None
        self.radius_meters = 0.0

    def snapshot(self) -> dict:
        return {
            "state": self.state.value,
            "start": self.start.to_dict() if self.start else None,
            "radius_meters": self.radius_meters,
            "at_limit": self.at_limit,
        }
