"""
Directional Marker Navigator

Finds the nearest visible marker in a compass direction from the current
viewport center. Distances are planar in degree space since the comparison
is local.
"""

import time
from enum import Enum
from typing import Callable, Iterable, Optional

from app.services.spatial.geo import GeoPoint, planar_distance
from app.services.spatial.markers import MarkerRecord


class Direction(str, Enum):
    NORTH = "N"
    SOUTH = "S"
    EAST = "E"
    WEST = "W"

    @classmethod
    def from_key(cls, key: str) -> "Direction":
        """Accept N/S/E/W in either case, full names or arrow key names."""
        normalized = key.strip()
        if normalized.upper() in {d.value for d in cls}:
            return cls(normalized.upper())

        aliases = {
            "north": cls.NORTH, "arrowup": cls.NORTH, "up": cls.NORTH,
            "south": cls.SOUTH, "arrowdown": cls.SOUTH, "down": cls.SOUTH,
            "east": cls.EAST, "arrowright": cls.EAST, "right": cls.EAST,
            "west": cls.WEST, "arrowleft": cls.WEST, "left": cls.WEST,
        }
        if normalized.lower() not in aliases:
            raise ValueError(f"Unknown direction: {key}")
        return aliases[normalized.lower()]


def is_in_direction(point: GeoPoint, current: GeoPoint, direction: Direction) -> bool:
    if direction is Direction.NORTH:
        return point.lat > current.lat
    if direction is Direction.SOUTH:
        return point.lat < current.lat
    if direction is Direction.EAST:
        return point.lng > current.lng
    return point.lng < current.lng


def is_visible(marker: MarkerRecord, visibility: Optional[dict[str, bool]]) -> bool:
    """Markers are visible unless their layer is switched off."""
    marker_type = marker.marker_type
    if marker_type is None:
        return False
    if visibility is None:
        return True
    return visibility.get(marker_type.value, True)


def build_marker_list(
    markers: Iterable[MarkerRecord],
    visibility: Optional[dict[str, bool]] = None,
) -> list[MarkerRecord]:
    """Visible markers ordered north to south."""
    visible = [m for m in markers if is_visible(m, visibility)]
    visible.sort(key=lambda m: m.lat, reverse=True)
    return visible


def find_nearest_in_direction(
    markers: Iterable[MarkerRecord],
    current_center: GeoPoint,
    direction: Direction,
    visibility: Optional[dict[str, bool]] = None,
) -> Optional[MarkerRecord]:
    best: Optional[MarkerRecord] = None
    best_distance = float("inf")

    for marker in markers:
        if not is_visible(marker, visibility):
            continue
        if not is_in_direction(marker.location, current_center, direction):
            continue
        distance = planar_distance(current_center, marker.location)
        if distance < best_distance:
            best, best_distance = marker, distance

    return best


class MarkerNavigator:
    """
    Directional navigation with a cooldown between accepted moves.

    Calls inside the cooldown window return None without searching.
    """

    def __init__(self, cooldown_ms: int = 300, clock: Callable[[], float] = time.monotonic):
        self.cooldown_seconds = cooldown_ms / 1000
        self._clock = clock
        self._last_navigation: Optional[float] = None

    def navigate(
        self,
        markers: Iterable[MarkerRecord],
        current_center: GeoPoint,
        direction: Direction,
        visibility: Optional[dict[str, bool]] = None,
    ) -> Optional[MarkerRecord]:
        now = self._clock()
        if self._last_navigation is not None and now - self._last_navigation < self.cooldown_seconds:
            return None
        self._last_navigation = now
        return find_nearest_in_direction(markers, current_center, direction, visibility)
