"""
Hotspot Clusterer

Grid-based spatial clustering of qualifying markers:

1. Bucket markers into fixed angular cells (planar, not geodesic).
2. Score each cell: intensity = count * average weight.
3. Greedily merge cells whose centroids are closer than 1.5 grid cells.
   Merged intensity is the sum of the constituent intensities.
4. Rank by intensity, keep the top N, then recompute centers, radii and names.
"""

import math
from dataclasses import dataclass, field
from typing import Iterable

from app.services.spatial.geo import GeoPoint
from app.services.spatial.markers import MarkerRecord, marker_weight

DEFAULT_GRID_SIZE = 0.1
DEFAULT_MAX_HOTSPOTS = 50
MERGE_FACTOR = 1.5
RADIUS_METERS_PER_SQRT_MEMBER = 5000
UNKNOWN_COUNTY = "Unknown County"


@dataclass
class GridCell:
    """Markers that fall into one grid cell."""
    cell_x: int
    cell_y: int
    members: list[MarkerRecord] = field(default_factory=list)
    total_value: float = 0.0
    sum_lat: float = 0.0
    sum_lng: float = 0.0

    @property
    def count(self) -> int:
        return len(self.members)

    @property
    def centroid(self) -> GeoPoint:
        return GeoPoint(self.sum_lat / self.count, self.sum_lng / self.count)

    @property
    def intensity(self) -> float:
        # density * average weight
        return self.count * (self.total_value / self.count)


@dataclass
class _Cluster:
    members: list[MarkerRecord]
    member_count: int
    total_value: float
    intensity: float


@dataclass
class Hotspot:
    """A ranked dense cluster of qualifying markers."""
    rank: int
    center: GeoPoint
    member_count: int
    total_value: float
    intensity: float
    radius_meters: float
    name: str
    dominant_count: int
    members: list[MarkerRecord] = field(default_factory=list)

    @property
    def description(self) -> str:
        return f"{self.member_count} markers, {round(self.intensity)} intensity"

    def to_dict(self, include_members: bool = False) -> dict:
        result = {
            "rank": self.rank,
            "center": self.center.to_dict(),
            "member_count": self.member_count,
            "total_value": self.total_value,
            "intensity": self.intensity,
            "radius_meters": self.radius_meters,
            "name": self.name,
            "dominant_count": self.dominant_count,
            "description": self.description,
        }
        if include_members:
            result["zips"] = [m.zip for m in self.members]
        return result


def build_grid(markers: Iterable[MarkerRecord], grid_size: float = DEFAULT_GRID_SIZE) -> list[GridCell]:
    """Bucket markers into cells keyed by floor(lat/grid), floor(lng/grid)."""
    grid: dict[tuple[int, int], GridCell] = {}

    for marker in markers:
        cell_x = math.floor(marker.lat / grid_size)
        cell_y = math.floor(marker.lng / grid_size)
        cell = grid.get((cell_x, cell_y))
        if cell is None:
            cell = GridCell(cell_x=cell_x, cell_y=cell_y)
            grid[(cell_x, cell_y)] = cell

        cell.members.append(marker)
        cell.total_value += marker_weight(marker)
        cell.sum_lat += marker.lat
        cell.sum_lng += marker.lng

    return list(grid.values())


def merge_adjacent_cells(cells: list[GridCell], merge_distance: float) -> list[_Cluster]:
    """
    Single greedy pass: each unused cell absorbs every later unused cell whose
    centroid lies within merge_distance of its own centroid.
    """
    clusters: list[_Cluster] = []
    used: set[int] = set()
    centroids = [cell.centroid for cell in cells]

    for i, cell in enumerate(cells):
        if i in used:
            continue
        used.add(i)

        cluster = _Cluster(
            members=list(cell.members),
            member_count=cell.count,
            total_value=cell.total_value,
            intensity=cell.intensity,
        )

        for j in range(i + 1, len(cells)):
            if j in used:
                continue
            d_lat = centroids[i].lat - centroids[j].lat
            d_lng = centroids[i].lng - centroids[j].lng
            if math.hypot(d_lat, d_lng) < merge_distance:
                other = cells[j]
                cluster.members.extend(other.members)
                cluster.member_count += other.count
                cluster.total_value += other.total_value
                cluster.intensity += other.intensity
                used.add(j)

        clusters.append(cluster)

    return clusters


def geographic_center(members: list[MarkerRecord]) -> GeoPoint:
    """Unweighted mean of member coordinates."""
    if not members:
        return GeoPoint(0.0, 0.0)
    lat = sum(m.lat for m in members) / len(members)
    lng = sum(m.lng for m in members) / len(members)
    return GeoPoint(lat, lng)


def dominant_region(members: list[MarkerRecord]) -> tuple[str, int]:
    """Most frequent 'County, ST' among members; the first encountered wins ties."""
    counts: dict[str, int] = {}
    for m in members:
        key = f"{m.county or UNKNOWN_COUNTY}, {m.state or ''}"
        counts[key] = counts.get(key, 0) + 1

    name, best = UNKNOWN_COUNTY, 0
    for key, count in counts.items():
        if count > best:
            name, best = key, count
    return name, best


def find_hotspots(
    markers: Iterable[MarkerRecord],
    grid_size: float = DEFAULT_GRID_SIZE,
    max_hotspots: int = DEFAULT_MAX_HOTSPOTS,
) -> list[Hotspot]:
    """Top hotspots ranked 1..N by descending intensity."""
    cells = build_grid(markers, grid_size)
    if not cells:
        return []

    clusters = merge_adjacent_cells(cells, grid_size * MERGE_FACTOR)
    clusters.sort(key=lambda c: c.intensity, reverse=True)

    hotspots = []
    for index, cluster in enumerate(clusters[:max_hotspots]):
        name, dominant_count = dominant_region(cluster.members)
        hotspots.append(Hotspot(
            rank=index + 1,
            center=geographic_center(cluster.members),
            member_count=cluster.member_count,
            total_value=cluster.total_value,
            intensity=cluster.intensity,
            radius_meters=math.sqrt(cluster.member_count) * RADIUS_METERS_PER_SQRT_MEMBER,
            name=name,
            dominant_count=dominant_count,
            members=cluster.members,
        ))

    return hotspots


def hotspot_color(intensity: float, max_intensity: float) -> str:
    """Heat colour from yellow (low) through amber and orange to red (high)."""
    ratio = intensity / max_intensity if max_intensity else 0.0

    if ratio > 0.8:
        return f"rgba(239, 68, 68, {0.3 + ratio * 0.2:.2f})"
    if ratio > 0.5:
        return f"rgba(249, 115, 22, {0.2 + ratio * 0.2:.2f})"
    if ratio > 0.2:
        return f"rgba(245, 158, 11, {0.15 + ratio * 0.2:.2f})"
    return f"rgba(234, 179, 8, {0.1 + ratio * 0.2:.2f})"
