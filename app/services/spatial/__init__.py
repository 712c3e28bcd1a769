"""
Spatial Analytics

Pure, synchronous building blocks used by the ring, hotspot and navigation
services.

Components:
- geo: haversine distance and circle/band membership
- markers: classified ZIP marker records
- aggregation: region statistics over circles and donut bands
- hotspots: grid clustering and ranking
- navigation: nearest marker in a compass direction
"""

from app.services.spatial.geo import (
    GeoPoint,
    haversine_distance,
    is_valid_point,
    is_within_band,
    is_within_radius,
    meters_to_miles,
    miles_to_meters,
    planar_distance,
)
from app.services.spatial.markers import MarkerRecord, MarkerType, derive_marker_type, marker_weight
from app.services.spatial.aggregation import (
    CircleSummary,
    RegionLocations,
    RegionStats,
    aggregate,
    band_stats,
    circle_stats,
    circle_summary,
    collect_locations,
    median,
)
from app.services.spatial.hotspots import Hotspot, find_hotspots, hotspot_color
from app.services.spatial.navigation import (
    Direction,
    MarkerNavigator,
    build_marker_list,
    find_nearest_in_direction,
)

__all__ = [
    "GeoPoint",
    "haversine_distance",
    "is_valid_point",
    "is_within_band",
    "is_within_radius",
    "meters_to_miles",
    "miles_to_meters",
    "planar_distance",
    "MarkerRecord",
    "MarkerType",
    "derive_marker_type",
    "marker_weight",
    "CircleSummary",
    "RegionLocations",
    "RegionStats",
    "aggregate",
    "band_stats",
    "circle_stats",
    "circle_summary",
    "collect_locations",
    "median",
    "Hotspot",
    "find_hotspots",
    "hotspot_color",
    "Direction",
    "MarkerNavigator",
    "build_marker_list",
    "find_nearest_in_direction",
]
