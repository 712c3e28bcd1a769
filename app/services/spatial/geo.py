"""
Geo Math

Great-circle distance and circle/band membership tests. Pure functions.

Band membership excludes the lower bound and includes the upper bound, so
adjacent bands sharing a boundary never count the same point twice.
"""

import math
from dataclasses import dataclass

EARTH_RADIUS_METERS = 6_371_000.0
METERS_PER_MILE = 1609.34


@dataclass(frozen=True)
class GeoPoint:
    """A WGS84 coordinate in degrees."""
    lat: float
    lng: float

    def to_dict(self) -> dict:
        return {"lat": self.lat, "lng": self.lng}

    @classmethod
    def from_dict(cls, data: dict) -> "GeoPoint":
        return cls(lat=float(data["lat"]), lng=float(data["lng"]))


def is_valid_point(lat: float, lng: float) -> bool:
    """True for finite coordinates inside the WGS84 ranges."""
    if lat is None or lng is None:
        return False
    if math.isnan(lat) or math.isnan(lng):
        return False
    return -90.0 <= lat <= 90.0 and -180.0 <= lng <= 180.0


def miles_to_meters(miles: float) -> float:
    return miles * METERS_PER_MILE


def meters_to_miles(meters: float) -> float:
    return meters / METERS_PER_MILE


def haversine_distance(p1: GeoPoint, p2: GeoPoint) -> float:
    """Great-circle distance between two points in meters."""
    phi1 = math.radians(p1.lat)
    phi2 = math.radians(p2.lat)
    d_phi = math.radians(p2.lat - p1.lat)
    d_lambda = math.radians(p2.lng - p1.lng)

    a = (
        math.sin(d_phi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return EARTH_RADIUS_METERS * c


def planar_distance(p1: GeoPoint, p2: GeoPoint) -> float:
    """Euclidean distance in degree space. Only meaningful for local comparisons."""
    return math.hypot(p2.lat - p1.lat, p2.lng - p1.lng)


def is_within_radius(center: GeoPoint, point: GeoPoint, radius_meters: float) -> bool:
    return haversine_distance(center, point) <= radius_meters


def is_within_band(center: GeoPoint, point: GeoPoint, min_meters: float, max_meters: float) -> bool:
    distance = haversine_distance(center, point)
    return min_meters < distance <= max_meters
