"""
Statistical Aggregator

Aggregates marker attributes over a circle or a donut band around a center.
Never raises: an empty input or an empty match set yields zero counts and a
median income of None.
"""

import math
from dataclasses import dataclass, field, asdict
from typing import Callable, Iterable, Optional

from app.services.spatial.geo import GeoPoint, haversine_distance
from app.services.spatial.markers import MarkerRecord

# Location lists shown for a region are capped at this many names
MAX_LOCATION_NAMES = 8


@dataclass
class RegionStats:
    """Aggregate statistics for the markers inside a region."""
    total_markers: int = 0
    education_only: int = 0
    income_only: int = 0
    both_criteria: int = 0
    total_education: float = 0.0
    total_high_income: float = 0.0
    median_income: Optional[float] = None

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "RegionStats":
        if not data:
            return cls()
        known = {k: data[k] for k in cls.__dataclass_fields__ if k in data}
        return cls(**known)


@dataclass
class CircleSummary:
    """Statistics for a single drawn circle, with means and area."""
    stats: RegionStats
    mean_education: float
    mean_high_income: float
    radius_km: float
    area_sq_km: float
    zips: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            **self.stats.to_dict(),
            "mean_education": self.mean_education,
            "mean_high_income": self.mean_high_income,
            "radius_km": self.radius_km,
            "area_sq_km": self.area_sq_km,
            "zips": list(self.zips),
        }


@dataclass
class RegionLocations:
    """Place names found in a region."""
    counties: list[str] = field(default_factory=list)
    cities: list[str] = field(default_factory=list)
    states: list[str] = field(default_factory=list)
    county_count: int = 0
    city_count: int = 0

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "RegionLocations":
        if not data:
            return cls()
        known = {k: data[k] for k in cls.__dataclass_fields__ if k in data}
        return cls(**known)


def median(values: list[float]) -> Optional[float]:
    """Median of values; the average of the two middle values for an even count."""
    if not values:
        return None
    ordered = sorted(values)
    mid = len(ordered) // 2
    if len(ordered) % 2 == 0:
        return (ordered[mid - 1] + ordered[mid]) / 2
    return ordered[mid]


def band_predicate(min_meters: float, max_meters: float) -> Callable[[float], bool]:
    """Distance predicate for a band. A lower bound of zero is a full circle."""
    if min_meters <= 0:
        return lambda distance: distance <= max_meters
    return lambda distance: min_meters < distance <= max_meters


def _matching(
    markers: Iterable[MarkerRecord],
    center: GeoPoint,
    predicate: Callable[[float], bool],
) -> list[MarkerRecord]:
    return [m for m in markers if predicate(haversine_distance(center, m.location))]


def aggregate(
    markers: Iterable[MarkerRecord],
    center: GeoPoint,
    predicate: Callable[[float], bool],
) -> RegionStats:
    """
    Aggregate the qualifying markers whose distance from center satisfies predicate.

    Markers satisfying neither criterion are skipped entirely, so the three
    category counts always add up to total_markers.
    """
    stats = RegionStats()
    median_incomes: list[float] = []

    for marker in _matching(markers, center, predicate):
        if marker.has_education and marker.has_income:
            stats.both_criteria += 1
        elif marker.has_education:
            stats.education_only += 1
        elif marker.has_income:
            stats.income_only += 1
        else:
            continue

        stats.total_markers += 1
        stats.total_education += marker.total_higher_ed or 0
        stats.total_high_income += marker.total_high_income_households or 0

        if marker.median_income is not None:
            median_incomes.append(marker.median_income)

    stats.median_income = median(median_incomes)
    return stats


def circle_stats(markers: Iterable[MarkerRecord], center: GeoPoint, radius_meters: float) -> RegionStats:
    return aggregate(markers, center, band_predicate(0, radius_meters))


def band_stats(
    markers: Iterable[MarkerRecord],
    center: GeoPoint,
    min_meters: float,
    max_meters: float,
) -> RegionStats:
    return aggregate(markers, center, band_predicate(min_meters, max_meters))


def circle_summary(markers: Iterable[MarkerRecord], center: GeoPoint, radius_meters: float) -> CircleSummary:
    """Circle statistics plus per-ZIP means and area, for single-circle analysis."""
    members = [
        m for m in _matching(markers, center, band_predicate(0, radius_meters))
        if m.has_education or m.has_income
    ]
    stats = aggregate(members, center, lambda _: True)

    education_values = [m.total_higher_ed for m in members if m.total_higher_ed]
    income_values = [m.total_high_income_households for m in members if m.total_high_income_households]

    radius_km = radius_meters / 1000
    return CircleSummary(
        stats=stats,
        mean_education=sum(education_values) / len(education_values) if education_values else 0.0,
        mean_high_income=sum(income_values) / len(income_values) if income_values else 0.0,
        radius_km=radius_km,
        area_sq_km=math.pi * radius_km ** 2,
        zips=[m.zip for m in members],
    )


def collect_locations(
    markers: Iterable[MarkerRecord],
    center: GeoPoint,
    min_meters: float,
    max_meters: float,
) -> RegionLocations:
    """Distinct counties, cities and states of the markers inside a band."""
    counties: set[str] = set()
    cities: set[str] = set()
    states: set[str] = set()

    for marker in _matching(markers, center, band_predicate(min_meters, max_meters)):
        if marker.county:
            counties.add(marker.county)
        if marker.city:
            cities.add(marker.city)
        if marker.state:
            states.add(marker.state)

    return RegionLocations(
        counties=sorted(counties)[:MAX_LOCATION_NAMES],
        cities=sorted(cities)[:MAX_LOCATION_NAMES],
        states=sorted(states),
        county_count=len(counties),
        city_count=len(cities),
    )
