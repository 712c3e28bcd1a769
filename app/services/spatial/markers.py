"""Marker records: one per ZIP code that meets the education or income threshold."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from app.services.spatial.geo import GeoPoint


class MarkerType(str, Enum):
    """Which criteria a ZIP satisfies."""
    EDUCATION = "education"
    INCOME = "income"
    BOTH = "both"


def derive_marker_type(has_education: bool, has_income: bool) -> Optional[MarkerType]:
    if has_education and has_income:
        return MarkerType.BOTH
    if has_education:
        return MarkerType.EDUCATION
    if has_income:
        return MarkerType.INCOME
    return None


@dataclass(frozen=True)
class MarkerRecord:
    """A classified ZIP code ready for display and analysis."""
    zip: str
    location: GeoPoint
    has_education: bool
    has_income: bool
    total_higher_ed: float = 0.0
    total_high_income_households: float = 0.0
    median_income: Optional[float] = None
    city: str = ""
    county: str = ""
    state: str = ""

    @property
    def marker_type(self) -> Optional[MarkerType]:
        return derive_marker_type(self.has_education, self.has_income)

    @property
    def lat(self) -> float:
        return self.location.lat

    @property
    def lng(self) -> float:
        return self.location.lng

    @property
    def label(self) -> str:
        """'City, ST' style label, falling back to the ZIP."""
        label = ", ".join(part for part in (self.city, self.state) if part)
        return label or self.zip

    def to_dict(self) -> dict:
        marker_type = self.marker_type
        return {
            "zip": self.zip,
            "lat": self.location.lat,
            "lng": self.location.lng,
            "city": self.city,
            "county": self.county,
            "state": self.state,
            "location": self.label,
            "has_education": self.has_education,
            "has_income": self.has_income,
            "total_higher_ed": self.total_higher_ed,
            "total_high_income_households": self.total_high_income_households,
            "median_income": self.median_income,
            "marker_type": marker_type.value if marker_type else None,
        }


def marker_weight(marker: MarkerRecord) -> int:
    """Hotspot weight: 3 for both criteria, 1 for one, 0 for none."""
    if marker.has_education and marker.has_income:
        return 3
    if marker.has_education or marker.has_income:
        return 1
    return 0
