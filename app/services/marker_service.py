"""
Marker Service

Joins Census payloads to the ZIP index and classifies each ZIP into an
education, income or both marker.
"""

import logging
from typing import Iterable

from app.models.schemas import CensusPayload
from app.services.spatial.geo import GeoPoint, is_valid_point
from app.services.spatial.markers import MarkerRecord, MarkerType
from app.services.zip_index_service import ZipCodeIndex

logger = logging.getLogger(__name__)


def build_markers(zip_index: ZipCodeIndex, payloads: dict[str, CensusPayload]) -> list[MarkerRecord]:
    """
    Build markers for every payload that meets at least one criterion.

    Payloads whose ZIP is not indexed, or whose coordinates are invalid, are dropped.
    """
    markers: list[MarkerRecord] = []
    dropped = 0

    for zip_code, payload in payloads.items():
        record = zip_index.get(zip_code)
        if record is None:
            continue

        has_education = payload.metadata.has_education
        has_income = payload.metadata.has_income
        if not has_education and not has_income:
            continue

        if not is_valid_point(record.lat, record.lng):
            dropped += 1
            continue

        markers.append(MarkerRecord(
            zip=record.zip,
            location=GeoPoint(record.lat, record.lng),
            has_education=has_education,
            has_income=has_income,
            total_higher_ed=payload.data.higher_education or 0.0,
            total_high_income_households=payload.data.high_income_households or 0.0,
            median_income=payload.data.median_income,
            city=record.city,
            county=record.county,
            state=record.state,
        ))

    if dropped:
        logger.warning(f"Dropped {dropped} records with invalid coordinates")
    return markers


def summarize_markers(markers: Iterable[MarkerRecord]) -> dict[str, int]:
    """Counts per marker category."""
    counts = {"education_only": 0, "income_only": 0, "both": 0, "total": 0}
    for marker in markers:
        marker_type = marker.marker_type
        if marker_type is MarkerType.BOTH:
            counts["both"] += 1
        elif marker_type is MarkerType.EDUCATION:
            counts["education_only"] += 1
        elif marker_type is MarkerType.INCOME:
            counts["income_only"] += 1
        else:
            continue
        counts["total"] += 1
    return counts
