import math

import pytest

from app.services.spatial.aggregation import (
    MAX_LOCATION_NAMES,
    aggregate,
    band_predicate,
    band_stats,
    circle_stats,
    circle_summary,
    collect_locations,
    median,
)
from app.services.spatial.geo import GeoPoint, miles_to_meters
from tests.helpers import make_marker, north_of

CENTER = GeoPoint(40.0, -100.0)


def test_median_odd_and_even():
    assert median([50000, 70000, 90000]) == 70000
    assert median([50000, 90000]) == 70000
    assert median([90000, 50000, 70000]) == 70000
    assert median([]) is None


def test_category_counts_add_up():
    markers = [
        make_marker("00001", education=True, income=False),
        make_marker("00002", education=False, income=True),
        make_marker("00003", education=True, income=True),
        make_marker("00004", education=True, income=True),
    ]
    stats = aggregate(markers, CENTER, lambda _: True)

    assert stats.education_only == 1
    assert stats.income_only == 1
    assert stats.both_criteria == 2
    assert stats.total_markers == 4
    assert stats.education_only + stats.income_only + stats.both_criteria == stats.total_markers


def test_markers_without_criteria_are_skipped():
    markers = [
        make_marker("00001", education=False, income=False, higher_ed=900, high_income=900, median_income=40000),
        make_marker("00002", education=True, higher_ed=1500, median_income=60000),
    ]
    stats = aggregate(markers, CENTER, lambda _: True)

    assert stats.total_markers == 1
    assert stats.total_education == 1500
    assert stats.median_income == 60000


def test_totals_and_median_income():
    markers = [
        make_marker("00001", higher_ed=1000, high_income=100, median_income=50000),
        make_marker("00002", higher_ed=2000, high_income=200, median_income=90000),
        make_marker("00003", higher_ed=3000, high_income=300, median_income=None),
    ]
    stats = aggregate(markers, CENTER, lambda _: True)

    assert stats.total_education == 6000
    assert stats.total_high_income == 600
    assert stats.median_income == 70000


def test_zero_median_income_is_counted():
    markers = [
        make_marker("00001", median_income=0),
        make_marker("00002", median_income=60000),
        make_marker("00003", median_income=90000),
    ]
    stats = aggregate(markers, CENTER, lambda _: True)

    assert stats.median_income == 60000


def test_empty_region():
    stats = circle_stats([], CENTER, 1000)
    assert stats.total_markers == 0
    assert stats.median_income is None


def test_zero_lower_bound_includes_center():
    predicate = band_predicate(0, 100)
    assert predicate(0)
    assert predicate(100)
    assert not predicate(100.01)


def test_band_stats_excludes_inner_circle():
    four_miles = north_of(CENTER, 4)
    seven_miles = north_of(CENTER, 7)
    markers = [
        make_marker("00001", lat=four_miles.lat, lng=four_miles.lng),
        make_marker("00002", lat=seven_miles.lat, lng=seven_miles.lng),
    ]

    inner = band_stats(markers, CENTER, 0, miles_to_meters(5))
    middle = band_stats(markers, CENTER, miles_to_meters(5), miles_to_meters(10))

    assert inner.total_markers == 1
    assert middle.total_markers == 1


def test_collect_locations_sorted_and_capped():
    markers = [
        make_marker(f"{i:05d}", lat=40.0 + i * 0.001, county=f"County {i:02d}", city=f"City {i:02d}", state="NE")
        for i in range(12, 0, -1)
    ]
    locations = collect_locations(markers, CENTER, 0, miles_to_meters(10))

    assert locations.county_count == 12
    assert locations.city_count == 12
    assert len(locations.counties) == MAX_LOCATION_NAMES
    assert locations.counties[0] == "County 01"
    assert locations.counties == sorted(locations.counties)
    assert locations.states == ["NE"]


def test_circle_summary_means_and_area():
    markers = [
        make_marker("00001", higher_ed=1000, high_income=2000),
        make_marker("00002", lat=40.01, higher_ed=3000, high_income=4000),
        make_marker("00003", lat=45.0, higher_ed=9999, high_income=9999),
    ]
    summary = circle_summary(markers, CENTER, 5000)

    assert summary.stats.total_markers == 2
    assert summary.mean_education == 2000
    assert summary.mean_high_income == 3000
    assert summary.radius_km == 5
    assert summary.area_sq_km == pytest.approx(math.pi * 25)
    assert summary.zips == ["00001", "00002"]
    assert summary.to_dict()["total_markers"] == 2
