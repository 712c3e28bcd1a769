"""Builders shared across the test modules."""

import math
from typing import Optional
from urllib.parse import unquote

import httpx

from app.services.census_api_service import (
    EDUCATION_VARIABLES,
    INCOME_VARIABLES,
    MEDIAN_INCOME_VARIABLE,
    NAME_COLUMN,
    ZIP_COLUMN,
)
from app.services.spatial.geo import EARTH_RADIUS_METERS, GeoPoint, miles_to_meters
from app.services.spatial.markers import MarkerRecord

CENSUS_HOST = "api.census.gov"

CENSUS_HEADER = [NAME_COLUMN, *EDUCATION_VARIABLES, *INCOME_VARIABLES, MEDIAN_INCOME_VARIABLE, ZIP_COLUMN]


def make_marker(
    zip_code: str = "10001",
    lat: float = 40.0,
    lng: float = -100.0,
    education: bool = True,
    income: bool = False,
    higher_ed: Optional[float] = None,
    high_income: Optional[float] = None,
    median_income: Optional[float] = None,
    city: str = "",
    county: str = "",
    state: str = "",
) -> MarkerRecord:
    return MarkerRecord(
        zip=zip_code,
        location=GeoPoint(lat, lng),
        has_education=education,
        has_income=income,
        total_higher_ed=higher_ed if higher_ed is not None else (1500.0 if education else 200.0),
        total_high_income_households=high_income if high_income is not None else (1200.0 if income else 100.0),
        median_income=median_income,
        city=city,
        county=county,
        state=state,
    )


def north_of(center: GeoPoint, miles: float) -> GeoPoint:
    """A point due north of center at the given great-circle distance."""
    offset = math.degrees(miles_to_meters(miles) / EARTH_RADIUS_METERS)
    return GeoPoint(center.lat + offset, center.lng)


def census_row(
    zip_code: str,
    higher_ed: int = 1500,
    high_income: int = 300,
    median_income: int = 85000,
) -> list[str]:
    education = [str(higher_ed), "0", "0", "0"]
    income = [str(high_income), "0", "0", "0"]
    return [f"ZCTA5 {zip_code}", *education, *income, str(median_income), zip_code]


def census_table(zip_codes: list[str], **kwargs) -> list[list[str]]:
    return [CENSUS_HEADER] + [census_row(z, **kwargs) for z in zip_codes]


def requested_zips(request: httpx.Request) -> list[str]:
    """ZIPs named in a Census request, unwrapping proxy prefixes."""
    url = request.url
    if url.host != CENSUS_HOST:
        url = httpx.URL(unquote(url.query.decode()))
    clause = url.params["for"]
    return clause.split(":", 1)[1].split(",")


def census_handler(log: Optional[list] = None, **row_kwargs):
    """MockTransport handler answering every request with a table for the requested ZIPs."""
    def handler(request: httpx.Request) -> httpx.Response:
        zips = requested_zips(request)
        if log is not None:
            log.append(zips)
        return httpx.Response(200, json=census_table(zips, **row_kwargs))
    return handler
