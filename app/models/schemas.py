from pydantic import BaseModel, Field
from typing import Optional
from enum import Enum


class MarkerTypeName(str, Enum):
    education = "education"
    income = "income"
    both = "both"


# Census payload models (what the fetch client produces and the cache stores)
class CensusData(BaseModel):
    higher_education: float = 0.0
    high_income_households: float = 0.0
    median_income: Optional[float] = None


class CensusMetadata(BaseModel):
    zip: str
    name: str = "Unknown"
    fetched_at: str
    has_education: bool
    has_income: bool
    education_value: float
    income_value: float
    combined_value: float


class CensusPayload(BaseModel):
    data: CensusData
    metadata: CensusMetadata


# Shared geometry
class GeoPointModel(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)


# Marker models
class MarkerResponse(BaseModel):
    zip: str
    lat: float
    lng: float
    city: str = ""
    county: str = ""
    state: str = ""
    location: str = ""
    has_education: bool
    has_income: bool
    total_higher_ed: float
    total_high_income_households: float
    median_income: Optional[float] = None
    marker_type: Optional[MarkerTypeName] = None


class MarkerCounts(BaseModel):
    education_only: int = 0
    income_only: int = 0
    both: int = 0
    total: int = 0


class MarkerListResponse(BaseModel):
    markers: list[MarkerResponse]
    counts: MarkerCounts
    loaded: bool


class ReloadResponse(BaseModel):
    loaded: int
    missing: int
    counts: MarkerCounts
    message: str = ""


class NavigateResponse(BaseModel):
    found: bool
    marker: Optional[MarkerResponse] = None


# Region statistics
class RegionStatsModel(BaseModel):
    total_markers: int = 0
    education_only: int = 0
    income_only: int = 0
    both_criteria: int = 0
    total_education: float = 0.0
    total_high_income: float = 0.0
    median_income: Optional[float] = None


class BandStatsModel(BaseModel):
    inner: RegionStatsModel = RegionStatsModel()
    middle: RegionStatsModel = RegionStatsModel()
    outer: RegionStatsModel = RegionStatsModel()


class RegionLocationsModel(BaseModel):
    counties: list[str] = []
    cities: list[str] = []
    states: list[str] = []
    county_count: int = 0
    city_count: int = 0


class BandLocationsModel(BaseModel):
    inner: RegionLocationsModel = RegionLocationsModel()
    middle: RegionLocationsModel = RegionLocationsModel()
    outer: RegionLocationsModel = RegionLocationsModel()


# Ring models
class RingRadii(BaseModel):
    inner: float
    middle: float
    outer: float


class RingResponse(BaseModel):
    id: str
    center: GeoPointModel
    radii: RingRadii
    stats_mode: str
    stats: BandStatsModel
    weighted_stats: Optional[BandStatsModel] = None
    weighted_ranges: Optional[dict[str, dict[str, float]]] = None
    locations: Optional[BandLocationsModel] = None
    label: str = ""
    created_at: float
    timestamp: str


class RingCreateRequest(BaseModel):
    center: GeoPointModel
    drawn_radius_meters: float = Field(..., ge=0)


class RingListResponse(BaseModel):
    rings: list[RingResponse]
    count: int


class RingSummaryResponse(BaseModel):
    total_rings: int
    total_markers: int
    total_education: float
    total_high_income: float
    total_both: int


class DrawPointRequest(BaseModel):
    point: GeoPointModel


class DrawStateResponse(BaseModel):
    state: str
    start: Optional[GeoPointModel] = None
    radius_meters: float = 0.0
    at_limit: bool = False


class DrawCommitResponse(BaseModel):
    created: bool
    ring: Optional[RingResponse] = None


class CircleRequest(BaseModel):
    center: GeoPointModel
    radius_meters: float = Field(..., gt=0)


class CircleSummaryResponse(RegionStatsModel):
    mean_education: float
    mean_high_income: float
    radius_km: float
    area_sq_km: float
    zips: list[str] = []


# Hotspot models
class HotspotResponse(BaseModel):
    rank: int
    center: GeoPointModel
    member_count: int
    total_value: float
    intensity: float
    radius_meters: float
    name: str
    dominant_count: int
    description: str
    color: str
    zips: list[str] = []


class HotspotListResponse(BaseModel):
    hotspots: list[HotspotResponse]
    count: int
    cached: bool


# Cache models
class CacheStatsResponse(BaseModel):
    total_durable: int
    total_memory: int
    hits: int
    misses: int
    api_calls: int
    hit_rate: float
    durable_available: bool


class CacheSweepResponse(BaseModel):
    removed: int


class CacheClearResponse(BaseModel):
    cleared: bool


# Layer visibility
class LayerVisibility(BaseModel):
    education: bool = True
    income: bool = True
    both: bool = True
    rings: bool = True
    hotspots: bool = True
