"""
Hotspot API endpoints.
"""

from fastapi import APIRouter, HTTPException, status

from app.api.deps import LoadedAnalysisService
from app.models.schemas import GeoPointModel, HotspotListResponse, HotspotResponse
from app.services.spatial.hotspots import hotspot_color

router = APIRouter()


@router.get("", response_model=HotspotListResponse)
async def list_hotspots(service: LoadedAnalysisService, refresh: bool = False):
    """Ranked hotspots. Results are cached for a few minutes unless refresh is set."""
    if not service.settings.enable_hotspots:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Hotspots are disabled"
        )

    cached = not refresh and service.hotspots.cached() is not None
    hotspots = await service.get_hotspots(force_refresh=refresh)
    max_intensity = max((h.intensity for h in hotspots), default=0.0)

    return HotspotListResponse(
        hotspots=[
            HotspotResponse(
                rank=h.rank,
                center=GeoPointModel(lat=h.center.lat, lng=h.center.lng),
                member_count=h.member_count,
                total_value=h.total_value,
                intensity=h.intensity,
                radius_meters=h.radius_meters,
                name=h.name,
                dominant_count=h.dominant_count,
                description=h.description,
                color=hotspot_color(h.intensity, max_intensity),
                zips=[m.zip for m in h.members],
            )
            for h in hotspots
        ],
        count=len(hotspots),
        cached=cached,
    )
