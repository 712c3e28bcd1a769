"""
Marker API endpoints.

Classified ZIP markers, data reloads and directional navigation.
"""

from typing import Optional

from fastapi import APIRouter, HTTPException, Query, Request, status

from app.api.deps import AnalysisService, LoadedAnalysisService
from app.config import get_settings
from app.middleware.rate_limit import limiter
from app.models.schemas import (
    MarkerCounts,
    MarkerListResponse,
    MarkerResponse,
    MarkerTypeName,
    NavigateResponse,
    ReloadResponse,
)
from app.services.spatial.geo import GeoPoint
from app.services.spatial.navigation import Direction

settings = get_settings()

router = APIRouter()


@router.get("", response_model=MarkerListResponse)
async def list_markers(
    service: AnalysisService,
    marker_type: Optional[MarkerTypeName] = None,
    visible_only: bool = False,
):
    """List markers, optionally filtered by type or by the current layer visibility."""
    markers = service.visible_markers() if visible_only else service.markers
    if marker_type is not None:
        markers = [m for m in markers if m.marker_type and m.marker_type.value == marker_type.value]

    return MarkerListResponse(
        markers=[MarkerResponse(**m.to_dict()) for m in markers],
        counts=MarkerCounts(**service.counts),
        loaded=service.loaded,
    )


@router.post("/reload", response_model=ReloadResponse)
@limiter.limit(settings.reload_rate_limit)
async def reload_markers(request: Request, service: AnalysisService):
    """Re-fetch Census data (cache first) and rebuild markers. Rate limited."""
    result = await service.reload_data()
    counts = MarkerCounts(**result["counts"])
    return ReloadResponse(
        loaded=result["loaded"],
        missing=result["missing"],
        counts=counts,
        message=f"Loaded {counts.education_only} education, {counts.income_only} income, {counts.both} both",
    )


@router.get("/navigate", response_model=NavigateResponse)
async def navigate(
    service: LoadedAnalysisService,
    direction: str,
    lat: float = Query(..., ge=-90, le=90),
    lng: float = Query(..., ge=-180, le=180),
):
    """
    Nearest visible marker strictly in a compass direction from (lat, lng).

    Accepts n/s/e/w, full names and arrow key names. Returns found=false when
    nothing lies in that direction or the call falls inside the cooldown.
    """
    try:
        resolved = Direction.from_key(direction)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Unknown direction: {direction}"
        )

    marker = service.navigate(resolved, GeoPoint(lat, lng))
    if marker is None:
        return NavigateResponse(found=False)
    return NavigateResponse(found=True, marker=MarkerResponse(**marker.to_dict()))
