"""
Analysis ring API endpoints.

Rings are created either directly (center + drawn radius) or through the
draw endpoints, which mirror a drag gesture on the map:
begin -> update* -> commit | cancel.
"""

from fastapi import APIRouter, HTTPException, status

from app.api.deps import AnalysisService, LoadedAnalysisService
from app.models.schemas import (
    BandLocationsModel,
    BandStatsModel,
    CircleRequest,
    CircleSummaryResponse,
    DrawCommitResponse,
    DrawPointRequest,
    DrawStateResponse,
    GeoPointModel,
    RingCreateRequest,
    RingListResponse,
    RingRadii,
    RingResponse,
    RingSummaryResponse,
)
from app.services.analysis_service import MapAnalysisService
from app.services.ring_service import RING_TOO_SMALL_WARNING, Ring, primary_location
from app.services.spatial.geo import GeoPoint

router = APIRouter()


def ring_to_response(ring: Ring, service: MapAnalysisService) -> RingResponse:
    """Convert a Ring to its response schema."""
    data = ring.to_dict()
    return RingResponse(
        id=ring.id,
        center=GeoPointModel(**data["center"]),
        radii=RingRadii(**data["radii"]),
        stats_mode=service.rings.policy.stats_mode.value,
        stats=BandStatsModel(**data["stats"]),
        weighted_stats=BandStatsModel(**data["weighted_stats"]) if data["weighted_stats"] else None,
        weighted_ranges=service.rings.weighted_ranges(ring),
        locations=BandLocationsModel(**data["locations"]) if data["locations"] else None,
        label=primary_location(ring),
        created_at=ring.created_at,
        timestamp=ring.timestamp,
    )


def _draw_state(service: MapAnalysisService) -> DrawStateResponse:
    return DrawStateResponse(**service.drawing.snapshot())


# ============================================================================
# Collection
# ============================================================================

@router.get("", response_model=RingListResponse)
async def list_rings(service: AnalysisService):
    """All rings, oldest first."""
    rings = service.rings.list_rings()
    return RingListResponse(
        rings=[ring_to_response(r, service) for r in rings],
        count=len(rings),
    )


@router.post("", response_model=RingResponse, status_code=status.HTTP_201_CREATED)
async def create_ring(data: RingCreateRequest, service: LoadedAnalysisService):
    """Create a ring at the configured radii around a center."""
    ring = await service.create_ring(
        GeoPoint(data.center.lat, data.center.lng),
        data.drawn_radius_meters,
    )
    if ring is None:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=RING_TOO_SMALL_WARNING
        )
    return ring_to_response(ring, service)


@router.delete("")
async def clear_rings(service: AnalysisService):
    """Remove every ring."""
    removed = await service.clear_rings()
    return {"removed": removed}


@router.get("/summary", response_model=RingSummaryResponse)
async def rings_summary(service: AnalysisService):
    """Totals across all rings."""
    return RingSummaryResponse(**service.rings.summary())


@router.post("/circle", response_model=CircleSummaryResponse)
async def circle_summary(data: CircleRequest, service: LoadedAnalysisService):
    """Summary statistics for a single circle (not stored)."""
    summary = service.circle_summary(
        GeoPoint(data.center.lat, data.center.lng),
        data.radius_meters,
    )
    return CircleSummaryResponse(**summary.to_dict())


# ============================================================================
# Drawing
# ============================================================================

@router.get("/draw", response_model=DrawStateResponse)
async def draw_state(service: AnalysisService):
    return _draw_state(service)


@router.post("/draw/begin", response_model=DrawStateResponse)
async def draw_begin(data: DrawPointRequest, service: LoadedAnalysisService):
    """Start a drag at a point. Ignored while a drag is already in progress."""
    service.drawing.begin(GeoPoint(data.point.lat, data.point.lng))
    return _draw_state(service)


@router.post("/draw/update", response_model=DrawStateResponse)
async def draw_update(data: DrawPointRequest, service: AnalysisService):
    """Move the drag to a point. The preview radius is capped at the maximum."""
    service.drawing.update(GeoPoint(data.point.lat, data.point.lng))
    return _draw_state(service)


@router.post("/draw/commit", response_model=DrawCommitResponse)
async def draw_commit(data: DrawPointRequest, service: LoadedAnalysisService):
    """Finish the drag and create a ring if it passed the minimum size."""
    outcome = await service.commit_drawing(GeoPoint(data.point.lat, data.point.lng))
    if outcome.ring is None:
        raise HTTPException(
            status_code=(
                status.HTTP_422_UNPROCESSABLE_ENTITY
                if outcome.warning == RING_TOO_SMALL_WARNING
                else status.HTTP_409_CONFLICT
            ),
            detail=outcome.warning
        )
    return DrawCommitResponse(created=True, ring=ring_to_response(outcome.ring, service))


@router.post("/draw/cancel", response_model=DrawStateResponse)
async def draw_cancel(service: AnalysisService):
    service.drawing.cancel()
    return _draw_state(service)


# ============================================================================
# Single ring
# ============================================================================

@router.get("/{ring_id}", response_model=RingResponse)
async def get_ring(ring_id: str, service: AnalysisService):
    ring = service.rings.get_ring(ring_id)
    if ring is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Ring not found"
        )
    return ring_to_response(ring, service)


@router.post("/{ring_id}/refresh", response_model=RingResponse)
async def refresh_ring(ring_id: str, service: LoadedAnalysisService):
    """Recompute a ring against the current markers."""
    ring = await service.recompute_ring(ring_id)
    if ring is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Ring not found"
        )
    return ring_to_response(ring, service)


@router.delete("/{ring_id}")
async def delete_ring(ring_id: str, service: AnalysisService):
    """Remove a ring. Removing an unknown ring is not an error."""
    removed = await service.remove_ring(ring_id)
    return {"removed": removed}
