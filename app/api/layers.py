"""
Layer visibility API endpoints.

Visibility flags drive which marker types navigation will stop on, and
are saved so they survive a restart.
"""

from fastapi import APIRouter

from app.api.deps import AnalysisService
from app.models.schemas import LayerVisibility

router = APIRouter()


@router.get("", response_model=LayerVisibility)
async def get_layers(service: AnalysisService):
    return LayerVisibility(**service.layer_store.flags)


@router.put("", response_model=LayerVisibility)
async def update_layers(data: LayerVisibility, service: AnalysisService):
    flags = await service.update_layers(data.model_dump())
    return LayerVisibility(**flags)
