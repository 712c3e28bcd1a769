"""
Shared API dependencies.
"""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from app.services.analysis_service import MapAnalysisService


def get_analysis_service(request: Request) -> MapAnalysisService:
    """The service instance built in the application lifespan."""
    service = getattr(request.app.state, "analysis_service", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service is starting up"
        )
    return service


AnalysisService = Annotated[MapAnalysisService, Depends(get_analysis_service)]


def require_loaded_data(service: AnalysisService) -> MapAnalysisService:
    """Reject requests that need markers before the first data load has finished."""
    if not service.loaded:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Census data is still loading"
        )
    return service


LoadedAnalysisService = Annotated[MapAnalysisService, Depends(require_loaded_data)]
