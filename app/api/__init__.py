"""
API Routers

All FastAPI routers for the ACS Ring Analyzer backend.
"""

from app.api import (
    cache,
    hotspots,
    layers,
    markers,
    rings,
)

__all__ = [
    "cache",
    "hotspots",
    "layers",
    "markers",
    "rings",
]
