"""
app/api/routers package marker.
"""

from app.api.routers.competitive_analysis import router as competitive_analysis_router

__all__ = [
    "competitive_analysis_router",
]
