"""
app/services package marker.
"""

from app.services.competitive_analysis_service import (
    CompetitiveAnalysisService,
    get_competitive_analysis_service,
)

__all__ = [
    "CompetitiveAnalysisService",
    "get_competitive_analysis_service",
]
