"""
app/schemas package marker.
"""

from app.schemas.competitive_analysis import (
    CompetitiveAnalysisListResponse,
    CompetitiveAnalysisRequest,
    HealthResponse,
)

__all__ = [
    "CompetitiveAnalysisListResponse",
    "CompetitiveAnalysisRequest",
    "HealthResponse",
]
