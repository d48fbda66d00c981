"""
app/schemas/competitive_analysis.py

Request and response schemas for competitive analysis endpoints.
"""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator

from competitive.models import CompetitiveAnalysisResult


class CompetitiveAnalysisRequest(BaseModel):
    """
    API request body for a new competitive analysis.
    """

    url: str = Field(..., min_length=1, max_length=2048, description="Site URL to analyze")

    @field_validator("url")
    @classmethod
    def _strip_url(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("url must not be blank")
        return stripped


class CompetitiveAnalysisListResponse(BaseModel):
    source: str = Field(..., description="live, cache or static")
    analyses: list[CompetitiveAnalysisResult] = Field(default_factory=list)


class HealthResponse(BaseModel):
    status: str
    cache_backend: str
