"""
competitive/models.py

Canonical, UI-facing data model for competitive analyses.

Python attributes are snake_case; the serialized form keeps the camelCase keys
the dashboard and the client-side cache have always used (``userSite``,
``userRank`` ...). Both spellings are accepted on input.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from competitive.domains import extract_domain
from competitive.identifiers import normalize_analysis_id
from competitive.scoring import AXES, AXIS_SCALE, TOTAL_SCALE, build_axis, clamp, grade_for_score

IN_PROGRESS_SENTINEL = "Analysis in progress..."
MAX_RECOMMENDATIONS = 5


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


class AxisScore(BaseModel):
    """
    One weighted scoring axis: a 0-20 score and its derived sub-metrics.
    """

    model_config = ConfigDict(extra="ignore")

    score: int = 0
    details: dict[str, int] = Field(default_factory=dict)

    @field_validator("score", mode="before")
    @classmethod
    def _bound_score(cls, value: Any) -> int:
        try:
            return clamp(int(value), 0, AXIS_SCALE)
        except (TypeError, ValueError, OverflowError):
            return 0


class LLMOReport(BaseModel):
    """
    Per-site LLMO scoring detail.
    """

    model_config = ConfigDict(extra="ignore")

    url: str = ""
    total_score: int = 0
    grade: str = ""
    credibility_authority: AxisScore = Field(default_factory=AxisScore)
    structure_readability: AxisScore = Field(default_factory=AxisScore)
    contextual_relevance: AxisScore = Field(default_factory=AxisScore)
    technical_compatibility: AxisScore = Field(default_factory=AxisScore)
    primary_recommendations: list[str] = Field(default_factory=list)

    @field_validator("total_score", mode="before")
    @classmethod
    def _bound_total(cls, value: Any) -> int:
        try:
            return clamp(int(value), 0, TOTAL_SCALE)
        except (TypeError, ValueError, OverflowError):
            return 0

    @field_validator("primary_recommendations", mode="before")
    @classmethod
    def _cap_recommendations(cls, value: Any) -> list[str]:
        if not isinstance(value, (list, tuple)):
            return []
        return [str(item) for item in value if item][:MAX_RECOMMENDATIONS]

    def axis_scores(self) -> dict[str, int]:
        return {axis: getattr(self, axis).score for axis in AXES}


def create_default_llmo_report(url: str = "") -> LLMOReport:
    """
    Fully zeroed report used whenever nothing usable is known about a site.
    """

    return LLMOReport(
        url=url,
        total_score=0,
        grade=grade_for_score(0),
        **{axis: AxisScore(**build_axis(axis, 0)) for axis in AXES},
        primary_recommendations=[],
    )


class SiteReport(BaseModel):
    """
    One analyzed site (the user's or a competitor's) with its report.
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    url: str = ""
    domain: str = ""
    report: LLMOReport = Field(default_factory=create_default_llmo_report)
    name: str | None = None
    mentions: int | None = None
    average_score: float | None = None

    @classmethod
    def for_url(cls, url: str, report: LLMOReport, **extra: Any) -> "SiteReport":
        return cls(url=url, domain=extract_domain(url) if url else "", report=report, **extra)


class Summary(BaseModel):
    """
    Ranking and insight lists for the user site against its competitors.
    """

    model_config = ConfigDict(populate_by_name=True)

    user_rank: int = Field(default=1, ge=1, alias="userRank")
    total_analyzed: int = Field(default=1, ge=1, alias="totalAnalyzed")
    strengths_vs_competitors: list[str] = Field(default_factory=list, alias="strengthsVsCompetitors")
    weaknesses_vs_competitors: list[str] = Field(default_factory=list, alias="weaknessesVsCompetitors")
    opportunities_identified: list[str] = Field(default_factory=list, alias="opportunitiesIdentified")

    @classmethod
    def in_progress(cls, *, total_analyzed: int = 1, user_rank: int = 1) -> "Summary":
        return cls(
            user_rank=user_rank,
            total_analyzed=max(1, total_analyzed),
            strengths_vs_competitors=[IN_PROGRESS_SENTINEL],
            weaknesses_vs_competitors=[IN_PROGRESS_SENTINEL],
            opportunities_identified=[IN_PROGRESS_SENTINEL],
        )

    @property
    def is_in_progress(self) -> bool:
        return (
            self.strengths_vs_competitors == [IN_PROGRESS_SENTINEL]
            and self.weaknesses_vs_competitors == [IN_PROGRESS_SENTINEL]
            and self.opportunities_identified == [IN_PROGRESS_SENTINEL]
        )


class CompetitiveAnalysisResult(BaseModel):
    """
    Canonical competitive analysis aggregate stored in the cache and served to clients.
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str
    timestamp: str = Field(default_factory=utc_timestamp)
    user_site: SiteReport = Field(default_factory=SiteReport, alias="userSite")
    competitors: list[SiteReport] = Field(default_factory=list)
    summary: Summary = Field(default_factory=Summary)

    analysis_id: str | None = None
    title: str | None = None
    description: str | None = None
    status: str | None = None
    stats: dict[str, Any] | None = None

    @field_validator("id", mode="before")
    @classmethod
    def _normalize_id(cls, value: Any) -> str:
        return normalize_analysis_id(value)

    @field_validator("analysis_id", mode="before")
    @classmethod
    def _stringify_analysis_id(cls, value: Any) -> str | None:
        return None if value is None else str(value)

    @classmethod
    def degraded(cls, *, analysis_id: str | int, url: str) -> "CompetitiveAnalysisResult":
        """
        Minimal renderable result used when enrichment never arrived.
        """

        return cls(
            id=analysis_id,
            timestamp=utc_timestamp(),
            user_site=SiteReport.for_url(url, create_default_llmo_report(url)),
            competitors=[],
            summary=Summary.in_progress(),
            analysis_id=str(analysis_id),
        )

    def to_storage(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
