"""
competitive/payloads.py

Explicit variant types for the upstream payload shapes the backend has
produced over time. Decoding tries each variant in priority order and falls
through to a default-construction variant; nothing here raises on bad input.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from datetime import datetime, timezone
from typing import Any, ClassVar, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

logger = logging.getLogger(__name__)

IdValue = Union[str, int]


class _Variant(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    kind: ClassVar[str] = "unknown"


# ---------------------------------------------------------------------------
# Report-level variants
# ---------------------------------------------------------------------------


class AxisPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    score: float = Field(allow_inf_nan=False)
    details: dict[str, Any] | None = None


class CanonicalReportPayload(_Variant):
    """Report already in canonical shape: four axis objects carrying ``score``."""

    kind: ClassVar[str] = "canonical"

    url: str | None = None
    total_score: float | None = Field(default=None, validation_alias=AliasChoices("total_score", "score"))
    grade: str | None = None
    credibility_authority: AxisPayload
    structure_readability: AxisPayload
    contextual_relevance: AxisPayload
    technical_compatibility: AxisPayload
    primary_recommendations: list[str] | None = Field(
        default=None,
        validation_alias=AliasChoices("primary_recommendations", "recommendations"),
    )


class SessionCompetitorPayload(_Variant):
    """Competitor entry of a session: one 0..1 ``average_score`` for every axis."""

    kind: ClassVar[str] = "session_competitor"

    name: str | None = None
    url: str | None = None
    average_score: float = Field(ge=0.0)
    mentions: int | None = None
    sources: list[Any] | None = None
    llm_analysis: dict[str, Any] | None = None

    @field_validator("url", mode="before")
    @classmethod
    def _url_or_primary(cls, value: Any) -> Any:
        return value or None


class LegacyScorePayload(_Variant):
    """Legacy comparison-table row with ``"N/20"`` axis strings and a ``"N/100"`` total."""

    kind: ClassVar[str] = "legacy_scores"

    credibility: str = Field(validation_alias="credibilite_autorite")
    structure: str = Field(validation_alias="structure_lisibilite")
    relevance: str = Field(validation_alias="pertinence_contextuelle")
    technical: str = Field(validation_alias="compatibilite_technique")
    total: str = Field(validation_alias="score_total")
    grade: str | None = None
    url: str | None = None


class FlatScorePayload(_Variant):
    """Flat numeric scores: ``total_score``/``score`` plus optional per-axis numbers."""

    kind: ClassVar[str] = "flat_scores"

    url: str | None = None
    total_score: float | None = Field(default=None, validation_alias=AliasChoices("total_score", "score"))
    grade: str | None = Field(default=None, validation_alias=AliasChoices("grade", "rating"))
    credibility: float | None = None
    readability: float | None = None
    relevance: float | None = None
    technical: float | None = None
    recommendations: list[str] | None = Field(
        default=None,
        validation_alias=AliasChoices("recommendations", "primary_recommendations"),
    )

    @model_validator(mode="after")
    def _require_some_score(self) -> "FlatScorePayload":
        values = (self.total_score, self.credibility, self.readability, self.relevance, self.technical)
        if all(value is None for value in values):
            raise ValueError("no numeric score field present")
        return self


class EmptyReportPayload(_Variant):
    """Fallback variant; maps to a fully zeroed default report."""

    kind: ClassVar[str] = "empty"

    url: str | None = None


ReportPayload = Union[
    CanonicalReportPayload,
    SessionCompetitorPayload,
    LegacyScorePayload,
    FlatScorePayload,
    EmptyReportPayload,
]

REPORT_VARIANTS: tuple[type[_Variant], ...] = (
    CanonicalReportPayload,
    SessionCompetitorPayload,
    LegacyScorePayload,
    FlatScorePayload,
)


# ---------------------------------------------------------------------------
# Enrichment entries
# ---------------------------------------------------------------------------


class EnrichmentEntry(BaseModel):
    """One ``mini_llm_results`` item describing a competitor."""

    model_config = ConfigDict(extra="ignore")

    competitor_url: str | None = None
    competitor_name: str | None = None
    llm_analysis: dict[str, Any] | None = None

    def differentiation_opportunities(self, limit: int = 3) -> list[str]:
        if not self.llm_analysis:
            return []
        values = self.llm_analysis.get("opportunites_differenciation")
        if not isinstance(values, list):
            return []
        return [str(value) for value in values if value][:limit]


def decode_enrichment(entries: Any) -> list[EnrichmentEntry]:
    if not isinstance(entries, list):
        return []
    decoded: list[EnrichmentEntry] = []
    for entry in entries:
        try:
            decoded.append(EnrichmentEntry.model_validate(entry))
        except ValidationError:
            logger.debug("Skipping malformed enrichment entry type=%s", type(entry).__name__)
    return decoded


# ---------------------------------------------------------------------------
# Result-level variants
# ---------------------------------------------------------------------------

_ID_ALIASES = AliasChoices("analysis_id", "session_id", "id")
_TIMESTAMP_ALIASES = AliasChoices("timestamp", "created_at", "date")

# Epoch values above this are read as milliseconds.
_EPOCH_MILLIS_THRESHOLD = 1e11


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


class _ResultVariant(_Variant):
    timestamp: str | None = Field(default=None, validation_alias=_TIMESTAMP_ALIASES)

    @field_validator("timestamp", mode="before")
    @classmethod
    def _lenient_timestamp(cls, value: Any) -> Any:
        """Keep strings, render epoch seconds or milliseconds as ISO-8601 UTC, drop the rest."""
        if value is None or isinstance(value, str):
            return value
        if not _is_number(value):
            return None
        seconds = value / 1000 if value > _EPOCH_MILLIS_THRESHOLD else value
        try:
            return datetime.fromtimestamp(seconds, tz=timezone.utc).isoformat()
        except (OverflowError, OSError, ValueError):
            return None


class CanonicalResultPayload(_ResultVariant):
    """Result already in the dashboard's canonical camelCase shape."""

    kind: ClassVar[str] = "canonical_result"

    id: IdValue | None = Field(default=None, validation_alias=_ID_ALIASES)
    user_site: dict[str, Any] = Field(validation_alias="userSite")
    competitors: list[dict[str, Any]]
    summary: dict[str, Any]


class DirectResultPayload(_ResultVariant):
    """Submission response carrying ``user_site`` and ``competitors`` directly."""

    kind: ClassVar[str] = "direct_result"

    id: IdValue | None = Field(default=None, validation_alias=_ID_ALIASES)
    user_site: dict[str, Any]
    competitors: list[dict[str, Any]]
    summary: dict[str, Any] | None = None


class NestedAnalysisPayload(_ResultVariant):
    """Response wrapping the analysis under ``analysis_result`` or ``competitive_analysis``."""

    kind: ClassVar[str] = "nested_analysis"

    id: IdValue | None = Field(default=None, validation_alias=_ID_ALIASES)
    analysis: dict[str, Any] = Field(validation_alias=AliasChoices("analysis_result", "competitive_analysis"))


class SessionPayload(_ResultVariant):
    """Backend session: target URL plus competitors scored with ``average_score``.

    Only the id and the competitor list decide the match. Descriptive fields
    of the wrong type are dropped instead of rejecting the whole session.
    """

    kind: ClassVar[str] = "session"

    id: IdValue = Field(validation_alias=AliasChoices("session_id", "analysis_id", "id"))
    url: str = Field(default="", validation_alias=AliasChoices("url", "user_url"))
    status: str | None = None
    title: str | None = None
    description: str | None = None
    competitors: list[dict[str, Any]]
    mini_llm_results: list[Any] | None = None
    stats: dict[str, Any] | None = None
    target_positioning: dict[str, Any] | None = None
    user_score: float | None = None

    @field_validator("url", mode="before")
    @classmethod
    def _none_url(cls, value: Any) -> Any:
        return value if isinstance(value, str) else ""

    @field_validator("status", "title", "description", mode="before")
    @classmethod
    def _text_or_none(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value
        return str(value) if _is_number(value) else None

    @field_validator("user_score", mode="before")
    @classmethod
    def _number_or_none(cls, value: Any) -> Any:
        return value if _is_number(value) else None

    @field_validator("stats", "target_positioning", mode="before")
    @classmethod
    def _mapping_or_none(cls, value: Any) -> Any:
        return value if isinstance(value, Mapping) else None

    @field_validator("mini_llm_results", mode="before")
    @classmethod
    def _list_or_none(cls, value: Any) -> Any:
        return value if isinstance(value, list) else None


class GenericAnalysisPayload(_ResultVariant):
    """Default-construction variant: reads whatever it recognises, zeroes the rest."""

    kind: ClassVar[str] = "generic"

    id: IdValue | None = Field(default=None, validation_alias=_ID_ALIASES)
    url: str = Field(default="", validation_alias=AliasChoices("url", "user_url"))
    user_analysis: dict[str, Any] | None = Field(
        default=None,
        validation_alias=AliasChoices("user_analysis", "main_site"),
    )
    competitors: list[Any] = Field(default_factory=list)
    user_rank: int | None = None
    ranking: dict[str, Any] | None = None
    total_analyzed: int | None = None
    strengths: list[str] | None = None
    weaknesses: list[str] | None = None
    opportunities: list[str] | None = None
    insights: dict[str, Any] | None = None

    @field_validator("url", mode="before")
    @classmethod
    def _none_url(cls, value: Any) -> Any:
        return value if isinstance(value, str) else ""

    @field_validator("competitors", mode="before")
    @classmethod
    def _list_or_empty(cls, value: Any) -> Any:
        return value if isinstance(value, list) else []


ResultPayload = Union[
    CanonicalResultPayload,
    DirectResultPayload,
    NestedAnalysisPayload,
    SessionPayload,
    GenericAnalysisPayload,
]

RESULT_VARIANTS: tuple[type[_Variant], ...] = (
    CanonicalResultPayload,
    DirectResultPayload,
    NestedAnalysisPayload,
    SessionPayload,
)


def _decode(payload: Any, variants: Sequence[type[_Variant]]) -> _Variant | None:
    if not isinstance(payload, Mapping):
        return None
    for variant in variants:
        try:
            return variant.model_validate(dict(payload))
        except ValidationError as exc:
            logger.debug("Payload did not match variant=%s errors=%s", variant.kind, exc.error_count())
    return None


def decode_report_payload(payload: Any) -> ReportPayload:
    """
    Decode a per-site payload into the first matching report variant.
    """

    decoded = _decode(payload, REPORT_VARIANTS)
    if decoded is not None:
        return decoded  # type: ignore[return-value]
    url = payload.get("url") if isinstance(payload, Mapping) else None
    return EmptyReportPayload(url=url if isinstance(url, str) else None)


def _input_keys(model: type[BaseModel], key: str) -> set[str]:
    """Every input key that feeds the field ``key`` names, aliases included."""
    for name, field in model.model_fields.items():
        keys = {name}
        alias = field.validation_alias
        if isinstance(alias, str):
            keys.add(alias)
        elif isinstance(alias, AliasChoices):
            keys.update(choice for choice in alias.choices if isinstance(choice, str))
        if key in keys:
            return keys
    return {key}


def _decode_generic(payload: Mapping[str, Any]) -> GenericAnalysisPayload:
    data = dict(payload)
    while True:
        try:
            return GenericAnalysisPayload.model_validate(data)
        except ValidationError as exc:
            rejected: set[str] = set()
            for error in exc.errors():
                if error["loc"]:
                    rejected |= _input_keys(GenericAnalysisPayload, str(error["loc"][0]))
            logger.debug("Generic payload dropped fields=%s", sorted(rejected))
            remaining = {key: value for key, value in data.items() if key not in rejected}
            if len(remaining) == len(data):
                return GenericAnalysisPayload()
            data = remaining


def decode_result_payload(payload: Any) -> ResultPayload:
    """
    Decode an analysis-level payload into the first matching result variant.

    The generic variant drops fields it cannot read and keeps the rest, so an
    id survives a malformed rank or insight list.
    """

    decoded = _decode(payload, RESULT_VARIANTS)
    if decoded is not None:
        return decoded  # type: ignore[return-value]
    if isinstance(payload, Mapping):
        return _decode_generic(payload)
    return GenericAnalysisPayload()
