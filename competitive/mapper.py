"""
competitive/mapper.py

Maps arbitrary upstream payloads onto the canonical report and result shapes.

Every public function here is pure and total: payloads are decoded against
the variant types in ``competitive.payloads`` and anything unrecognised is
default-constructed instead of raising.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any

from pydantic import ValidationError

from competitive.domains import extract_domain
from competitive.identifiers import new_analysis_id
from competitive.models import (
    AxisScore,
    CompetitiveAnalysisResult,
    LLMOReport,
    SiteReport,
    Summary,
    create_default_llmo_report,
    utc_timestamp,
)
from competitive.payloads import (
    CanonicalReportPayload,
    CanonicalResultPayload,
    DirectResultPayload,
    EnrichmentEntry,
    FlatScorePayload,
    GenericAnalysisPayload,
    LegacyScorePayload,
    NestedAnalysisPayload,
    SessionCompetitorPayload,
    SessionPayload,
    decode_enrichment,
    decode_report_payload,
    decode_result_payload,
)
from competitive.ranking import build_summary
from competitive.scoring import (
    AXES,
    AXIS_SCALE,
    TOTAL_SCALE,
    build_axis,
    clamp,
    grade_for_score,
    round_half_up,
    to_canonical_score,
    user_axis_scores,
)

logger = logging.getLogger(__name__)

GENERIC_RECOMMENDATIONS: tuple[str, ...] = (
    "Optimize the semantic HTML structure",
    "Strengthen sources and references",
    "Enrich multimedia content",
    "Implement structured data",
    "Improve mobile compatibility",
)

PROCESSING_STATUSES = frozenset({"pending", "queued", "processing", "running", "in_progress"})
ENRICHMENT_KEYS: tuple[str, ...] = ("mini_llm_results", "consolidated_competitors")
DEFAULT_USER_SCORE = 75


# ---------------------------------------------------------------------------
# Report mapping
# ---------------------------------------------------------------------------


def _recommendations_or_generic(values: Sequence[str] | None) -> list[str]:
    cleaned = [str(value) for value in (values or []) if value]
    return cleaned if cleaned else list(GENERIC_RECOMMENDATIONS)


def _coerce_details(axis: str, score: int, details: Mapping[str, Any] | None) -> dict[str, int]:
    if details:
        coerced: dict[str, int] = {}
        for name, value in details.items():
            try:
                coerced[str(name)] = max(0, int(value))
            except (TypeError, ValueError, OverflowError):
                continue
        if coerced:
            return coerced
    return build_axis(axis, score)["details"]


def _report_from_axes(
    *,
    url: str,
    total_score: int,
    axis_scores: Mapping[str, int],
    recommendations: Sequence[str] | None,
) -> LLMOReport:
    total = clamp(total_score, 0, TOTAL_SCALE)
    return LLMOReport(
        url=url,
        total_score=total,
        grade=grade_for_score(total),
        **{axis: AxisScore(**build_axis(axis, axis_scores.get(axis, 0))) for axis in AXES},
        primary_recommendations=_recommendations_or_generic(recommendations),
    )


def _canonical_total(value: float | None) -> int:
    # Integral totals are already on the 0-100 scale; only fractions are ratios.
    if value is None:
        return 0
    if float(value).is_integer():
        return clamp(int(value), 0, TOTAL_SCALE)
    return to_canonical_score(value, scale=TOTAL_SCALE).total100


def _from_canonical(payload: CanonicalReportPayload, fallback_url: str) -> LLMOReport:
    axes: dict[str, AxisScore] = {}
    for axis in AXES:
        raw_axis = getattr(payload, axis)
        score = clamp(round_half_up(raw_axis.score), 0, AXIS_SCALE)
        axes[axis] = AxisScore(score=score, details=_coerce_details(axis, score, raw_axis.details))

    total = _canonical_total(payload.total_score)
    return LLMOReport(
        url=payload.url or fallback_url,
        total_score=total,
        grade=grade_for_score(total),
        **axes,
        primary_recommendations=_recommendations_or_generic(payload.primary_recommendations),
    )


def _find_enrichment(
    competitor: SessionCompetitorPayload,
    enrichment: Sequence[EnrichmentEntry],
) -> EnrichmentEntry | None:
    competitor_domain = extract_domain(competitor.url) if competitor.url else None
    competitor_name = competitor.name.lower() if competitor.name else None
    for entry in enrichment:
        if competitor_domain and entry.competitor_url and extract_domain(entry.competitor_url) == competitor_domain:
            return entry
        if competitor_name and entry.competitor_name and entry.competitor_name.lower() == competitor_name:
            return entry
    return None


def _from_session_competitor(
    payload: SessionCompetitorPayload,
    fallback_url: str,
    enrichment: Sequence[EnrichmentEntry],
) -> LLMOReport:
    url = payload.url or fallback_url
    score = to_canonical_score(payload.average_score)
    label = payload.name or (extract_domain(url) if url else "this competitor")

    extra: list[str] = []
    matched = _find_enrichment(payload, enrichment)
    if matched is not None:
        extra = matched.differentiation_opportunities()

    return _report_from_axes(
        url=url,
        total_score=score.total100,
        axis_scores={axis: score.axis20 for axis in AXES},
        recommendations=[
            f"Differentiate from {label}",
            "Analyze the competing strategy",
            "Strengthen credibility and technical quality",
            *extra,
        ],
    )


def _from_legacy(payload: LegacyScorePayload, fallback_url: str) -> LLMOReport:
    return _report_from_axes(
        url=payload.url or fallback_url,
        total_score=to_canonical_score(payload.total, scale=TOTAL_SCALE).total100,
        axis_scores={
            "credibility_authority": to_canonical_score(payload.credibility, scale=AXIS_SCALE).axis20,
            "structure_readability": to_canonical_score(payload.structure, scale=AXIS_SCALE).axis20,
            "contextual_relevance": to_canonical_score(payload.relevance, scale=AXIS_SCALE).axis20,
            "technical_compatibility": to_canonical_score(payload.technical, scale=AXIS_SCALE).axis20,
        },
        recommendations=None,
    )


def _axis_or_zero(value: float | None) -> int:
    return 0 if value is None else to_canonical_score(value, scale=AXIS_SCALE).axis20


def _from_flat(payload: FlatScorePayload, fallback_url: str) -> LLMOReport:
    total = 0
    if payload.total_score is not None:
        total = to_canonical_score(payload.total_score, scale=TOTAL_SCALE).total100
    return _report_from_axes(
        url=payload.url or fallback_url,
        total_score=total,
        axis_scores={
            "credibility_authority": _axis_or_zero(payload.credibility),
            "structure_readability": _axis_or_zero(payload.readability),
            "contextual_relevance": _axis_or_zero(payload.relevance),
            "technical_compatibility": _axis_or_zero(payload.technical),
        },
        recommendations=payload.recommendations,
    )


def map_to_report(
    payload: Any,
    fallback_url: str | None = None,
    *,
    enrichment: Sequence[EnrichmentEntry] = (),
) -> LLMOReport:
    """Map one per-site payload of any known shape to an ``LLMOReport``.

    Shapes are tried in priority order: canonical axis objects, session
    competitor (``average_score``), legacy ``"N/20"`` strings, flat numeric
    scores. Anything else yields ``create_default_llmo_report``.

    Args:
        payload: Raw decoded JSON for one site, or None.
        fallback_url: URL used when the payload carries none.
        enrichment: Decoded ``mini_llm_results`` entries of the enclosing
            session, matched to competitors by domain or name.

    Returns:
        A valid report; never None and never raises.
    """
    url = fallback_url or ""
    decoded = decode_report_payload(payload)

    if isinstance(decoded, CanonicalReportPayload):
        return _from_canonical(decoded, url)
    if isinstance(decoded, SessionCompetitorPayload):
        return _from_session_competitor(decoded, url, enrichment)
    if isinstance(decoded, LegacyScorePayload):
        return _from_legacy(decoded, url)
    if isinstance(decoded, FlatScorePayload):
        return _from_flat(decoded, url)

    if isinstance(payload, Mapping) and payload:
        logger.warning("Unrecognized report payload; using default report keys=%s", sorted(map(str, payload))[:10])
    return create_default_llmo_report(decoded.url or url)


# ---------------------------------------------------------------------------
# Result mapping
# ---------------------------------------------------------------------------


def has_enrichment(payload: Any) -> bool:
    """
    Whether a raw analysis payload already carries per-competitor enrichment.
    """

    if isinstance(payload, list):
        payload = payload[0] if payload else None
    if not isinstance(payload, Mapping):
        return False
    return any(isinstance(payload.get(key), list) and payload[key] for key in ENRICHMENT_KEYS)


def extract_analysis_id(payload: Any) -> str | None:
    if not isinstance(payload, Mapping):
        return None
    for key in ("analysis_id", "session_id", "id"):
        value = payload.get(key)
        if value not in (None, ""):
            return str(value)
    return None


def _site_from_mapping(raw: Any, fallback_url: str = "", enrichment: Sequence[EnrichmentEntry] = ()) -> SiteReport:
    if not isinstance(raw, Mapping):
        return SiteReport.for_url(fallback_url, create_default_llmo_report(fallback_url))

    url = raw.get("url") if isinstance(raw.get("url"), str) else fallback_url
    report_source = raw.get("report") or raw.get("analysis") or raw
    report = map_to_report(report_source, url, enrichment=enrichment)

    domain = raw.get("domain")
    if not isinstance(domain, str) or not domain:
        domain = extract_domain(url) if url else ""

    mentions = raw.get("mentions")
    average_score = raw.get("average_score")
    return SiteReport(
        url=url or "",
        domain=domain,
        report=report,
        name=raw.get("name") if isinstance(raw.get("name"), str) else None,
        mentions=mentions if isinstance(mentions, int) and not isinstance(mentions, bool) else None,
        average_score=float(average_score) if isinstance(average_score, (int, float)) and not isinstance(average_score, bool) else None,
    )


def _bounded_rank(value: Any, total_analyzed: int, computed: int) -> int:
    if isinstance(value, int) and not isinstance(value, bool) and 1 <= value <= total_analyzed:
        return value
    return computed


def _string_list(value: Any) -> list[str] | None:
    if not isinstance(value, list):
        return None
    return [str(item) for item in value if item]


def _validated_summary(raw: Mapping[str, Any], user_site: SiteReport, competitors: Sequence[SiteReport]) -> Summary:
    try:
        summary = Summary.model_validate(dict(raw))
    except ValidationError as exc:
        logger.warning("Upstream summary rejected; recomputing errors=%s", exc.error_count())
        return build_summary(user_site.report, competitors)

    total = len(competitors) + 1
    computed = build_summary(user_site.report, competitors)
    return summary.model_copy(
        update={
            "total_analyzed": total,
            "user_rank": _bounded_rank(summary.user_rank, total, computed.user_rank),
        }
    )


def _from_canonical_result(payload: CanonicalResultPayload, fallback_url: str) -> CompetitiveAnalysisResult:
    user_site = _site_from_mapping(payload.user_site, fallback_url)
    competitors = [_site_from_mapping(item) for item in payload.competitors]
    return CompetitiveAnalysisResult(
        id=payload.id if payload.id is not None else new_analysis_id(),
        timestamp=payload.timestamp or utc_timestamp(),
        user_site=user_site,
        competitors=competitors,
        summary=_validated_summary(payload.summary, user_site, competitors),
    )


def _from_direct_result(payload: DirectResultPayload, fallback_url: str) -> CompetitiveAnalysisResult:
    user_site = _site_from_mapping(payload.user_site, fallback_url)
    competitors = [_site_from_mapping(item) for item in payload.competitors]
    if payload.summary is not None:
        summary = _validated_summary(payload.summary, user_site, competitors)
    else:
        summary = Summary.in_progress(total_analyzed=len(competitors) + 1)
    return CompetitiveAnalysisResult(
        id=payload.id if payload.id is not None else new_analysis_id(),
        timestamp=payload.timestamp or utc_timestamp(),
        user_site=user_site,
        competitors=competitors,
        summary=summary,
    )


def _summary_from_insights(
    *,
    user_site: SiteReport,
    competitors: Sequence[SiteReport],
    rank: Any,
    strengths: list[str] | None,
    weaknesses: list[str] | None,
    opportunities: list[str] | None,
    stats: Mapping[str, Any] | None = None,
) -> Summary:
    computed = build_summary(user_site.report, competitors, stats=stats)
    if strengths is None and weaknesses is None and opportunities is None:
        return computed
    return Summary(
        user_rank=_bounded_rank(rank, computed.total_analyzed, computed.user_rank),
        total_analyzed=computed.total_analyzed,
        strengths_vs_competitors=strengths or [],
        weaknesses_vs_competitors=weaknesses or [],
        opportunities_identified=opportunities or [],
    )


def _from_nested(payload: NestedAnalysisPayload, fallback_url: str) -> CompetitiveAnalysisResult:
    analysis = payload.analysis
    user_raw = analysis.get("user_analysis") or analysis.get("main_site")
    user_url = fallback_url
    if not user_url and isinstance(user_raw, Mapping) and isinstance(user_raw.get("url"), str):
        user_url = user_raw["url"]

    user_site = SiteReport.for_url(user_url, map_to_report(user_raw, user_url))
    raw_competitors = analysis.get("competitors") if isinstance(analysis.get("competitors"), list) else []
    competitors = [_site_from_mapping(item) for item in raw_competitors]

    ranking = analysis.get("ranking") if isinstance(analysis.get("ranking"), Mapping) else {}
    insights = analysis.get("insights") if isinstance(analysis.get("insights"), Mapping) else {}
    return CompetitiveAnalysisResult(
        id=payload.id if payload.id is not None else new_analysis_id(),
        timestamp=payload.timestamp or utc_timestamp(),
        user_site=user_site,
        competitors=competitors,
        summary=_summary_from_insights(
            user_site=user_site,
            competitors=competitors,
            rank=ranking.get("position"),
            strengths=_string_list(insights.get("strengths")),
            weaknesses=_string_list(insights.get("weaknesses")),
            opportunities=_string_list(insights.get("opportunities")),
        ),
    )


def _session_user_score(payload: SessionPayload, default_user_score: int) -> int:
    candidates: list[Any] = [payload.user_score]
    if payload.target_positioning:
        candidates.append(payload.target_positioning.get("target_global_score"))
        candidates.append(payload.target_positioning.get("target_llmo_score"))
    for candidate in candidates:
        if isinstance(candidate, (int, float)) and not isinstance(candidate, bool):
            return to_canonical_score(candidate, scale=TOTAL_SCALE).total100
    return default_user_score


def build_user_report(url: str, total_score: int) -> LLMOReport:
    """
    User-site report reconstructed from a total score with the fixed axis split.
    """

    return _report_from_axes(
        url=url,
        total_score=total_score,
        axis_scores=user_axis_scores(total_score),
        recommendations=None,
    )


def _from_session(payload: SessionPayload, default_user_score: int) -> CompetitiveAnalysisResult:
    enrichment = decode_enrichment(payload.mini_llm_results)
    user_score = _session_user_score(payload, default_user_score)
    user_site = SiteReport.for_url(payload.url, build_user_report(payload.url, user_score))

    competitors: list[SiteReport] = []
    for raw in payload.competitors:
        url = raw.get("url") or raw.get("primary_url") or ""
        site = _site_from_mapping({**raw, "url": url}, enrichment=enrichment)
        competitors.append(site)

    in_progress = (payload.status or "").strip().lower() in PROCESSING_STATUSES
    return CompetitiveAnalysisResult(
        id=payload.id,
        timestamp=payload.timestamp or utc_timestamp(),
        user_site=user_site,
        competitors=competitors,
        summary=build_summary(user_site.report, competitors, stats=payload.stats, in_progress=in_progress),
        analysis_id=str(payload.id),
        title=payload.title,
        description=payload.description,
        status=payload.status,
        stats=payload.stats,
    )


def _from_generic(payload: GenericAnalysisPayload, fallback_url: str) -> CompetitiveAnalysisResult:
    url = payload.url or fallback_url
    user_site = SiteReport.for_url(url, map_to_report(payload.user_analysis, url))
    competitors = [_site_from_mapping(item) for item in payload.competitors]

    insights = payload.insights or {}
    rank = payload.user_rank
    if rank is None and payload.ranking:
        rank = payload.ranking.get("position")
    return CompetitiveAnalysisResult(
        id=payload.id if payload.id is not None else new_analysis_id(),
        timestamp=payload.timestamp or utc_timestamp(),
        user_site=user_site,
        competitors=competitors,
        summary=_summary_from_insights(
            user_site=user_site,
            competitors=competitors,
            rank=rank,
            strengths=payload.strengths if payload.strengths is not None else _string_list(insights.get("strengths")),
            weaknesses=payload.weaknesses if payload.weaknesses is not None else _string_list(insights.get("weaknesses")),
            opportunities=(
                payload.opportunities
                if payload.opportunities is not None
                else _string_list(insights.get("opportunities"))
            ),
        ),
    )


def map_to_result(
    payload: Any,
    fallback_url: str | None = None,
    *,
    default_user_score: int = DEFAULT_USER_SCORE,
) -> CompetitiveAnalysisResult:
    """
    Map an analysis-level payload of any known shape to a ``CompetitiveAnalysisResult``.
    """

    url = fallback_url or ""
    decoded = decode_result_payload(payload)

    if isinstance(decoded, CanonicalResultPayload):
        return _from_canonical_result(decoded, url)
    if isinstance(decoded, DirectResultPayload):
        return _from_direct_result(decoded, url)
    if isinstance(decoded, NestedAnalysisPayload):
        return _from_nested(decoded, url)
    if isinstance(decoded, SessionPayload):
        return _from_session(decoded, default_user_score)

    if not isinstance(payload, Mapping):
        logger.warning("Analysis payload is not an object type=%s; building default result", type(payload).__name__)
    return _from_generic(decoded, url)


def map_listing(payload: Any, *, default_user_score: int = DEFAULT_USER_SCORE) -> list[CompetitiveAnalysisResult] | None:
    """
    Map a listing response; returns None when the envelope is not recognised.
    """

    items: Any
    if isinstance(payload, list):
        items = payload
    elif isinstance(payload, Mapping) and isinstance(payload.get("data"), list):
        items = payload["data"]
    elif isinstance(payload, Mapping) and isinstance(payload.get("analyses"), list):
        items = payload["analyses"]
    else:
        return None

    return [
        map_to_result(item, default_user_score=default_user_score)
        for item in items
        if isinstance(item, Mapping)
    ]
