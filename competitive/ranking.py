"""
competitive/ranking.py

Relative ranking and human-readable insight lists for a user site measured
against its competitors. Stateless; inputs are never mutated.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from competitive.models import LLMOReport, SiteReport, Summary
from competitive.scoring import round_half_up

STATIC_STRENGTH = "Competitive positioning analyzed by AI"
STATIC_WEAKNESS = "LLMO optimization can still be improved"
STATIC_OPPORTUNITY_STRATEGY = "Analyze the strategies of high-performing competitors"
STATIC_OPPORTUNITY_POSITIONING = "Improve positioning in AI-generated answers"
TOP_COMPETITORS_BENCHMARKED = 3


def calculate_rank(user_score: int, competitor_scores: Sequence[int]) -> int:
    """Return the user's 1-based rank among all analyzed scores.

    Scores are sorted descending with a stable sort and the user's score is
    inserted first, so a tie places the user ahead of the tied competitors.

    Args:
        user_score: The user site's total score.
        competitor_scores: Competitor total scores in upstream order.

    Returns:
        An integer in ``[1, len(competitor_scores) + 1]``.
    """
    ordered = sorted([user_score, *competitor_scores], reverse=True)
    return ordered.index(user_score) + 1


def _top_competitor(competitors: Sequence[SiteReport]) -> SiteReport:
    top = competitors[0]
    for competitor in competitors[1:]:
        if competitor.report.total_score > top.report.total_score:
            top = competitor
    return top


def _label(site: SiteReport) -> str:
    return site.domain or site.name or site.url or "unknown competitor"


def _strengths(user_score: int, competitors: Sequence[SiteReport]) -> list[str]:
    strengths: list[str] = []
    if competitors:
        scores = [competitor.report.total_score for competitor in competitors]
        mean = sum(scores) / len(scores)
        if user_score > mean:
            strengths.append(f"LLMO score above the competitive average ({round_half_up(mean)})")

        beaten = sum(1 for score in scores if user_score > score)
        if beaten > len(scores) / 2:
            strengths.append(f"Outperforms {beaten}/{len(scores)} competitors")

    strengths.append(STATIC_STRENGTH)
    return strengths


def _weaknesses(user_score: int, competitors: Sequence[SiteReport]) -> list[str]:
    weaknesses: list[str] = []
    if competitors:
        top = _top_competitor(competitors)
        if top.report.total_score > user_score:
            gap = top.report.total_score - user_score
            weaknesses.append(f"{gap}-point gap with leader {_label(top)}")

        outscoring = sum(1 for competitor in competitors if competitor.report.total_score > user_score)
        if outscoring == 1:
            weaknesses.append("1 competitor has a better LLMO score")
        elif outscoring > 1:
            weaknesses.append(f"{outscoring} competitors have a better LLMO score")

    weaknesses.append(STATIC_WEAKNESS)
    return weaknesses


def _distinct_models(stats: Mapping[str, Any] | None) -> int:
    if not stats:
        return 0
    models = stats.get("models_used")
    if not isinstance(models, (list, tuple)):
        return 0
    return len({str(model) for model in models if model})


def _opportunities(competitors: Sequence[SiteReport], stats: Mapping[str, Any] | None) -> list[str]:
    opportunities: list[str] = []

    model_count = _distinct_models(stats)
    if model_count > 0:
        noun = "model" if model_count == 1 else "models"
        opportunities.append(f"Optimize for {model_count} different AI {noun}")

    opportunities.append(STATIC_OPPORTUNITY_STRATEGY)

    leaders = sorted(competitors, key=lambda competitor: competitor.report.total_score, reverse=True)
    leaders = leaders[:TOP_COMPETITORS_BENCHMARKED]
    if leaders:
        opportunities.append(f"Benchmark the leaders: {', '.join(_label(site) for site in leaders)}")

    opportunities.append(STATIC_OPPORTUNITY_POSITIONING)
    return opportunities


def build_summary(
    user_report: LLMOReport,
    competitors: Sequence[SiteReport],
    *,
    stats: Mapping[str, Any] | None = None,
    in_progress: bool = False,
) -> Summary:
    """
    Compute rank and strengths/weaknesses/opportunities for one analysis.

    When the upstream analysis is still processing, each list holds only the
    transient in-progress sentinel.
    """

    user_score = user_report.total_score
    user_rank = calculate_rank(user_score, [competitor.report.total_score for competitor in competitors])
    total_analyzed = len(competitors) + 1

    if in_progress:
        return Summary.in_progress(total_analyzed=total_analyzed, user_rank=user_rank)

    return Summary(
        user_rank=user_rank,
        total_analyzed=total_analyzed,
        strengths_vs_competitors=_strengths(user_score, competitors),
        weaknesses_vs_competitors=_weaknesses(user_score, competitors),
        opportunities_identified=_opportunities(competitors, stats),
    )
