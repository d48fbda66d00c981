"""
competitive/static_data.py

Bundled reference analysis served once when neither the backend nor the
cache has anything to show.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from competitive.domains import extract_domain
from competitive.mapper import map_to_report
from competitive.models import CompetitiveAnalysisResult, SiteReport, Summary
from competitive.ranking import build_summary

logger = logging.getLogger(__name__)

STATIC_DATA_DIR = Path(__file__).resolve().parent / "data"
STATIC_DATA_FILE = "static_competitive_analysis.json"
STATIC_ANALYSIS_ID = "static-reference"


def _titles(entries: Any) -> list[str]:
    if not isinstance(entries, list):
        return []
    return [str(entry["titre"]) for entry in entries if isinstance(entry, dict) and entry.get("titre")]


def _site(url: str, row: Any, recommendations: list[str] | None = None) -> SiteReport:
    report = map_to_report(row, url)
    if recommendations:
        report = report.model_copy(update={"primary_recommendations": recommendations[:5]})
    return SiteReport.for_url(url, report)


def build_static_analysis(document: dict[str, Any]) -> CompetitiveAnalysisResult:
    """
    Map a legacy comparison-table document to one canonical result.
    """

    table = document.get("tableau_comparatif") or {}
    user = document.get("user_site") or {}
    user_key = str(user.get("name", ""))
    user_url = str(user.get("url", ""))

    actions = [
        str(action)
        for block in document.get("recommandations_strategiques") or []
        for action in (block.get("actions") or [])
        if action
    ]
    user_site = _site(user_url, table.get(user_key), actions)

    competitors = [
        _site(str(entry.get("url", "")), table.get(entry.get("key")))
        for entry in document.get("competitors") or []
        if isinstance(entry, dict)
    ]

    computed = build_summary(user_site.report, competitors)
    swot = document.get("analyse_swot") or {}
    summary = Summary(
        user_rank=computed.user_rank,
        total_analyzed=computed.total_analyzed,
        strengths_vs_competitors=_titles(swot.get("forces")) or computed.strengths_vs_competitors,
        weaknesses_vs_competitors=_titles(swot.get("faiblesses")) or computed.weaknesses_vs_competitors,
        opportunities_identified=_titles(swot.get("opportunites")) or computed.opportunities_identified,
    )

    return CompetitiveAnalysisResult(
        id=STATIC_ANALYSIS_ID,
        user_site=user_site,
        competitors=competitors,
        summary=summary,
        title=document.get("titre") or f"Reference analysis for {extract_domain(user_url)}",
        description=document.get("introduction"),
    )


def load_static_analyses() -> list[CompetitiveAnalysisResult]:
    """
    Load the bundled dataset; an unreadable bundle yields an empty list.
    """

    try:
        raw = (STATIC_DATA_DIR / STATIC_DATA_FILE).read_text(encoding="utf-8")
        document = json.loads(raw)
    except (OSError, ValueError) as exc:
        logger.error("Static dataset could not be loaded file=%s error=%s", STATIC_DATA_FILE, exc)
        return []
    if not isinstance(document, dict):
        logger.error("Static dataset is not a JSON object file=%s", STATIC_DATA_FILE)
        return []
    return [build_static_analysis(document)]
