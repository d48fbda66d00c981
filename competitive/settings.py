"""
competitive/settings.py

Tunables of the submission and read flows.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class AnalysisSettings:
    """
    Submission parameters, enrichment polling and fallback behavior.
    """

    min_score: float = 0.5
    min_mentions: int = 1
    poll_attempts: int = 3
    poll_interval_seconds: float = 1.5
    default_user_score: int = 75
    static_fallback_enabled: bool = True
