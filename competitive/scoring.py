"""
competitive/scoring.py

Deterministic score normalization for LLMO reports.

Upstream payloads encode scores as 0..1 floats, "N/20" or "N/100" strings,
or plain integers. Everything is converted onto a canonical 0-100 total and
0-20 axis scale. Sub-metric values are derived from the axis score with a
fixed weight table; they are a reproducible split, not measured values.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

TOTAL_SCALE = 100
AXIS_SCALE = 20

AXES: tuple[str, ...] = (
    "credibility_authority",
    "structure_readability",
    "contextual_relevance",
    "technical_compatibility",
)

# Sub-metric weights per axis; each table sums to 1.0
AXIS_WEIGHTS: dict[str, dict[str, float]] = {
    "credibility_authority": {
        "verifiable_sources": 0.35,
        "certifications": 0.25,
        "customer_reviews": 0.25,
        "brand_history": 0.15,
    },
    "structure_readability": {
        "hierarchy": 0.20,
        "formatting": 0.25,
        "readability": 0.25,
        "optimal_length": 0.15,
        "multimedia": 0.15,
    },
    "contextual_relevance": {
        "intent_match": 0.25,
        "personalization": 0.20,
        "freshness": 0.25,
        "natural_language": 0.20,
        "localization": 0.10,
    },
    "technical_compatibility": {
        "structured_data": 0.20,
        "metadata": 0.20,
        "performance": 0.20,
        "mobile_compatibility": 0.20,
        "security": 0.20,
    },
}

# Share of a user's total score attributed to each axis when only a total is known.
USER_AXIS_FACTORS: dict[str, float] = {
    "credibility_authority": 0.27,
    "structure_readability": 0.24,
    "contextual_relevance": 0.27,
    "technical_compatibility": 0.17,
}

# Grade thresholds: inclusive lower bounds, checked top-down
_GRADE_THRESHOLDS: tuple[tuple[int, str], ...] = (
    (90, "Excellently optimized"),
    (80, "Very well optimized"),
    (70, "Well optimized"),
    (60, "Moderately optimized"),
    (50, "Poorly optimized"),
)
_LOWEST_GRADE = "Not optimized"

_FRACTION_PATTERN = re.compile(r"^\s*(-?\d+(?:[.,]\d+)?)\s*/\s*(\d+(?:[.,]\d+)?)\s*$")
# Values above any scale clamp to its maximum; capping first keeps float conversion finite.
_SCALED_CEILING = 10**6


@dataclass(frozen=True)
class CanonicalScore:
    """
    One score expressed on both canonical scales.
    """

    total100: int
    axis20: int


ZERO_SCORE = CanonicalScore(total100=0, axis20=0)


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for positives."""
    return int(math.floor(value + 0.5))


def clamp(value: int, min_value: int, max_value: int) -> int:
    return max(min_value, min(value, max_value))


def _is_real_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    if isinstance(value, int):
        return True
    return math.isfinite(value)


def _from_ratio(ratio: float) -> CanonicalScore:
    ratio = max(0.0, min(ratio, 1.0))
    return CanonicalScore(
        total100=round_half_up(ratio * TOTAL_SCALE),
        axis20=round_half_up(ratio * AXIS_SCALE),
    )


def _from_scaled(value: float, scale: int) -> CanonicalScore:
    if scale == AXIS_SCALE:
        axis = clamp(round_half_up(value), 0, AXIS_SCALE)
        return CanonicalScore(total100=axis * (TOTAL_SCALE // AXIS_SCALE), axis20=axis)
    total = clamp(round_half_up(value), 0, TOTAL_SCALE)
    return CanonicalScore(total100=total, axis20=round_half_up(total / (TOTAL_SCALE / AXIS_SCALE)))


def to_canonical_score(raw: Any, scale: int | None = None) -> CanonicalScore:
    """Convert one raw score encoding to the canonical scales.

    Args:
        raw: A float in [0, 1], an integer already on ``scale``, or a
            ``"N/M"`` string.
        scale: 20 or 100 when the caller knows which axis scale the raw
            value belongs to. ``None`` lets the string denominator decide.

    Returns:
        A ``CanonicalScore``. Unrecognized or negative inputs yield
        ``CanonicalScore(0, 0)``; this function never raises.
    """
    if _is_real_number(raw):
        if raw < 0:
            return ZERO_SCORE
        if raw <= 1:
            return _from_ratio(float(raw))
        return _from_scaled(float(min(raw, _SCALED_CEILING)), scale or TOTAL_SCALE)

    if not isinstance(raw, str):
        return ZERO_SCORE

    match = _FRACTION_PATTERN.match(raw)
    if match is None:
        return ZERO_SCORE

    try:
        numerator = Decimal(match.group(1).replace(",", "."))
        denominator = Decimal(match.group(2).replace(",", "."))
    except ArithmeticError:
        return ZERO_SCORE
    if numerator < 0 or denominator <= 0:
        return ZERO_SCORE

    whole = float(min(int(numerator), _SCALED_CEILING))
    if scale in (AXIS_SCALE, TOTAL_SCALE):
        return _from_scaled(whole, scale)
    if denominator in (AXIS_SCALE, TOTAL_SCALE):
        return _from_scaled(whole, int(denominator))
    return _from_ratio(float(numerator / denominator))


def decompose_axis(axis: str, score: int) -> dict[str, int]:
    """Split an axis score into weighted sub-metric values.

    Each value is ``floor(score * weight)``. The split is a deterministic
    derivation from the axis score: the same input always yields the same
    output, and no sub-metric is independently measured.

    Raises:
        KeyError: If ``axis`` is not one of ``AXES``.
    """
    weights = AXIS_WEIGHTS[axis]
    # round() guards products such as 0.35 * 20 landing just under an integer
    return {name: int(math.floor(round(score * weight, 6))) for name, weight in weights.items()}


def build_axis(axis: str, score: int) -> dict[str, Any]:
    bounded = clamp(int(score), 0, AXIS_SCALE)
    return {"score": bounded, "details": decompose_axis(axis, bounded)}


def user_axis_scores(total_score: int) -> dict[str, int]:
    """
    Spread a user's total score over the four axes with the fixed user factors.
    """

    return {
        axis: clamp(round_half_up(total_score * factor), 0, AXIS_SCALE)
        for axis, factor in USER_AXIS_FACTORS.items()
    }


def grade_for_score(total_score: int) -> str:
    """Map a 0-100 total score to its grade label.

    Args:
        total_score: Canonical total score.

    Returns:
        One of six fixed labels, from "Excellently optimized" (>= 90)
        down to "Not optimized" (< 50).
    """
    for threshold, label in _GRADE_THRESHOLDS:
        if total_score >= threshold:
            return label
    return _LOWEST_GRADE
