"""
Composite scoring.

The composite is a pure function of the weight table and the seven factor
scores: no network state, no per-domain adjustment.
"""

from __future__ import annotations

from enum import Enum
from typing import Mapping, Sequence, Tuple

import structlog

from sitegrade.exceptions import SiteGradeError
from sitegrade.protocols import Confidence, FactorId, FactorScore
from sitegrade.scoring.weights import WeightTable

logger = structlog.get_logger(__name__)


class StatusBand(Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    NEEDS_WORK = "needs_work"
    POOR = "poor"


# Lower bounds, checked from the top.
BAND_THRESHOLDS: Tuple[Tuple[float, StatusBand], ...] = (
    (90.0, StatusBand.EXCELLENT),
    (75.0, StatusBand.GOOD),
    (50.0, StatusBand.NEEDS_WORK),
)


def status_band(score: float) -> StatusBand:
    for threshold, band in BAND_THRESHOLDS:
        if score >= threshold:
            return band
    return StatusBand.POOR


def overall_confidence(scores: Sequence[FactorScore]) -> Confidence:
    if all(score.confidence is Confidence.FULL for score in scores):
        return Confidence.FULL
    return Confidence.DEGRADED


def index_scores(scores: Sequence[FactorScore]) -> Mapping[FactorId, FactorScore]:
    indexed = {score.factor: score for score in scores}
    if len(indexed) != len(scores):
        raise SiteGradeError("Each factor may be scored only once")
    missing = [factor.value for factor in FactorId if factor not in indexed]
    if missing:
        raise SiteGradeError(f"Missing factor scores: {', '.join(missing)}")
    return indexed


def composite_score(weights: WeightTable, scores: Sequence[FactorScore]) -> float:
    """Weighted sum of the factor scores, rounded to two decimals and kept in [0, 100]."""
    indexed = index_scores(scores)
    total = sum(weights[factor] * indexed[factor].score for factor in FactorId)
    return round(min(100.0, max(0.0, total)), 2)


class ScoreAggregator:
    """Combines factor scores with one validated weight table."""

    def __init__(self, weights: WeightTable) -> None:
        self.weights = weights

    def aggregate(self, scores: Sequence[FactorScore]) -> Tuple[float, StatusBand, Confidence]:
        composite = composite_score(self.weights, scores)
        band = status_band(composite)
        confidence = overall_confidence(scores)
        logger.debug("Composite computed", composite=composite, band=band.value, confidence=confidence.value)
        return composite, band, confidence
