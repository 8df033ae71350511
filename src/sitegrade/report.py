"""Composite report assembly."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Sequence, Tuple

from sitegrade.protocols import Confidence, FactorId, FactorScore
from sitegrade.scoring.aggregator import ScoreAggregator, StatusBand, index_scores


@dataclass(frozen=True)
class CompositeReport:
    """The result of one grading run. Factors are in canonical order."""

    url: str
    timestamp: datetime
    composite_score: float
    status_band: StatusBand
    confidence: Confidence
    factors: Tuple[FactorScore, ...]

    def factor(self, factor_id: FactorId) -> FactorScore:
        for score in self.factors:
            if score.factor is factor_id:
                return score
        raise KeyError(factor_id)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "url": self.url,
            "timestamp": self.timestamp.isoformat(),
            "compositeScore": self.composite_score,
            "statusBand": self.status_band.value,
            "confidence": self.confidence.value,
            "factors": [score.to_dict() for score in self.factors],
        }


def assemble_report(
    url: str, scores: Sequence[FactorScore], aggregator: ScoreAggregator, timestamp: datetime
) -> CompositeReport:
    indexed = index_scores(scores)
    ordered = tuple(indexed[factor] for factor in FactorId)
    composite, band, confidence = aggregator.aggregate(ordered)
    return CompositeReport(
        url=url,
        timestamp=timestamp,
        composite_score=composite,
        status_band=band,
        confidence=confidence,
        factors=ordered,
    )
