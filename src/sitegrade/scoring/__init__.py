from .aggregator import ScoreAggregator, StatusBand, composite_score, overall_confidence, status_band
from .weights import WeightTable

__all__ = [
    "ScoreAggregator",
    "StatusBand",
    "WeightTable",
    "composite_score",
    "overall_confidence",
    "status_band",
]
