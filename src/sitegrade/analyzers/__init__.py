"""Factor analyzers, one per FactorId."""

from typing import Tuple

from .ai_readiness import AIReadinessAnalyzer
from .authority import AuthorityAnalyzer
from .base import BaseAnalyzer, ScoreCard, derive_confidence
from .content import ContentAnalyzer
from .mobile import MobileAnalyzer
from .performance import PerformanceAnalyzer
from .schema import SchemaAnalyzer
from .technical import TechnicalAnalyzer


def default_analyzers() -> Tuple[BaseAnalyzer, ...]:
    """One analyzer per factor, in canonical factor order."""
    return (
        TechnicalAnalyzer(),
        ContentAnalyzer(),
        AIReadinessAnalyzer(),
        SchemaAnalyzer(),
        PerformanceAnalyzer(),
        MobileAnalyzer(),
        AuthorityAnalyzer(),
    )


__all__ = [
    "AIReadinessAnalyzer",
    "AuthorityAnalyzer",
    "BaseAnalyzer",
    "ContentAnalyzer",
    "MobileAnalyzer",
    "PerformanceAnalyzer",
    "SchemaAnalyzer",
    "ScoreCard",
    "TechnicalAnalyzer",
    "default_analyzers",
    "derive_confidence",
]
