"""
The composite weighting model.

A ``WeightTable`` is the one place factor weights live. Both the composite
score and the methodology description read from it.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Dict, List, Mapping

from sitegrade.exceptions import ConfigError
from sitegrade.protocols import FactorId

WEIGHT_SUM_TOLERANCE = 1e-6

FACTOR_DESCRIPTIONS = {
    FactorId.TECHNICAL: "Crawlability and document hygiene: title, description, canonical, indexability, "
    "robots.txt, sitemap, HTTPS, redirects and markup validity.",
    FactorId.CONTENT: "Depth, heading structure, readability and boilerplate share of the main content.",
    FactorId.AI_READINESS: "How easily answer engines can read, quote and attribute the page, "
    "including AI crawler access and llms.txt.",
    FactorId.SCHEMA: "Well-formed structured data with required properties and site identity markup.",
    FactorId.PERFORMANCE: "Field or lab loading metrics banded against millisecond thresholds.",
    FactorId.MOBILE: "Viewport configuration, zoom, responsive images and mobile audits.",
    FactorId.AUTHORITY: "Link profile, trust pages, author attribution, publication dates and HTTPS.",
}


@dataclass(frozen=True)
class WeightTable:
    """Validated factor weights: every factor present, each in [0, 1], summing to 1."""

    weights: Mapping[FactorId, float]

    def __post_init__(self) -> None:
        missing = [factor.value for factor in FactorId if factor not in self.weights]
        if missing:
            raise ConfigError(f"Weight table is missing factors: {', '.join(missing)}")
        extra = [str(key) for key in self.weights if not isinstance(key, FactorId)]
        if extra:
            raise ConfigError(f"Weight table names unknown factors: {', '.join(extra)}")

        for factor, weight in self.weights.items():
            if isinstance(weight, bool) or not isinstance(weight, (int, float)) or not math.isfinite(weight):
                raise ConfigError(f"Weight for {factor.value} must be a number, got {weight!r}")
            if not 0.0 <= weight <= 1.0:
                raise ConfigError(f"Weight for {factor.value} must be within [0, 1], got {weight}")

        total = sum(self.weights.values())
        if abs(total - 1.0) > WEIGHT_SUM_TOLERANCE:
            raise ConfigError(f"Factor weights must sum to 1.0, got {total:.6f}")

        ordered = {factor: float(self.weights[factor]) for factor in FactorId}
        object.__setattr__(self, "weights", MappingProxyType(ordered))

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> WeightTable:
        """Build a table from factor-id strings, as found in configuration."""
        weights: Dict[Any, Any] = {}
        unknown: List[str] = []
        for key, weight in raw.items():
            try:
                weights[FactorId(key)] = weight
            except ValueError:
                unknown.append(str(key))
        if unknown:
            raise ConfigError(f"Weight table names unknown factors: {', '.join(sorted(unknown))}")
        return cls(weights)

    def __getitem__(self, factor: FactorId) -> float:
        return self.weights[factor]

    def describe(self) -> List[Dict[str, Any]]:
        """Methodology rows, in canonical factor order."""
        return [
            {"id": factor.value, "weight": weight, "description": FACTOR_DESCRIPTIONS[factor]}
            for factor, weight in self.weights.items()
        ]
