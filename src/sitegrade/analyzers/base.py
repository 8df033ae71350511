"""
Shared machinery for factor analyzers.

Analyzers score with a weighted checklist. Each assessed check adds its weight
to the denominator and ``weight * credit`` to the numerator. A check whose
input is unavailable is simply not assessed: it is never counted as passed.
"""

from __future__ import annotations

from typing import Any, List, Mapping, Optional, Tuple
from urllib.robotparser import RobotFileParser

import structlog

from sitegrade.adapters.result import AdapterResult, Unavailable, Value, describe
from sitegrade.crawler.http_client import FetchedResource
from sitegrade.protocols import Confidence, FactorId, FactorScore, Finding, Severity, SignalBundle

logger = structlog.get_logger(__name__)

INPUT_LABELS = {
    "validator": "Markup validator",
    "performance": "Performance measurements",
    "robots": "robots.txt",
    "sitemap": "Sitemap",
    "llms": "llms.txt",
}

RESOURCE_FILES = {"robots": "robots.txt", "sitemap": "sitemap", "llms": "llms.txt"}


def input_evidence(name: str) -> str:
    if name in RESOURCE_FILES:
        return f"resource:{RESOURCE_FILES[name]}"
    return f"adapter:{name}"


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


def linear_credit(value: float, full_at: float, zero_at: float) -> float:
    """1.0 at ``full_at``, 0.0 at ``zero_at``, linear in between.

    Works in either direction (``full_at`` may be above or below ``zero_at``).
    """
    if full_at == zero_at:
        return 1.0 if value == full_at else 0.0
    return clamp((value - zero_at) / (full_at - zero_at))


class ScoreCard:
    """Accumulates weighted checks and findings for one factor."""

    def __init__(self, factor: FactorId) -> None:
        self.factor = factor
        self._earned = 0.0
        self._possible = 0.0
        self.findings: List[Finding] = []

    def check(self, weight: float, credit: float, finding: Optional[Finding] = None) -> None:
        """Record an assessed check. ``finding`` is kept only for partial credit."""
        credit = clamp(credit)
        self._possible += weight
        self._earned += weight * credit
        if finding is not None and credit < 1.0:
            self.findings.append(finding)

    def require(self, weight: float, passed: bool, message: str, severity: Severity, evidence: str) -> None:
        self.check(weight, 1.0 if passed else 0.0, Finding(message, severity, evidence))

    def note(self, finding: Finding) -> None:
        """Record a finding that does not affect the score."""
        self.findings.append(finding)

    @property
    def assessed(self) -> bool:
        return self._possible > 0

    def score(self) -> float:
        if not self._possible:
            return 0.0
        return round(100.0 * self._earned / self._possible, 2)


def derive_confidence(
    inputs: Mapping[str, AdapterResult[Any]], required: Tuple[str, ...], *, external_primary: bool
) -> Confidence:
    """Confidence from how many required inputs were not a ``Value``."""
    missing = sum(1 for name in required if not isinstance(inputs.get(name), Value))
    if missing == 0:
        return Confidence.FULL
    if missing == len(required) and external_primary:
        return Confidence.UNAVAILABLE_INPUTS
    return Confidence.DEGRADED


class BaseAnalyzer:
    """Template for analyzers: subclasses implement ``score_into``."""

    factor: FactorId
    required_inputs: Tuple[str, ...] = ()
    # True when the factor's primary signal comes from its external inputs.
    external_primary: bool = False

    def analyze(self, bundle: SignalBundle, inputs: Optional[Mapping[str, AdapterResult[Any]]] = None) -> FactorScore:
        inputs = inputs or {}
        card = ScoreCard(self.factor)

        for name in self.required_inputs:
            result = inputs.get(name, Unavailable("not provided"))
            if not isinstance(result, Value):
                label = INPUT_LABELS.get(name, name)
                card.note(
                    Finding(
                        f"{label} {describe(result)}; dependent checks were not assessed",
                        Severity.INFO,
                        input_evidence(name),
                    )
                )

        self.score_into(card, bundle, inputs)

        confidence = derive_confidence(inputs, self.required_inputs, external_primary=self.external_primary)
        score = FactorScore(
            factor=self.factor, score=card.score(), findings=tuple(card.findings), confidence=confidence
        )

        logger.debug(
            "Factor analyzed",
            factor=self.factor.value,
            score=score.score,
            confidence=confidence.value,
            findings=len(score.findings),
        )
        return score

    def score_into(self, card: ScoreCard, bundle: SignalBundle, inputs: Mapping[str, AdapterResult[Any]]) -> None:
        raise NotImplementedError


def robots_rules(resource: FetchedResource) -> RobotFileParser:
    """Build a robots.txt rule set the way ``RobotFileParser.read`` would.

    401/403 disallow everything, any other non-success status allows everything.
    """
    parser = RobotFileParser()
    if resource.ok:
        parser.parse(resource.text.splitlines())
    elif resource.status in (401, 403):
        parser.disallow_all = True
    else:
        parser.allow_all = True
    return parser
