"""
Performance analyzer.

Bands each measured timing against Duration thresholds. A measurement faster
than its ``fast`` threshold earns full credit, one slower than ``slow`` earns
none, and anything in between is credited linearly. Without measurements only
local page-weight hints can be scored.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Optional

from sitegrade.adapters.result import AdapterResult, PerformanceMetrics, Value
from sitegrade.analyzers.base import BaseAnalyzer, ScoreCard, linear_credit
from sitegrade.protocols import FactorId, Finding, Severity, SignalBundle
from sitegrade.units import Duration


class Band(Enum):
    FAST = "fast"
    MODERATE = "moderate"
    SLOW = "slow"


@dataclass(frozen=True)
class TimingThreshold:
    label: str
    fast: Duration
    slow: Duration
    weight: float

    def band(self, measured: Duration) -> Band:
        if measured < self.fast:
            return Band.FAST
        if measured > self.slow:
            return Band.SLOW
        return Band.MODERATE

    def credit(self, measured: Duration) -> float:
        band = self.band(measured)
        if band is Band.FAST:
            return 1.0
        if band is Band.SLOW:
            return 0.0
        return linear_credit(measured.milliseconds, self.fast.milliseconds, self.slow.milliseconds)


def _ms(value: float) -> Duration:
    return Duration.from_milliseconds(value)


TIMING_THRESHOLDS: Mapping[str, TimingThreshold] = {
    "lcp": TimingThreshold("Largest Contentful Paint", _ms(2000), _ms(4000), 30),
    "fcp": TimingThreshold("First Contentful Paint", _ms(1800), _ms(3000), 10),
    "tbt": TimingThreshold("Total Blocking Time", _ms(200), _ms(600), 20),
    "inp": TimingThreshold("Interaction to Next Paint", _ms(200), _ms(500), 15),
    "ttfb": TimingThreshold("Server response time", _ms(800), _ms(1800), 10),
    "speed_index": TimingThreshold("Speed Index", _ms(3400), _ms(5800), 5),
}

LAYOUT_SHIFT_RANGE = (0.1, 0.25)
LAYOUT_SHIFT_WEIGHT = 15

# Local fallback limits: full credit at the first value, none at the second.
PAGE_BYTES_RANGE = (500 * 1024, 3 * 1024 * 1024)
BLOCKING_SCRIPTS_RANGE = (0, 5)
SCRIPT_COUNT_RANGE = (15, 50)
STYLESHEET_RANGE = (4, 15)


def band_of(name: str, measured: Duration) -> Optional[Band]:
    threshold = TIMING_THRESHOLDS.get(name)
    return threshold.band(measured) if threshold else None


class PerformanceAnalyzer(BaseAnalyzer):
    factor = FactorId.PERFORMANCE
    required_inputs = ("performance",)
    external_primary = True

    def score_into(self, card: ScoreCard, bundle: SignalBundle, inputs: Mapping[str, AdapterResult[Any]]) -> None:
        result = inputs.get("performance")
        if isinstance(result, Value) and self._score_measurements(card, result.value):
            return
        self._score_page_weight(card, bundle)

    def _score_measurements(self, card: ScoreCard, metrics: PerformanceMetrics) -> bool:
        for name, threshold in TIMING_THRESHOLDS.items():
            measured = metrics.timings.get(name)
            if measured is None:
                continue
            band = threshold.band(measured)
            if band is Band.SLOW:
                finding = Finding(
                    f"{threshold.label} is slow: {measured} (over {threshold.slow})",
                    Severity.HIGH,
                    f"adapter:performance.{name}",
                )
            else:
                finding = Finding(
                    f"{threshold.label} needs improvement: {measured} (target under {threshold.fast})",
                    Severity.MEDIUM,
                    f"adapter:performance.{name}",
                )
            card.check(threshold.weight, threshold.credit(measured), finding)

        if metrics.layout_shift is not None:
            good, poor = LAYOUT_SHIFT_RANGE
            shift = metrics.layout_shift
            card.check(
                LAYOUT_SHIFT_WEIGHT,
                1.0 if shift < good else linear_credit(shift, good, poor),
                Finding(
                    f"Cumulative Layout Shift is {shift:.2f} (target under {good})",
                    Severity.HIGH if shift > poor else Severity.MEDIUM,
                    "adapter:performance.cls",
                ),
            )

        return card.assessed

    def _score_page_weight(self, card: ScoreCard, bundle: SignalBundle) -> None:
        size_kib = bundle.raw_bytes / 1024
        card.check(
            10,
            linear_credit(bundle.raw_bytes, *PAGE_BYTES_RANGE),
            Finding(f"HTML document is large ({size_kib:.0f} KiB)", Severity.MEDIUM, "raw_bytes"),
        )

        blocking = sum(1 for script in bundle.scripts if script.render_blocking)
        card.check(
            10,
            linear_credit(blocking, *BLOCKING_SCRIPTS_RANGE),
            Finding(f"{blocking} render-blocking scripts in <head>", Severity.MEDIUM, "scripts"),
        )

        card.check(
            5,
            linear_credit(len(bundle.scripts), *SCRIPT_COUNT_RANGE),
            Finding(f"Page loads {len(bundle.scripts)} scripts", Severity.LOW, "scripts"),
        )
        card.check(
            5,
            linear_credit(bundle.stylesheet_count, *STYLESHEET_RANGE),
            Finding(f"Page loads {bundle.stylesheet_count} stylesheets", Severity.LOW, "stylesheets"),
        )

        if bundle.images:
            unsized = sum(1 for image in bundle.images if not image.has_dimensions)
            card.check(
                5,
                1.0 - unsized / len(bundle.images),
                Finding(f"{unsized} images have no width and height", Severity.LOW, "images"),
            )

        # The first image is the likely LCP element and should load eagerly.
        later = bundle.images[1:]
        if later:
            eager = sum(1 for image in later if not image.lazy)
            card.check(
                5,
                1.0 - eager / len(later),
                Finding(f"{eager} images after the first are not lazy-loaded", Severity.LOW, "images"),
            )
