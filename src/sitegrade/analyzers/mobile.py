"""Mobile friendliness analyzer."""

from __future__ import annotations

import re
from typing import Any, Dict, Mapping

from sitegrade.adapters.result import AdapterResult, Value
from sitegrade.analyzers.base import BaseAnalyzer, ScoreCard
from sitegrade.protocols import FactorId, Finding, Severity, SignalBundle

MOBILE_AUDIT_LABELS = {
    "viewport": "viewport is not configured for mobile",
    "content-width": "content is wider than the screen",
    "tap-targets": "tap targets are too small or too close",
    "font-size": "text is too small to read",
}
MIN_MAXIMUM_SCALE = 2.0
FIXED_WIDTH = re.compile(r"(^|,)\s*width\s*=\s*\d+")


def parse_viewport(content: str) -> Dict[str, str]:
    directives: Dict[str, str] = {}
    for part in re.split(r"[,;]", content):
        key, _, value = part.partition("=")
        if key.strip():
            directives[key.strip().lower()] = value.strip().lower()
    return directives


class MobileAnalyzer(BaseAnalyzer):
    factor = FactorId.MOBILE
    required_inputs = ("performance",)

    def score_into(self, card: ScoreCard, bundle: SignalBundle, inputs: Mapping[str, AdapterResult[Any]]) -> None:
        viewport = bundle.metadata.get("viewport")
        card.require(30, viewport is not None, "No viewport meta tag", Severity.CRITICAL, "metadata.viewport")

        if viewport is not None:
            directives = parse_viewport(viewport)
            card.require(
                10,
                directives.get("width") == "device-width",
                "Viewport width is not set to device-width",
                Severity.HIGH,
                "metadata.viewport",
            )
            card.require(
                10,
                not self._zoom_disabled(directives),
                "Viewport prevents users from zooming",
                Severity.MEDIUM,
                "metadata.viewport",
            )
            card.require(
                8,
                FIXED_WIDTH.search(viewport.lower()) is None,
                "Viewport declares a fixed pixel width",
                Severity.MEDIUM,
                "metadata.viewport",
            )

        if bundle.images:
            responsive = sum(1 for image in bundle.images if image.responsive)
            card.check(
                8,
                responsive / len(bundle.images),
                Finding(
                    f"{len(bundle.images) - responsive} of {len(bundle.images)} images have no srcset or <picture>",
                    Severity.LOW,
                    "images",
                ),
            )

        result = inputs.get("performance")
        if isinstance(result, Value):
            for audit, passed in sorted(result.value.mobile_audits.items()):
                label = MOBILE_AUDIT_LABELS.get(audit, audit)
                card.require(
                    8,
                    passed,
                    f"Mobile audit failed: {label}",
                    Severity.MEDIUM,
                    f"adapter:performance.{audit}",
                )

    @staticmethod
    def _zoom_disabled(directives: Mapping[str, str]) -> bool:
        if directives.get("user-scalable") in ("no", "0"):
            return True
        try:
            return float(directives.get("maximum-scale", "10")) < MIN_MAXIMUM_SCALE
        except ValueError:
            return False
