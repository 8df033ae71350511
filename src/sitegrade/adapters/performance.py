"""
Performance adapter for PageSpeed-Insights-shaped APIs.

Lab values come from ``lighthouseResult.audits.<id>.numericValue`` and field
values from ``loadingExperience.metrics.<METRIC>.percentile``. Both services
report timings in milliseconds; every value is wrapped in a ``Duration`` the
moment it is read, so nothing downstream handles a bare number.
"""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional

from sitegrade.adapters.base import PayloadError, SignalAdapter
from sitegrade.adapters.result import PerformanceMetrics
from sitegrade.units import Duration

# metric key -> lighthouse audit id (numericValue in ms)
LAB_TIMING_AUDITS = {
    "lcp": "largest-contentful-paint",
    "fcp": "first-contentful-paint",
    "tbt": "total-blocking-time",
    "ttfb": "server-response-time",
    "speed_index": "speed-index",
}

# metric key -> CrUX metric name (percentile in ms)
FIELD_TIMING_METRICS = {
    "lcp": "LARGEST_CONTENTFUL_PAINT_MS",
    "fcp": "FIRST_CONTENTFUL_PAINT_MS",
    "inp": "INTERACTION_TO_NEXT_PAINT",
    "ttfb": "EXPERIMENTAL_TIME_TO_FIRST_BYTE",
}

MOBILE_AUDITS = ("viewport", "content-width", "tap-targets", "font-size")


def _number(value: Any, where: str) -> Optional[float]:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise PayloadError(f"{where} is not numeric")
    return float(value)


def parse_performance_payload(payload: Any) -> PerformanceMetrics:
    if not isinstance(payload, dict):
        raise PayloadError("performance response is not an object")

    lighthouse = payload.get("lighthouseResult") or {}
    audits: Mapping[str, Any] = lighthouse.get("audits") or {}
    field_metrics: Mapping[str, Any] = (payload.get("loadingExperience") or {}).get("metrics") or {}

    timings: Dict[str, Duration] = {}
    sources = set()

    for key, audit_id in LAB_TIMING_AUDITS.items():
        value = _number((audits.get(audit_id) or {}).get("numericValue"), f"audit {audit_id}")
        if value is not None:
            timings[key] = Duration.from_milliseconds(value)
            sources.add("lab")

    for key, metric in FIELD_TIMING_METRICS.items():
        value = _number((field_metrics.get(metric) or {}).get("percentile"), f"field metric {metric}")
        if value is not None:
            timings[key] = Duration.from_milliseconds(value)
            sources.add("field")

    layout_shift = _number((audits.get("cumulative-layout-shift") or {}).get("numericValue"), "CLS audit")
    field_cls = _number((field_metrics.get("CUMULATIVE_LAYOUT_SHIFT_SCORE") or {}).get("percentile"), "field CLS")
    if field_cls is not None:
        # CrUX reports CLS multiplied by 100.
        layout_shift = field_cls / 100.0

    mobile_audits: Dict[str, bool] = {}
    for audit_id in MOBILE_AUDITS:
        score = (audits.get(audit_id) or {}).get("score")
        if isinstance(score, (int, float)) and not isinstance(score, bool):
            mobile_audits[audit_id] = score >= 0.9

    if not timings and layout_shift is None:
        raise PayloadError("performance response carries no metrics")

    source = "field+lab" if len(sources) > 1 else (sources.pop() if sources else "lab")
    return PerformanceMetrics(timings=timings, layout_shift=layout_shift, source=source, mobile_audits=mobile_audits)


class PerformanceAdapter(SignalAdapter[PerformanceMetrics]):
    """Fetches lab and field performance measurements for a URL."""

    name = "performance"

    def __init__(
        self,
        session,
        budget,
        *,
        endpoint: str,
        timeout_seconds: float,
        strategy: str = "mobile",
        api_key: Optional[str] = None,
        enabled: bool = True,
    ) -> None:
        super().__init__(session, budget, timeout_seconds=timeout_seconds, enabled=enabled)
        self.endpoint = endpoint
        self.strategy = strategy
        self.api_key = api_key

    async def _call(self, url: str) -> PerformanceMetrics:
        params = {"url": url, "strategy": self.strategy, "category": "performance"}
        if self.api_key:
            params["key"] = self.api_key
        payload = await self._request_json("GET", self.endpoint, params=params)
        return parse_performance_payload(payload)
