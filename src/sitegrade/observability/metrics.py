"""
Defines Prometheus metrics for grading runs.
"""

from __future__ import annotations

from typing import Any, Dict

from prometheus_client import REGISTRY as _PROM_REGISTRY
from prometheus_client import Counter as _OrigCounter
from prometheus_client import Histogram as _OrigHistogram

# ---------------------------------------------------------------------------
# Duplicate-safe Prometheus metric wrappers
# ---------------------------------------------------------------------------
# Re-importing this module (test reloads, multiple pipelines in one process)
# must reuse already registered collectors instead of raising.


def _duplicate_safe_factory(metric_cls):
    """Return a factory that reuses an existing collector if already present."""

    def _factory(name: str, documentation: str, *args, **kwargs):
        existing = _PROM_REGISTRY._names_to_collectors.get(name)
        if existing is not None:
            return existing

        try:
            return metric_cls(name, documentation, *args, **kwargs)
        except ValueError:
            # Registration lost the race - fall back to the now-existing collector.
            return _PROM_REGISTRY._names_to_collectors[name]

    return _factory


Counter = _duplicate_safe_factory(_OrigCounter)
Histogram = _duplicate_safe_factory(_OrigHistogram)


def _create_metrics() -> Dict[str, Any]:
    return {
        "grading_runs": Counter(
            "sitegrade_grading_runs_total",
            "Grading runs by outcome",
            ["outcome"],
        ),
        "adapter_results": Counter(
            "sitegrade_adapter_results_total",
            "External signal adapter outcomes",
            ["adapter", "status"],
        ),
        "fetch_latency": Histogram(
            "sitegrade_fetch_latency_seconds",
            "Latency of target page fetches",
            buckets=(0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
        ),
        "factor_score": Histogram(
            "sitegrade_factor_score",
            "Distribution of factor scores",
            ["factor"],
            buckets=(10, 25, 50, 75, 90, 100),
        ),
    }


METRICS: Dict[str, Any] = _create_metrics()
