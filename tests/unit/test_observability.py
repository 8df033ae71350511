"""
Tests for logging configuration and metric registration.
"""

import json
import logging

import pytest
import structlog

from sitegrade.config.config import MonitoringConfig
from sitegrade.observability import configure_logging
from sitegrade.observability.metrics import METRICS, Counter, Histogram


@pytest.fixture
def restore_logging():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    for handler in root.handlers:
        handler.close()
    root.handlers = handlers
    root.setLevel(level)
    structlog.reset_defaults()


@pytest.mark.unit
class TestConfigureLogging:
    def test_file_output_is_json_with_correlation_id(self, tmp_path, restore_logging):
        log_file = tmp_path / "logs" / "run.log"
        configure_logging(MonitoringConfig(log_level="DEBUG", log_file=str(log_file)))

        with structlog.contextvars.bound_contextvars(correlation_id="abc-123"):
            structlog.get_logger("sitegrade.test").info("Grading run started", url="https://example.com/")
        for handler in logging.getLogger().handlers:
            handler.flush()

        records = [json.loads(line) for line in log_file.read_text().splitlines()]
        started = next(record for record in records if record["event"] == "Grading run started")
        assert started["correlation_id"] == "abc-123"
        assert started["url"] == "https://example.com/"
        assert started["level"] == "info"

    def test_level_is_applied(self, restore_logging):
        configure_logging(MonitoringConfig(log_level="warning"))

        assert logging.getLogger().level == logging.WARNING


@pytest.mark.unit
class TestMetrics:
    def test_registering_twice_reuses_the_collector(self):
        again = Counter("sitegrade_grading_runs_total", "Grading runs by outcome", ["outcome"])

        assert again is METRICS["grading_runs"]

    def test_every_metric_is_registered(self):
        assert set(METRICS) == {"grading_runs", "adapter_results", "fetch_latency", "factor_score"}
        assert Histogram("sitegrade_fetch_latency_seconds", "Latency of target page fetches") is METRICS[
            "fetch_latency"
        ]
