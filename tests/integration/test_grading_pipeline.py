"""
End-to-end grading runs against a mocked web.

Every HTTP exchange (the target page, robots.txt, llms.txt, the sitemap, the
markup validator and the performance service) is served by aioresponses, and
DNS answers come from a fixed resolver.
"""

import asyncio
import re

import pytest
from aioresponses import aioresponses

from sitegrade.adapters import PerformanceAdapter
from sitegrade.config import Config
from sitegrade.crawler import DestinationPolicy
from sitegrade.exceptions import ConfigError, FetchError, FetchErrorKind
from sitegrade.observability.metrics import METRICS
from sitegrade.pipeline import GradingPipeline
from sitegrade.protocols import Confidence, FactorId, Severity
from sitegrade.scoring import StatusBand

from tests.helpers import (
    histogram_observes,
    metric_delta,
    pagespeed_payload,
    static_resolver,
    validator_payload,
)

VALIDATOR_URL = re.compile(r"^https://validator\.w3\.org/nu/.*$")
PERFORMANCE_URL = re.compile(r"^https://www\.googleapis\.com/pagespeedonline/v5/runPagespeed.*$")
HTML_HEADERS = {"Content-Type": "text/html; charset=utf-8"}
ROBOTS = "User-agent: *\nAllow: /\n"
LLMS = "# Acme Workshop Clamps\n> Cast iron clamps for small workshops.\n"
SITEMAP = '<?xml version="1.0"?><urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9"></urlset>'


def serve_site(m, html, origin="https://example.com", *, repeat=False):
    m.get(f"{origin}/", body=html, headers=HTML_HEADERS, repeat=repeat)
    m.get(f"{origin}/robots.txt", body=ROBOTS, repeat=repeat)
    m.get(f"{origin}/llms.txt", body=LLMS, repeat=repeat)
    m.get(f"{origin}/sitemap.xml", body=SITEMAP, repeat=repeat)


def serve_services(m, *, repeat=False, validator=None, performance=None):
    m.post(VALIDATOR_URL, payload=validator or validator_payload(), repeat=repeat)
    m.get(PERFORMANCE_URL, payload=performance or pagespeed_payload(), repeat=repeat)


@pytest.fixture
def pipeline(config, budget, policy, fixed_clock):
    return GradingPipeline(config, budget=budget, policy=policy, clock=fixed_clock)


@pytest.fixture
def page_html(fixture_html):
    return fixture_html.decode("utf-8")


@pytest.mark.integration
class TestGradingPipeline:
    @pytest.mark.asyncio
    async def test_full_run(self, pipeline, page_html, fixed_clock):
        with aioresponses() as m:
            serve_site(m, page_html)
            serve_services(m)
            with metric_delta(METRICS["grading_runs"].labels(outcome="completed")):
                with histogram_observes(METRICS["fetch_latency"]):
                    report = await pipeline.grade_website("https://example.com/")

        assert report.url == "https://example.com/"
        assert report.timestamp == fixed_clock()
        assert report.confidence is Confidence.FULL
        assert [score.factor for score in report.factors] == list(FactorId)
        assert all(score.confidence is Confidence.FULL for score in report.factors)

        performance = report.factor(FactorId.PERFORMANCE)
        assert performance.score >= 90
        assert performance.findings == ()
        assert report.factor(FactorId.SCHEMA).findings == ()
        assert report.factor(FactorId.TECHNICAL).score == 100.0
        assert report.status_band in (StatusBand.EXCELLENT, StatusBand.GOOD)
        assert 0.0 <= report.composite_score <= 100.0

        data = report.to_dict()
        assert data["timestamp"] == "2025-01-15T12:00:00+00:00"
        assert len(data["factors"]) == 7

    @pytest.mark.asyncio
    async def test_same_page_scores_the_same_on_any_domain(self, pipeline, page_html):
        with aioresponses() as m:
            serve_site(m, page_html, "https://example.com", repeat=True)
            serve_site(m, page_html, "https://example.law", repeat=True)
            serve_services(m, repeat=True)
            on_com, on_law = await asyncio.gather(
                pipeline.grade_website("https://example.com/"),
                pipeline.grade_website("https://example.law/"),
            )

        assert on_com.composite_score == on_law.composite_score
        assert [s.score for s in on_com.factors] == [s.score for s in on_law.factors]

    @pytest.mark.parametrize(
        "url",
        [
            "http://127.0.0.1/",
            "http://169.254.169.254/latest/meta-data/",
            "http://localhost:8080/",
            "file:///etc/passwd",
        ],
    )
    @pytest.mark.asyncio
    async def test_forbidden_targets_are_never_contacted(self, pipeline, url):
        with aioresponses() as m:
            with metric_delta(METRICS["grading_runs"].labels(outcome="fetch_forbidden")):
                with pytest.raises(FetchError) as exc_info:
                    await pipeline.grade_website(url)
            assert not m.requests

        assert exc_info.value.kind is FetchErrorKind.FORBIDDEN

    @pytest.mark.asyncio
    async def test_host_resolving_to_private_address_is_forbidden(self, config, budget, fixed_clock):
        policy = DestinationPolicy(resolver=static_resolver({"intranet.example": ["10.0.0.5"]}))
        pipeline = GradingPipeline(config, budget=budget, policy=policy, clock=fixed_clock)
        with aioresponses() as m:
            with pytest.raises(FetchError) as exc_info:
                await pipeline.grade_website("https://intranet.example/")
            assert not m.requests

        assert exc_info.value.kind is FetchErrorKind.FORBIDDEN

    @pytest.mark.asyncio
    async def test_missing_page_is_unreachable(self, pipeline):
        with aioresponses() as m:
            m.get("https://example.com/gone", status=404)
            with metric_delta(METRICS["grading_runs"].labels(outcome="fetch_unreachable")):
                with pytest.raises(FetchError) as exc_info:
                    await pipeline.grade_website("https://example.com/gone")

        assert exc_info.value.kind is FetchErrorKind.UNREACHABLE

    @pytest.mark.asyncio
    async def test_validator_timeout_degrades_technical_only(self, pipeline, page_html):
        with aioresponses() as m:
            serve_site(m, page_html)
            m.post(VALIDATOR_URL, exception=TimeoutError())
            m.get(PERFORMANCE_URL, payload=pagespeed_payload())
            report = await pipeline.grade_website("https://example.com/")

        technical = report.factor(FactorId.TECHNICAL)
        assert technical.confidence is Confidence.DEGRADED
        assert report.confidence is Confidence.DEGRADED
        note = next(f for f in technical.findings if f.evidence == "adapter:validator")
        assert note.severity is Severity.INFO
        assert report.factor(FactorId.CONTENT).confidence is Confidence.FULL

    @pytest.mark.asyncio
    async def test_performance_outage_falls_back_to_page_weight(self, pipeline, page_html):
        with aioresponses() as m:
            serve_site(m, page_html)
            m.post(VALIDATOR_URL, payload=validator_payload())
            m.get(PERFORMANCE_URL, status=503)
            report = await pipeline.grade_website("https://example.com/")

        assert report.factor(FactorId.PERFORMANCE).confidence is Confidence.UNAVAILABLE_INPUTS
        assert report.factor(FactorId.MOBILE).confidence is Confidence.DEGRADED
        assert report.confidence is Confidence.DEGRADED

    @pytest.mark.asyncio
    async def test_missing_auxiliary_resources_degrade(self, pipeline, page_html):
        with aioresponses() as m:
            m.get("https://example.com/", body=page_html, headers=HTML_HEADERS)
            m.get("https://example.com/robots.txt", exception=TimeoutError())
            m.get("https://example.com/llms.txt", status=404)
            m.get("https://example.com/sitemap.xml", status=404)
            serve_services(m)
            report = await pipeline.grade_website("https://example.com/")

        assert report.factor(FactorId.TECHNICAL).confidence is Confidence.DEGRADED
        assert report.factor(FactorId.AI_READINESS).confidence is Confidence.DEGRADED
        messages = [f.message for f in report.factor(FactorId.AI_READINESS).findings]
        assert "No llms.txt at the site root" in messages

    @pytest.mark.asyncio
    async def test_invalid_weights_abort_before_any_request(self, budget, policy):
        config = Config.model_validate({"scoring": {"weights": {"technical": 0.5, "content": 0.5}}})
        pipeline = GradingPipeline(config, budget=budget, policy=policy)

        with aioresponses() as m:
            with metric_delta(METRICS["grading_runs"].labels(outcome="config_error")):
                with pytest.raises(ConfigError):
                    await pipeline.grade_website("https://example.com/")
            assert not m.requests

    @pytest.mark.asyncio
    async def test_cancellation_leaves_no_report(self, pipeline, page_html, monkeypatch):
        started = asyncio.Event()

        async def hang(self, url):
            started.set()
            await asyncio.sleep(3600)

        monkeypatch.setattr(PerformanceAdapter, "_call", hang)
        with aioresponses() as m:
            serve_site(m, page_html)
            m.post(VALIDATOR_URL, payload=validator_payload())
            task = asyncio.create_task(pipeline.grade_website("https://example.com/"))
            await started.wait()
            with metric_delta(METRICS["grading_runs"].labels(outcome="cancelled")):
                task.cancel()
                with pytest.raises(asyncio.CancelledError):
                    await task
