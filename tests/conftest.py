"""
Shared test configuration for SiteGrade.

Provides fixtures for building signal bundles, fetched resources and a
destination policy whose DNS answers are fixed, so no test touches the
network.
"""

# Standard library imports
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Optional

# Third-party imports
import pytest

# Local imports
from sitegrade.config import Config
from sitegrade.crawler import DestinationPolicy, FetchedResource, OutboundBudget
from sitegrade.extractor import ContentExtractor
from sitegrade.units import Duration

from tests.helpers import public_resolver

FIXED_TIME = datetime(2025, 1, 15, 12, 0, tzinfo=timezone.utc)

# ============================================================================
# Pytest Configuration
# ============================================================================


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests for individual components")
    config.addinivalue_line("markers", "integration: Integration tests across modules")


# ============================================================================
# Network fixtures
# ============================================================================


@pytest.fixture
def policy() -> DestinationPolicy:
    return DestinationPolicy(blocked_hosts=["localhost", "metadata.google.internal"], resolver=public_resolver)


@pytest.fixture
def budget() -> OutboundBudget:
    return OutboundBudget(max_concurrency=8, max_pending=64)


@pytest.fixture
def config() -> Config:
    """Default configuration with short timeouts for tests."""
    return Config.model_validate(
        {
            "fetcher": {"timeout_seconds": 5},
            "adapters": {
                "validator": {"timeout_seconds": 2},
                "performance": {"timeout_seconds": 2},
            },
        }
    )


@pytest.fixture
def fixed_clock():
    return lambda: FIXED_TIME


# ============================================================================
# Content fixtures
# ============================================================================


@pytest.fixture
def test_data_dir() -> Path:
    """Provide test data directory."""
    return Path(__file__).parent / "data"


@pytest.fixture
def fixture_html(test_data_dir) -> bytes:
    return (test_data_dir / "fixture_page.html").read_bytes()


@pytest.fixture
def extractor() -> ContentExtractor:
    return ContentExtractor()


@pytest.fixture
def make_bundle(extractor):
    """Factory turning an HTML string into a SignalBundle."""

    def _make(html, url: str = "https://example.com/", **kwargs):
        body = html.encode("utf-8") if isinstance(html, str) else html
        return extractor.build_bundle(url=url, final_url=kwargs.pop("final_url", url), body=body, **kwargs)

    return _make


@pytest.fixture
def fixture_bundle(make_bundle, fixture_html):
    return make_bundle(fixture_html, headers={"content-type": "text/html; charset=utf-8"})


@pytest.fixture
def make_resource():
    """Factory for completed HTTP exchanges."""

    def _make(
        url: str = "https://example.com/robots.txt",
        body: bytes = b"",
        status: int = 200,
        headers: Optional[Dict[str, str]] = None,
    ) -> FetchedResource:
        return FetchedResource(
            url=url,
            final_url=url,
            status=status,
            headers=headers or {},
            body=body,
            redirect_hops=0,
            elapsed=Duration.from_milliseconds(12),
        )

    return _make

