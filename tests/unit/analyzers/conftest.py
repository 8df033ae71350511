"""Fixtures shared by the analyzer tests."""

import pytest

from sitegrade.adapters import Unavailable, ValidatorOutcome, Value, parse_performance_payload

from tests.helpers import pagespeed_payload

ALLOW_ALL_ROBOTS = b"User-agent: *\nAllow: /\n"
SITEMAP = (
    b'<?xml version="1.0" encoding="UTF-8"?>\n'
    b'<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9"></urlset>'
)
LLMS = b"# Acme Workshop Clamps\n> Cast iron clamps for small workshops.\n"


@pytest.fixture
def make_inputs(make_resource):
    """Factory for a complete input mapping; keyword overrides replace entries."""

    def _make(**overrides):
        inputs = {
            "validator": Value(ValidatorOutcome(is_valid=True)),
            "performance": Value(parse_performance_payload(pagespeed_payload())),
            "robots": Value(make_resource("https://example.com/robots.txt", ALLOW_ALL_ROBOTS)),
            "sitemap": Value(make_resource("https://example.com/sitemap.xml", SITEMAP)),
            "llms": Value(make_resource("https://example.com/llms.txt", LLMS)),
        }
        inputs.update(overrides)
        return inputs

    return _make


@pytest.fixture
def full_inputs(make_inputs):
    return make_inputs()


@pytest.fixture
def timed_out():
    return Unavailable("timed out after 10000 ms")
