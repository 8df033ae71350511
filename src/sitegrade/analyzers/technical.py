"""
Technical SEO analyzer.

Crawlability and document hygiene: title and description, canonical,
indexability, robots.txt and sitemap, transport, redirects, doctype, charset,
language declaration and markup validity.
"""

from __future__ import annotations

from typing import Any, Mapping

from sitegrade.adapters.result import AdapterResult, ValidatorOutcome, Value
from sitegrade.analyzers.base import BaseAnalyzer, ScoreCard, robots_rules
from sitegrade.crawler.http_client import FetchedResource
from sitegrade.protocols import FactorId, Finding, Severity, SignalBundle

TITLE_LENGTH = (10, 70)
DESCRIPTION_LENGTH = (50, 170)
# Validation errors at which the validity check earns no credit.
MAX_VALIDATION_ERRORS = 20
SITEMAP_MARKERS = (b"<urlset", b"<sitemapindex")


class TechnicalAnalyzer(BaseAnalyzer):
    factor = FactorId.TECHNICAL
    required_inputs = ("validator", "robots", "sitemap")

    def score_into(self, card: ScoreCard, bundle: SignalBundle, inputs: Mapping[str, AdapterResult[Any]]) -> None:
        self._check_head(card, bundle)
        self._check_indexability(card, bundle)
        self._check_transport(card, bundle)

        robots = inputs.get("robots")
        if isinstance(robots, Value):
            self._check_robots(card, bundle, robots.value)

        sitemap = inputs.get("sitemap")
        if isinstance(sitemap, Value):
            self._check_sitemap(card, sitemap.value)

        validator = inputs.get("validator")
        if isinstance(validator, Value):
            self._check_validity(card, validator.value)

    def _check_head(self, card: ScoreCard, bundle: SignalBundle) -> None:
        title = bundle.metadata.get("title", "")
        card.require(10, bool(title), "Page has no <title>", Severity.HIGH, "metadata.title")
        if title:
            low, high = TITLE_LENGTH
            card.require(
                4,
                low <= len(title) <= high,
                f"Title length {len(title)} is outside {low}-{high} characters",
                Severity.LOW,
                "metadata.title",
            )

        description = bundle.metadata.get("description", "")
        card.require(8, bool(description), "Page has no meta description", Severity.MEDIUM, "metadata.description")
        if description:
            low, high = DESCRIPTION_LENGTH
            card.require(
                3,
                low <= len(description) <= high,
                f"Meta description length {len(description)} is outside {low}-{high} characters",
                Severity.LOW,
                "metadata.description",
            )

        card.require(6, "canonical" in bundle.metadata, "No canonical link", Severity.MEDIUM, "metadata.canonical")
        card.require(3, bundle.has_doctype, "Document has no doctype", Severity.LOW, "document")

        has_charset = "charset" in bundle.metadata or "charset=" in bundle.headers.get("content-type", "").lower()
        card.require(3, has_charset, "No character encoding declared", Severity.LOW, "metadata.charset")
        card.require(
            4, bool(bundle.declared_language), "No lang attribute on <html>", Severity.LOW, "document.lang"
        )

    def _check_indexability(self, card: ScoreCard, bundle: SignalBundle) -> None:
        meta_robots = bundle.metadata.get("robots", "").lower()
        header_robots = bundle.headers.get("x-robots-tag", "").lower()
        if "noindex" in header_robots:
            evidence = "headers.x-robots-tag"
        else:
            evidence = "metadata.robots"
        card.require(
            15,
            "noindex" not in meta_robots and "noindex" not in header_robots,
            "Page is marked noindex",
            Severity.CRITICAL,
            evidence,
        )

    def _check_transport(self, card: ScoreCard, bundle: SignalBundle) -> None:
        card.require(10, bundle.is_https, "Page is not served over HTTPS", Severity.HIGH, "final_url")

        hops = bundle.redirect_hops
        credit = 1.0 if hops <= 1 else 0.5 if hops <= 3 else 0.0
        card.check(4, credit, Finding(f"Page is reached through {hops} redirects", Severity.LOW, "redirect_hops"))

    def _check_robots(self, card: ScoreCard, bundle: SignalBundle, robots: FetchedResource) -> None:
        card.require(
            5,
            robots.ok,
            f"robots.txt not found (HTTP {robots.status})",
            Severity.LOW,
            "resource:robots.txt",
        )
        card.require(
            12,
            robots_rules(robots).can_fetch("*", bundle.final_url),
            "robots.txt disallows crawling this page",
            Severity.CRITICAL,
            "resource:robots.txt",
        )

    def _check_sitemap(self, card: ScoreCard, sitemap: FetchedResource) -> None:
        head = sitemap.body[:4096].lower()
        is_sitemap = sitemap.ok and any(marker in head for marker in SITEMAP_MARKERS)
        if sitemap.ok:
            message = f"{sitemap.final_url} is not an XML sitemap"
        else:
            message = f"No XML sitemap found (HTTP {sitemap.status})"
        card.require(5, is_sitemap, message, Severity.MEDIUM, "resource:sitemap")

    def _check_validity(self, card: ScoreCard, outcome: ValidatorOutcome) -> None:
        if outcome.is_valid:
            card.check(8, 1.0)
            return
        count = len(outcome.errors)
        credit = max(0.0, 1.0 - count / MAX_VALIDATION_ERRORS) if count else 0.5
        first = f": {outcome.errors[0].message}" if outcome.errors else ""
        card.check(
            8,
            credit,
            Finding(f"{count} HTML validation errors{first}", Severity.MEDIUM, "adapter:validator"),
        )
