"""
Tests for AuthorityAnalyzer.
"""

import pytest

from sitegrade.analyzers import AuthorityAnalyzer, default_analyzers
from sitegrade.analyzers.authority import discovered_trust_pages
from sitegrade.protocols import LinkRef, Severity


def by_message(score):
    return {finding.message: finding for finding in score.findings}


@pytest.mark.unit
class TestAuthorityAnalyzer:
    def test_trustworthy_page_scores_full_marks(self, fixture_bundle):
        score = AuthorityAnalyzer().analyze(fixture_bundle)

        assert score.score == 100.0
        assert score.findings == ()

    def test_scores_do_not_depend_on_domain(self, make_bundle, fixture_html, full_inputs):
        for analyzer in default_analyzers():
            on_com = analyzer.analyze(make_bundle(fixture_html, url="https://example.com/"), full_inputs)
            on_law = analyzer.analyze(make_bundle(fixture_html, url="https://example.law/"), full_inputs)

            assert on_com.score == on_law.score, analyzer.factor
            assert on_com.findings == on_law.findings, analyzer.factor

    def test_bare_page(self, make_bundle):
        bundle = make_bundle("<html><body><p>Hello</p></body></html>", url="http://x.test/")
        score = AuthorityAnalyzer().analyze(bundle)
        findings = by_message(score)

        assert "Only 0 internal links" in findings
        assert "No outbound links to cite sources" in findings
        assert findings["No discoverable about, contact, privacy page"].severity is Severity.MEDIUM
        assert "No author attribution" in findings
        assert "No publication or update date" in findings
        assert findings["Page is not served over HTTPS"].severity is Severity.HIGH

    def test_generic_anchor_text(self, make_bundle):
        html = '<a href="/about">About us</a><a href="/more">click here</a><a href="https://other.test/">read more</a>'
        score = AuthorityAnalyzer().analyze(make_bundle(html))

        finding = by_message(score)["2 links have non-descriptive anchor text"]
        assert finding.evidence == "links[1]"

    def test_plain_http_outbound_links(self, make_bundle):
        html = '<a href="http://old.test/report">Annual report</a><a href="https://new.test/">New site</a>'
        score = AuthorityAnalyzer().analyze(make_bundle(html))

        assert "1 outbound links use plain HTTP" in by_message(score)

    def test_structured_data_attribution(self, make_bundle):
        html = (
            '<script type="application/ld+json">'
            '{"@type": "Article", "author": {"@type": "Person", "name": "J"}, "dateModified": "2024-05-01"}'
            "</script>"
        )
        findings = by_message(AuthorityAnalyzer().analyze(make_bundle(html)))

        assert "No author attribution" not in findings
        assert "No publication or update date" not in findings

    def test_phone_link_counts_as_contact(self, make_bundle):
        html = '<a href="/about">About</a><a href="/privacy">Privacy</a><a href="tel:+15551234">Call us</a>'
        findings = by_message(AuthorityAnalyzer().analyze(make_bundle(html)))

        assert not any(message.startswith("No discoverable") for message in findings)

    def test_nofollow_only_outbound_links(self, make_bundle):
        html = (
            '<html><body><main><p>Read the <a href="https://www.nist.gov/pml/owm" rel="nofollow">'
            "weights and measures guidance</a> before testing.</p></main></body></html>"
        )
        score = AuthorityAnalyzer().analyze(make_bundle(html))

        finding = by_message(score)["Every outbound link is nofollow"]
        assert finding.severity is Severity.LOW


@pytest.mark.unit
def test_discovered_trust_pages_reads_paths_and_anchor_text():
    links = [
        LinkRef("https://example.com/company/our-story", "Our story", True),
        LinkRef("https://example.com/help", "Customer support", True),
    ]

    assert discovered_trust_pages(links) == {"about", "contact"}
