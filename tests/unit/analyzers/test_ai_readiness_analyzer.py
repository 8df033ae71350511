"""
Tests for AIReadinessAnalyzer.
"""

import pytest

from sitegrade.adapters import Value
from sitegrade.analyzers import AIReadinessAnalyzer
from sitegrade.analyzers.ai_readiness import AI_CRAWLERS
from sitegrade.protocols import Confidence, Severity

DIV_SOUP = (
    "<html><body>"
    + "".join(f"<div><div>Block {i} of plain words inside nested divs here.</div></div>" for i in range(10))
    + "</body></html>"
)


def by_message(score):
    return {finding.message: finding for finding in score.findings}


@pytest.mark.unit
class TestAIReadinessAnalyzer:
    def test_answer_ready_page_scores_full_marks(self, fixture_bundle, full_inputs):
        score = AIReadinessAnalyzer().analyze(fixture_bundle, full_inputs)

        assert score.score == 100.0
        assert score.findings == ()
        assert score.confidence is Confidence.FULL

    def test_robots_blocking_ai_crawlers(self, fixture_bundle, make_inputs, make_resource):
        robots = make_resource(body=b"User-agent: GPTBot\nDisallow: /\n\nUser-agent: CCBot\nDisallow: /\n")
        score = AIReadinessAnalyzer().analyze(fixture_bundle, make_inputs(robots=Value(robots)))

        finding = by_message(score)["robots.txt blocks AI crawlers: GPTBot, CCBot"]
        assert finding.severity is Severity.MEDIUM
        assert finding.evidence == "resource:robots.txt"
        assert score.score == pytest.approx(100 * (58 - 4) / 58, abs=0.01)

    def test_robots_forbidden_blocks_every_crawler(self, fixture_bundle, make_inputs, make_resource):
        score = AIReadinessAnalyzer().analyze(fixture_bundle, make_inputs(robots=Value(make_resource(status=403))))

        assert f"robots.txt blocks AI crawlers: {', '.join(AI_CRAWLERS)}" in by_message(score)

    def test_missing_llms_txt(self, fixture_bundle, make_inputs, make_resource):
        llms = make_resource("https://example.com/llms.txt", status=404)
        score = AIReadinessAnalyzer().analyze(fixture_bundle, make_inputs(llms=Value(llms)))

        finding = by_message(score)["No llms.txt at the site root"]
        assert finding.severity is Severity.LOW
        assert finding.evidence == "resource:llms.txt"

    def test_unavailable_robots_degrades(self, fixture_bundle, make_inputs, timed_out):
        score = AIReadinessAnalyzer().analyze(fixture_bundle, make_inputs(robots=timed_out))

        assert score.confidence is Confidence.DEGRADED
        assert score.score == 100.0
        (note,) = score.findings
        assert note.severity is Severity.INFO
        assert note.evidence == "resource:robots.txt"

    def test_unstructured_page(self, make_bundle, full_inputs):
        score = AIReadinessAnalyzer().analyze(make_bundle(DIV_SOUP), full_inputs)
        findings = by_message(score)

        assert "No clear statement of what the page is about near the top of the content" in findings
        assert "No question-style headings followed by answers" in findings
        assert "No lists or tables for extractable facts" in findings
        assert "Low semantic markup density (0 semantic elements, 20 divs)" in findings
        assert "No structured data for machines to read" in findings
        assert "No meta description to summarize the page" in findings
        assert score.score < 30

    def test_question_heading_without_answer_earns_no_credit(self, make_bundle, full_inputs):
        body = "".join(f"<p>Paragraph {i} explains how the clamps are cast and finished.</p>" for i in range(5))
        html = f"<html><body><main>{body}</main><footer><h2>Why choose us?</h2></footer></body></html>"
        score = AIReadinessAnalyzer().analyze(make_bundle(html), full_inputs)

        finding = by_message(score)["No question-style headings followed by answers"]
        assert finding.evidence == "headings[0]"

    def test_partially_answered_questions_earn_partial_credit(self, make_bundle, full_inputs):
        html = (
            "<html><body><main>"
            "<h2>What size clamp do I need?</h2>"
            "<p>Pick a clamp a little wider than the thickest joint you plan to glue.</p>"
            "<h2>Do you ship abroad?</h2>"
            "<h2>How are clamps tested?</h2>"
            "<p>Every clamp is loaded to twice its rating before it leaves the bench.</p>"
            "</main></body></html>"
        )
        score = AIReadinessAnalyzer().analyze(make_bundle(html), full_inputs)

        finding = by_message(score)["1 of 3 question headings are not followed by an answer"]
        assert finding.severity is Severity.LOW
        assert finding.evidence == "headings[1]"
