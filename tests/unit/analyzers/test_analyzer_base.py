"""
Tests for the weighted checklist shared by every analyzer.
"""

import pytest
from hypothesis import given
from hypothesis import strategies as st

from sitegrade.adapters import Error, Unavailable, Value
from sitegrade.analyzers.base import (
    BaseAnalyzer,
    ScoreCard,
    derive_confidence,
    input_evidence,
    linear_credit,
    robots_rules,
)
from sitegrade.protocols import Confidence, FactorId, Finding, Severity


class RecordingAnalyzer(BaseAnalyzer):
    """Scores one check per available input."""

    factor = FactorId.TECHNICAL
    required_inputs = ("validator", "robots")

    def score_into(self, card, bundle, inputs):
        card.check(10, 1.0)
        for name in self.required_inputs:
            if isinstance(inputs.get(name), Value):
                card.check(10, 0.5)


@pytest.mark.unit
class TestScoreCard:
    def test_score_is_weighted_mean_of_assessed_checks(self):
        card = ScoreCard(FactorId.CONTENT)
        card.check(30, 1.0)
        card.check(10, 0.0)

        assert card.score() == 75.0

    def test_nothing_assessed_scores_zero(self):
        card = ScoreCard(FactorId.CONTENT)

        assert not card.assessed
        assert card.score() == 0.0

    def test_credit_is_clamped(self):
        card = ScoreCard(FactorId.CONTENT)
        card.check(10, 3.0)
        card.check(10, -1.0)

        assert card.score() == 50.0

    def test_findings_only_kept_for_partial_credit(self):
        card = ScoreCard(FactorId.CONTENT)
        card.check(10, 1.0, Finding("never shown", Severity.LOW, "x"))
        card.check(10, 0.9, Finding("shown", Severity.LOW, "y"))
        card.require(10, True, "passed", Severity.HIGH, "z")

        assert [finding.message for finding in card.findings] == ["shown"]

    def test_notes_do_not_affect_score(self):
        card = ScoreCard(FactorId.CONTENT)
        card.check(10, 1.0)
        card.note(Finding("informational", Severity.INFO, "x"))

        assert card.score() == 100.0
        assert len(card.findings) == 1

    def test_score_is_rounded(self):
        card = ScoreCard(FactorId.CONTENT)
        card.check(3, 1.0)
        card.check(3, 1.0)
        card.check(3, 0.0)

        assert card.score() == 66.67

    @given(st.lists(st.tuples(st.floats(0.1, 50), st.floats(0, 1)), min_size=1, max_size=20))
    def test_score_always_in_range(self, checks):
        card = ScoreCard(FactorId.CONTENT)
        for weight, credit in checks:
            card.check(weight, credit)

        assert 0.0 <= card.score() <= 100.0


@pytest.mark.unit
class TestLinearCredit:
    @pytest.mark.parametrize(
        "value, full_at, zero_at, expected",
        [
            (10, 10, 20, 1.0),
            (15, 10, 20, 0.5),
            (25, 10, 20, 0.0),
            (5, 10, 20, 1.0),
            (60, 60, 30, 1.0),
            (45, 60, 30, 0.5),
            (10, 60, 30, 0.0),
            (3, 3, 3, 1.0),
        ],
    )
    def test_both_directions(self, value, full_at, zero_at, expected):
        assert linear_credit(value, full_at, zero_at) == pytest.approx(expected)


@pytest.mark.unit
class TestDeriveConfidence:
    REQUIRED = ("validator", "robots")

    def test_all_values_is_full(self):
        inputs = {"validator": Value(1), "robots": Value(2)}
        assert derive_confidence(inputs, self.REQUIRED, external_primary=False) is Confidence.FULL

    def test_no_required_inputs_is_full(self):
        assert derive_confidence({}, (), external_primary=False) is Confidence.FULL

    @pytest.mark.parametrize("missing", [Unavailable("down"), Error("bad payload")])
    def test_some_missing_is_degraded(self, missing):
        inputs = {"validator": missing, "robots": Value(2)}
        assert derive_confidence(inputs, self.REQUIRED, external_primary=True) is Confidence.DEGRADED

    def test_all_missing_for_secondary_inputs_is_degraded(self):
        assert derive_confidence({}, self.REQUIRED, external_primary=False) is Confidence.DEGRADED

    def test_all_missing_for_primary_inputs_is_unavailable(self):
        inputs = {"performance": Unavailable("timed out")}
        assert derive_confidence(inputs, ("performance",), external_primary=True) is Confidence.UNAVAILABLE_INPUTS


@pytest.mark.unit
class TestBaseAnalyzer:
    def test_missing_inputs_are_noted_and_not_scored(self, fixture_bundle):
        score = RecordingAnalyzer().analyze(
            fixture_bundle, {"validator": Unavailable("timed out after 10000 ms"), "robots": Value(object())}
        )

        assert score.confidence is Confidence.DEGRADED
        assert score.score == pytest.approx(75.0)
        (finding,) = score.findings
        assert finding.severity is Severity.INFO
        assert finding.evidence == "adapter:validator"
        assert finding.message == (
            "Markup validator unavailable (timed out after 10000 ms); dependent checks were not assessed"
        )

    def test_no_inputs_at_all(self, fixture_bundle):
        score = RecordingAnalyzer().analyze(fixture_bundle)

        assert score.score == 100.0
        assert score.confidence is Confidence.DEGRADED
        assert [finding.evidence for finding in score.findings] == ["adapter:validator", "resource:robots.txt"]

    def test_error_inputs_are_described(self, fixture_bundle):
        score = RecordingAnalyzer().analyze(
            fixture_bundle, {"validator": Error("PayloadError: not JSON"), "robots": Value(object())}
        )

        assert score.findings[0].message.startswith("Markup validator error (PayloadError: not JSON)")

    def test_analyze_is_repeatable(self, fixture_bundle):
        analyzer = RecordingAnalyzer()
        inputs = {"validator": Value(object()), "robots": Unavailable("404")}

        assert analyzer.analyze(fixture_bundle, inputs) == analyzer.analyze(fixture_bundle, inputs)


@pytest.mark.unit
def test_input_evidence():
    assert input_evidence("performance") == "adapter:performance"
    assert input_evidence("sitemap") == "resource:sitemap"
    assert input_evidence("llms") == "resource:llms.txt"


@pytest.mark.unit
class TestRobotsRules:
    def test_parsed_rules(self, make_resource):
        rules = robots_rules(make_resource(body=b"User-agent: *\nDisallow: /private/\n"))

        assert rules.can_fetch("*", "https://example.com/")
        assert not rules.can_fetch("*", "https://example.com/private/page")

    @pytest.mark.parametrize("status", [401, 403])
    def test_auth_errors_disallow_everything(self, make_resource, status):
        assert not robots_rules(make_resource(status=status)).can_fetch("*", "https://example.com/")

    @pytest.mark.parametrize("status", [404, 410, 500])
    def test_other_errors_allow_everything(self, make_resource, status):
        assert robots_rules(make_resource(status=status)).can_fetch("GPTBot", "https://example.com/")
