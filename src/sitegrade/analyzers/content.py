"""
Content quality analyzer.

Scores only the main-content blocks of the bundle: depth, heading structure,
readability, how much of the page is boilerplate and image alt coverage.
"""

from __future__ import annotations

from typing import Any, Mapping

import textstat

from sitegrade.adapters.result import AdapterResult
from sitegrade.analyzers.base import BaseAnalyzer, ScoreCard, linear_credit
from sitegrade.protocols import FactorId, Finding, Severity, SignalBundle

TARGET_WORDS = 600
THIN_CONTENT_WORDS = 300
WORDS_PER_SUBHEADING = 350
MIN_READABILITY_WORDS = 30
# Flesch reading ease: full credit at or above 60, none at or below 30.
READABILITY_RANGE = (60.0, 30.0)
MIN_MAIN_SHARE = 0.5

# textstat's Flesch formula is calibrated for English.
READABILITY_LANGUAGE = "en"


def is_english(bundle: SignalBundle) -> bool:
    """Detected language wins; the declared ``lang`` only decides when detection is inconclusive."""
    if bundle.detected_language is not None:
        return bundle.detected_language == READABILITY_LANGUAGE
    declared = (bundle.declared_language or "").lower()
    return declared.split("-")[0] == READABILITY_LANGUAGE


class ContentAnalyzer(BaseAnalyzer):
    factor = FactorId.CONTENT

    def score_into(self, card: ScoreCard, bundle: SignalBundle, inputs: Mapping[str, AdapterResult[Any]]) -> None:
        words = bundle.word_count

        card.check(
            20,
            words / TARGET_WORDS,
            Finding(
                f"Thin main content: {words} words",
                Severity.HIGH if words < THIN_CONTENT_WORDS else Severity.LOW,
                "text_blocks",
            ),
        )

        self._check_headings(card, bundle, words)
        self._check_readability(card, bundle, words)
        self._check_boilerplate(card, bundle, words)
        self._check_images(card, bundle)

    def _check_headings(self, card: ScoreCard, bundle: SignalBundle, words: int) -> None:
        h1_indexes = [i for i, heading in enumerate(bundle.headings) if heading.level == 1]
        if not h1_indexes:
            card.require(10, False, "Page has no H1 heading", Severity.HIGH, "headings")
        else:
            card.require(
                10,
                len(h1_indexes) == 1,
                f"Page has {len(h1_indexes)} H1 headings",
                Severity.MEDIUM,
                f"headings[{h1_indexes[1] if len(h1_indexes) > 1 else h1_indexes[0]}]",
            )

        skip_index = next(
            (
                i
                for i in range(1, len(bundle.headings))
                if bundle.headings[i].level - bundle.headings[i - 1].level > 1
            ),
            None,
        )
        if bundle.headings:
            card.require(
                6,
                skip_index is None,
                "Heading hierarchy skips a level",
                Severity.MEDIUM,
                f"headings[{skip_index}]",
            )

        if words >= THIN_CONTENT_WORDS:
            subheadings = sum(1 for heading in bundle.headings if heading.level in (2, 3))
            expected = max(1, words // WORDS_PER_SUBHEADING)
            card.check(
                6,
                subheadings / expected,
                Finding(
                    f"{subheadings} subheadings for {words} words of content; expected at least {expected}",
                    Severity.LOW,
                    "headings",
                ),
            )

    def _check_readability(self, card: ScoreCard, bundle: SignalBundle, words: int) -> None:
        if words < MIN_READABILITY_WORDS or not is_english(bundle):
            return
        ease = textstat.flesch_reading_ease(bundle.main_text)
        full_at, zero_at = READABILITY_RANGE
        card.check(
            8,
            linear_credit(ease, full_at, zero_at),
            Finding(f"Main content is hard to read (Flesch reading ease {ease:.0f})", Severity.MEDIUM, "text_blocks"),
        )

    def _check_boilerplate(self, card: ScoreCard, bundle: SignalBundle, words: int) -> None:
        total = sum(len(block.text.split()) for block in bundle.text_blocks)
        if not total:
            return
        share = words / total
        card.check(
            6,
            share / MIN_MAIN_SHARE,
            Finding(
                f"Only {share:.0%} of the page text is main content",
                Severity.LOW,
                "text_blocks",
            ),
        )

    def _check_images(self, card: ScoreCard, bundle: SignalBundle) -> None:
        if not bundle.images:
            return
        missing = [i for i, image in enumerate(bundle.images) if not image.has_alt]
        card.check(
            6,
            1.0 - len(missing) / len(bundle.images),
            Finding(
                f"{len(missing)} of {len(bundle.images)} images have no alt attribute",
                Severity.MEDIUM,
                f"images[{missing[0]}]" if missing else "images",
            ),
        )
