"""
AI-readiness analyzer.

How easily answer engines and LLM crawlers can read, quote and attribute the
page: a clear entity statement up front, question-led sections, extractable
lists and tables, semantic markup, structured data, and crawler access.
"""

from __future__ import annotations

import re
from typing import Any, Mapping

from sitegrade.adapters.result import AdapterResult, Value
from sitegrade.analyzers.base import BaseAnalyzer, ScoreCard, robots_rules
from sitegrade.crawler.http_client import FetchedResource
from sitegrade.protocols import FactorId, Finding, Heading, Severity, SignalBundle

AI_CRAWLERS = ("GPTBot", "ClaudeBot", "PerplexityBot", "Google-Extended", "CCBot")

DEFINITION_PATTERN = re.compile(r"\b(is|are|refers to|means|defined as|provides|offers)\b\s+(an?|the)?\b", re.I)
LEAD_BLOCKS = 3

SEMANTIC_TAGS = ("main", "article", "section", "nav", "header", "footer", "aside", "figure", "time", "address")
STRUCTURE_TAGS = ("ul", "ol", "table", "dl")
# Semantic elements per <div> at which the density check earns full credit.
SEMANTIC_DENSITY_TARGET = 0.2


def has_answer(question: Heading, bundle: SignalBundle) -> bool:
    """True when a main-content block sits between ``question`` and the next heading."""
    following = [heading.position for heading in bundle.headings if heading.position > question.position]
    section_end = min(following, default=None)
    return any(
        block.position > question.position and (section_end is None or block.position < section_end)
        for block in bundle.main_blocks
    )


class AIReadinessAnalyzer(BaseAnalyzer):
    factor = FactorId.AI_READINESS
    required_inputs = ("robots", "llms")

    def score_into(self, card: ScoreCard, bundle: SignalBundle, inputs: Mapping[str, AdapterResult[Any]]) -> None:
        lead = bundle.main_blocks[:LEAD_BLOCKS]
        card.require(
            10,
            any(DEFINITION_PATTERN.search(block.text) for block in lead),
            "No clear statement of what the page is about near the top of the content",
            Severity.MEDIUM,
            "text_blocks[0]" if lead else "text_blocks",
        )

        questions = [heading for heading in bundle.headings if heading.text.rstrip().endswith("?")]
        unanswered = [heading for heading in questions if not has_answer(heading, bundle)]
        answered = len(questions) - len(unanswered)
        if answered == 0:
            message = "No question-style headings followed by answers"
        else:
            message = f"{len(unanswered)} of {len(questions)} question headings are not followed by an answer"
        evidence = f"headings[{bundle.headings.index(unanswered[0])}]" if unanswered else "headings"
        card.check(
            8,
            answered / len(questions) if questions else 0.0,
            Finding(message, Severity.LOW, evidence),
        )

        counts = bundle.element_counts
        card.require(
            6,
            any(counts.get(tag, 0) for tag in STRUCTURE_TAGS),
            "No lists or tables for extractable facts",
            Severity.LOW,
            "element_counts",
        )

        semantic = sum(counts.get(tag, 0) for tag in SEMANTIC_TAGS)
        divs = counts.get("div", 0)
        density = semantic / divs if divs else (1.0 if semantic else 0.0)
        card.check(
            8,
            density / SEMANTIC_DENSITY_TARGET,
            Finding(
                f"Low semantic markup density ({semantic} semantic elements, {divs} divs)",
                Severity.MEDIUM,
                "element_counts",
            ),
        )

        card.require(
            8,
            bool(bundle.structured_data),
            "No structured data for machines to read",
            Severity.MEDIUM,
            "structured_data",
        )
        card.require(
            4,
            bool(bundle.metadata.get("description")),
            "No meta description to summarize the page",
            Severity.LOW,
            "metadata.description",
        )

        robots = inputs.get("robots")
        if isinstance(robots, Value):
            self._check_crawler_access(card, bundle, robots.value)

        llms = inputs.get("llms")
        if isinstance(llms, Value):
            present = llms.value.ok and bool(llms.value.body.strip())
            card.require(4, present, "No llms.txt at the site root", Severity.LOW, "resource:llms.txt")

    def _check_crawler_access(self, card: ScoreCard, bundle: SignalBundle, robots: FetchedResource) -> None:
        rules = robots_rules(robots)
        blocked = [agent for agent in AI_CRAWLERS if not rules.can_fetch(agent, bundle.final_url)]
        card.check(
            10,
            1.0 - len(blocked) / len(AI_CRAWLERS),
            Finding(
                f"robots.txt blocks AI crawlers: {', '.join(blocked)}",
                Severity.MEDIUM,
                "resource:robots.txt",
            ),
        )
