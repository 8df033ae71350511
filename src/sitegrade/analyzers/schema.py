"""
Structured data analyzer.

Malformed JSON-LD blocks, required properties of well-known schema.org types,
value formats (absolute URLs, ISO-8601 dates) and whether the site identifies
itself with an Organization, Person or WebSite entity.
"""

from __future__ import annotations

import re
from typing import Any, List, Mapping, Tuple
from urllib.parse import urlparse

from sitegrade.adapters.result import AdapterResult
from sitegrade.analyzers.base import BaseAnalyzer, ScoreCard
from sitegrade.protocols import FactorId, Finding, Severity, SignalBundle, StructuredDataEntry

ARTICLE_PROPERTIES = ("headline", "author", "datePublished")

REQUIRED_PROPERTIES: Mapping[str, Tuple[str, ...]] = {
    "Organization": ("name", "url"),
    "Corporation": ("name", "url"),
    "Person": ("name",),
    "WebSite": ("name", "url"),
    "WebPage": ("name",),
    "Article": ARTICLE_PROPERTIES,
    "NewsArticle": ("headline", "datePublished"),
    "BlogPosting": ARTICLE_PROPERTIES,
    "Product": ("name", "offers"),
    "LocalBusiness": ("name", "address"),
    "FAQPage": ("mainEntity",),
    "BreadcrumbList": ("itemListElement",),
    "Event": ("name", "startDate", "location"),
    "Recipe": ("name", "recipeIngredient"),
}

IDENTITY_TYPES = frozenset({"Organization", "Corporation", "LocalBusiness", "Person", "WebSite"})

URL_FIELDS = ("url", "logo", "image", "sameAs")
DATE_FIELDS = ("datePublished", "dateModified", "dateCreated", "startDate", "endDate")
ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}([T ]\d{2}:\d{2}(:\d{2}(\.\d+)?)?(Z|[+-]\d{2}:?\d{2})?)?$")


def _is_empty(value: Any) -> bool:
    if isinstance(value, str):
        return not value.strip()
    return value in (None, [], {})


def missing_properties(entry: StructuredDataEntry) -> Tuple[str, List[str]]:
    """Return the first known type of ``entry`` and its missing required properties."""
    for schema_type in entry.types:
        required = REQUIRED_PROPERTIES.get(schema_type)
        if required is not None:
            return schema_type, [name for name in required if _is_empty(entry.fields.get(name))]
    return "", []


def _strings(value: Any) -> List[str]:
    values = value if isinstance(value, list) else [value]
    return [item.strip() for item in values if isinstance(item, str) and item.strip()]


def format_problems(entry: StructuredDataEntry) -> List[str]:
    problems: List[str] = []
    for name in URL_FIELDS:
        for value in _strings(entry.fields.get(name)):
            parsed = urlparse(value)
            if parsed.scheme not in ("http", "https") or not parsed.netloc:
                problems.append(f"{name} should be an absolute URL: {value}")
    for name in DATE_FIELDS:
        for value in _strings(entry.fields.get(name)):
            if not ISO_DATE.match(value):
                problems.append(f"{name} should use an ISO-8601 date: {value}")
    return problems


class SchemaAnalyzer(BaseAnalyzer):
    factor = FactorId.SCHEMA

    def score_into(self, card: ScoreCard, bundle: SignalBundle, inputs: Mapping[str, AdapterResult[Any]]) -> None:
        entries = bundle.structured_data
        warnings = bundle.warnings

        if not entries and not warnings:
            card.require(30, False, "No structured data found", Severity.HIGH, "structured_data")
            return

        card.require(30, bool(entries), "No usable structured data entries", Severity.HIGH, "structured_data")

        # Each malformed block costs a third of the well-formedness credit.
        for warning in warnings:
            card.note(Finding(warning.message, Severity.HIGH, warning.evidence))
        card.check(25, 1.0 - len(warnings) / 3)

        known = [(entry, *missing_properties(entry)) for entry in entries]
        known = [(entry, schema_type, missing) for entry, schema_type, missing in known if schema_type]
        if known:
            for entry, schema_type, missing in known:
                if missing:
                    card.note(
                        Finding(
                            f"{schema_type} is missing required properties: {', '.join(missing)}",
                            Severity.MEDIUM,
                            entry.evidence,
                        )
                    )
            complete = sum(1 for _, _, missing in known if not missing)
            card.check(30, complete / len(known))

        problems = [(entry, problem) for entry in entries for problem in format_problems(entry)]
        checked_values = sum(
            len(_strings(entry.fields.get(name))) for entry in entries for name in (*URL_FIELDS, *DATE_FIELDS)
        )
        if checked_values:
            for entry, problem in problems:
                card.note(Finding(problem, Severity.LOW, entry.evidence))
            card.check(10, 1.0 - len(problems) / checked_values)

        if entries:
            card.require(
                15,
                any(schema_type in IDENTITY_TYPES for entry in entries for schema_type in entry.types),
                "No site identity markup (Organization, Person or WebSite)",
                Severity.MEDIUM,
                "structured_data",
            )
