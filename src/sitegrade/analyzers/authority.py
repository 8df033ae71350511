"""
Authority and trust analyzer.

Trust is read from the page itself: how it links, whether it shows who is
behind it and when it was written. Host names are only compared for equality,
so the same page scores the same on any domain.
"""

from __future__ import annotations

from typing import Any, Iterable, Mapping
from urllib.parse import urlparse

from sitegrade.adapters.result import AdapterResult
from sitegrade.analyzers.base import BaseAnalyzer, ScoreCard
from sitegrade.protocols import FactorId, Finding, LinkRef, Severity, SignalBundle

MIN_INTERNAL_LINKS = 3
GENERIC_ANCHORS = frozenset(
    {"click here", "here", "read more", "more", "learn more", "link", "this", "this page", "go", "continue"}
)

TRUST_PAGES = {
    "about": ("about", "our-story", "who-we-are", "team"),
    "contact": ("contact", "support"),
    "privacy": ("privacy", "terms", "legal", "policy"),
}

AUTHOR_TYPES = frozenset({"Person"})
DATE_FIELDS = ("datePublished", "dateModified")
DATE_METADATA = ("article:published_time", "article:modified_time")


def _is_generic(link: LinkRef) -> bool:
    text = link.anchor_text.strip().lower()
    return not text or text in GENERIC_ANCHORS or text.startswith(("http://", "https://", "www."))


def discovered_trust_pages(links: Iterable[LinkRef]) -> set[str]:
    found: set[str] = set()
    for link in links:
        haystack = f"{urlparse(link.href).path} {link.anchor_text}".lower()
        for page, keywords in TRUST_PAGES.items():
            if any(keyword in haystack for keyword in keywords):
                found.add(page)
    return found


class AuthorityAnalyzer(BaseAnalyzer):
    factor = FactorId.AUTHORITY

    def score_into(self, card: ScoreCard, bundle: SignalBundle, inputs: Mapping[str, AdapterResult[Any]]) -> None:
        internal = bundle.internal_links
        external = bundle.external_links

        card.check(
            10,
            len(internal) / MIN_INTERNAL_LINKS,
            Finding(f"Only {len(internal)} internal links", Severity.LOW, "links"),
        )

        card.require(8, bool(external), "No outbound links to cite sources", Severity.LOW, "links")
        if external:
            secure = sum(1 for link in external if link.href.lower().startswith("https://"))
            card.check(
                6,
                secure / len(external),
                Finding(f"{len(external) - secure} outbound links use plain HTTP", Severity.LOW, "links"),
            )
            card.require(
                4,
                any(not link.nofollow for link in external),
                "Every outbound link is nofollow",
                Severity.LOW,
                "links",
            )

        if bundle.links:
            generic = [i for i, link in enumerate(bundle.links) if _is_generic(link)]
            card.check(
                8,
                1.0 - len(generic) / len(bundle.links),
                Finding(
                    f"{len(generic)} links have non-descriptive anchor text",
                    Severity.LOW,
                    f"links[{generic[0]}]" if generic else "links",
                ),
            )

        self._check_trust_pages(card, bundle)
        self._check_attribution(card, bundle)

        card.require(10, bundle.is_https, "Page is not served over HTTPS", Severity.HIGH, "final_url")

    def _check_trust_pages(self, card: ScoreCard, bundle: SignalBundle) -> None:
        found = discovered_trust_pages(bundle.internal_links)
        if bundle.element_counts.get("a:mailto", 0) or bundle.element_counts.get("a:tel", 0):
            found.add("contact")
        missing = [page for page in TRUST_PAGES if page not in found]
        card.check(
            15,
            len(found) / len(TRUST_PAGES),
            Finding(f"No discoverable {', '.join(missing)} page", Severity.MEDIUM, "links"),
        )

    def _check_attribution(self, card: ScoreCard, bundle: SignalBundle) -> None:
        entries = bundle.structured_data
        has_author = (
            bool(bundle.metadata.get("author"))
            or bool(bundle.metadata.get("rel_author"))
            or any(entry.fields.get("author") for entry in entries)
            or any(schema_type in AUTHOR_TYPES for entry in entries for schema_type in entry.types)
        )
        card.require(8, has_author, "No author attribution", Severity.LOW, "metadata.author")

        has_date = (
            any(bundle.metadata.get(key) for key in DATE_METADATA)
            or bundle.element_counts.get("time", 0) > 0
            or any(entry.fields.get(name) for entry in entries for name in DATE_FIELDS)
        )
        card.require(5, has_date, "No publication or update date", Severity.LOW, "metadata.article:published_time")
