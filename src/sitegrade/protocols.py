"""
Core dataclasses and contracts for SiteGrade.

This module defines the data flowing through a grading run:

- ``SignalBundle``: the immutable extraction of one page, built once by the
  content extractor and read by every analyzer.
- ``Finding`` / ``FactorScore``: what each factor analyzer produces.

Evidence pointers are plain strings that address a part of the bundle
(``headings[0]``, ``metadata.description``, ``structured_data[1]``) or an
external input (``adapter:validator``, ``resource:robots.txt``).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Optional, Sequence, Tuple

# ============================================================================
# Enums
# ============================================================================


class FactorId(Enum):
    """The seven independently scored factors, in canonical report order."""

    TECHNICAL = "technical"
    CONTENT = "content"
    AI_READINESS = "ai_readiness"
    SCHEMA = "schema"
    PERFORMANCE = "performance"
    MOBILE = "mobile"
    AUTHORITY = "authority"


class Severity(Enum):
    """Finding severity. Higher rank sorts first."""

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    INFO = "info"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {
    Severity.CRITICAL: 4,
    Severity.HIGH: 3,
    Severity.MEDIUM: 2,
    Severity.LOW: 1,
    Severity.INFO: 0,
}


class Confidence(Enum):
    """How completely a score's inputs were available."""

    FULL = "full"
    DEGRADED = "degraded"
    UNAVAILABLE_INPUTS = "unavailable-inputs"


class BlockSource(Enum):
    """Where a text block was found on the page."""

    MAIN = "main"
    BOILERPLATE = "boilerplate"


class ContentMode(Enum):
    """Which text-block collection policy the extractor applied."""

    CONTAINER = "container"
    FALLBACK = "fallback"


# ============================================================================
# Signal bundle
# ============================================================================


@dataclass(frozen=True, slots=True)
class TextBlock:
    text: str
    source: BlockSource
    tag: str
    digest: str
    # Document-order index of the source element, comparable with Heading.position
    position: int = 0


@dataclass(frozen=True, slots=True)
class Heading:
    level: int
    text: str
    position: int = 0


@dataclass(frozen=True, slots=True)
class LinkRef:
    href: str
    anchor_text: str
    internal: bool
    rel: Tuple[str, ...] = ()

    @property
    def nofollow(self) -> bool:
        return "nofollow" in self.rel


@dataclass(frozen=True, slots=True)
class ImageRef:
    src: str
    has_alt: bool
    has_dimensions: bool
    lazy: bool
    responsive: bool


@dataclass(frozen=True, slots=True)
class ScriptRef:
    src: Optional[str]
    in_head: bool
    is_async: bool
    is_deferred: bool

    @property
    def render_blocking(self) -> bool:
        return self.in_head and self.src is not None and not (self.is_async or self.is_deferred)


@dataclass(frozen=True, slots=True)
class StructuredDataEntry:
    """One structured-data item: a JSON-LD node or a microdata item."""

    index: int
    syntax: str
    types: Tuple[str, ...]
    fields: Mapping[str, Any]

    @property
    def evidence(self) -> str:
        return f"structured_data[{self.index}]"


@dataclass(frozen=True, slots=True)
class ExtractionWarning:
    """A recoverable extraction problem, reported as a finding downstream."""

    message: str
    evidence: str


@dataclass(frozen=True)
class SignalBundle:
    """Immutable snapshot of everything extracted from one target page."""

    url: str
    final_url: str
    status: int
    headers: Mapping[str, str]
    redirect_hops: int
    text_blocks: Tuple[TextBlock, ...]
    headings: Tuple[Heading, ...]
    metadata: Mapping[str, str]
    structured_data: Tuple[StructuredDataEntry, ...]
    links: Tuple[LinkRef, ...]
    images: Tuple[ImageRef, ...]
    scripts: Tuple[ScriptRef, ...]
    raw_bytes: int
    declared_language: Optional[str]
    detected_language: Optional[str]
    content_mode: ContentMode
    element_counts: Mapping[str, int]
    stylesheet_count: int = 0
    has_doctype: bool = False
    warnings: Tuple[ExtractionWarning, ...] = ()

    def __post_init__(self) -> None:
        for name in ("headers", "metadata", "element_counts"):
            value = getattr(self, name)
            if not isinstance(value, MappingProxyType):
                object.__setattr__(self, name, MappingProxyType(dict(value)))

    @property
    def main_blocks(self) -> Tuple[TextBlock, ...]:
        return tuple(block for block in self.text_blocks if block.source is BlockSource.MAIN)

    @property
    def main_text(self) -> str:
        return "\n".join(block.text for block in self.main_blocks)

    @property
    def word_count(self) -> int:
        return sum(len(block.text.split()) for block in self.main_blocks)

    @property
    def internal_links(self) -> Tuple[LinkRef, ...]:
        return tuple(link for link in self.links if link.internal)

    @property
    def external_links(self) -> Tuple[LinkRef, ...]:
        return tuple(link for link in self.links if not link.internal)

    @property
    def is_https(self) -> bool:
        return self.final_url.lower().startswith("https://")


# ============================================================================
# Scores
# ============================================================================


@dataclass(frozen=True, slots=True)
class Finding:
    message: str
    severity: Severity
    evidence: str

    def to_dict(self) -> dict[str, str]:
        return {"message": self.message, "severity": self.severity.value, "evidence": self.evidence}


def sort_findings(findings: Sequence[Finding]) -> Tuple[Finding, ...]:
    """Order findings by severity descending; ties keep insertion order."""
    return tuple(sorted(findings, key=lambda finding: -finding.severity.rank))


@dataclass(frozen=True)
class FactorScore:
    """A bounded per-factor score with supporting findings."""

    factor: FactorId
    score: float
    findings: Tuple[Finding, ...] = field(default_factory=tuple)
    confidence: Confidence = Confidence.FULL

    def __post_init__(self) -> None:
        if not (0.0 <= self.score <= 100.0):
            raise ValueError(f"Factor score must be within [0, 100], got {self.score}")
        object.__setattr__(self, "findings", sort_findings(self.findings))

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.factor.value,
            "score": self.score,
            "confidence": self.confidence.value,
            "findings": [finding.to_dict() for finding in self.findings],
        }
