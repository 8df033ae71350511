"""
Structured data parser - JSON-LD and Microdata.

Every embedded block is parsed on its own. A malformed block becomes an
``ExtractionWarning`` and never stops the remaining blocks from being read.
"""

from __future__ import annotations

import json
from typing import Any, Dict, List, Tuple

import structlog
from bs4 import BeautifulSoup, Tag

from sitegrade.protocols import ExtractionWarning, StructuredDataEntry

logger = structlog.get_logger(__name__)

JSON_LD_TYPE = "application/ld+json"


def normalize_type(value: Any) -> str:
    """Reduce ``https://schema.org/Article`` style identifiers to ``Article``."""
    cleaned = str(value or "").strip().rstrip("/")
    if "#" in cleaned:
        cleaned = cleaned.rsplit("#", 1)[-1]
    if "/" in cleaned:
        cleaned = cleaned.rsplit("/", 1)[-1]
    if ":" in cleaned:
        cleaned = cleaned.rsplit(":", 1)[-1]
    return cleaned.strip()


def _types_of(node: Dict[str, Any]) -> Tuple[str, ...]:
    raw = node.get("@type")
    values = raw if isinstance(raw, list) else [raw]
    return tuple(t for t in (normalize_type(v) for v in values if v) if t)


def _flatten(data: Any) -> List[Dict[str, Any]]:
    """Flatten arrays and ``@graph`` containers into individual nodes."""
    nodes: List[Dict[str, Any]] = []
    stack = [data]
    while stack:
        node = stack.pop(0)
        if isinstance(node, list):
            stack[0:0] = node
        elif isinstance(node, dict):
            graph = node.get("@graph")
            if "@type" in node or graph is None:
                nodes.append(node)
            if isinstance(graph, list):
                stack[0:0] = graph
            elif isinstance(graph, dict):
                stack.insert(0, graph)
    return nodes


class StructuredDataParser:
    """Parses JSON-LD scripts and top-level microdata items from a document."""

    def parse(self, soup: BeautifulSoup) -> Tuple[List[StructuredDataEntry], List[ExtractionWarning]]:
        entries: List[StructuredDataEntry] = []
        warnings: List[ExtractionWarning] = []

        self._parse_json_ld(soup, entries, warnings)
        self._parse_microdata(soup, entries)

        return entries, warnings

    def _parse_json_ld(
        self,
        soup: BeautifulSoup,
        entries: List[StructuredDataEntry],
        warnings: List[ExtractionWarning],
    ) -> None:
        scripts = soup.find_all("script", attrs={"type": lambda t: t and t.strip().lower() == JSON_LD_TYPE})

        for block_index, script in enumerate(scripts):
            evidence = f"json_ld_blocks[{block_index}]"
            raw = script.string if script.string is not None else script.get_text()
            raw = (raw or "").strip()
            if not raw:
                warnings.append(ExtractionWarning("Empty JSON-LD block", evidence))
                continue

            try:
                data = json.loads(raw)
            except json.JSONDecodeError as e:
                logger.debug("Invalid JSON-LD block", block=block_index, error=str(e))
                warnings.append(ExtractionWarning(f"Malformed JSON-LD block: {e.msg} at line {e.lineno}", evidence))
                continue

            nodes = _flatten(data)
            if not nodes:
                warnings.append(ExtractionWarning("JSON-LD block contains no objects", evidence))
                continue

            for node in nodes:
                types = _types_of(node)
                if not types:
                    warnings.append(ExtractionWarning("JSON-LD object has no @type", evidence))
                    continue
                fields = {key: value for key, value in node.items() if key not in ("@context", "@type", "@graph")}
                entries.append(
                    StructuredDataEntry(index=len(entries), syntax="json-ld", types=types, fields=fields)
                )

    def _parse_microdata(self, soup: BeautifulSoup, entries: List[StructuredDataEntry]) -> None:
        for item in soup.find_all(attrs={"itemscope": True}):
            # Nested items are properties of their parent, not entries of their own.
            if item.find_parent(attrs={"itemscope": True}) is not None:
                continue
            item_types = tuple(normalize_type(t) for t in str(item.get("itemtype", "")).split() if t)
            if not item_types:
                continue

            properties: Dict[str, Any] = {}
            for prop_elem in item.find_all(attrs={"itemprop": True}):
                owner = prop_elem.find_parent(attrs={"itemscope": True})
                if owner is not item:
                    continue
                prop_name = str(prop_elem.get("itemprop"))
                value = self._microdata_value(prop_elem)
                if prop_name and value:
                    properties[prop_name] = value

            entries.append(
                StructuredDataEntry(index=len(entries), syntax="microdata", types=item_types, fields=properties)
            )

    @staticmethod
    def _microdata_value(prop_elem: Tag) -> Any:
        if prop_elem.has_attr("itemscope"):
            return {"@type": normalize_type(prop_elem.get("itemtype", ""))}
        if prop_elem.name == "meta":
            return prop_elem.get("content", "")
        if prop_elem.name == "time":
            return prop_elem.get("datetime", prop_elem.get_text().strip())
        if prop_elem.name in ("img", "source"):
            return prop_elem.get("src", "")
        if prop_elem.name in ("a", "link"):
            return prop_elem.get("href", prop_elem.get_text().strip())
        return " ".join(prop_elem.get_text().split())
