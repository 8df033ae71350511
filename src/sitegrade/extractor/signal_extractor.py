"""
Content extractor: parses fetched HTML into a ``SignalBundle``.

Text blocks are collected main-content-first. When the page has recognized
content containers (``main``, ``article``, ``[role=main]``), blocks inside
them are main content and everything else is boilerplate. Without containers
the extractor falls back to generic block elements, treats navigation regions
and any text repeated across the page as boilerplate, and keeps one copy of
each distinct block.
"""

from __future__ import annotations

import asyncio
import hashlib
from collections import Counter
from typing import Dict, List, Mapping, Optional, Set, Tuple
from urllib.parse import urljoin, urlparse

import structlog
from bs4 import BeautifulSoup, Doctype, NavigableString, Tag

from sitegrade.config.config import ExtractionSettings
from sitegrade.crawler.http_client import FetchedResource
from sitegrade.extractor.language_detector import LanguageDetector
from sitegrade.extractor.structured_data import StructuredDataParser
from sitegrade.protocols import (
    BlockSource,
    ContentMode,
    Heading,
    ImageRef,
    LinkRef,
    ScriptRef,
    SignalBundle,
    TextBlock,
)

logger = structlog.get_logger(__name__)

# Leaf blocks contribute their full text.
LEAF_BLOCK_TAGS = ("p", "li", "blockquote", "pre", "td", "dd", "dt", "figcaption")
# Wrapper elements contribute only the text sitting directly inside them.
WRAPPER_TAGS = ("div", "section", "main", "article")
BOILERPLATE_REGIONS = ("nav", "header", "footer", "aside")
BOILERPLATE_ROLES = ("navigation", "banner", "contentinfo", "complementary")
REMOVE_TAGS = ("script", "style", "noscript", "template", "svg")
EXECUTABLE_SCRIPT_TYPES = ("", "text/javascript", "application/javascript", "module")


def normalize_text(text: str) -> str:
    return " ".join(text.split())


def text_digest(text: str) -> str:
    """Hash of case-folded, whitespace-collapsed text."""
    return hashlib.sha1(normalize_text(text).casefold().encode("utf-8")).hexdigest()


def _host(url: str) -> str:
    host = (urlparse(url).hostname or "").lower().rstrip(".")
    return host[4:] if host.startswith("www.") else host


class ContentExtractor:
    """Builds one deterministic SignalBundle per fetched document."""

    def __init__(self, settings: Optional[ExtractionSettings] = None) -> None:
        self.settings = settings or ExtractionSettings()
        self.structured_data_parser = StructuredDataParser()
        self.language_detector = LanguageDetector()

    async def extract(self, resource: FetchedResource) -> SignalBundle:
        """Parse ``resource`` off the event loop; BeautifulSoup is CPU-bound."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self.extract_sync, resource)

    def extract_sync(self, resource: FetchedResource) -> SignalBundle:
        return self.build_bundle(
            url=resource.url,
            final_url=resource.final_url,
            status=resource.status,
            headers=resource.headers,
            body=resource.body,
            redirect_hops=resource.redirect_hops,
            encoding=resource.encoding if "charset" in resource.headers.get("content-type", "") else None,
        )

    def build_bundle(
        self,
        *,
        url: str,
        final_url: str,
        body: bytes,
        status: int = 200,
        headers: Optional[Mapping[str, str]] = None,
        redirect_hops: int = 0,
        encoding: Optional[str] = None,
    ) -> SignalBundle:
        soup = BeautifulSoup(body, "html.parser", from_encoding=encoding)

        element_counts: Counter[str] = Counter(tag.name for tag in soup.find_all(True))
        has_doctype = any(isinstance(item, Doctype) for item in soup.contents)

        structured_data, warnings = self.structured_data_parser.parse(soup)
        scripts = self._extract_scripts(soup)
        metadata = self._extract_metadata(soup)
        stylesheet_count = len(soup.find_all("link", rel=lambda r: r and "stylesheet" in r))

        html_tag = soup.find("html")
        declared_language = None
        if isinstance(html_tag, Tag) and html_tag.get("lang"):
            declared_language = str(html_tag.get("lang")).strip() or None

        for tag_name in REMOVE_TAGS:
            for tag in soup.find_all(tag_name):
                tag.decompose()

        links, contact_counts = self._extract_links(soup, final_url)
        element_counts.update(contact_counts)
        images = self._extract_images(soup, final_url)
        positions = {id(tag): index for index, tag in enumerate(soup.find_all(True))}
        headings = self._extract_headings(soup, positions)
        text_blocks, content_mode = self._extract_text_blocks(soup, positions)

        main_text = "\n".join(block.text for block in text_blocks if block.source is BlockSource.MAIN)
        detected_language = self.language_detector.detect(main_text)

        bundle = SignalBundle(
            url=url,
            final_url=final_url,
            status=status,
            headers=dict(headers or {}),
            redirect_hops=redirect_hops,
            text_blocks=tuple(text_blocks),
            headings=tuple(headings),
            metadata=metadata,
            structured_data=tuple(structured_data),
            links=tuple(links),
            images=tuple(images),
            scripts=tuple(scripts),
            raw_bytes=len(body),
            declared_language=declared_language,
            detected_language=detected_language,
            content_mode=content_mode,
            element_counts=dict(element_counts),
            stylesheet_count=stylesheet_count,
            has_doctype=has_doctype,
            warnings=tuple(warnings),
        )

        logger.debug(
            "Signal bundle extracted",
            url=final_url,
            content_mode=content_mode.value,
            text_blocks=len(text_blocks),
            main_blocks=len(bundle.main_blocks),
            headings=len(headings),
            structured_data=len(structured_data),
            warnings=len(warnings),
        )
        return bundle

    # ------------------------------------------------------------------
    # Metadata
    # ------------------------------------------------------------------

    def _extract_metadata(self, soup: BeautifulSoup) -> Dict[str, str]:
        metadata: Dict[str, str] = {}

        if soup.title and soup.title.string is not None:
            title = normalize_text(soup.title.get_text())
            if title:
                metadata["title"] = title

        for tag in soup.find_all("meta"):
            content = tag.get("content")
            if tag.get("charset"):
                metadata.setdefault("charset", str(tag.get("charset")).strip().lower())
                continue
            if tag.get("http-equiv", "").lower() == "content-type" and content and "charset=" in content.lower():
                metadata.setdefault("charset", content.lower().split("charset=", 1)[1].strip())
                continue
            key = tag.get("name") or tag.get("property")
            if not key or content is None:
                continue
            key = str(key).strip().lower()
            if key in ("description", "robots", "viewport", "author", "keywords", "generator") or key.startswith(
                ("og:", "twitter:", "article:")
            ):
                metadata.setdefault(key, normalize_text(str(content)))

        canonical = soup.find("link", rel=lambda r: r and "canonical" in r)
        if isinstance(canonical, Tag) and canonical.get("href"):
            metadata["canonical"] = str(canonical.get("href")).strip()

        author_link = soup.find(["a", "link"], rel=lambda r: r and "author" in r)
        if isinstance(author_link, Tag):
            metadata.setdefault("rel_author", str(author_link.get("href", "")).strip())

        return metadata

    def _extract_scripts(self, soup: BeautifulSoup) -> List[ScriptRef]:
        scripts: List[ScriptRef] = []
        for script in soup.find_all("script"):
            script_type = str(script.get("type", "")).strip().lower()
            if script_type not in EXECUTABLE_SCRIPT_TYPES:
                continue
            src = script.get("src")
            scripts.append(
                ScriptRef(
                    src=str(src).strip() if src else None,
                    in_head=script.find_parent("head") is not None,
                    is_async=script.has_attr("async"),
                    is_deferred=script.has_attr("defer") or script_type == "module",
                )
            )
        return scripts

    # ------------------------------------------------------------------
    # Links, images, headings
    # ------------------------------------------------------------------

    def _extract_links(self, soup: BeautifulSoup, base_url: str) -> Tuple[List[LinkRef], Counter[str]]:
        page_host = _host(base_url)
        links: List[LinkRef] = []
        contact_counts: Counter[str] = Counter()

        for anchor in soup.find_all("a", href=True):
            href = str(anchor.get("href")).strip()
            lowered = href.lower()
            if lowered.startswith("mailto:"):
                contact_counts["a:mailto"] += 1
                continue
            if lowered.startswith("tel:"):
                contact_counts["a:tel"] += 1
                continue
            if not href or href.startswith("#") or lowered.startswith(("javascript:", "data:")):
                continue

            absolute = urljoin(base_url, href)
            if urlparse(absolute).scheme not in ("http", "https"):
                continue

            rel = anchor.get("rel") or ()
            if isinstance(rel, str):
                rel = rel.split()
            anchor_text = normalize_text(anchor.get_text()) or normalize_text(str(anchor.get("aria-label", "")))
            links.append(
                LinkRef(
                    href=absolute,
                    anchor_text=anchor_text,
                    internal=_host(absolute) == page_host,
                    rel=tuple(sorted(str(r).lower() for r in rel)),
                )
            )
        return links, contact_counts

    def _extract_images(self, soup: BeautifulSoup, base_url: str) -> List[ImageRef]:
        images: List[ImageRef] = []
        for img in soup.find_all("img"):
            src = img.get("src") or img.get("data-src") or ""
            images.append(
                ImageRef(
                    src=urljoin(base_url, str(src).strip()) if src else "",
                    has_alt=img.has_attr("alt"),
                    has_dimensions=img.has_attr("width") and img.has_attr("height"),
                    lazy=str(img.get("loading", "")).lower() == "lazy",
                    responsive=img.has_attr("srcset") or img.find_parent("picture") is not None,
                )
            )
        return images

    def _extract_headings(self, soup: BeautifulSoup, positions: Dict[int, int]) -> List[Heading]:
        headings: List[Heading] = []
        for tag in soup.find_all(["h1", "h2", "h3", "h4", "h5", "h6"]):
            text = normalize_text(tag.get_text())
            if text:
                headings.append(Heading(level=int(tag.name[1]), text=text, position=positions[id(tag)]))
        return headings

    # ------------------------------------------------------------------
    # Text blocks
    # ------------------------------------------------------------------

    def _find_containers(self, soup: BeautifulSoup) -> Set[int]:
        container_ids: Set[int] = set()
        for selector in self.settings.content_selectors:
            for element in soup.select(selector):
                container_ids.add(id(element))
        return container_ids

    @staticmethod
    def _block_text(element: Tag) -> str:
        if element.name in WRAPPER_TAGS:
            return normalize_text(
                " ".join(str(child) for child in element.children if isinstance(child, NavigableString))
            )
        return normalize_text(element.get_text(" "))

    @staticmethod
    def _in_boilerplate_region(element: Tag) -> bool:
        for parent in element.parents:
            if not isinstance(parent, Tag):
                continue
            if parent.name in BOILERPLATE_REGIONS:
                return True
            if str(parent.get("role", "")).lower() in BOILERPLATE_ROLES:
                return True
        return False

    @staticmethod
    def _in_container(element: Tag, container_ids: Set[int]) -> bool:
        if id(element) in container_ids:
            return True
        return any(id(parent) in container_ids for parent in element.parents)

    def _candidates(self, soup: BeautifulSoup) -> List[Tuple[Tag, str]]:
        candidates: List[Tuple[Tag, str]] = []
        for element in soup.find_all(list(LEAF_BLOCK_TAGS + WRAPPER_TAGS)):
            # Keep only the innermost leaf block so nested text is counted once.
            if element.name in LEAF_BLOCK_TAGS and element.find(list(LEAF_BLOCK_TAGS)) is not None:
                continue
            text = self._block_text(element)
            if len(text) >= self.settings.min_block_length:
                candidates.append((element, text))
        return candidates

    def _extract_text_blocks(
        self, soup: BeautifulSoup, positions: Dict[int, int]
    ) -> Tuple[List[TextBlock], ContentMode]:
        container_ids = self._find_containers(soup)
        mode = ContentMode.CONTAINER if container_ids else ContentMode.FALLBACK
        candidates = self._candidates(soup)

        repeated: Set[str] = set()
        if mode is ContentMode.FALLBACK:
            counts = Counter(text_digest(text) for _, text in candidates)
            repeated = {digest for digest, count in counts.items() if count > 1}

        blocks: List[TextBlock] = []
        seen: Set[str] = set()
        for element, text in candidates:
            digest = text_digest(text)
            if digest in seen:
                continue
            seen.add(digest)

            if mode is ContentMode.CONTAINER:
                is_main = self._in_container(element, container_ids) and not self._in_boilerplate_region(element)
            else:
                is_main = digest not in repeated and not self._in_boilerplate_region(element)

            blocks.append(
                TextBlock(
                    text=text,
                    source=BlockSource.MAIN if is_main else BlockSource.BOILERPLATE,
                    tag=element.name,
                    digest=digest,
                    position=positions[id(element)],
                )
            )
        return blocks, mode
