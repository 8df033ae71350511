"""
Resource fetcher: retrieves the target page and its auxiliary resources.

Every request passes the destination policy, holds an outbound budget slot,
carries its own timeout and is capped in size. Redirects are followed by hand
so each hop is re-validated.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional, Tuple
from urllib.parse import urljoin, urlparse
from urllib.robotparser import RobotFileParser

import aiohttp
import structlog

from sitegrade.adapters.result import AdapterResult, Unavailable, Value
from sitegrade.config.config import FetcherConfig
from sitegrade.crawler.destination_policy import DestinationPolicy, PolicyResolver
from sitegrade.crawler.rate_limiter import OutboundBudget
from sitegrade.exceptions import BudgetExhaustedError, FetchError, FetchErrorKind, ForbiddenDestinationError
from sitegrade.units import Duration

logger = structlog.get_logger(__name__)

REDIRECT_STATUSES = frozenset({301, 302, 303, 307, 308})
CHUNK_SIZE = 64 * 1024

AUXILIARY_ROBOTS = "robots"
AUXILIARY_SITEMAP = "sitemap"
AUXILIARY_LLMS = "llms"
AUXILIARY_RESOURCES = (AUXILIARY_ROBOTS, AUXILIARY_SITEMAP, AUXILIARY_LLMS)


@dataclass(frozen=True)
class FetchedResource:
    """A completed HTTP exchange, whatever its status code."""

    url: str
    final_url: str
    status: int
    headers: Mapping[str, str]
    body: bytes
    redirect_hops: int
    elapsed: Duration

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    @property
    def encoding(self) -> str:
        content_type = self.headers.get("content-type", "")
        for part in content_type.split(";"):
            key, _, value = part.strip().partition("=")
            if key.lower() == "charset" and value:
                return value.strip("\"'")
        return "utf-8"

    @property
    def text(self) -> str:
        try:
            return self.body.decode(self.encoding, errors="replace")
        except LookupError:
            return self.body.decode("utf-8", errors="replace")


@dataclass(frozen=True)
class FetchedPage:
    """The primary document plus auxiliary resources of its origin."""

    document: FetchedResource
    auxiliary: Mapping[str, AdapterResult[FetchedResource]] = field(default_factory=dict)


def origin_of(url: str) -> str:
    parsed = urlparse(url)
    return f"{parsed.scheme}://{parsed.netloc}"


def sitemap_from_robots(robots: FetchedResource) -> Optional[str]:
    """Return the first ``Sitemap:`` directive of a robots.txt as an absolute URL, if any."""
    if not robots.ok:
        return None
    parser = RobotFileParser()
    parser.parse(robots.text.splitlines())
    sitemaps = parser.site_maps()
    return urljoin(robots.final_url, sitemaps[0]) if sitemaps else None


class HttpClient:
    """Policy-enforcing HTTP client for one grading run."""

    def __init__(self, config: FetcherConfig, budget: OutboundBudget, policy: DestinationPolicy) -> None:
        self.config = config
        self.budget = budget
        self.policy = policy
        self.session: Optional[aiohttp.ClientSession] = None
        self._is_initialized = False

    async def initialize(self) -> None:
        """Initialize the HTTP client session."""
        if self.session is None:
            connector = aiohttp.TCPConnector(
                resolver=PolicyResolver(self.policy),
                use_dns_cache=False,
                enable_cleanup_closed=True,
            )
            self.session = aiohttp.ClientSession(
                connector=connector,
                timeout=aiohttp.ClientTimeout(total=None),
                headers={"User-Agent": self.config.user_agent},
            )
            self._is_initialized = True
            logger.debug("HTTP client session initialized")

    async def close(self) -> None:
        """Close the HTTP client and clean up resources."""
        if self.session:
            await self.session.close()
            self.session = None
        self._is_initialized = False

    async def __aenter__(self) -> HttpClient:
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def fetch(self, url: str, *, max_bytes: Optional[int] = None) -> FetchedResource:
        """
        Fetch ``url``, following at most ``max_redirects`` validated hops.

        Args:
            url: Absolute http(s) URL
            max_bytes: Byte cap (None = use config default)

        Returns:
            FetchedResource for the final hop, whatever its status

        Raises:
            FetchError: on policy violation, timeout, oversize body or transport failure
        """
        if not self._is_initialized:
            raise RuntimeError("HTTP client not initialized. Call initialize() first.")

        limit = max_bytes or self.config.max_bytes
        started = time.perf_counter()
        current = url
        hops = 0

        while True:
            status, headers, body = await self._fetch_hop(url, current, limit)

            location = headers.get("location", "").strip()
            if status in REDIRECT_STATUSES and location:
                if hops >= self.config.max_redirects:
                    raise FetchError(
                        FetchErrorKind.UNREACHABLE, url, f"more than {self.config.max_redirects} redirects"
                    )
                current = urljoin(current, location)
                hops += 1
                logger.debug("Following redirect", url=url, hop=hops, location=current)
                continue

            elapsed = Duration.from_seconds(time.perf_counter() - started)
            return FetchedResource(
                url=url,
                final_url=current,
                status=status,
                headers=headers,
                body=body,
                redirect_hops=hops,
                elapsed=elapsed,
            )

    async def _fetch_hop(self, original: str, url: str, limit: int) -> Tuple[int, Dict[str, str], bytes]:
        """One hop under one timeout: DNS pre-check, budget slot and request."""
        try:
            async with asyncio.timeout(self.config.timeout_seconds):
                await self._check_destination(original, url)
                return await self._request_once(original, url, limit)
        except TimeoutError as e:
            raise FetchError(
                FetchErrorKind.TIMEOUT, original, f"no response within {self.config.timeout_seconds}s"
            ) from e

    async def _check_destination(self, original: str, current: str) -> None:
        try:
            await self.policy.check_url(current)
        except ForbiddenDestinationError as e:
            logger.warning("Destination rejected by policy", url=current, reason=e.reason)
            raise FetchError(FetchErrorKind.FORBIDDEN, original, e.reason) from e
        except OSError as e:
            raise FetchError(FetchErrorKind.UNREACHABLE, original, f"DNS lookup failed: {e}") from e

    async def _request_once(self, original: str, url: str, limit: int) -> Tuple[int, Dict[str, str], bytes]:
        assert self.session is not None
        try:
            async with self.budget.slot(url):
                async with self.session.get(url, allow_redirects=False) as response:
                    headers = {key.lower(): value for key, value in response.headers.items()}
                    declared = headers.get("content-length", "")
                    if declared.isdigit() and int(declared) > limit:
                        raise FetchError(
                            FetchErrorKind.TOO_LARGE, original, f"Content-Length {declared} exceeds {limit} bytes"
                        )
                    body = bytearray()
                    async for chunk in response.content.iter_chunked(CHUNK_SIZE):
                        body.extend(chunk)
                        if len(body) > limit:
                            raise FetchError(FetchErrorKind.TOO_LARGE, original, f"body exceeds {limit} bytes")
                    return response.status, headers, bytes(body)
        except BudgetExhaustedError as e:
            raise FetchError(FetchErrorKind.UNREACHABLE, original, str(e)) from e
        except aiohttp.ClientConnectorError as e:
            if isinstance(e.os_error, ForbiddenDestinationError):
                raise FetchError(FetchErrorKind.FORBIDDEN, original, e.os_error.reason) from e
            raise FetchError(FetchErrorKind.UNREACHABLE, original, str(e)) from e
        except aiohttp.ClientError as e:
            raise FetchError(FetchErrorKind.UNREACHABLE, original, str(e)) from e

    async def fetch_page(self, url: str) -> FetchedPage:
        """Fetch the primary document and, if enabled, its auxiliary resources."""
        document = await self.fetch(url)
        if document.status >= 400:
            raise FetchError(FetchErrorKind.UNREACHABLE, url, f"HTTP {document.status}")

        logger.info(
            "Fetched target document",
            url=url,
            final_url=document.final_url,
            status=document.status,
            bytes=len(document.body),
            redirect_hops=document.redirect_hops,
            elapsed_ms=round(document.elapsed.milliseconds, 1),
        )

        if not self.config.fetch_auxiliary:
            skipped = Unavailable("auxiliary fetching disabled")
            return FetchedPage(document=document, auxiliary={name: skipped for name in AUXILIARY_RESOURCES})

        return FetchedPage(document=document, auxiliary=await self._fetch_auxiliary(document.final_url))

    async def _fetch_auxiliary(self, page_url: str) -> Dict[str, AdapterResult[FetchedResource]]:
        origin = origin_of(page_url)
        robots, llms = await asyncio.gather(
            self._fetch_optional(f"{origin}/robots.txt"),
            self._fetch_optional(f"{origin}/llms.txt"),
        )

        sitemap_url = f"{origin}/sitemap.xml"
        if isinstance(robots, Value):
            sitemap_url = sitemap_from_robots(robots.value) or sitemap_url
        sitemap = await self._fetch_optional(sitemap_url)

        return {AUXILIARY_ROBOTS: robots, AUXILIARY_LLMS: llms, AUXILIARY_SITEMAP: sitemap}

    async def _fetch_optional(self, url: str) -> AdapterResult[FetchedResource]:
        try:
            return Value(await self.fetch(url))
        except FetchError as e:
            logger.info("Auxiliary resource unavailable", url=url, kind=e.kind.value, error=e.message)
            return Unavailable(f"{e.kind.value}: {e.message}")
