"""
Outbound destination policy.

Only public addresses may be fetched. The policy is checked twice: once
before a request is issued (literal host, then every address DNS returns) and
again at connect time through ``PolicyResolver``, so a name that re-resolves to
a private address between the two steps is still refused.
"""

from __future__ import annotations

import asyncio
import ipaddress
import socket
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional
from urllib.parse import urlparse

import structlog
from aiohttp.abc import AbstractResolver
from aiohttp.resolver import DefaultResolver

from sitegrade.exceptions import ForbiddenDestinationError

logger = structlog.get_logger(__name__)

IPAddress = ipaddress.IPv4Address | ipaddress.IPv6Address
HostResolver = Callable[[str], Awaitable[List[str]]]

ALLOWED_SCHEMES = ("http", "https")
MAX_URL_LENGTH = 2048

# Instance metadata services that are reachable from inside cloud networks.
CLOUD_METADATA_ADDRESSES = frozenset(
    ipaddress.ip_address(address)
    for address in (
        "169.254.169.254",  # AWS, GCP, Azure, OpenStack
        "169.254.170.2",  # AWS ECS task metadata
        "100.100.100.200",  # Alibaba Cloud
        "192.0.0.192",  # Oracle Cloud
        "fd00:ec2::254",  # AWS IPv6
    )
)


async def system_resolve(host: str) -> List[str]:
    """Resolve ``host`` to every address the system resolver returns."""
    loop = asyncio.get_running_loop()
    infos = await loop.getaddrinfo(host, None, type=socket.SOCK_STREAM)
    return sorted({info[4][0] for info in infos})


class DestinationPolicy:
    """Decides whether a URL or address is a permitted outbound destination."""

    def __init__(self, blocked_hosts: Iterable[str] = (), resolver: Optional[HostResolver] = None) -> None:
        self.blocked_hosts = frozenset(host.lower().rstrip(".") for host in blocked_hosts)
        self._resolve = resolver or system_resolve

    def check_address(self, address: str, *, target: Optional[str] = None) -> None:
        """Raise ``ForbiddenDestinationError`` if ``address`` is not public."""
        try:
            ip: IPAddress = ipaddress.ip_address(address.split("%", 1)[0])
        except ValueError as e:
            raise ForbiddenDestinationError(target or address, "unparseable address") from e

        if isinstance(ip, ipaddress.IPv6Address) and ip.ipv4_mapped is not None:
            ip = ip.ipv4_mapped

        reason = self._classify(ip)
        if reason:
            raise ForbiddenDestinationError(target or address, f"{ip} is {reason}")

    @staticmethod
    def _classify(ip: IPAddress) -> Optional[str]:
        if ip in CLOUD_METADATA_ADDRESSES:
            return "a cloud metadata address"
        if ip.is_loopback:
            return "a loopback address"
        if ip.is_link_local:
            return "a link-local address"
        if ip.is_private:
            return "a private-network address"
        if ip.is_unspecified:
            return "an unspecified address"
        if ip.is_multicast:
            return "a multicast address"
        if ip.is_reserved:
            return "a reserved address"
        return None

    def check_url_syntax(self, url: str) -> str:
        """Validate scheme, length and host; return the normalized host."""
        if len(url) > MAX_URL_LENGTH:
            raise ForbiddenDestinationError(url, "URL is too long")
        try:
            parsed = urlparse(url)
            host = parsed.hostname
            parsed.port  # raises ValueError for malformed ports
        except ValueError as e:
            raise ForbiddenDestinationError(url, f"malformed URL: {e}") from e
        if parsed.scheme.lower() not in ALLOWED_SCHEMES:
            raise ForbiddenDestinationError(url, f"scheme {parsed.scheme or '(none)'!r} is not allowed")
        if not host:
            raise ForbiddenDestinationError(url, "URL has no host")
        host = host.lower().rstrip(".")
        if host in self.blocked_hosts:
            raise ForbiddenDestinationError(url, f"host {host!r} is blocked")
        return host

    async def check_url(self, url: str) -> List[str]:
        """Validate ``url`` and every address its host resolves to.

        Returns the resolved addresses. Literal IP hosts are checked without a
        DNS lookup.
        """
        host = self.check_url_syntax(url)

        try:
            ipaddress.ip_address(host.strip("[]"))
        except ValueError:
            pass
        else:
            self.check_address(host.strip("[]"), target=url)
            return [host.strip("[]")]

        try:
            addresses = await self._resolve(host)
        except OSError as e:
            logger.info("Destination did not resolve", host=host, error=str(e))
            raise
        if not addresses:
            raise OSError(f"No addresses found for {host}")
        for address in addresses:
            self.check_address(address, target=url)
        return addresses


class PolicyResolver(AbstractResolver):
    """aiohttp resolver that re-validates every address at connect time."""

    def __init__(self, policy: DestinationPolicy, inner: Optional[AbstractResolver] = None) -> None:
        self._policy = policy
        self._inner = inner or DefaultResolver()

    async def resolve(self, host: str, port: int = 0, family: int = socket.AF_INET) -> List[Dict[str, Any]]:
        results = await self._inner.resolve(host, port, family)
        for result in results:
            self._policy.check_address(result["host"], target=host)
        return results

    async def close(self) -> None:
        await self._inner.close()
