"""
Shared behaviour for external signal adapters.

An adapter call always returns an ``AdapterResult``. Timeouts, transport
errors, non-success responses and a full outbound queue become
``Unavailable``; payloads that cannot be interpreted become ``Error``.
Only cancellation propagates.
"""

from __future__ import annotations

import asyncio
import json
from typing import TYPE_CHECKING, Any, Generic, Optional, TypeVar

import aiohttp
import structlog

from sitegrade.adapters.result import AdapterResult, Error, Unavailable, Value
from sitegrade.exceptions import BudgetExhaustedError
from sitegrade.observability.metrics import METRICS

if TYPE_CHECKING:
    from sitegrade.crawler.rate_limiter import OutboundBudget

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class ServiceResponseError(Exception):
    """Non-success HTTP status from an external service."""

    def __init__(self, status: int) -> None:
        self.status = status
        super().__init__(f"HTTP {status}")


class PayloadError(ValueError):
    """An external service answered with a payload we cannot interpret."""

    pass


class SignalAdapter(Generic[T]):
    """Base class for time-boxed, failure-as-data external lookups."""

    name: str = "adapter"

    def __init__(
        self,
        session: aiohttp.ClientSession,
        budget: OutboundBudget,
        *,
        timeout_seconds: float,
        enabled: bool = True,
    ) -> None:
        self.session = session
        self.budget = budget
        self.timeout_seconds = timeout_seconds
        self.enabled = enabled

    async def _call(self, *args: Any, **kwargs: Any) -> T:
        raise NotImplementedError

    async def run(self, *args: Any, **kwargs: Any) -> AdapterResult[T]:
        """Invoke the adapter and fold every failure into the result."""
        result = await self._run(*args, **kwargs)
        METRICS["adapter_results"].labels(adapter=self.name, status=result.status).inc()
        return result

    async def _run(self, *args: Any, **kwargs: Any) -> AdapterResult[T]:
        if not self.enabled:
            return Unavailable("disabled")

        try:
            async with asyncio.timeout(self.timeout_seconds):
                value = await self._call(*args, **kwargs)
        except TimeoutError:
            logger.warning("Adapter timed out", adapter=self.name, timeout_seconds=self.timeout_seconds)
            return Unavailable(f"timed out after {self.timeout_seconds * 1000:.0f} ms")
        except ServiceResponseError as e:
            logger.warning("Adapter received non-success response", adapter=self.name, status=e.status)
            return Unavailable(f"service responded with HTTP {e.status}")
        except BudgetExhaustedError as e:
            return Unavailable(str(e))
        except aiohttp.ClientError as e:
            logger.warning("Adapter request failed", adapter=self.name, error=str(e))
            return Unavailable(f"request failed: {e}")
        except (PayloadError, AttributeError, KeyError, TypeError, ValueError) as e:
            logger.error("Adapter payload could not be interpreted", adapter=self.name, error=str(e))
            return Error(f"{type(e).__name__}: {e}")

        logger.debug("Adapter call succeeded", adapter=self.name)
        return Value(value)

    async def _request_json(
        self,
        method: str,
        url: str,
        *,
        params: Optional[dict[str, Any]] = None,
        data: Optional[bytes] = None,
        headers: Optional[dict[str, str]] = None,
    ) -> Any:
        async with self.budget.slot(url):
            async with self.session.request(method, url, params=params, data=data, headers=headers) as response:
                if response.status >= 400:
                    raise ServiceResponseError(response.status)
                raw = await response.read()
        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            raise PayloadError(f"response is not JSON: {e.msg}") from e
