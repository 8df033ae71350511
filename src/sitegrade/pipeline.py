"""
Pipeline orchestration for SiteGrade.

One grading run: validate the weight table, fetch the page and its auxiliary
resources, extract a signal bundle, then run the external adapters and the
seven factor analyzers concurrently and assemble the composite report.

Every run owns its HTTP sessions. Only the outbound budget is shared between
runs in the same process.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence
from uuid import uuid4

import aiohttp
import structlog

from sitegrade.adapters import MarkupValidatorAdapter, PerformanceAdapter
from sitegrade.adapters.result import AdapterResult, Unavailable
from sitegrade.analyzers import BaseAnalyzer, default_analyzers
from sitegrade.config.config import BudgetConfig, Config
from sitegrade.crawler import DestinationPolicy, FetchedPage, HttpClient, OutboundBudget
from sitegrade.exceptions import ConfigError, FetchError
from sitegrade.extractor import ContentExtractor
from sitegrade.observability.metrics import METRICS
from sitegrade.protocols import FactorScore, SignalBundle
from sitegrade.report import CompositeReport, assemble_report
from sitegrade.scoring import ScoreAggregator, WeightTable

logger = structlog.get_logger(__name__)

Clock = Callable[[], datetime]

_shared_budget: Optional[OutboundBudget] = None
_shared_budget_config: Optional[BudgetConfig] = None


def shared_budget(config: BudgetConfig) -> OutboundBudget:
    """Return the process-wide outbound budget, creating it on first use.

    Later callers get the same budget whatever their ``BudgetConfig``; a
    differing config is logged and ignored.
    """
    global _shared_budget, _shared_budget_config
    if _shared_budget is None:
        _shared_budget = OutboundBudget.from_config(config)
        _shared_budget_config = config.model_copy()
    elif config != _shared_budget_config:
        logger.warning(
            "Outbound budget already configured, ignoring new budget settings",
            active=_shared_budget_config.model_dump() if _shared_budget_config else None,
            ignored=config.model_dump(),
        )
    return _shared_budget


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class GradingPipeline:
    """Grades one URL per call to ``grade_website``."""

    def __init__(
        self,
        config: Optional[Config] = None,
        *,
        budget: Optional[OutboundBudget] = None,
        policy: Optional[DestinationPolicy] = None,
        clock: Optional[Clock] = None,
        analyzers: Optional[Sequence[BaseAnalyzer]] = None,
    ) -> None:
        self.config = config or Config()
        self.budget = budget or shared_budget(self.config.budget)
        self.policy = policy or DestinationPolicy(blocked_hosts=self.config.fetcher.blocked_hosts)
        self.clock = clock or utc_now
        self.analyzers = tuple(analyzers) if analyzers is not None else default_analyzers()
        self.extractor = ContentExtractor(self.config.extraction)

    async def grade_website(self, url: str) -> CompositeReport:
        """
        Grade ``url`` and return its composite report.

        Raises:
            ConfigError: the weight table is invalid (raised before any request)
            FetchError: the target page could not be retrieved
        """
        with structlog.contextvars.bound_contextvars(correlation_id=str(uuid4())):
            logger.info("Grading run started", url=url)
            try:
                report = await self._grade(url)
            except ConfigError as e:
                METRICS["grading_runs"].labels(outcome="config_error").inc()
                logger.error("Grading run aborted, invalid configuration", url=url, error=str(e))
                raise
            except FetchError as e:
                METRICS["grading_runs"].labels(outcome=f"fetch_{e.kind.value}").inc()
                logger.warning("Grading run aborted, target not fetched", url=url, kind=e.kind.value, error=e.message)
                raise
            except asyncio.CancelledError:
                METRICS["grading_runs"].labels(outcome="cancelled").inc()
                logger.info("Grading run cancelled", url=url)
                raise

            METRICS["grading_runs"].labels(outcome="completed").inc()
            logger.info(
                "Grading run completed",
                url=url,
                composite=report.composite_score,
                band=report.status_band.value,
                confidence=report.confidence.value,
            )
            return report

    async def _grade(self, url: str) -> CompositeReport:
        aggregator = ScoreAggregator(WeightTable.from_mapping(self.config.scoring.weights))

        async with HttpClient(self.config.fetcher, self.budget, self.policy) as client:
            page = await client.fetch_page(url)
        METRICS["fetch_latency"].observe(page.document.elapsed.seconds)

        bundle = await self.extractor.extract(page.document)

        async with aiohttp.ClientSession(
            timeout=aiohttp.ClientTimeout(total=None),
            headers={"User-Agent": self.config.fetcher.user_agent},
        ) as session:
            scores = await self._score_factors(bundle, page, session)

        return assemble_report(url, scores, aggregator, self.clock())

    def _build_adapters(self, session: aiohttp.ClientSession) -> Dict[str, Any]:
        validator_config = self.config.adapters.validator
        performance_config = self.config.adapters.performance
        return {
            "validator": MarkupValidatorAdapter(
                session,
                self.budget,
                endpoint=validator_config.endpoint,
                timeout_seconds=validator_config.timeout_seconds,
                enabled=validator_config.enabled,
            ),
            "performance": PerformanceAdapter(
                session,
                self.budget,
                endpoint=performance_config.endpoint,
                timeout_seconds=performance_config.timeout_seconds,
                strategy=performance_config.strategy,
                api_key=performance_config.api_key,
                enabled=performance_config.enabled,
            ),
        }

    async def _score_factors(
        self, bundle: SignalBundle, page: FetchedPage, session: aiohttp.ClientSession
    ) -> List[FactorScore]:
        adapters = self._build_adapters(session)

        # A failing task cancels its siblings; no partial report escapes.
        async with asyncio.TaskGroup() as tg:
            adapter_tasks = {
                "validator": tg.create_task(adapters["validator"].run(page.document.body)),
                "performance": tg.create_task(adapters["performance"].run(bundle.final_url)),
            }
            analyzer_tasks = [
                tg.create_task(self._analyze(analyzer, bundle, adapter_tasks, page.auxiliary))
                for analyzer in self.analyzers
            ]

        return [task.result() for task in analyzer_tasks]

    async def _analyze(
        self,
        analyzer: BaseAnalyzer,
        bundle: SignalBundle,
        adapter_tasks: Mapping[str, "asyncio.Task[AdapterResult[Any]]"],
        resources: Mapping[str, AdapterResult[Any]],
    ) -> FactorScore:
        inputs: Dict[str, AdapterResult[Any]] = {}
        for name in analyzer.required_inputs:
            if name in adapter_tasks:
                inputs[name] = await adapter_tasks[name]
            else:
                inputs[name] = resources.get(name, Unavailable("not fetched"))

        score = analyzer.analyze(bundle, inputs)
        METRICS["factor_score"].labels(factor=score.factor.value).observe(score.score)
        return score


async def grade_website(url: str, config: Optional[Config] = None) -> CompositeReport:
    """Grade ``url`` with a fresh pipeline."""
    return await GradingPipeline(config).grade_website(url)
