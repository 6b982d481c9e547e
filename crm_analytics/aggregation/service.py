"""
Dashboard Service

Loads the raw collections for a reporting period from a data source and runs
the aggregation engine over them. All fetches are issued concurrently and
joined; if any of them fails the run is aborted as a whole.
"""

import asyncio
import time
from typing import Optional, Tuple

import structlog

from crm_analytics.aggregation.engine import AggregationEngine, ReportInputs
from crm_analytics.aggregation.period import ReportingPeriod
from crm_analytics.errors import SourceFetchError, UnknownReportError
from crm_analytics.models.derived import DashboardSnapshot
from crm_analytics.reporting.views import REPORT_BUILDERS, ReportView, build_report
from crm_analytics.sources.base import ReportDataSource

logger = structlog.get_logger(__name__)

COLLECTIONS = (
    "orders",
    "previous_orders",
    "customers",
    "abandoned_carts",
    "products",
    "order_items",
    "delivery_partners",
)


class DashboardService:
    """
    Fetch-then-aggregate orchestrator for the CRM dashboard.

    Example:
        service = DashboardService(InMemoryDataSource(...))
        snapshot = await service.dashboard(ReportingPeriod.last_days(30))
        view = await service.report("orders", period)
    """

    def __init__(self, source: ReportDataSource, engine: Optional[AggregationEngine] = None):
        self.source = source
        self.engine = engine or AggregationEngine()

    async def load_inputs(self, period: ReportingPeriod) -> ReportInputs:
        """
        Fetch every input collection for the period.

        Raises:
            SourceFetchError: Naming every collection that failed to load
        """
        window = period.window(self.engine.tz)
        previous = period.previous_window(self.engine.tz)

        start_time = time.perf_counter()
        results = await asyncio.gather(
            self.source.fetch_orders(window.start, window.end, period.status),
            self.source.fetch_orders(previous.start, previous.end, period.status),
            self.source.fetch_customers(),
            self.source.fetch_abandoned_carts(),
            self.source.fetch_products(),
            self.source.fetch_order_items(),
            self.source.fetch_delivery_partners(),
            return_exceptions=True,
        )

        for result in results:
            if isinstance(result, BaseException) and not isinstance(result, Exception):
                raise result

        failed = [
            (name, result)
            for name, result in zip(COLLECTIONS, results)
            if isinstance(result, Exception)
        ]
        if failed:
            logger.error(
                "Report input fetch failed",
                collections=[name for name, _ in failed],
                error=str(failed[0][1]),
                error_type=type(failed[0][1]).__name__,
            )
            raise SourceFetchError([name for name, _ in failed], cause=failed[0][1]) from failed[0][1]

        inputs = ReportInputs(**dict(zip(COLLECTIONS, results)))
        logger.debug(
            "Report inputs loaded",
            orders=len(inputs.orders),
            previous_orders=len(inputs.previous_orders),
            duration_ms=round((time.perf_counter() - start_time) * 1000, 2),
        )
        return inputs

    async def compute(self, period: ReportingPeriod) -> Tuple[ReportInputs, DashboardSnapshot]:
        inputs = await self.load_inputs(period)
        return inputs, self.engine.compute(inputs, period)

    async def dashboard(self, period: ReportingPeriod) -> DashboardSnapshot:
        _, snapshot = await self.compute(period)
        return snapshot

    async def report(self, name: str, period: ReportingPeriod) -> ReportView:
        """
        Build one report view for the period.

        Raises:
            UnknownReportError: Before any fetch, if `name` is not a report
        """
        if name not in REPORT_BUILDERS:
            raise UnknownReportError(name)
        inputs, snapshot = await self.compute(period)
        return build_report(name, snapshot, inputs)
