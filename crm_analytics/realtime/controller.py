"""
Recomputation Controller

Keeps the dashboard snapshot current. Filter changes and table change
notifications schedule a recomputation; bursts of triggers collapse into one
trailing run after a quiet period, and at most one run is in flight at any
time. Every filter change bumps a generation token so results of runs that
started under an older filter are dropped instead of applied.
"""

import asyncio
import time
from datetime import date, datetime
from enum import Enum
from typing import Callable, List, Optional

import structlog
from prometheus_client import Counter, Histogram

from crm_analytics.aggregation.period import ReportingPeriod
from crm_analytics.aggregation.service import DashboardService
from crm_analytics.config import get_settings
from crm_analytics.models.derived import DashboardSnapshot
from crm_analytics.realtime.change_feed import ChangeFeed, TableChange

logger = structlog.get_logger(__name__)

# Tables whose changes affect the dashboard
WATCHED_TABLES = frozenset({"orders", "customers", "products", "abandoned_carts"})


# =============================================================================
# METRICS
# =============================================================================

AGGREGATION_RUNS = Counter(
    "crm_aggregation_runs_total",
    "Dashboard aggregation runs by outcome",
    ["outcome"],
)

AGGREGATION_DURATION = Histogram(
    "crm_aggregation_duration_seconds",
    "Time spent fetching inputs and aggregating the dashboard",
)


class ControllerState(str, Enum):
    IDLE = "idle"
    COMPUTING = "computing"


class RecomputationController:
    """
    Debounced, last-request-wins driver of dashboard recomputation.

    Example:
        controller = RecomputationController(service, on_snapshot=publish)
        controller.attach(change_feed)
        await controller.start()
        controller.set_period(ReportingPeriod(date_from, date_to))
    """

    def __init__(
        self,
        service: DashboardService,
        period: Optional[ReportingPeriod] = None,
        debounce_seconds: Optional[float] = None,
        on_snapshot: Optional[Callable[[DashboardSnapshot], None]] = None,
        on_error: Optional[Callable[[Exception], None]] = None,
        today: Optional[Callable[[], date]] = None,
    ):
        reporting = get_settings().reporting
        self.service = service
        self.pinned_period = period
        self.default_period_days = reporting.default_period_days
        self.today = today or (lambda: datetime.now(reporting.tzinfo).date())
        self.debounce_seconds = (
            debounce_seconds if debounce_seconds is not None else reporting.recompute_debounce_seconds
        )
        self.on_snapshot = on_snapshot
        self.on_error = on_error

        self.snapshot: Optional[DashboardSnapshot] = None
        self.last_error: Optional[Exception] = None
        self.generation = 0
        self.state = ControllerState.IDLE
        self.runs_started = 0

        self._rerun = False
        self._closed = False
        self._timer: Optional[asyncio.TimerHandle] = None
        self._task: Optional[asyncio.Task] = None
        self._idle = asyncio.Event()
        self._idle.set()
        self._unsubscribers: List[Callable[[], None]] = []

    # ------------------------------------------------------------------
    # triggers
    # ------------------------------------------------------------------

    @property
    def period(self) -> ReportingPeriod:
        """The pinned period, or the last N days ending today in the reporting timezone"""
        if self.pinned_period is not None:
            return self.pinned_period
        return ReportingPeriod.last_days(self.default_period_days, today=self.today())

    def set_period(self, period: Optional[ReportingPeriod]) -> None:
        """
        Change the filter; anything computed for the old one is discarded.

        `None` returns to the rolling default period.
        """
        self.pinned_period = period
        self.generation += 1
        period = self.period
        logger.info(
            "Reporting period changed",
            rolling=self.pinned_period is None,
            date_from=str(period.date_from),
            date_to=str(period.date_to),
            status=period.status_value,
            generation=self.generation,
        )
        self._schedule()

    def notify_change(self, table: str) -> bool:
        """Schedule a recomputation if `table` feeds the dashboard"""
        if table not in WATCHED_TABLES:
            logger.debug("Ignoring change on unwatched table", table=table)
            return False
        self._schedule()
        return True

    def _on_change(self, change: TableChange) -> None:
        self.notify_change(change.table)

    def attach(self, feed: ChangeFeed) -> None:
        self._unsubscribers.append(feed.subscribe(self._on_change))

    async def start(self) -> None:
        """Run the initial computation immediately"""
        self._kick()

    async def refresh(self) -> Optional[DashboardSnapshot]:
        """Manual refresh: recompute now, without debounce, and wait for it"""
        self._cancel_timer()
        self._kick()
        await self.wait_until_idle()
        return self.snapshot

    async def wait_until_idle(self) -> None:
        """Wait until no run is in flight or pending"""
        await self._idle.wait()

    async def close(self) -> None:
        self._closed = True
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers.clear()
        self._cancel_timer()
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None
        self.state = ControllerState.IDLE
        self._idle.set()

    # ------------------------------------------------------------------
    # scheduling
    # ------------------------------------------------------------------

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _schedule(self) -> None:
        """(Re)start the debounce timer"""
        if self._closed:
            return
        self._idle.clear()
        self._cancel_timer()
        loop = asyncio.get_running_loop()
        self._timer = loop.call_later(self.debounce_seconds, self._kick)

    def _kick(self) -> None:
        self._timer = None
        if self._closed:
            return
        if self._task is not None:
            # Picked up by the in-flight run once it finishes
            self._rerun = True
            return
        self._idle.clear()
        self._task = asyncio.get_running_loop().create_task(self._run())

    async def _run(self) -> None:
        try:
            while True:
                self._rerun = False
                await self._run_once()
                if not self._rerun or self._closed:
                    break
        finally:
            self._task = None
            self.state = ControllerState.IDLE
            if self._timer is None:
                self._idle.set()

    async def _run_once(self) -> None:
        generation = self.generation
        period = self.period
        self.state = ControllerState.COMPUTING
        self.runs_started += 1
        start_time = time.perf_counter()

        try:
            snapshot = await self.service.dashboard(period)
        except Exception as e:
            AGGREGATION_DURATION.observe(time.perf_counter() - start_time)
            if generation != self.generation:
                AGGREGATION_RUNS.labels(outcome="stale").inc()
                return
            AGGREGATION_RUNS.labels(outcome="failure").inc()
            self.last_error = e
            logger.error(
                "Dashboard recomputation failed",
                error=str(e),
                error_type=type(e).__name__,
                generation=generation,
            )
            if self.on_error is not None:
                self.on_error(e)
            return

        AGGREGATION_DURATION.observe(time.perf_counter() - start_time)
        if generation != self.generation:
            AGGREGATION_RUNS.labels(outcome="stale").inc()
            logger.debug("Discarding stale snapshot", generation=generation, current=self.generation)
            return

        AGGREGATION_RUNS.labels(outcome="success").inc()
        self.snapshot = snapshot
        self.last_error = None
        if self.on_snapshot is not None:
            self.on_snapshot(snapshot)
