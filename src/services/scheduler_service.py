"""Scheduler service for periodic watchlist refreshes."""

import itertools
import logging
import threading
import time
from collections.abc import Callable
from datetime import UTC, date, datetime

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from src.models.watchlist import WatchlistContext, WatchlistSnapshot
from src.services.market_calendar import get_market_status
from src.services.market_data_aggregator import MarketDataAggregator
from src.utils.config import config
from src.utils.logger import StructuredLogger
from src.utils.trace_context import trace_scope

logger = logging.getLogger(__name__)
structured_logger = StructuredLogger("RefreshScheduler")

REFRESH_JOB_ID = "watchlist_refresh"
IMMEDIATE_REFRESH_JOB_ID = "watchlist_refresh_now"


class RefreshScheduler:
    """
    Owns the watchlist context and the published snapshot.

    Each refresh cycle recomputes every quote from scratch and publishes a
    new snapshot. A cycle that finishes after a newer one has already been
    published is discarded.
    """

    def __init__(
        self,
        aggregator: MarketDataAggregator | None = None,
        context: WatchlistContext | None = None,
        interval_seconds: int | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        """
        Initialize the refresh scheduler.

        Args:
            aggregator: Source of quotes (a default one is created if omitted)
            context: Initial watchlist (defaults to the configured symbols)
            interval_seconds: Refresh period (defaults to REFRESH_INTERVAL_SECONDS)
            clock: Returns the current instant
        """
        self.scheduler = BackgroundScheduler()
        self.aggregator = aggregator or MarketDataAggregator()
        self.interval_seconds = interval_seconds or config.refresh.interval_seconds
        self.clock = clock or (lambda: datetime.now(UTC))
        self.is_running = False

        self._lock = threading.Lock()
        self._generations = itertools.count(1)
        self._context = context or WatchlistContext.from_symbols(config.watchlist.default_symbols)
        self._snapshot: WatchlistSnapshot | None = None

    @property
    def context(self) -> WatchlistContext:
        with self._lock:
            return self._context

    @property
    def snapshot(self) -> WatchlistSnapshot | None:
        with self._lock:
            return self._snapshot

    def _next_generation(self) -> int:
        with self._lock:
            return next(self._generations)

    def publish(self, snapshot: WatchlistSnapshot) -> bool:
        """
        Replace the current snapshot if the candidate is newer.

        Returns:
            True if the snapshot was published, False if it was stale
        """
        with self._lock:
            if self._snapshot is not None and snapshot.generation <= self._snapshot.generation:
                return False
            self._snapshot = snapshot
            return True

    def execute_refresh(self) -> WatchlistSnapshot:
        """
        Run one refresh cycle under a fresh trace id.

        Returns:
            The snapshot current after this cycle (this cycle's, unless a newer
            one was published first)
        """
        with trace_scope() as trace_id:
            start_time = time.time()
            generation = self._next_generation()
            context = self.context

            structured_logger.info(
                "Starting watchlist refresh",
                context={
                    "generation": generation,
                    "symbols": len(context.symbols),
                    "selected_date": context.selected_date,
                },
            )

            quotes = self.aggregator.fetch_quotes(list(context.symbols), context.selected_date)
            now = self.clock()
            candidate = WatchlistSnapshot(
                quotes=tuple(quotes),
                generated_at=now,
                market_status=get_market_status(now),
                generation=generation,
                selected_date=context.selected_date,
            )
            published = self.publish(candidate)

            duration_ms = (time.time() - start_time) * 1000
            if not candidate.has_data:
                structured_logger.warning(
                    "Refresh produced no quotes",
                    context={"generation": generation, "symbols": list(context.symbols)},
                )
            structured_logger.info(
                "Watchlist refresh completed",
                context={
                    "trace_id": trace_id,
                    "generation": generation,
                    "quotes": len(quotes),
                    "published": published,
                    "duration_ms": duration_ms,
                },
            )
            return candidate if published else self.snapshot

    def _run_scheduled_refresh(self) -> None:
        if not self.context.is_live:
            structured_logger.debug("Historical date selected, skipping interval refresh")
            return
        try:
            self.execute_refresh()
        except Exception as e:
            structured_logger.error(
                f"Error during scheduled refresh: {str(e)}",
                context={"job_id": REFRESH_JOB_ID},
                exception=e,
            )

    def request_refresh(self) -> None:
        """Queue an immediate one-off refresh on the background scheduler."""
        if not self.is_running:
            return
        self.scheduler.add_job(
            self.execute_refresh,
            id=IMMEDIATE_REFRESH_JOB_ID,
            name="Immediate Watchlist Refresh",
            replace_existing=True,
        )

    def _update_context(
        self, change: Callable[[WatchlistContext], WatchlistContext]
    ) -> WatchlistContext:
        with self._lock:
            self._context = change(self._context)
            context = self._context
        self.request_refresh()
        return context

    def set_context(self, context: WatchlistContext) -> WatchlistContext:
        """Swap in a new context and queue a refresh for it."""
        return self._update_context(lambda _: context)

    def add_symbol(self, symbol: str) -> WatchlistContext:
        return self._update_context(lambda current: current.with_symbol(symbol))

    def remove_symbol(self, symbol: str) -> WatchlistContext:
        return self._update_context(lambda current: current.without_symbol(symbol))

    def set_date(self, selected_date: date | None) -> WatchlistContext:
        return self._update_context(lambda current: current.with_date(selected_date))

    def start(self) -> None:
        """Schedule the interval refresh and start the background scheduler."""
        self.scheduler.add_job(
            self._run_scheduled_refresh,
            IntervalTrigger(seconds=self.interval_seconds),
            id=REFRESH_JOB_ID,
            name="Watchlist Refresh",
            replace_existing=True,
            next_run_time=self.clock(),
        )
        if not self.is_running:
            self.scheduler.start()
            self.is_running = True
            logger.info(f"Scheduler started, refreshing every {self.interval_seconds}s")

    def stop(self) -> None:
        """Stop the scheduler."""
        if self.is_running:
            self.scheduler.shutdown()
            self.is_running = False
            logger.info("Scheduler stopped")
