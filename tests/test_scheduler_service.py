"""Tests for scheduler service."""

import json
import sys
import threading
from datetime import UTC, date, datetime
from io import StringIO
from unittest.mock import MagicMock, patch

from hypothesis import given, settings
from hypothesis import strategies as st

from conftest import MARKET_HOURS_UTC, FakeAggregator, make_quote
from src.models.market_data import MarketStatus
from src.models.watchlist import WatchlistContext, WatchlistSnapshot
from src.services.scheduler_service import (
    IMMEDIATE_REFRESH_JOB_ID,
    REFRESH_JOB_ID,
    RefreshScheduler,
)


def snapshot_with_generation(generation):
    return WatchlistSnapshot(
        quotes=(),
        generated_at=MARKET_HOURS_UTC,
        market_status=MarketStatus(True, "Market Open", "Closes at 3:30 PM"),
        generation=generation,
    )


def log_entries(output):
    return [json.loads(line) for line in output.splitlines() if line.startswith("{")]


class BlockingAggregator(FakeAggregator):
    """Holds the first batch fetch until released so a later cycle can overtake it."""

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.first_call_started = threading.Event()
        self.release_first_call = threading.Event()
        self._calls = 0
        self._calls_lock = threading.Lock()

    def fetch_quotes(self, symbols, target=None):
        with self._calls_lock:
            self._calls += 1
            is_first = self._calls == 1
        if is_first:
            self.first_call_started.set()
            self.release_first_call.wait(timeout=5)
            return [make_quote("OLD.NS", price=1.0, previous_close=1.0)]
        return super().fetch_quotes(symbols, target)


class TestRefreshCycle:
    """Tests for refresh cycles and snapshot publication."""

    def test_refresh_publishes_snapshot(self, scheduler, fake_aggregator):
        snapshot = scheduler.execute_refresh()
        assert scheduler.snapshot is snapshot
        assert [q.symbol for q in snapshot.quotes] == ["RELIANCE.NS", "TCS.NS"]
        assert snapshot.generation == 1
        assert snapshot.generated_at == MARKET_HOURS_UTC
        assert snapshot.market_status.is_open is True
        assert snapshot.selected_date is None
        assert fake_aggregator.fetch_calls == [(["RELIANCE.NS", "TCS.NS"], None)]

    def test_generations_increase(self, scheduler):
        generations = [scheduler.execute_refresh().generation for _ in range(3)]
        assert generations == [1, 2, 3]

    def test_stale_snapshot_is_rejected(self, scheduler):
        assert scheduler.publish(snapshot_with_generation(2)) is True
        assert scheduler.publish(snapshot_with_generation(1)) is False
        assert scheduler.publish(snapshot_with_generation(2)) is False
        assert scheduler.snapshot.generation == 2

    @given(st.lists(st.integers(min_value=1, max_value=50), min_size=1, max_size=30))
    def test_published_generation_is_running_maximum(self, generations):
        """
        **Property: the published snapshot always carries the highest generation seen**
        """
        sched = RefreshScheduler(aggregator=FakeAggregator(), context=WatchlistContext())
        for generation in generations:
            sched.publish(snapshot_with_generation(generation))
        assert sched.snapshot.generation == max(generations)

    def test_slow_cycle_does_not_overwrite_newer_one(self):
        aggregator = BlockingAggregator(
            quotes={"NEW.NS": make_quote("NEW.NS", price=2.0, previous_close=1.0)}
        )
        sched = RefreshScheduler(
            aggregator=aggregator,
            context=WatchlistContext.from_symbols(["NEW.NS"]),
            clock=lambda: MARKET_HOURS_UTC,
        )
        results = {}
        slow = threading.Thread(target=lambda: results.setdefault("slow", sched.execute_refresh()))
        slow.start()
        assert aggregator.first_call_started.wait(timeout=5)

        fast = sched.execute_refresh()
        aggregator.release_first_call.set()
        slow.join(timeout=5)

        assert fast.generation == 2
        assert sched.snapshot is fast
        assert [q.symbol for q in sched.snapshot.quotes] == ["NEW.NS"]
        # The overtaken cycle reports the newer snapshot
        assert results["slow"] is fast

    def test_empty_result_publishes_no_data_snapshot(self, capsys):
        sched = RefreshScheduler(
            aggregator=FakeAggregator(),
            context=WatchlistContext.from_symbols(["MISSING.NS"]),
            clock=lambda: MARKET_HOURS_UTC,
        )
        snapshot = sched.execute_refresh()
        assert snapshot.has_data is False
        assert sched.snapshot is snapshot

        warnings = [e for e in log_entries(capsys.readouterr().out) if e["level"] == "WARNING"]
        assert warnings[0]["message"] == "Refresh produced no quotes"

    def test_selected_date_is_passed_to_fetch(self, scheduler, fake_aggregator):
        scheduler.set_date(date(2024, 1, 10))
        snapshot = scheduler.execute_refresh()
        assert fake_aggregator.fetch_calls[-1][1] == date(2024, 1, 10)
        assert snapshot.selected_date == date(2024, 1, 10)
        assert snapshot.quotes[0].data_date == datetime(2024, 1, 10, tzinfo=UTC)

    def test_each_cycle_has_its_own_trace_id(self, scheduler):
        captured_output = StringIO()
        original_stdout = sys.stdout
        sys.stdout = captured_output
        try:
            scheduler.execute_refresh()
            scheduler.execute_refresh()
        finally:
            sys.stdout = original_stdout

        completed = [
            e for e in log_entries(captured_output.getvalue())
            if e["message"] == "Watchlist refresh completed"
        ]
        trace_ids = [e["context"]["trace_id"] for e in completed]
        assert len(trace_ids) == 2
        assert trace_ids[0] != trace_ids[1]


class TestScheduledRefresh:
    def test_scheduled_refresh_runs_for_live_context(self, scheduler, fake_aggregator):
        scheduler._run_scheduled_refresh()
        assert len(fake_aggregator.fetch_calls) == 1

    def test_scheduled_refresh_skipped_for_selected_date(self, scheduler, fake_aggregator):
        scheduler.set_date(date(2024, 1, 10))
        scheduler._run_scheduled_refresh()
        assert fake_aggregator.fetch_calls == []

    def test_scheduled_refresh_logs_errors(self, scheduler, fake_aggregator, capsys):
        fake_aggregator.fetch_quotes = MagicMock(side_effect=RuntimeError("boom"))
        scheduler._run_scheduled_refresh()

        errors = [e for e in log_entries(capsys.readouterr().out) if e["level"] == "ERROR"]
        assert errors[0]["message"] == "Error during scheduled refresh: boom"
        assert errors[0]["context"]["job_id"] == REFRESH_JOB_ID
        assert scheduler.snapshot is None


class TestContextChanges:
    """Tests for watchlist context updates."""

    def test_add_and_remove_symbols(self, scheduler):
        assert scheduler.add_symbol(" infy.ns ").symbols == ("RELIANCE.NS", "TCS.NS", "INFY.NS")
        assert scheduler.add_symbol("INFY.NS").symbols == ("RELIANCE.NS", "TCS.NS", "INFY.NS")
        assert scheduler.remove_symbol("tcs.ns").symbols == ("RELIANCE.NS", "INFY.NS")
        assert scheduler.context.symbols == ("RELIANCE.NS", "INFY.NS")

    def test_set_and_clear_date(self, scheduler):
        assert scheduler.set_date(date(2024, 1, 10)).is_live is False
        assert scheduler.set_date(None).is_live is True

    def test_set_context(self, scheduler):
        context = WatchlistContext.from_symbols(["HDFCBANK.NS"], date(2024, 2, 1))
        scheduler.set_context(context)
        assert scheduler.context is context

    def test_default_context_comes_from_config(self):
        sched = RefreshScheduler(aggregator=FakeAggregator())
        assert len(sched.context.symbols) > 0
        assert sched.context.is_live

    def test_context_change_queues_refresh_when_running(self, scheduler):
        scheduler.scheduler = MagicMock()
        scheduler.is_running = True
        scheduler.add_symbol("INFY.NS")

        _, kwargs = scheduler.scheduler.add_job.call_args
        assert kwargs["id"] == IMMEDIATE_REFRESH_JOB_ID
        assert kwargs["replace_existing"] is True

    def test_context_change_without_scheduler_does_not_queue(self, scheduler):
        scheduler.scheduler = MagicMock()
        scheduler.add_symbol("INFY.NS")
        scheduler.scheduler.add_job.assert_not_called()

    @settings(max_examples=30)
    @given(st.lists(st.sampled_from(["A.NS", "B.NS", "C.NS", "a.ns", " b.ns"]), max_size=15))
    def test_symbols_stay_unique(self, additions):
        """
        **Property: adding symbols never produces duplicates**
        """
        sched = RefreshScheduler(aggregator=FakeAggregator(), context=WatchlistContext())
        for symbol in additions:
            sched.add_symbol(symbol)
        symbols = sched.context.symbols
        assert len(symbols) == len(set(symbols))
        assert all(s == s.strip().upper() for s in symbols)


class TestLifecycle:
    """Tests for starting and stopping the background scheduler."""

    def test_start_registers_interval_job(self, scheduler):
        with patch.object(scheduler, "scheduler") as mock_scheduler:
            scheduler.start()

            args, kwargs = mock_scheduler.add_job.call_args
            assert args[0] == scheduler._run_scheduled_refresh
            assert args[1].interval.total_seconds() == 10
            assert kwargs["id"] == REFRESH_JOB_ID
            assert kwargs["replace_existing"] is True
            assert kwargs["next_run_time"] == MARKET_HOURS_UTC
            mock_scheduler.start.assert_called_once()
            assert scheduler.is_running is True

            scheduler.stop()
            mock_scheduler.shutdown.assert_called_once()
            assert scheduler.is_running is False

    def test_start_twice_starts_once(self, scheduler):
        with patch.object(scheduler, "scheduler") as mock_scheduler:
            scheduler.start()
            scheduler.start()
            assert mock_scheduler.start.call_count == 1
            assert mock_scheduler.add_job.call_count == 2

    def test_stop_when_not_running_is_noop(self, scheduler):
        with patch.object(scheduler, "scheduler") as mock_scheduler:
            scheduler.stop()
            mock_scheduler.shutdown.assert_not_called()

    def test_real_scheduler_registers_job(self, scheduler):
        scheduler.start()
        try:
            job = scheduler.scheduler.get_job(REFRESH_JOB_ID)
            assert job is not None
            assert job.name == "Watchlist Refresh"
        finally:
            scheduler.stop()
