"""Pytest configuration and fixtures."""

from dataclasses import replace
from datetime import UTC, date, datetime

import pytest
from fastapi.testclient import TestClient

from main import app
from src.api.dependencies import get_aggregator, get_analysis_engine, get_scheduler
from src.models.market_data import ChartResult, HistoricalSeries, Quote, SymbolSuggestion
from src.models.watchlist import WatchlistContext
from src.services.analysis_engine import AnalysisEngine
from src.services.history_builder import build_series
from src.services.scheduler_service import RefreshScheduler

# Tuesday 2024-01-16, 12:00 IST
MARKET_HOURS_UTC = datetime(2024, 1, 16, 6, 30, tzinfo=UTC)
# Tuesday 2024-01-16, 18:00 IST
AFTER_HOURS_UTC = datetime(2024, 1, 16, 12, 30, tzinfo=UTC)

DAY = 86400
BASE_TS = 1704067200  # 2024-01-01 00:00 UTC


def make_chart_payload(
    closes,
    opens=None,
    highs=None,
    lows=None,
    volumes=None,
    timestamps=None,
    step=DAY,
    **meta,
) -> dict:
    """Build a chart API payload shaped like the quote source's response."""
    n = len(closes)
    meta.setdefault("symbol", "TEST.NS")
    return {
        "chart": {
            "result": [
                {
                    "meta": meta,
                    "timestamp": timestamps if timestamps is not None else [BASE_TS + i * step for i in range(n)],
                    "indicators": {
                        "quote": [
                            {
                                "open": opens if opens is not None else list(closes),
                                "high": highs if highs is not None else list(closes),
                                "low": lows if lows is not None else list(closes),
                                "close": list(closes),
                                "volume": volumes if volumes is not None else [1000] * n,
                            }
                        ]
                    },
                }
            ],
            "error": None,
        }
    }


def make_chart(closes, **kwargs) -> ChartResult:
    return ChartResult.from_response(make_chart_payload(closes, **kwargs))


def make_series(closes, range_="1mo", symbol="TEST.NS", highs=None, lows=None, volumes=None) -> HistoricalSeries:
    return build_series(
        make_chart(closes, highs=highs, lows=lows, volumes=volumes, symbol=symbol),
        range_,
        symbol=symbol,
    )


def make_quote(symbol="TEST.NS", price=100.0, previous_close=98.0, **overrides) -> Quote:
    change = price - previous_close
    fields = dict(
        symbol=symbol,
        name="Test Ltd",
        price=price,
        change=change,
        change_percent=change / previous_close * 100 if previous_close else 0.0,
        volume=5000,
        high=price * 1.01,
        low=price * 0.99,
        open=previous_close,
        previous_close=previous_close,
        market_time=MARKET_HOURS_UTC,
    )
    fields.update(overrides)
    return Quote(**fields)


class FakeAggregator:
    """In-memory stand-in for MarketDataAggregator used by API and scheduler tests."""

    def __init__(self, quotes=None, series=None, suggestions=None):
        self.quotes: dict[str, Quote] = quotes or {}
        self.series: dict[str, HistoricalSeries] = series or {}
        self.suggestions: list[SymbolSuggestion] = suggestions or []
        self.analysis_engine = AnalysisEngine()
        self.fetch_calls: list[tuple[list[str], date | None]] = []

    def get_quote(self, symbol):
        return self.quotes.get(symbol.upper())

    def get_quote_for_date(self, symbol, target):
        quote = self.quotes.get(symbol.upper())
        if quote is None:
            return None
        moment = datetime(target.year, target.month, target.day, tzinfo=UTC)
        return replace(quote, data_date=moment, market_time=moment)

    def get_history(self, symbol, range_):
        return self.series.get(
            symbol.upper(), HistoricalSeries(symbol=symbol.upper(), range=range_, interval="1d")
        )

    def get_analytics(self, series, range_=None):
        return self.analysis_engine.get_analytics(series, range_)

    def search_symbols(self, query):
        if len(query.strip()) < 2:
            return []
        return list(self.suggestions)

    def fetch_quotes(self, symbols, target=None):
        self.fetch_calls.append((list(symbols), target))
        fetch = self.get_quote if target is None else (lambda s: self.get_quote_for_date(s, target))
        return [q for q in (fetch(s) for s in symbols) if q is not None]


@pytest.fixture
def fake_aggregator():
    return FakeAggregator(
        quotes={
            "RELIANCE.NS": make_quote("RELIANCE.NS", price=2500.0, previous_close=2450.0),
            "TCS.NS": make_quote("TCS.NS", price=3500.0, previous_close=3600.0),
        },
        series={"RELIANCE.NS": make_series([100, 102, 101, 104, 106, 108], symbol="RELIANCE.NS")},
        suggestions=[SymbolSuggestion("RELIANCE.NS", "Reliance Industries Limited", "NSI", "EQUITY")],
    )


@pytest.fixture
def scheduler(fake_aggregator):
    return RefreshScheduler(
        aggregator=fake_aggregator,
        context=WatchlistContext.from_symbols(["RELIANCE.NS", "TCS.NS"]),
        interval_seconds=10,
        clock=lambda: MARKET_HOURS_UTC,
    )


@pytest.fixture
def test_client(fake_aggregator, scheduler):
    """Create a test client wired to the fake aggregator."""
    app.dependency_overrides[get_aggregator] = lambda: fake_aggregator
    app.dependency_overrides[get_analysis_engine] = lambda: fake_aggregator.analysis_engine
    app.dependency_overrides[get_scheduler] = lambda: scheduler

    client = TestClient(app)
    yield client

    app.dependency_overrides.clear()
