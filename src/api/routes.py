"""API routes for quotes, history, analytics and the watchlist."""

from dataclasses import asdict
from datetime import date
from typing import Any, Literal

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from src.api.dependencies import get_aggregator, get_analysis_engine, get_scheduler
from src.models.errors import NoDataError
from src.models.market_data import ChartRange
from src.models.watchlist import WatchlistContext, WatchlistSnapshot
from src.services.analysis_engine import AnalysisEngine, calculate_confidence
from src.services.history_builder import filter_records, records_with_change
from src.services.market_calendar import get_current_ist_time, get_market_status
from src.services.market_data_aggregator import MarketDataAggregator
from src.services.scheduler_service import RefreshScheduler

router = APIRouter()


class AddSymbolRequest(BaseModel):
    """Request model for adding a symbol to the watchlist."""
    symbol: str


class SelectDateRequest(BaseModel):
    """Request model for selecting a historical date; null returns to live data."""
    selected_date: date | None = None


def _snapshot_payload(snapshot: WatchlistSnapshot) -> dict[str, Any]:
    quotes = []
    for quote in snapshot.quotes:
        item = asdict(quote)
        item["confidence"] = calculate_confidence(quote)
        quotes.append(item)
    return {
        "status": "ok" if snapshot.has_data else "no_data",
        "quotes": quotes,
        "generated_at": snapshot.generated_at,
        "generation": snapshot.generation,
        "selected_date": snapshot.selected_date,
        "market_status": asdict(snapshot.market_status),
    }


def _context_payload(context: WatchlistContext) -> dict[str, Any]:
    return {"symbols": list(context.symbols), "selected_date": context.selected_date}


@router.get("/market-status")
async def market_status():
    """Current exchange session state and IST wall clock."""
    return {**asdict(get_market_status()), "ist_time": get_current_ist_time()}


@router.get("/quotes")
def get_quotes(scheduler: RefreshScheduler = Depends(get_scheduler)):
    """
    Latest published watchlist snapshot.

    Runs a refresh first when nothing has been published yet. An empty
    result is reported with ``status: no_data``.
    """
    snapshot = scheduler.snapshot or scheduler.execute_refresh()
    return _snapshot_payload(snapshot)


@router.post("/quotes/refresh")
def refresh_quotes(scheduler: RefreshScheduler = Depends(get_scheduler)):
    """Run a refresh cycle now and return the resulting snapshot."""
    return _snapshot_payload(scheduler.execute_refresh())


@router.get("/quotes/{symbol}")
def get_quote(
    symbol: str,
    as_of: date | None = Query(None, alias="date", description="Historical date (YYYY-MM-DD)"),
    aggregator: MarketDataAggregator = Depends(get_aggregator),
):
    """Quote for one symbol, live or as of a past date."""
    quote = aggregator.get_quote(symbol) if as_of is None else aggregator.get_quote_for_date(symbol, as_of)
    if quote is None:
        raise NoDataError(f"No data available for {symbol}", symbol=symbol)
    return quote


@router.get("/quotes/{symbol}/analysis")
def get_quote_analysis(
    symbol: str,
    aggregator: MarketDataAggregator = Depends(get_aggregator),
    engine: AnalysisEngine = Depends(get_analysis_engine),
):
    """Trading signals, stop loss and five-day projection for the live quote."""
    quote = aggregator.get_quote(symbol)
    if quote is None:
        raise NoDataError(f"No data available for {symbol}", symbol=symbol)
    return engine.analyze_quote(quote)


@router.get("/history/{symbol}")
def get_history(
    symbol: str,
    range: ChartRange = Query("1mo", description="Chart range"),
    aggregator: MarketDataAggregator = Depends(get_aggregator),
):
    """Historical bars; an empty list when the source has nothing."""
    return aggregator.get_history(symbol, range)


@router.get("/history/{symbol}/records")
def get_history_records(
    symbol: str,
    range: ChartRange = Query("1mo", description="Chart range"),
    on_date: date | None = Query(None, alias="date", description="Day to filter around"),
    mode: Literal["all", "on", "before", "after"] = Query("all"),
    aggregator: MarketDataAggregator = Depends(get_aggregator),
):
    """Daily records, newest first, with change versus the previous bar."""
    series = aggregator.get_history(symbol, range)
    records = filter_records(records_with_change(series), on_date, mode)
    return {"symbol": series.symbol, "range": range, "records": records}


@router.get("/analytics/{symbol}")
def get_analytics(
    symbol: str,
    range: ChartRange = Query("1mo", description="Chart range"),
    aggregator: MarketDataAggregator = Depends(get_aggregator),
):
    """Indicators, suggestions and projection, or null with fewer than two bars."""
    series = aggregator.get_history(symbol, range)
    return aggregator.get_analytics(series, range)


@router.get("/search")
def search(
    q: str = Query("", description="Symbol or company name"),
    aggregator: MarketDataAggregator = Depends(get_aggregator),
):
    return aggregator.search_symbols(q)


@router.get("/watchlist")
async def get_watchlist(scheduler: RefreshScheduler = Depends(get_scheduler)):
    return _context_payload(scheduler.context)


@router.post("/watchlist")
async def add_to_watchlist(
    request: AddSymbolRequest,
    scheduler: RefreshScheduler = Depends(get_scheduler),
):
    """Add a symbol (uppercased; duplicates are ignored)."""
    return _context_payload(scheduler.add_symbol(request.symbol))


@router.put("/watchlist/date")
async def select_date(
    request: SelectDateRequest,
    scheduler: RefreshScheduler = Depends(get_scheduler),
):
    """Select a historical date, pausing interval refreshes, or clear it."""
    return _context_payload(scheduler.set_date(request.selected_date))


@router.delete("/watchlist/{symbol}")
async def remove_from_watchlist(
    symbol: str,
    scheduler: RefreshScheduler = Depends(get_scheduler),
):
    return _context_payload(scheduler.remove_symbol(symbol))
