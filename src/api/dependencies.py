"""FastAPI dependencies providing the shared market data services."""

from src.services.analysis_engine import AnalysisEngine
from src.services.market_data_aggregator import MarketDataAggregator
from src.services.scheduler_service import RefreshScheduler

_aggregator: MarketDataAggregator | None = None
_analysis_engine: AnalysisEngine | None = None
_scheduler: RefreshScheduler | None = None


def get_analysis_engine() -> AnalysisEngine:
    global _analysis_engine
    if _analysis_engine is None:
        _analysis_engine = AnalysisEngine()
    return _analysis_engine


def get_aggregator() -> MarketDataAggregator:
    """
    FastAPI dependency returning the process-wide aggregator.

    Tests replace it through ``app.dependency_overrides``.
    """
    global _aggregator
    if _aggregator is None:
        _aggregator = MarketDataAggregator(analysis_engine=get_analysis_engine())
    return _aggregator


def get_scheduler() -> RefreshScheduler:
    """FastAPI dependency returning the refresh scheduler that owns the watchlist."""
    global _scheduler
    if _scheduler is None:
        _scheduler = RefreshScheduler(aggregator=get_aggregator())
    return _scheduler
