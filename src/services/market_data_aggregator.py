"""Market data aggregator: quote source client, per-symbol pipeline and batch fetch."""

import concurrent.futures
import contextvars
import functools
import time
from collections.abc import Callable
from datetime import UTC, date, datetime
from typing import Any

import requests

from src.models.analytics import AnalyticsSnapshot
from src.models.errors import EmptyQuery, FetchError, MarketDataError, NoDataError
from src.models.market_data import ChartResult, HistoricalSeries, Quote, SymbolSuggestion
from src.services.analysis_engine import AnalysisEngine
from src.services.history_builder import (
    build_series,
    interval_for_range,
    quote_as_of,
    range_for_date,
)
from src.services.quote_normalizer import QuoteNormalizer
from src.utils.config import config
from src.utils.logger import StructuredLogger

MIN_QUERY_LENGTH = 2
MAX_SEARCH_RESULTS = 10


class MarketDataAggregator:
    """Fetches chart and search data and runs it through the quote pipeline."""

    def __init__(
        self,
        normalizer: QuoteNormalizer | None = None,
        analysis_engine: AnalysisEngine | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        """
        Initialize the aggregator with the configured quote source.

        Args:
            normalizer: Quote normalizer (a default one is created if omitted)
            analysis_engine: Engine used by get_analytics
            clock: Returns the current instant; used for date lookups
        """
        source = config.quote_source
        self.chart_routes = [url for url in (source.chart_url, source.chart_proxy_url) if url]
        self.search_routes = [url for url in (source.search_url, source.search_proxy_url) if url]
        self.timeout = source.timeout_seconds
        self.headers = {"Accept": "application/json", "User-Agent": source.user_agent}
        self.max_workers = config.refresh.max_workers
        self.normalizer = normalizer or QuoteNormalizer()
        self.analysis_engine = analysis_engine or AnalysisEngine()
        self.clock = clock or (lambda: datetime.now(UTC))
        self.logger = StructuredLogger("MarketDataAggregator")

    def _get_json(self, routes: list[str], params: dict[str, Any], symbol: str | None = None) -> dict:
        """
        GET the first route that answers, falling back along the route list.

        Raises:
            FetchError: If every route failed
        """
        last_error: Exception | None = None
        for route in routes:
            try:
                response = requests.get(route, params=params, headers=self.headers, timeout=self.timeout)
                response.raise_for_status()
                return response.json()
            except requests.RequestException as e:
                last_error = e
                self.logger.warning(
                    "Quote source route failed, trying next",
                    context={"route": route, "symbol": symbol, "error": str(e)},
                )
        raise FetchError(f"All quote source routes failed: {last_error}", symbol=symbol)

    def fetch_chart(self, symbol: str, interval: str, range_: str) -> ChartResult:
        """
        Fetch the raw chart for a symbol.

        Raises:
            FetchError: If the transport failed on every route
            NoDataError: If the response carries no chart result
        """
        params = {"interval": interval, "range": range_, "includePrePost": "false"}
        routes = [f"{route.rstrip('/')}/{symbol}" for route in self.chart_routes]
        payload = self._get_json(routes, params, symbol=symbol)
        chart = ChartResult.from_response(payload)
        if chart is None:
            raise NoDataError(f"No chart result for {symbol}", symbol=symbol)
        return chart

    def get_quote(self, symbol: str) -> Quote | None:
        """
        Fetch the current quote for a symbol.

        Returns:
            Quote, or None when the symbol yields no data
        """
        start_time = time.time()
        try:
            chart = self.fetch_chart(symbol, "1d", "1mo")
            quote = self.normalizer.normalize(symbol, chart, now=self.clock())
        except MarketDataError as e:
            self.logger.error(
                f"Error fetching quote for {symbol}",
                context={"symbol": symbol, "result": "failed", "error_type": type(e).__name__},
                exception=e,
            )
            return None

        self.logger.info(
            "Successfully fetched quote",
            context={
                "symbol": symbol,
                "result": "success",
                "price": quote.price,
                "change_percent": quote.change_percent,
                "duration_ms": (time.time() - start_time) * 1000,
            },
        )
        return quote

    def get_quote_for_date(self, symbol: str, target: date) -> Quote | None:
        """
        Fetch the quote as it stood on a past trading day.

        The closest earlier trading day is used when ``target`` has no bar.

        Returns:
            Quote with data_date set, or None when no bar exists on or before target
        """
        range_ = range_for_date(target, self.clock().date())
        try:
            chart = self.fetch_chart(symbol, "1d", range_)
            series = build_series(chart, range_, symbol=symbol)
            quote = quote_as_of(series, target, chart.meta, symbol=symbol)
        except MarketDataError as e:
            self.logger.error(
                f"Error fetching quote for {symbol} on {target.isoformat()}",
                context={"symbol": symbol, "date": target.isoformat(), "range": range_},
                exception=e,
            )
            return None

        self.logger.info(
            "Fetched historical quote",
            context={"symbol": symbol, "date": target.isoformat(), "data_date": quote.data_date},
        )
        return quote

    def get_history(self, symbol: str, range_: str) -> HistoricalSeries:
        """Fetch a historical series; an empty series on any failure."""
        interval = interval_for_range(range_)
        try:
            chart = self.fetch_chart(symbol, interval, range_)
        except MarketDataError as e:
            self.logger.error(
                f"Error fetching history for {symbol}",
                context={"symbol": symbol, "range": range_, "interval": interval},
                exception=e,
            )
            return HistoricalSeries(symbol=symbol.upper(), range=range_, interval=interval)

        series = build_series(chart, range_, symbol=symbol)
        self.logger.info(
            "Fetched history",
            context={
                "symbol": symbol,
                "range": range_,
                "raw_points": len(chart.timestamps),
                "bars": len(series.bars),
            },
        )
        return series

    def _search(self, query: str) -> list[SymbolSuggestion]:
        query = query.strip()
        if len(query) < MIN_QUERY_LENGTH:
            raise EmptyQuery(f"Query too short: {query!r}")

        params = {"q": query, "quotesCount": MAX_SEARCH_RESULTS, "newsCount": 0}
        payload = self._get_json(self.search_routes, params)
        hits = payload.get("quotes") if isinstance(payload, dict) else None
        if not isinstance(hits, list):
            return []

        suggestions = [
            SymbolSuggestion(
                symbol=hit["symbol"],
                name=hit.get("longname") or hit.get("shortname") or hit["symbol"],
                exchange=hit.get("exchange") or "",
                quote_type=hit.get("quoteType") or "EQUITY",
            )
            for hit in hits
            if isinstance(hit, dict) and hit.get("symbol") and hit.get("longname")
        ]
        return suggestions[:MAX_SEARCH_RESULTS]

    def search_symbols(self, query: str) -> list[SymbolSuggestion]:
        """Symbol suggestions for a query; empty for short queries or failures."""
        try:
            return self._search(query)
        except EmptyQuery:
            return []
        except FetchError as e:
            self.logger.error(
                "Symbol search failed",
                context={"query": query},
                exception=e,
            )
            return []

    def get_analytics(self, series: HistoricalSeries, range_: str | None = None) -> AnalyticsSnapshot | None:
        return self.analysis_engine.get_analytics(series, range_)

    def fetch_quotes(self, symbols: list[str], target: date | None = None) -> list[Quote]:
        """
        Fetch quotes for many symbols concurrently.

        Args:
            symbols: Symbols in watchlist order
            target: Optional past date; live quotes when omitted

        Returns:
            Successful quotes in the order of ``symbols``; failed symbols are omitted
        """
        if not symbols:
            return []

        start_time = time.time()
        if target is None:
            fetch = self.get_quote
        else:
            fetch = functools.partial(self.get_quote_for_date, target=target)

        results: dict[int, Quote] = {}
        with concurrent.futures.ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            future_to_index = {
                executor.submit(contextvars.copy_context().run, fetch, symbol): index
                for index, symbol in enumerate(symbols)
            }
            for future in concurrent.futures.as_completed(future_to_index):
                index = future_to_index[future]
                try:
                    quote = future.result()
                except Exception as e:
                    self.logger.error(
                        f"Error in batch fetch for {symbols[index]}",
                        context={"symbol": symbols[index]},
                        exception=e,
                    )
                    continue
                if quote is not None:
                    results[index] = quote

        quotes = [results[i] for i in sorted(results)]
        self.logger.info(
            "Batch quote fetch completed",
            context={
                "requested": len(symbols),
                "fetched": len(quotes),
                "date": target.isoformat() if target else None,
                "duration_ms": (time.time() - start_time) * 1000,
            },
        )
        return quotes
