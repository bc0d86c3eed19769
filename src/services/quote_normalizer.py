"""Builds the canonical Quote for a symbol from a raw chart result."""

from collections.abc import Callable
from dataclasses import replace
from datetime import UTC, datetime

from src.models.errors import NoDataError, NoUsableData
from src.models.market_data import ChartResult, Quote, compute_change, epoch_to_datetime
from src.services.market_calendar import is_market_open
from src.services.series_sanitizer import is_usable, sanitize_series
from src.utils.logger import StructuredLogger

QuoteStrategy = Callable[[str, ChartResult, datetime], Quote | None]


def quote_from_series(symbol: str, chart: ChartResult, now: datetime) -> Quote | None:
    """Primary strategy: the latest usable bar of the series."""
    try:
        sanitized = sanitize_series(chart, now=now)
    except NoUsableData:
        return None

    change, change_percent = compute_change(sanitized.last_price, sanitized.previous_close)
    return Quote(
        symbol=symbol.upper(),
        name=chart.meta.display_name(symbol),
        price=sanitized.last_price,
        change=change,
        change_percent=change_percent,
        volume=sanitized.volume,
        high=sanitized.high,
        low=sanitized.low,
        open=sanitized.open,
        previous_close=sanitized.previous_close,
        market_time=sanitized.market_time,
    )


def quote_from_metadata(symbol: str, chart: ChartResult, now: datetime) -> Quote | None:
    """Metadata-only strategy: the last session close shown with zero change."""
    meta = chart.meta
    price = next(
        (p for p in (meta.previous_close, meta.chart_previous_close) if is_usable(p)),
        None,
    )
    if price is None:
        return None

    def _meta_or_price(value: float | None) -> float:
        return value if is_usable(value) else price

    if meta.regular_market_time is not None:
        market_time = epoch_to_datetime(meta.regular_market_time)
    elif chart.timestamps and is_usable(chart.timestamps[-1]):
        market_time = epoch_to_datetime(chart.timestamps[-1])
    else:
        market_time = now

    return Quote(
        symbol=symbol.upper(),
        name=meta.display_name(symbol),
        price=price,
        change=0.0,
        change_percent=0.0,
        volume=int(meta.regular_market_volume) if is_usable(meta.regular_market_volume) else 0,
        high=_meta_or_price(meta.regular_market_day_high),
        low=_meta_or_price(meta.regular_market_day_low),
        open=_meta_or_price(meta.regular_market_open),
        previous_close=price,
        market_time=market_time,
    )


DEFAULT_STRATEGIES: tuple[QuoteStrategy, ...] = (quote_from_series, quote_from_metadata)


def apply_live_price(quote: Quote, chart: ChartResult, market_open: bool) -> Quote:
    """
    Override the price with the live regular-market price while in session.

    Change figures are recomputed against the already derived previous
    close. Outside market hours the last session close is kept.
    """
    live_price = chart.meta.regular_market_price
    if not market_open or not is_usable(live_price):
        return quote
    change, change_percent = compute_change(live_price, quote.previous_close)
    return replace(quote, price=live_price, change=change, change_percent=change_percent)


class QuoteNormalizer:
    """Turns a chart response into a Quote by trying strategies in order."""

    def __init__(
        self,
        strategies: tuple[QuoteStrategy, ...] = DEFAULT_STRATEGIES,
        market_open: Callable[[datetime], bool] = is_market_open,
    ):
        self.strategies = strategies
        self.market_open = market_open
        self.logger = StructuredLogger("QuoteNormalizer")

    def normalize(self, symbol: str, chart: ChartResult, now: datetime | None = None) -> Quote:
        """
        Normalize a chart result into a Quote.

        Args:
            symbol: Requested symbol
            chart: Parsed chart response
            now: Evaluation instant (market hours and fallback times)

        Returns:
            A fresh Quote

        Raises:
            NoDataError: If no strategy produced a quote
        """
        now = now or datetime.now(UTC)
        for strategy in self.strategies:
            quote = strategy(symbol, chart, now)
            if quote is None:
                self.logger.debug(
                    "Quote strategy produced nothing, trying next",
                    context={"symbol": symbol, "strategy": strategy.__name__},
                )
                continue
            return apply_live_price(quote, chart, self.market_open(now))

        raise NoDataError(f"No quote data for {symbol}", symbol=symbol)
