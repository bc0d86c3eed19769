"""Market data models for quotes, bars and raw chart responses."""

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any, Literal

ChartRange = Literal["1d", "5d", "1mo", "3mo", "1y"]


def _float_or_none(value: Any) -> float | None:
    """Coerce a JSON number to float, mapping anything else to None."""
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _series(values: Any) -> tuple:
    return tuple(values) if isinstance(values, list) else ()


@dataclass(frozen=True)
class ChartMeta:
    """Exchange metadata attached to a chart response."""

    symbol: str | None = None
    long_name: str | None = None
    short_name: str | None = None
    previous_close: float | None = None
    chart_previous_close: float | None = None
    regular_market_price: float | None = None
    regular_market_open: float | None = None
    regular_market_day_high: float | None = None
    regular_market_day_low: float | None = None
    regular_market_volume: float | None = None
    regular_market_time: int | None = None
    currency: str | None = None
    exchange_name: str | None = None

    @classmethod
    def from_dict(cls, meta: dict[str, Any] | None) -> "ChartMeta":
        meta = meta or {}
        market_time = meta.get("regularMarketTime")
        return cls(
            symbol=meta.get("symbol"),
            long_name=meta.get("longName"),
            short_name=meta.get("shortName"),
            previous_close=_float_or_none(meta.get("previousClose")),
            chart_previous_close=_float_or_none(meta.get("chartPreviousClose")),
            regular_market_price=_float_or_none(meta.get("regularMarketPrice")),
            regular_market_open=_float_or_none(meta.get("regularMarketOpen")),
            regular_market_day_high=_float_or_none(meta.get("regularMarketDayHigh")),
            regular_market_day_low=_float_or_none(meta.get("regularMarketDayLow")),
            regular_market_volume=_float_or_none(meta.get("regularMarketVolume")),
            regular_market_time=int(market_time) if isinstance(market_time, (int, float)) else None,
            currency=meta.get("currency"),
            exchange_name=meta.get("exchangeName"),
        )

    def display_name(self, requested_symbol: str) -> str:
        """Resolve the display name: long name, short name, meta symbol, request."""
        return self.long_name or self.short_name or self.symbol or requested_symbol


@dataclass(frozen=True)
class ChartResult:
    """One `chart.result[0]` entry: metadata plus parallel OHLCV arrays."""

    meta: ChartMeta
    timestamps: tuple[int, ...] = ()
    opens: tuple[float | None, ...] = ()
    highs: tuple[float | None, ...] = ()
    lows: tuple[float | None, ...] = ()
    closes: tuple[float | None, ...] = ()
    volumes: tuple[float | None, ...] = ()

    @classmethod
    def from_dict(cls, result: dict[str, Any]) -> "ChartResult":
        indicators = result.get("indicators")
        quotes = indicators.get("quote") if isinstance(indicators, dict) else None
        quote = quotes[0] if isinstance(quotes, list) and quotes else None
        if not isinstance(quote, dict):
            quote = {}
        meta = result.get("meta")
        return cls(
            meta=ChartMeta.from_dict(meta if isinstance(meta, dict) else None),
            timestamps=_series(result.get("timestamp")),
            opens=_series(quote.get("open")),
            highs=_series(quote.get("high")),
            lows=_series(quote.get("low")),
            closes=_series(quote.get("close")),
            volumes=_series(quote.get("volume")),
        )

    @classmethod
    def from_response(cls, payload: Any) -> "ChartResult | None":
        """Extract the first chart result from a full API payload, or None if absent or malformed."""
        if not isinstance(payload, dict):
            return None
        chart = payload.get("chart")
        results = chart.get("result") if isinstance(chart, dict) else None
        if not isinstance(results, list) or not results or not isinstance(results[0], dict):
            return None
        return cls.from_dict(results[0])


@dataclass(frozen=True)
class Bar:
    """One OHLCV sample."""

    timestamp: datetime
    open: float
    high: float
    low: float
    close: float
    volume: int = 0


@dataclass(frozen=True)
class HistoricalSeries:
    """Chronologically ordered bars for one symbol and range."""

    symbol: str
    range: str
    interval: str
    bars: tuple[Bar, ...] = ()

    @property
    def closes(self) -> list[float]:
        return [bar.close for bar in self.bars]


@dataclass(frozen=True)
class Quote:
    """Canonical point-in-time snapshot for a symbol."""

    symbol: str
    name: str
    price: float
    change: float
    change_percent: float
    volume: int
    high: float
    low: float
    open: float
    previous_close: float
    market_time: datetime
    data_date: datetime | None = None


@dataclass(frozen=True)
class SymbolSuggestion:
    """A search hit offered while typing a symbol."""

    symbol: str
    name: str
    exchange: str = ""
    quote_type: str = "EQUITY"


@dataclass(frozen=True)
class MarketStatus:
    """Open/closed state of the exchange with display text."""

    is_open: bool
    message: str
    next_status: str


def epoch_to_datetime(seconds: int | float) -> datetime:
    """Convert epoch seconds from the quote source to an aware UTC datetime."""
    return datetime.fromtimestamp(seconds, tz=UTC)


def compute_change(price: float, previous_close: float) -> tuple[float, float]:
    """Return (change, change_percent); percent is 0 when previous close is 0."""
    change = price - previous_close
    change_percent = (change / previous_close) * 100 if previous_close != 0 else 0.0
    return change, change_percent


@dataclass(frozen=True)
class PriceRecord:
    """A historical bar annotated with its change versus the previous bar."""

    bar: Bar
    change: float
    change_percent: float
