"""Historical series construction, point-in-time lookups and daily records."""

from datetime import UTC, date, datetime, time
from typing import Literal

from src.models.errors import NoDataError
from src.models.market_data import (
    Bar,
    ChartMeta,
    ChartResult,
    HistoricalSeries,
    PriceRecord,
    Quote,
    compute_change,
    epoch_to_datetime,
)
from src.services.series_sanitizer import is_usable, resolve_previous_close

RecordFilterMode = Literal["all", "on", "before", "after"]

_RANGE_INTERVALS = {"1d": "15m", "5d": "1h"}


def interval_for_range(range_: str) -> str:
    """Sampling interval for a chart range: 15m for 1d, 1h for 5d, else daily."""
    return _RANGE_INTERVALS.get(range_, "1d")


def range_for_date(target: date, today: date) -> str:
    """Smallest daily-sampled range that still reaches back to ``target``."""
    days_back = (today - target).days
    if days_back <= 5:
        return "5d"
    if days_back <= 30:
        return "1mo"
    if days_back <= 90:
        return "3mo"
    return "1y"


def _at(values: tuple, index: int):
    return values[index] if index < len(values) else None


def build_series(chart: ChartResult, range_: str, symbol: str | None = None) -> HistoricalSeries:
    """
    Map the raw parallel arrays into bars.

    Bars missing any of open/high/low/close are dropped; a missing volume
    becomes 0. Chronological order is preserved.
    """
    bars: list[Bar] = []
    for i, timestamp in enumerate(chart.timestamps):
        prices = [_at(values, i) for values in (chart.opens, chart.highs, chart.lows, chart.closes)]
        if not is_usable(timestamp) or not all(is_usable(p) for p in prices):
            continue
        open_, high, low, close = (float(p) for p in prices)
        volume = _at(chart.volumes, i)
        bars.append(
            Bar(
                timestamp=epoch_to_datetime(timestamp),
                open=open_,
                high=high,
                low=low,
                close=close,
                volume=int(volume) if is_usable(volume) else 0,
            )
        )

    return HistoricalSeries(
        symbol=(symbol or chart.meta.symbol or "").upper(),
        range=range_,
        interval=interval_for_range(range_),
        bars=tuple(bars),
    )


def _as_instant(target: date | datetime) -> datetime:
    """Dates cover their whole day (UTC); naive datetimes are read as UTC."""
    if isinstance(target, datetime):
        return target if target.tzinfo else target.replace(tzinfo=UTC)
    return datetime.combine(target, time.max, tzinfo=UTC)


def quote_as_of(
    series: HistoricalSeries,
    target: date | datetime,
    meta: ChartMeta,
    symbol: str | None = None,
) -> Quote:
    """
    Build the quote as it stood at ``target``.

    Args:
        series: Strictly filtered daily series
        target: Date (end of day) or instant to look up
        meta: Chart metadata for the name and previous-close fallbacks
        symbol: Requested symbol (defaults to the series symbol)

    Returns:
        Quote for the rightmost bar at or before target, with data_date set

    Raises:
        NoDataError: If target predates every bar
    """
    symbol = symbol or series.symbol
    cutoff = _as_instant(target)

    index = next(
        (i for i in range(len(series.bars) - 1, -1, -1) if series.bars[i].timestamp <= cutoff),
        None,
    )
    if index is None:
        raise NoDataError(f"No data for {symbol} on or before {cutoff.date()}", symbol=symbol)

    bar = series.bars[index]
    previous = series.bars[index - 1].close if index > 0 else None
    previous_close = resolve_previous_close(
        previous, meta.previous_close, meta.chart_previous_close, bar.close
    )
    change, change_percent = compute_change(bar.close, previous_close)

    return Quote(
        symbol=symbol.upper(),
        name=meta.display_name(symbol),
        price=bar.close,
        change=change,
        change_percent=change_percent,
        volume=bar.volume,
        high=bar.high,
        low=bar.low,
        open=bar.open,
        previous_close=previous_close,
        market_time=bar.timestamp,
        data_date=bar.timestamp,
    )


def records_with_change(series: HistoricalSeries) -> list[PriceRecord]:
    """Bars newest first, each with its change versus the bar before it in time."""
    records = []
    bars = series.bars
    for i in range(len(bars) - 1, -1, -1):
        previous_close = bars[i - 1].close if i > 0 else bars[i].close
        change, change_percent = compute_change(bars[i].close, previous_close)
        records.append(PriceRecord(bar=bars[i], change=change, change_percent=change_percent))
    return records


def filter_records(
    records: list[PriceRecord],
    on_date: date | None,
    mode: RecordFilterMode = "all",
) -> list[PriceRecord]:
    """Keep records on, before or after a calendar day; ``all`` or no date keeps everything."""
    if on_date is None or mode == "all":
        return list(records)

    def keep(record: PriceRecord) -> bool:
        day = record.bar.timestamp.date()
        if mode == "on":
            return day == on_date
        if mode == "before":
            return day < on_date
        if mode == "after":
            return day > on_date
        return True

    return [record for record in records if keep(record)]
