"""Null-tolerant extraction of the latest values from raw OHLCV arrays."""

import math
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

from src.models.errors import NoUsableData
from src.models.market_data import ChartResult, epoch_to_datetime


def is_usable(value: Any) -> bool:
    """True for finite numbers; None, NaN, infinities and non-numbers are not usable."""
    if value is None or isinstance(value, bool):
        return False
    try:
        return math.isfinite(value)
    except TypeError:
        return False


def _at(values: Sequence, index: int) -> Any:
    return values[index] if 0 <= index < len(values) else None


def last_usable_close(closes: Sequence[float | None]) -> tuple[float, int] | None:
    """Return (price, index) of the rightmost usable close, or None."""
    for i in range(len(closes) - 1, -1, -1):
        if is_usable(closes[i]):
            return float(closes[i]), i
    return None


def previous_usable_close(closes: Sequence[float | None], before_index: int) -> float | None:
    """Return the nearest usable close strictly before ``before_index``, or None."""
    for i in range(min(before_index, len(closes)) - 1, -1, -1):
        if is_usable(closes[i]):
            return float(closes[i])
    return None


def fallback_price(value: Any, metadata_value: Any, last_close: float) -> float:
    """Pick the series value, then the metadata value, then the last usable close."""
    if is_usable(value):
        return float(value)
    if is_usable(metadata_value):
        return float(metadata_value)
    return last_close


def resolve_previous_close(
    previous: float | None,
    meta_previous_close: float | None,
    meta_chart_previous_close: float | None,
    last_close: float,
) -> float:
    """
    Previous close fallback chain.

    Order: the series' previous usable close, metadata previousClose,
    metadata chartPreviousClose, and finally the last close itself, which
    makes the change zero for symbols with a single data point.
    """
    for candidate in (previous, meta_previous_close, meta_chart_previous_close):
        if is_usable(candidate):
            return float(candidate)
    return last_close


@dataclass(frozen=True)
class SanitizedSeries:
    """Latest-bar values extracted from a raw chart, with fallbacks applied."""

    last_price: float
    last_index: int
    previous_close: float
    open: float
    high: float
    low: float
    volume: int
    market_time: datetime


def sanitize_series(chart: ChartResult, now: datetime | None = None) -> SanitizedSeries:
    """
    Extract the latest usable bar from a raw chart result.

    Args:
        chart: Parsed chart response
        now: Fallback market time when neither the bar nor metadata has one

    Returns:
        SanitizedSeries for the rightmost bar with a usable close

    Raises:
        NoUsableData: If no close in the series is usable
    """
    found = last_usable_close(chart.closes)
    if found is None:
        raise NoUsableData("No usable close in series", symbol=chart.meta.symbol)
    last_price, last_index = found
    meta = chart.meta

    previous_close = resolve_previous_close(
        previous_usable_close(chart.closes, last_index),
        meta.previous_close,
        meta.chart_previous_close,
        last_price,
    )

    raw_volume = _at(chart.volumes, last_index)
    if is_usable(raw_volume):
        volume = int(raw_volume)
    elif is_usable(meta.regular_market_volume):
        volume = int(meta.regular_market_volume)
    else:
        volume = 0

    timestamp = _at(chart.timestamps, last_index)
    if is_usable(timestamp):
        market_time = epoch_to_datetime(timestamp)
    elif meta.regular_market_time is not None:
        market_time = epoch_to_datetime(meta.regular_market_time)
    else:
        market_time = now or datetime.now(UTC)

    return SanitizedSeries(
        last_price=last_price,
        last_index=last_index,
        previous_close=previous_close,
        open=fallback_price(_at(chart.opens, last_index), meta.regular_market_open, last_price),
        high=fallback_price(_at(chart.highs, last_index), meta.regular_market_day_high, last_price),
        low=fallback_price(_at(chart.lows, last_index), meta.regular_market_day_low, last_price),
        volume=volume,
        market_time=market_time,
    )
