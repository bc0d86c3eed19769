"""Heuristic price projections.

Both projections extend the current trend with a sinusoidal wobble and bounce
off support/resistance style boundaries. They are display heuristics, not
forecasts, and the constants below are part of their output contract.
"""

import calendar
import math
from datetime import datetime, timedelta

from src.models.analytics import (
    AnalyticsSnapshot,
    DayProjection,
    PricePeriod,
    ProjectionPoint,
    ProjectionSet,
    QuoteProjection,
    TimingAnalysis,
)
from src.models.market_data import HistoricalSeries, Quote

MIN_PROJECTION_CLOSES = 5
QUOTE_HORIZON_DAYS = 5

_SERIES_HORIZONS = {"1mo": 5, "3mo": 5, "1y": 10, "5d": 2}
_DAY_STEP_RANGES = ("1d", "5d", "1mo", "3mo")


def horizon_for_range(range_: str | None) -> int:
    return _SERIES_HORIZONS.get(range_, 1)


def add_months(moment: datetime, months: int) -> datetime:
    """Shift by calendar months, clamping the day to the target month's end."""
    month_index = moment.month - 1 + months
    year = moment.year + month_index // 12
    month = month_index % 12 + 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def step_date(last: datetime, step: int, range_: str | None) -> datetime:
    if range_ in _DAY_STEP_RANGES:
        return last + timedelta(days=step)
    return add_months(last, step)


def reflect(price: float, lower: float, upper: float, factor: float) -> float:
    """Partially bounce a price back inside [lower, upper]; lower is checked first."""
    if price < lower:
        price = lower + (price - lower) * factor
    if price > upper:
        price = upper - (price - upper) * factor
    return price


def project_series(
    series: HistoricalSeries,
    range_: str | None,
    analytics: AnalyticsSnapshot,
) -> ProjectionSet | None:
    """
    Project the series forward from its last close.

    Args:
        series: Historical series the analytics were computed from
        range_: Chart range, which sets the horizon and date step
        analytics: Indicators of the same series

    Returns:
        ProjectionSet, or None with fewer than five closes
    """
    prices = series.closes
    if len(prices) < MIN_PROJECTION_CLOSES:
        return None

    current_price = analytics.current_price
    volatility = analytics.volatility_percent

    recent_change = (prices[-1] - prices[-5]) / 5
    momentum_factor = 1.1 if recent_change > 0 else 0.9
    trend_slope = (current_price - prices[max(0, len(prices) - 10)]) / 10
    volatility_adjustment = volatility / 100 * 0.5

    last_date = series.bars[-1].timestamp
    lower = analytics.support * 0.95
    upper = analytics.resistance * 1.05

    points = []
    predicted = current_price
    for i in range(1, horizon_for_range(range_) + 1):
        wobble = math.sin(i * 0.5) * volatility * current_price / 100 * volatility_adjustment
        predicted = reflect(predicted + trend_slope * momentum_factor + wobble, lower, upper, 0.3)
        points.append(ProjectionPoint(date=step_date(last_date, i, range_), price=predicted))

    trend_strength = analytics.trend_strength
    if analytics.is_uptrend:
        bullish = current_price * (1 + trend_strength / 100 * 0.5)
        bearish = current_price * (1 - 0.02)
    else:
        bullish = current_price * (1 + 0.02)
        bearish = current_price * (1 - abs(analytics.total_change_percent) / 100 * 0.3)

    if trend_strength > 10:
        confidence = "high"
    elif trend_strength > 5:
        confidence = "medium"
    else:
        confidence = "low"

    return ProjectionSet(
        points=tuple(points),
        bullish_target=bullish,
        bearish_target=bearish,
        neutral_target=current_price,
        confidence=confidence,
    )


def quote_volatility(quote: Quote) -> float:
    """Intraday spread as a percent of price, clamped to [2, 10]; 2 without a range."""
    if quote.high and quote.low and quote.price:
        spread = (quote.high - quote.low) / quote.price * 100
        return max(2.0, min(10.0, spread))
    return 2.0


def _extend_periods(periods: list[PricePeriod], idx: int, start_price: float, end_price: float):
    if periods and periods[-1].end == idx - 1:
        last = periods[-1]
        periods[-1] = PricePeriod(last.start, idx, last.start_price, end_price)
    else:
        periods.append(PricePeriod(idx, idx, start_price, end_price))


def analyze_timing(
    points: tuple[DayProjection, ...] | list[DayProjection],
    current_price: float,
    is_upward: bool,
) -> TimingAnalysis:
    """
    Find the peak/dip days, rising/falling runs and entry/exit labels.

    Peak and dip must strictly beat the current price; the first such day
    wins. Runs are indexed by position in ``points``.
    """
    max_price, max_day = current_price, 0
    min_price, min_day = current_price, 0
    growth: list[PricePeriod] = []
    decline: list[PricePeriod] = []

    for idx, point in enumerate(points):
        if point.price > max_price:
            max_price, max_day = point.price, point.day
        if point.price < min_price:
            min_price, min_day = point.price, point.day
        if idx == 0:
            continue
        previous = points[idx - 1].price
        if point.price > previous:
            _extend_periods(growth, idx, previous, point.price)
        if point.price < previous:
            _extend_periods(decline, idx, previous, point.price)

    if is_upward:
        peak_label = f"Day {max_day}" if max_day > 0 else "Day 3-5"
        best_entry = "Now (Day 0)"
        if growth and growth[0].start > 0:
            best_entry = f"Day {growth[0].start}"
        return TimingAnalysis(
            growth_periods=tuple(growth),
            decline_periods=tuple(decline),
            peak_day=max_day or None,
            best_entry=best_entry,
            best_exit=peak_label,
            peak_label=peak_label,
        )

    dip_label = f"Day {min_day}" if min_day > 0 else "Day 2-3"
    return TimingAnalysis(
        growth_periods=tuple(growth),
        decline_periods=tuple(decline),
        dip_day=min_day or None,
        best_entry=f"Day {min_day}" if min_day > 0 else "Day 2-3 (Wait for dip)",
        best_exit="Day 4-5 (After recovery)",
        dip_label=dip_label,
    )


def project_quote(quote: Quote) -> QuoteProjection | None:
    """Five-day projection from a single quote; None without a price or a change."""
    if not quote.price or not quote.change_percent:
        return None

    current_price = quote.price
    change_percent = quote.change_percent
    is_upward = change_percent > 0
    volatility = quote_volatility(quote)
    daily_momentum = change_percent / 100

    points = []
    predicted = current_price
    for day in range(1, QUOTE_HORIZON_DAYS + 1):
        decay = 1 - (day - 1) * 0.15
        base_change = daily_momentum * decay * current_price
        wobble = math.sin(day * 0.5) * volatility * current_price / 100 * 0.3
        predicted = predicted + base_change + wobble

        if quote.high and predicted > quote.high * 1.05:
            predicted = quote.high * 1.05 - (predicted - quote.high * 1.05) * 0.2
        if quote.low and predicted < quote.low * 0.95:
            predicted = quote.low * 0.95 + (predicted - quote.low * 0.95) * 0.2

        points.append(
            DayProjection(
                day=day,
                price=predicted,
                change=(predicted - current_price) / current_price * 100,
            )
        )

    magnitude = abs(change_percent)
    if is_upward:
        bullish = current_price * (1 + magnitude / 100 * 0.5)
        bearish = current_price * (1 - 0.02)
    else:
        bullish = current_price * (1 + 0.02)
        bearish = current_price * (1 - magnitude / 100 * 0.3)

    if magnitude > 5:
        confidence = "high"
    elif magnitude > 2:
        confidence = "medium"
    else:
        confidence = "low"

    return QuoteProjection(
        points=tuple(points),
        bullish_target=bullish,
        bearish_target=bearish,
        neutral_target=current_price,
        confidence=confidence,
        is_upward=is_upward,
        timing=analyze_timing(points, current_price, is_upward),
    )
