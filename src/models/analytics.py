"""Derived analytics models: suggestions, projections and quote signals."""

from dataclasses import dataclass
from datetime import datetime
from typing import Literal

Priority = Literal["high", "medium", "low"]
Confidence = Literal["high", "medium", "low"]
SuggestionKind = Literal[
    "momentum-up",
    "momentum-down",
    "near-support",
    "near-resistance",
    "high-volume",
    "high-volatility",
    "trend-up",
    "trend-down",
]

PRIORITY_RANK: dict[str, int] = {"high": 0, "medium": 1, "low": 2}


@dataclass(frozen=True)
class Suggestion:
    """An advisory message derived from a historical series."""

    kind: SuggestionKind
    message: str
    priority: Priority


@dataclass(frozen=True)
class ProjectionPoint:
    """A projected price at a future date."""

    date: datetime
    price: float


@dataclass(frozen=True)
class ProjectionSet:
    """Series-based projection with target levels."""

    points: tuple[ProjectionPoint, ...]
    bullish_target: float
    bearish_target: float
    neutral_target: float
    confidence: Confidence


@dataclass(frozen=True)
class AnalyticsSnapshot:
    """Indicators, suggestions and projection computed from one series."""

    current_price: float
    price_change: float
    price_change_percent: float
    total_change_percent: float
    support: float
    resistance: float
    current_volume: float
    avg_volume: float
    volume_ratio: float
    is_uptrend: bool
    trend_strength: float
    volatility_percent: float
    suggestions: tuple[Suggestion, ...] = ()
    projection: ProjectionSet | None = None


@dataclass(frozen=True)
class DayProjection:
    """Projected price for day N after the quote."""

    day: int
    price: float
    change: float  # percent versus the quote price


@dataclass(frozen=True)
class PricePeriod:
    """A maximal run of strictly rising or falling projected prices."""

    start: int
    end: int
    start_price: float
    end_price: float


@dataclass(frozen=True)
class TimingAnalysis:
    """Peak/dip days, growth/decline runs and suggested entry/exit labels."""

    growth_periods: tuple[PricePeriod, ...] = ()
    decline_periods: tuple[PricePeriod, ...] = ()
    peak_day: int | None = None
    dip_day: int | None = None
    best_entry: str | None = None
    best_exit: str | None = None
    peak_label: str | None = None
    dip_label: str | None = None


@dataclass(frozen=True)
class QuoteProjection:
    """Five-day projection derived from a single quote."""

    points: tuple[DayProjection, ...]
    bullish_target: float
    bearish_target: float
    neutral_target: float
    confidence: Confidence
    is_upward: bool
    timing: TimingAnalysis


@dataclass(frozen=True)
class QuoteSignal:
    """A single observation about a quote."""

    type: Literal["positive", "negative", "warning"]
    title: str
    message: str


@dataclass(frozen=True)
class StopLoss:
    """Stop-loss levels for a quote."""

    conservative: float
    aggressive: float
    recommendation: str


@dataclass(frozen=True)
class QuoteAnalysis:
    """Signals, stop loss, confidence and projection for one quote."""

    symbol: str
    overall_signal: Literal["buy", "sell", "hold"]
    buy_score: int
    sell_score: int
    confidence: Confidence
    signals: tuple[QuoteSignal, ...] = ()
    stop_loss: StopLoss | None = None
    projection: QuoteProjection | None = None
