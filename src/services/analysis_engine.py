"""Analysis engine for series indicators, suggestions and quote signals."""

import time
from dataclasses import replace

from src.models.analytics import (
    PRIORITY_RANK,
    AnalyticsSnapshot,
    Confidence,
    QuoteAnalysis,
    QuoteSignal,
    StopLoss,
    Suggestion,
)
from src.models.market_data import HistoricalSeries, Quote
from src.services.projection_engine import project_quote, project_series
from src.utils.logger import StructuredLogger

MIN_ANALYTICS_BARS = 2
TREND_WINDOW = 5


def currency_mark(symbol: str | None) -> str:
    """Rupee sign for NSE listings, dollar otherwise."""
    return "₹" if symbol and symbol.upper().endswith(".NS") else "$"


def _percent(numerator: float, denominator: float) -> float:
    return numerator / denominator * 100 if denominator != 0 else 0.0


def sort_suggestions(suggestions: list[Suggestion]) -> tuple[Suggestion, ...]:
    """High before medium before low; equal priorities keep discovery order."""
    return tuple(sorted(suggestions, key=lambda s: PRIORITY_RANK[s.priority]))


def quote_spread(quote: Quote) -> float | None:
    """Intraday high-low range as a percent of price, when all three are present."""
    if quote.high and quote.low and quote.price:
        return (quote.high - quote.low) / quote.price * 100
    return None


def calculate_confidence(quote: Quote | None) -> Confidence:
    """
    Row confidence used to colour the watchlist table.

    Scores the size of the move, the presence of volume and a moderate
    intraday spread.
    """
    if quote is None or not quote.price or quote.change_percent is None:
        return "low"

    magnitude = abs(quote.change_percent)
    score = 0
    if magnitude > 5:
        score += 3
    elif magnitude > 2:
        score += 2
    elif magnitude > 0.5:
        score += 1

    if quote.volume and quote.volume > 0:
        score += 1

    spread = quote_spread(quote) or 0.0
    if 1 < spread < 8:
        score += 1

    if score >= 4:
        return "high"
    if score >= 2:
        return "medium"
    return "low"


class AnalysisEngine:
    """Derives analytics from historical series and signals from quotes."""

    def __init__(self):
        self.logger = StructuredLogger("AnalysisEngine")

    def _generate_suggestions(
        self, snapshot: AnalyticsSnapshot, symbol: str | None
    ) -> tuple[Suggestion, ...]:
        currency = currency_mark(symbol)
        suggestions: list[Suggestion] = []
        pct = snapshot.price_change_percent

        if pct > 2:
            suggestions.append(Suggestion(
                "momentum-up",
                f"Strong upward momentum (+{pct:.2f}%). Consider buying on dips.",
                "high",
            ))
        elif pct < -2:
            suggestions.append(Suggestion(
                "momentum-down",
                f"Significant decline ({pct:.2f}%). Tighten stop-loss or consider exit.",
                "high",
            ))

        if snapshot.current_price <= snapshot.support * 1.02:
            suggestions.append(Suggestion(
                "near-support",
                f"Near support level ({currency}{snapshot.support:.2f}). Potential buying opportunity.",
                "medium",
            ))

        if snapshot.current_price >= snapshot.resistance * 0.98:
            suggestions.append(Suggestion(
                "near-resistance",
                f"Approaching resistance ({currency}{snapshot.resistance:.2f}). Consider taking profits.",
                "medium",
            ))

        if snapshot.volume_ratio > 1.5:
            suggestions.append(Suggestion(
                "high-volume",
                f"High volume activity ({snapshot.volume_ratio:.1f}x average). Strong interest detected.",
                "low",
            ))

        if snapshot.volatility_percent > 10:
            suggestions.append(Suggestion(
                "high-volatility",
                f"High volatility ({snapshot.volatility_percent:.1f}%). "
                "Trade with caution and use stop-loss.",
                "medium",
            ))

        total = snapshot.total_change_percent
        if snapshot.is_uptrend and snapshot.trend_strength > 5:
            suggestions.append(Suggestion(
                "trend-up",
                f"Strong uptrend (+{total:.2f}% over period). Momentum suggests continued growth.",
                "medium",
            ))
        elif not snapshot.is_uptrend and snapshot.trend_strength > 5:
            suggestions.append(Suggestion(
                "trend-down",
                f"Downtrend ({total:.2f}%). Wait for reversal signals before entry.",
                "medium",
            ))

        return sort_suggestions(suggestions)

    def compute_indicators(self, series: HistoricalSeries) -> AnalyticsSnapshot | None:
        """Indicators without suggestions or projection; None under two bars."""
        if len(series.bars) < MIN_ANALYTICS_BARS:
            return None

        prices = series.closes
        volumes = [bar.volume for bar in series.bars]
        current_price = prices[-1]
        previous_price = prices[-2]
        first_price = prices[0]

        price_change = current_price - previous_price
        total_change_percent = _percent(current_price - first_price, first_price)

        avg_volume = sum(volumes) / len(volumes)
        current_volume = volumes[-1]
        volume_ratio = current_volume / avg_volume if avg_volume != 0 else 0.0

        window = prices[-TREND_WINDOW:]

        return AnalyticsSnapshot(
            current_price=current_price,
            price_change=price_change,
            price_change_percent=_percent(price_change, previous_price),
            total_change_percent=total_change_percent,
            support=min(bar.low for bar in series.bars),
            resistance=max(bar.high for bar in series.bars),
            current_volume=current_volume,
            avg_volume=avg_volume,
            volume_ratio=volume_ratio,
            is_uptrend=window[-1] >= window[0],
            trend_strength=abs(total_change_percent),
            volatility_percent=_percent(max(prices) - min(prices), current_price),
        )

    def get_analytics(
        self, series: HistoricalSeries, range_: str | None = None
    ) -> AnalyticsSnapshot | None:
        """
        Compute the analytics snapshot for a series.

        Args:
            series: Strictly filtered historical series
            range_: Chart range (defaults to the series' own range)

        Returns:
            AnalyticsSnapshot with sorted suggestions and projection, or None
            when the series has fewer than two bars
        """
        start_time = time.time()
        range_ = range_ or series.range

        indicators = self.compute_indicators(series)
        if indicators is None:
            self.logger.debug(
                "Not enough bars for analytics",
                context={"symbol": series.symbol, "bars": len(series.bars)},
            )
            return None

        suggestions = self._generate_suggestions(indicators, series.symbol)
        snapshot = replace(
            indicators,
            suggestions=suggestions,
            projection=project_series(series, range_, indicators),
        )

        self.logger.info(
            f"Analytics computed for {series.symbol}",
            context={
                "symbol": series.symbol,
                "range": range_,
                "bars": len(series.bars),
                "suggestions": [s.kind for s in suggestions],
                "duration_ms": (time.time() - start_time) * 1000,
            },
        )
        return snapshot

    def _quote_signals(self, quote: Quote) -> tuple[list[QuoteSignal], int, int]:
        signals: list[QuoteSignal] = []
        buy_score = 0
        sell_score = 0
        change_percent = quote.change_percent or 0

        if change_percent > 0:
            buy_score += 1
            signals.append(QuoteSignal(
                "positive",
                "Price Momentum",
                f"Stock is up {change_percent:.2f}%. Positive momentum indicates buying opportunity.",
            ))
        elif change_percent < -5:
            sell_score += 1
            signals.append(QuoteSignal(
                "negative",
                "Price Drop",
                f"Stock down {abs(change_percent):.2f}%. Consider stop loss or exit strategy.",
            ))

        spread = quote_spread(quote)
        if spread is not None and spread > 5:
            signals.append(QuoteSignal(
                "warning",
                "High Volatility",
                f"Wide price range ({spread:.2f}% spread). "
                "High volatility detected - trade cautiously.",
            ))

        if quote.open and quote.price:
            intraday = (quote.price - quote.open) / quote.open * 100
            if intraday > 2:
                buy_score += 1
                signals.append(QuoteSignal(
                    "positive",
                    "Strong Intraday Performance",
                    f"Up {intraday:.2f}% from open. Strong buying pressure.",
                ))
            elif intraday < -2:
                signals.append(QuoteSignal(
                    "warning",
                    "Weak Intraday Performance",
                    f"Down {abs(intraday):.2f}% from open. Consider waiting for better entry.",
                ))

        return signals, buy_score, sell_score

    @staticmethod
    def _stop_loss(quote: Quote) -> StopLoss | None:
        if not quote.price:
            return None
        return StopLoss(
            conservative=quote.price * 0.97,
            aggressive=quote.price * 0.93,
            recommendation=(
                "Tighten stop loss to 3%"
                if (quote.change_percent or 0) > 5
                else "Standard 5% stop loss recommended"
            ),
        )

    def analyze_quote(self, quote: Quote) -> QuoteAnalysis:
        """
        Build the signal panel for a single quote.

        Returns:
            QuoteAnalysis with signals, overall buy/sell/hold call, stop-loss
            levels, row confidence and the five-day projection
        """
        signals, buy_score, sell_score = self._quote_signals(quote)
        if buy_score > sell_score:
            overall = "buy"
        elif buy_score < sell_score:
            overall = "sell"
        else:
            overall = "hold"

        analysis = QuoteAnalysis(
            symbol=quote.symbol,
            overall_signal=overall,
            buy_score=buy_score,
            sell_score=sell_score,
            confidence=calculate_confidence(quote),
            signals=tuple(signals),
            stop_loss=self._stop_loss(quote),
            projection=project_quote(quote),
        )

        self.logger.info(
            f"Quote analysis completed for {quote.symbol}",
            context={
                "symbol": quote.symbol,
                "signal": overall,
                "buy_score": buy_score,
                "sell_score": sell_score,
                "confidence": analysis.confidence,
            },
        )
        return analysis
