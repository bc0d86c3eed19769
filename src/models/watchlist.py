"""Watchlist context and published snapshot models."""

from dataclasses import dataclass, replace
from datetime import date, datetime

from src.models.market_data import MarketStatus, Quote


@dataclass(frozen=True)
class WatchlistContext:
    """Symbols to track and the date being viewed (None means live data).

    Contexts are values: every change returns a new context, which the
    scheduler swaps in as a whole.
    """

    symbols: tuple[str, ...] = ()
    selected_date: date | None = None

    @classmethod
    def from_symbols(cls, symbols: list[str], selected_date: date | None = None) -> "WatchlistContext":
        unique: list[str] = []
        for symbol in symbols:
            normalized = symbol.strip().upper()
            if normalized and normalized not in unique:
                unique.append(normalized)
        return cls(symbols=tuple(unique), selected_date=selected_date)

    def with_symbol(self, symbol: str) -> "WatchlistContext":
        normalized = symbol.strip().upper()
        if not normalized or normalized in self.symbols:
            return self
        return replace(self, symbols=self.symbols + (normalized,))

    def without_symbol(self, symbol: str) -> "WatchlistContext":
        normalized = symbol.strip().upper()
        return replace(self, symbols=tuple(s for s in self.symbols if s != normalized))

    def with_date(self, selected_date: date | None) -> "WatchlistContext":
        return replace(self, selected_date=selected_date)

    @property
    def is_live(self) -> bool:
        return self.selected_date is None


@dataclass(frozen=True)
class WatchlistSnapshot:
    """Result of one refresh cycle, published atomically."""

    quotes: tuple[Quote, ...]
    generated_at: datetime
    market_status: MarketStatus
    generation: int
    selected_date: date | None = None

    @property
    def has_data(self) -> bool:
        return len(self.quotes) > 0
