"""Error taxonomy for the quote pipeline."""


class MarketDataError(Exception):
    """Base class for quote pipeline failures."""

    def __init__(self, message: str, symbol: str | None = None):
        super().__init__(message)
        self.symbol = symbol


class NoUsableData(MarketDataError):
    """The series contains no finite, non-null close."""


class NoDataError(MarketDataError):
    """Nothing could be produced for the symbol after all fallbacks."""


class FetchError(MarketDataError):
    """Every transport route to the quote source failed."""


class EmptyQuery(MarketDataError):
    """Search query is too short to be sent upstream."""
