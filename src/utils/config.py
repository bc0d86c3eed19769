"""Configuration management for the application."""

import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

DEFAULT_WATCHLIST = [
    "ADANIENT.NS",
    "ASIANPAINT.NS",
    "AXISBANK.NS",
    "BAJFINANCE.NS",
    "BHARTIARTL.NS",
    "HCLTECH.NS",
    "HDFCBANK.NS",
    "ICICIBANK.NS",
    "INFY.NS",
    "ITC.NS",
    "LT.NS",
    "RELIANCE.NS",
    "SBIN.NS",
    "SUNPHARMA.NS",
    "TATAMOTORS.NS",
    "TATASTEEL.NS",
    "TCS.NS",
    "^BSESN",
    "^NSEBANK",
    "^NSEI",
]

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class QuoteSourceConfig:
    """Upstream quote source endpoints and transport settings."""

    chart_url: str = "https://query1.finance.yahoo.com/v8/finance/chart"
    search_url: str = "https://query1.finance.yahoo.com/v1/finance/search"
    chart_proxy_url: str | None = None
    search_proxy_url: str | None = None
    timeout_seconds: float = 30.0
    user_agent: str = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"


@dataclass
class RefreshConfig:
    """Periodic watchlist refresh configuration."""

    interval_seconds: int = 10
    enabled: bool = True
    max_workers: int = 8


@dataclass
class WatchlistConfig:
    """Initial watchlist configuration."""

    default_symbols: list[str] = field(default_factory=lambda: list(DEFAULT_WATCHLIST))


@dataclass
class LogConfig:
    """Structured logging configuration."""

    level: str = "INFO"
    file_path: str | None = None


def _parse_symbols(raw: str | None) -> list[str]:
    if not raw:
        return list(DEFAULT_WATCHLIST)
    return [s.strip().upper() for s in raw.split(",") if s.strip()]


class Config:
    """Main application configuration."""

    def __init__(self):
        self.quote_source = QuoteSourceConfig(
            chart_url=os.getenv("CHART_API_URL", QuoteSourceConfig.chart_url),
            search_url=os.getenv("SEARCH_API_URL", QuoteSourceConfig.search_url),
            chart_proxy_url=os.getenv("CHART_PROXY_URL") or None,
            search_proxy_url=os.getenv("SEARCH_PROXY_URL") or None,
            timeout_seconds=float(os.getenv("QUOTE_TIMEOUT_SECONDS", "30")),
            user_agent=os.getenv("QUOTE_USER_AGENT", QuoteSourceConfig.user_agent),
        )

        self.refresh = RefreshConfig(
            interval_seconds=int(os.getenv("REFRESH_INTERVAL_SECONDS", "10")),
            enabled=os.getenv("REFRESH_ENABLED", "true").lower() == "true",
            max_workers=int(os.getenv("FETCH_MAX_WORKERS", "8")),
        )

        self.watchlist = WatchlistConfig(
            default_symbols=_parse_symbols(os.getenv("WATCHLIST_SYMBOLS")),
        )

        self.logging = LogConfig(
            level=os.getenv("LOG_LEVEL", "INFO").upper(),
            file_path=os.getenv("LOG_FILE") or None,
        )

    def validate(self) -> bool:
        """
        Validate configuration.

        Returns:
            True if configuration is valid

        Raises:
            ValueError if configuration is invalid
        """
        for name, url in [
            ("CHART_API_URL", self.quote_source.chart_url),
            ("SEARCH_API_URL", self.quote_source.search_url),
            ("CHART_PROXY_URL", self.quote_source.chart_proxy_url),
            ("SEARCH_PROXY_URL", self.quote_source.search_proxy_url),
        ]:
            if url is not None and not url.startswith(("http://", "https://")):
                raise ValueError(f"{name} must be an http(s) URL: {url}")

        if self.quote_source.timeout_seconds <= 0:
            raise ValueError("QUOTE_TIMEOUT_SECONDS must be positive")
        if self.refresh.interval_seconds <= 0:
            raise ValueError("REFRESH_INTERVAL_SECONDS must be positive")
        if self.refresh.max_workers <= 0:
            raise ValueError("FETCH_MAX_WORKERS must be positive")
        if self.logging.level not in LOG_LEVELS:
            raise ValueError(f"Invalid LOG_LEVEL: {self.logging.level}")

        return True


# Global config instance
config = Config()
