"""Trading-hours calendar for the Indian equity market (NSE/BSE).

Sessions run Monday to Friday, 09:15 to 15:30 IST. IST is handled as a
fixed UTC+05:30 offset; holidays are not modelled.
"""

from datetime import UTC, datetime, timedelta, timezone

from src.models.market_data import MarketStatus

IST = timezone(timedelta(hours=5, minutes=30), name="IST")

MARKET_OPEN_MINUTE = 9 * 60 + 15
MARKET_CLOSE_MINUTE = 15 * 60 + 30


def _to_ist(now: datetime | None) -> datetime:
    if now is None:
        now = datetime.now(UTC)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=UTC)
    return now.astimezone(IST)


def _is_weekend(ist_time: datetime) -> bool:
    return ist_time.weekday() >= 5


def _minute_of_day(ist_time: datetime) -> int:
    return ist_time.hour * 60 + ist_time.minute


def is_market_open(now: datetime | None = None) -> bool:
    """
    Check whether the market is in session.

    Args:
        now: Instant to check; naive values are read as UTC, None means now

    Returns:
        True on weekdays between 09:15 and 15:30 IST, both minutes included
    """
    ist_time = _to_ist(now)
    if _is_weekend(ist_time):
        return False
    return MARKET_OPEN_MINUTE <= _minute_of_day(ist_time) <= MARKET_CLOSE_MINUTE


def get_market_status(now: datetime | None = None) -> MarketStatus:
    """Describe the session state and when it next changes."""
    if is_market_open(now):
        return MarketStatus(is_open=True, message="Market Open", next_status="Closes at 3:30 PM")

    ist_time = _to_ist(now)
    if _is_weekend(ist_time):
        return MarketStatus(
            is_open=False,
            message="Market Closed (Weekend)",
            next_status="Opens Monday at 9:15 AM",
        )
    if _minute_of_day(ist_time) < MARKET_OPEN_MINUTE:
        return MarketStatus(is_open=False, message="Market Closed", next_status="Opens at 9:15 AM")
    return MarketStatus(
        is_open=False, message="Market Closed", next_status="Opens tomorrow at 9:15 AM"
    )


def get_current_ist_time(now: datetime | None = None) -> str:
    """Format the IST wall clock as HH:MM:SS."""
    return _to_ist(now).strftime("%H:%M:%S")
