"""Tests for the NSE trading-hours calendar."""

from datetime import UTC, datetime, timedelta

from hypothesis import given
from hypothesis import strategies as st

from src.services.market_calendar import (
    IST,
    get_current_ist_time,
    get_market_status,
    is_market_open,
)


def ist(year, month, day, hour, minute, second=0):
    return datetime(year, month, day, hour, minute, second, tzinfo=IST)


# Monday 2024-01-15
MONDAY = (2024, 1, 15)


class TestIsMarketOpen:
    """Tests for session boundaries."""

    def test_one_minute_before_open_is_closed(self):
        assert is_market_open(ist(*MONDAY, 9, 14)) is False

    def test_opening_minute_is_open(self):
        assert is_market_open(ist(*MONDAY, 9, 15)) is True

    def test_closing_minute_is_open(self):
        assert is_market_open(ist(*MONDAY, 15, 30)) is True
        assert is_market_open(ist(*MONDAY, 15, 30, 59)) is True

    def test_one_minute_after_close_is_closed(self):
        assert is_market_open(ist(*MONDAY, 15, 31)) is False

    def test_utc_input_is_converted_to_ist(self):
        # 03:45 UTC is 09:15 IST
        assert is_market_open(datetime(2024, 1, 15, 3, 45, tzinfo=UTC)) is True
        assert is_market_open(datetime(2024, 1, 15, 3, 44, tzinfo=UTC)) is False

    def test_naive_input_is_read_as_utc(self):
        assert is_market_open(datetime(2024, 1, 15, 3, 45)) is True

    @given(
        day_offset=st.sampled_from([5, 6]),
        minute_of_day=st.integers(min_value=0, max_value=24 * 60 - 1),
    )
    def test_weekends_are_always_closed(self, day_offset, minute_of_day):
        """
        **Property: Saturdays and Sundays are closed at every time of day**
        """
        moment = ist(*MONDAY, 0, 0) + timedelta(days=day_offset, minutes=minute_of_day)
        assert moment.weekday() in (5, 6)
        assert is_market_open(moment) is False

    @given(
        day_offset=st.integers(min_value=0, max_value=4),
        minute_of_day=st.integers(min_value=9 * 60 + 15, max_value=15 * 60 + 30),
    )
    def test_weekday_session_minutes_are_open(self, day_offset, minute_of_day):
        """
        **Property: every weekday minute from 09:15 to 15:30 IST is open**
        """
        moment = ist(*MONDAY, 0, 0) + timedelta(days=day_offset, minutes=minute_of_day)
        assert is_market_open(moment) is True


class TestMarketStatus:
    """Tests for status messages."""

    def test_open_status(self):
        status = get_market_status(ist(*MONDAY, 11, 0))
        assert status.is_open is True
        assert status.message == "Market Open"
        assert status.next_status == "Closes at 3:30 PM"

    def test_before_open_status(self):
        status = get_market_status(ist(*MONDAY, 8, 0))
        assert status.is_open is False
        assert status.message == "Market Closed"
        assert status.next_status == "Opens at 9:15 AM"

    def test_after_close_status(self):
        status = get_market_status(ist(*MONDAY, 16, 0))
        assert status.is_open is False
        assert status.message == "Market Closed"
        assert status.next_status == "Opens tomorrow at 9:15 AM"

    def test_weekend_status(self):
        status = get_market_status(ist(2024, 1, 20, 11, 0))
        assert status.is_open is False
        assert status.message == "Market Closed (Weekend)"
        assert status.next_status == "Opens Monday at 9:15 AM"

    def test_friday_evening_says_tomorrow(self):
        status = get_market_status(ist(2024, 1, 19, 18, 0))
        assert status.next_status == "Opens tomorrow at 9:15 AM"


def test_current_ist_time_format():
    assert get_current_ist_time(datetime(2024, 1, 15, 3, 44, 5, tzinfo=UTC)) == "09:14:05"
