from datetime import date, datetime

import pytest

from storeops.money import format_currency, round_money
from storeops.time_utils import (
    FixedClock,
    format_date_key,
    local_day_window,
    parse_date_key,
    parse_iso_datetime,
    previous_day_window,
    resolve_timezone,
    to_utc_z,
)


def test_parse_iso_datetime_normalizes_to_utc_naive():
    assert parse_iso_datetime("2024-03-02T09:15:00Z") == datetime(2024, 3, 2, 9, 15)
    assert parse_iso_datetime("2024-03-02T04:15:00-05:00") == datetime(2024, 3, 2, 9, 15)
    assert parse_iso_datetime("2024-03-02T09:15") == datetime(2024, 3, 2, 9, 15)
    assert parse_iso_datetime("  ") is None


def test_to_utc_z():
    assert to_utc_z(datetime(2024, 3, 2, 9, 15, 30, 999)) == "2024-03-02T09:15:30Z"
    assert to_utc_z(None) is None


def test_fixed_clock():
    clock = FixedClock("2024-03-02T09:15:00Z")
    assert clock.now() == datetime(2024, 3, 2, 9, 15)
    assert clock.advance(hours=15) == datetime(2024, 3, 3, 0, 15)


def test_resolve_timezone_fallbacks():
    assert resolve_timezone("Africa/Accra").key == "Africa/Accra"
    assert resolve_timezone("Not/AZone").key == "UTC"
    assert resolve_timezone("", default="America/New_York").key == "America/New_York"
    assert resolve_timezone(None, default="Bogus/Default").key == "UTC"


@pytest.mark.parametrize("instant,zone,expected", [
    (datetime(2024, 3, 2, 9, 15), "Africa/Accra", "2024-03-02"),
    (datetime(2024, 3, 2, 2, 30), "America/New_York", "2024-03-01"),
    (datetime(2024, 3, 2, 23, 30), "Asia/Tokyo", "2024-03-03"),
])
def test_format_date_key(instant, zone, expected):
    assert format_date_key(instant, resolve_timezone(zone)) == expected


def test_parse_date_key():
    assert parse_date_key("2024-02-29") == date(2024, 2, 29)
    assert parse_date_key("2023-02-29") is None
    assert parse_date_key("2024-3-2") is None
    assert parse_date_key(None) is None


def test_local_day_window_spans_dst_change():
    """US spring-forward day is 23 hours long."""
    window = local_day_window(date(2024, 3, 10), resolve_timezone("America/New_York"))
    assert window.start == datetime(2024, 3, 10, 5, 0)
    assert window.end == datetime(2024, 3, 11, 4, 0)
    assert window.date_key == "2024-03-10"


def test_previous_day_window_uses_local_today():
    tz = resolve_timezone("America/New_York")
    window = previous_day_window(tz, datetime(2024, 3, 3, 1, 0))
    assert window.date_key == "2024-03-01"
    assert window.start == datetime(2024, 3, 1, 5, 0)
    assert window.end == datetime(2024, 3, 2, 5, 0)


def test_money_helpers():
    assert round_money(None) == 0.0
    assert round_money(0.1 + 0.2) == 0.3
    assert format_currency(1234.5) == "GHS 1,234.50"
    assert format_currency(3, symbol="$") == "$ 3.00"
