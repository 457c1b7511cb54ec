"""
Tests for expiry date rules.
"""

import pytest
import sys
import os
from datetime import date, datetime, timezone, timedelta

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '../src'))

from domain.expiry import (
    expiring_within,
    format_expiry_date,
    is_tomorrow,
    parse_expiry,
    reference_tomorrow,
    to_utc_date,
)

NOW = datetime(2025, 6, 10, 8, 0, 0, tzinfo=timezone.utc)


class TestParseExpiry:
    """Test parsing of stored expiry values."""

    def test_parse_zulu_timestamp(self):
        parsed = parse_expiry("2025-06-11T00:00:00Z")
        assert parsed == datetime(2025, 6, 11, tzinfo=timezone.utc)

    def test_parse_date_only_string_is_utc_midnight(self):
        parsed = parse_expiry("2025-06-11")
        assert parsed == datetime(2025, 6, 11, tzinfo=timezone.utc)

    def test_parse_offset_is_converted_to_utc(self):
        parsed = parse_expiry("2025-06-11T01:00:00+02:00")
        assert parsed == datetime(2025, 6, 10, 23, 0, tzinfo=timezone.utc)

    def test_parse_date_and_datetime_objects(self):
        assert parse_expiry(date(2025, 6, 11)) == datetime(2025, 6, 11, tzinfo=timezone.utc)
        naive = datetime(2025, 6, 11, 12, 30)
        assert parse_expiry(naive).tzinfo == timezone.utc

    @pytest.mark.parametrize("value", [None, "", "   ", "not-a-date", "2025-13-40", 12345])
    def test_parse_invalid_returns_none(self, value):
        assert parse_expiry(value) is None


class TestIsTomorrow:
    """Test the reference-tomorrow comparison."""

    def test_reference_tomorrow(self):
        assert reference_tomorrow(NOW) == date(2025, 6, 11)

    def test_reference_tomorrow_uses_utc_date_of_aware_now(self):
        # 2025-06-10T23:30-05:00 is already 2025-06-11 in UTC
        late_evening = datetime(2025, 6, 10, 23, 30, tzinfo=timezone(timedelta(hours=-5)))
        assert reference_tomorrow(late_evening) == date(2025, 6, 12)

    def test_exactly_one_day_ahead_matches(self):
        assert is_tomorrow("2025-06-11T08:00:00Z", NOW) is True

    def test_any_time_of_day_tomorrow_matches(self):
        assert is_tomorrow("2025-06-11T00:00:00Z", NOW) is True
        assert is_tomorrow("2025-06-11T23:59:59Z", NOW) is True
        assert is_tomorrow("2025-06-11", NOW) is True

    def test_today_does_not_match(self):
        assert is_tomorrow("2025-06-10T20:00:00Z", NOW) is False

    def test_two_days_ahead_does_not_match(self):
        assert is_tomorrow("2025-06-12T00:00:00Z", NOW) is False

    def test_offset_crossing_midnight_uses_utc_date(self):
        # Local date is the 12th but UTC date is the 11th
        assert is_tomorrow("2025-06-12T01:00:00+03:00", NOW) is True

    @pytest.mark.parametrize("value", [None, "", "garbage"])
    def test_missing_or_invalid_does_not_match(self, value):
        assert is_tomorrow(value, NOW) is False


class TestExpiringWithin:
    """Test the expiring-soon window."""

    def test_window_filters_and_sorts(self, make_item):
        items = [
            make_item("Yogurt", "2025-06-15T00:00:00Z"),
            make_item("Milk", "2025-06-11T00:00:00Z"),
            make_item("Old bread", "2025-06-09T00:00:00Z"),
            make_item("Vitamins", "2025-07-30T00:00:00Z"),
            make_item("Unknown", None),
            make_item("Deleted", "2025-06-12T00:00:00Z", deleted_at="2025-06-09T10:00:00Z"),
        ]

        result = expiring_within(items, 7, NOW)

        assert [item.name for item in result] == ["Milk", "Yogurt"]

    def test_empty_input(self):
        assert expiring_within([], 3, NOW) == []


class TestFormatExpiryDate:
    """Test display formatting."""

    def test_format_long_date(self):
        assert format_expiry_date("2025-06-11T00:00:00Z") == "June 11, 2025"

    def test_format_no_zero_padding(self):
        assert format_expiry_date("2025-06-01") == "June 1, 2025"

    def test_format_invalid_returns_raw(self):
        assert format_expiry_date("soon") == "soon"
        assert format_expiry_date(None) == ""

    def test_to_utc_date(self):
        assert to_utc_date("2025-06-11T23:00:00Z") == date(2025, 6, 11)
        assert to_utc_date("bad") is None


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
