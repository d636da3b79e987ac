"""Tests for day-key arithmetic."""

import pytest

from coach_sync.errors import InvalidTimeError
from coach_sync.utils.day_keys import (
    MAX_RANGE_DAYS,
    add_days_to_day_key,
    day_key_diff,
    day_keys_inclusive,
    is_day_key,
    is_day_key_in_range,
    parse_day_key,
    start_of_week_day_key,
)


class TestIsDayKey:
    """Tests for day key validation."""

    @pytest.mark.parametrize("value", ["2026-02-05", "2024-02-29", "1999-12-31"])
    def test_valid(self, value):
        assert is_day_key(value)

    @pytest.mark.parametrize(
        "value",
        ["2026-02-30", "2025-02-29", "2026-2-5", "2026-02-05T00:00:00Z", "", None, 20260205],
    )
    def test_invalid(self, value):
        assert not is_day_key(value)

    def test_parse_rejects_garbage(self):
        with pytest.raises(InvalidTimeError):
            parse_day_key("tomorrow")


class TestArithmetic:
    """Tests for adding and diffing day keys."""

    def test_add_days_crosses_month_and_year(self):
        assert add_days_to_day_key("2026-01-31", 1) == "2026-02-01"
        assert add_days_to_day_key("2026-12-31", 1) == "2027-01-01"
        assert add_days_to_day_key("2026-03-01", -1) == "2026-02-28"

    def test_add_days_leap_year(self):
        assert add_days_to_day_key("2024-02-28", 1) == "2024-02-29"

    def test_diff_is_signed(self):
        assert day_key_diff("2026-02-06", "2026-02-05") == 1
        assert day_key_diff("2026-02-05", "2026-02-06") == -1
        assert day_key_diff("2026-02-05", "2026-02-05") == 0

    def test_in_range_is_inclusive(self):
        assert is_day_key_in_range("2026-02-01", "2026-02-01", "2026-02-07")
        assert is_day_key_in_range("2026-02-07", "2026-02-01", "2026-02-07")
        assert not is_day_key_in_range("2026-02-08", "2026-02-01", "2026-02-07")


class TestExpansion:
    """Tests for range expansion and week starts."""

    def test_inclusive_range(self):
        keys = day_keys_inclusive("2026-02-27", "2026-03-02")
        assert keys == ["2026-02-27", "2026-02-28", "2026-03-01", "2026-03-02"]

    def test_reversed_range_is_empty(self):
        assert day_keys_inclusive("2026-02-05", "2026-02-04") == []

    def test_expansion_is_capped(self):
        keys = day_keys_inclusive("2020-01-01", "2030-01-01")
        assert len(keys) == MAX_RANGE_DAYS

    def test_start_of_week_is_monday(self):
        # 2026-02-05 is a Thursday
        assert start_of_week_day_key("2026-02-05") == "2026-02-02"
        assert start_of_week_day_key("2026-02-02") == "2026-02-02"
        assert start_of_week_day_key("2026-02-08") == "2026-02-02"
