"""Tests for calendar date helpers."""

from __future__ import annotations

from datetime import date, datetime, time

import pytest

from datebook.dates import (
    add_days,
    add_months,
    add_weeks,
    end_of_week,
    format_date,
    format_time,
    month_grid_window,
    parse_date,
    parse_time,
    start_of_week,
    weekday_index,
)

pytestmark = pytest.mark.unit


class TestArithmetic:
    def test_add_days_crosses_month(self):
        assert add_days(date(2024, 1, 30), 3) == date(2024, 2, 2)

    def test_add_weeks(self):
        assert add_weeks(date(2024, 1, 1), 2) == date(2024, 1, 15)

    def test_add_months_clamps_to_short_month(self):
        assert add_months(date(2024, 1, 31), 1) == date(2024, 2, 29)
        assert add_months(date(2023, 1, 31), 1) == date(2023, 2, 28)

    def test_add_months_crosses_year(self):
        assert add_months(date(2024, 11, 15), 3) == date(2025, 2, 15)


class TestParsing:
    def test_parse_date_string(self):
        assert parse_date("2024-02-01") == date(2024, 2, 1)

    def test_parse_date_passes_dates_through(self):
        assert parse_date(date(2024, 2, 1)) == date(2024, 2, 1)

    def test_parse_date_truncates_datetime(self):
        assert parse_date(datetime(2024, 2, 1, 13, 45)) == date(2024, 2, 1)

    def test_parse_date_rejects_garbage(self):
        with pytest.raises(ValueError, match="Invalid date"):
            parse_date("02/01/2024")

    def test_format_date(self):
        assert format_date(date(2024, 2, 1)) == "2024-02-01"

    def test_parse_time_hh_mm(self):
        assert parse_time("09:30") == time(9, 30)

    def test_parse_time_with_seconds(self):
        assert parse_time("09:30:15") == time(9, 30, 15)

    def test_parse_time_rejects_garbage(self):
        with pytest.raises(ValueError, match="Invalid time"):
            parse_time("9am")

    def test_format_time_drops_seconds(self):
        assert format_time(time(9, 5, 59)) == "09:05"


class TestWeeks:
    def test_weekday_index_is_sunday_based(self):
        assert weekday_index(date(2024, 1, 7)) == 0  # Sunday
        assert weekday_index(date(2024, 1, 1)) == 1  # Monday
        assert weekday_index(date(2024, 1, 6)) == 6  # Saturday

    def test_start_and_end_of_week(self):
        assert start_of_week(date(2024, 1, 3)) == date(2023, 12, 31)
        assert end_of_week(date(2024, 1, 3)) == date(2024, 1, 6)

    def test_start_of_week_on_sunday_is_identity(self):
        assert start_of_week(date(2024, 1, 7)) == date(2024, 1, 7)

    def test_month_grid_window(self):
        # February 2024 runs Thursday the 1st to Thursday the 29th.
        assert month_grid_window(2024, 2) == (date(2024, 1, 28), date(2024, 3, 2))

    def test_month_grid_window_december(self):
        start, end = month_grid_window(2024, 12)
        assert start == date(2024, 12, 1)
        assert end == date(2025, 1, 4)
