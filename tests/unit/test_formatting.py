"""
Unit tests for display formatting helpers.
"""

from datetime import date, datetime, timezone

import pytest

from apex.utils.formatting import format_duration, format_km, format_short_date, to_title_case


class TestFormatDuration:
    @pytest.mark.parametrize(
        "end, expected",
        [
            ("2025-01-05T08:30:45Z", "0:45"),
            ("2025-01-05T09:12:07Z", "42:07"),
            ("2025-01-05T10:35:09Z", "2:05:09"),
        ],
    )
    def test_formats(self, end, expected):
        assert format_duration("2025-01-05T08:30:00Z", end) == expected

    def test_in_progress(self):
        assert format_duration("2025-01-05T08:30:00Z", None) == "In progress"
        assert format_duration("2025-01-05T08:30:00Z", "", in_progress_label="Riding") == "Riding"

    def test_end_before_start_is_zero(self):
        assert format_duration("2025-01-05T09:00:00Z", "2025-01-05T08:00:00Z") == "0:00"

    def test_accepts_datetimes(self):
        start = datetime(2025, 1, 5, 8, 0, tzinfo=timezone.utc)
        end = datetime(2025, 1, 5, 9, 0, tzinfo=timezone.utc)
        assert format_duration(start, end) == "1:00:00"


class TestFormatShortDate:
    def test_with_year(self):
        assert format_short_date(date(2025, 1, 5)) == "Jan 5, 2025"

    def test_without_year(self):
        assert format_short_date("2025-12-25T10:00:00Z", include_year=False) == "Dec 25"

    def test_relative(self):
        today = date(2025, 3, 10)
        assert format_short_date(date(2025, 3, 10), use_relative=True, today=today) == "Today"
        assert format_short_date(date(2025, 3, 9), use_relative=True, today=today) == "Yesterday"
        assert format_short_date(date(2025, 3, 8), use_relative=True, today=today) == "Mar 8, 2025"


class TestTitleCase:
    @pytest.mark.parametrize(
        "text, expected",
        [
            ("mt-07 tracer", "Mt-07 Tracer"),
            ("ROYAL ENFIELD", "Royal Enfield"),
            ("  duke   390 ", "Duke 390"),
            ("", ""),
            (None, ""),
        ],
    )
    def test_title_case(self, text, expected):
        assert to_title_case(text) == expected


def test_format_km():
    assert format_km(1234.5) == "1,234.5 km"
    assert format_km(12, decimals=0) == "12 km"
