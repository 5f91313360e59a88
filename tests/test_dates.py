"""Tests for date decomposition."""

from invite_engine.dates import DateParts, parse_date_parts


class TestParseDateParts:
    """Tests for parse_date_parts()."""

    def test_day_month_year(self):
        assert parse_date_parts("19 February 2026") == DateParts(
            day_name="Thursday", date_number="19", month="February", year="2026"
        )

    def test_month_name_case_insensitive(self):
        parts = parse_date_parts("  19 february 2026  ")
        assert parts.month == "February"
        assert parts.day_name == "Thursday"

    def test_trailing_text_ignored(self):
        parts = parse_date_parts("1 March 2026, evening")
        assert parts == DateParts(day_name="Sunday", date_number="1", month="March", year="2026")

    def test_malformed(self):
        assert parse_date_parts("not a date") is None

    def test_empty(self):
        assert parse_date_parts("") is None
        assert parse_date_parts(None) is None

    def test_invalid_calendar_day(self):
        """31 February does not roll over into March."""
        assert parse_date_parts("31 February 2026") is None

    def test_iso_fallback(self):
        parts = parse_date_parts("2026-02-19")
        assert (parts.day_name, parts.date_number, parts.month, parts.year) == ("Thursday", "19", "February", "2026")

    def test_abbreviated_month_fallback(self):
        assert parse_date_parts("19 Feb 2026").month == "February"

    def test_us_style_fallback(self):
        parts = parse_date_parts("February 19, 2026")
        assert parts.date_number == "19"
        assert parts.day_name == "Thursday"

    def test_no_leading_zero(self):
        assert parse_date_parts("2026-03-05").date_number == "5"
