"""
Unit tests for the shared utility helpers.

Tests cover:
- Date and datetime parsing with dateutil
- Numeric detection and loose coercion
- Emptiness checks
"""

from datetime import date, datetime

from formrules.core.utils import is_empty, is_number, parse_datetime, to_number


# =============================================================
# Test: Date parsing
# =============================================================


class TestParseDatetime:

    def test_iso_date(self):
        assert parse_datetime("2026-02-12") == datetime(2026, 2, 12)

    def test_iso_datetime(self):
        assert parse_datetime("2026-02-12T10:30:00") == datetime(2026, 2, 12, 10, 30)

    def test_date_passes_through(self):
        assert parse_datetime(date(2026, 2, 12)) == datetime(2026, 2, 12)

    def test_datetime_passes_through(self):
        value = datetime(2026, 2, 12, 8, 0)
        assert parse_datetime(value) is value

    def test_garbage_input(self):
        assert parse_datetime("not-a-date") is None

    def test_empty_and_non_string(self):
        assert parse_datetime("") is None
        assert parse_datetime(None) is None
        assert parse_datetime(20260212) is None


# =============================================================
# Test: Numbers
# =============================================================


class TestNumbers:

    def test_booleans_are_not_numbers(self):
        assert is_number(3) is True
        assert is_number(2.5) is True
        assert is_number(True) is False

    def test_numeric_strings_are_coerced(self):
        assert to_number(" 42 ") == 42.0
        assert to_number("1e3") == 1000.0

    def test_blank_string_is_zero(self):
        assert to_number("   ") == 0

    def test_non_numeric_is_none(self):
        assert to_number("abc") is None
        assert to_number(None) is None
        assert to_number([1]) is None


# =============================================================
# Test: Emptiness
# =============================================================


class TestIsEmpty:

    def test_empty_values(self):
        for value in (None, "", "   ", [], {}, (), set()):
            assert is_empty(value) is True

    def test_falsy_scalars_are_not_empty(self):
        assert is_empty(0) is False
        assert is_empty(False) is False

    def test_non_empty_values(self):
        assert is_empty("x") is False
        assert is_empty([0]) is False
