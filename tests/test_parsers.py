"""Tests for date and amount parsing."""

import pytest
from datetime import date, timedelta
from decimal import Decimal

from reconciler.utils import parse_amount, parse_date, parse_optional_amount


class TestParseDate:
    """Tests for parse_date."""

    def test_iso_date(self):
        assert parse_date("2024-01-05") == date(2024, 1, 5)

    def test_day_first(self):
        assert parse_date("05/01/2024") == date(2024, 1, 5)

    def test_month_name(self):
        assert parse_date("15 Jan 2024") == date(2024, 1, 15)

    def test_relative(self):
        assert parse_date("today") == date.today()
        assert parse_date(" Yesterday ") == date.today() - timedelta(days=1)

    def test_invalid(self):
        with pytest.raises(ValueError, match="Could not parse date"):
            parse_date("not a date")


class TestParseAmount:
    """Tests for parse_amount."""

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("123.45", Decimal("123.45")),
            ("-123.45", Decimal("-123.45")),
            ("£1,234.56", Decimal("1234.56")),
            ("-£20", Decimal("-20")),
            ("(75.00)", Decimal("-75.00")),
            (" 5 ", Decimal("5")),
        ],
    )
    def test_formats(self, text, expected):
        assert parse_amount(text) == expected

    @pytest.mark.parametrize("text", ["", "  ", "abc", "NaN", "inf"])
    def test_invalid(self, text):
        with pytest.raises(ValueError):
            parse_amount(text)

    def test_optional(self):
        assert parse_optional_amount(None) is None
        assert parse_optional_amount("") is None
        assert parse_optional_amount("10") == Decimal("10")
