"""
Unit tests for the amount, date, merchant and total parsers.
"""

from decimal import Decimal

import pytest

from receipt_extract.core.parsers import parse_amount, parse_date, parse_merchant
from receipt_extract.core.utils import normalize_amount


class TestNormalizeAmount:
    """Separator conventions for the amount parser"""

    @pytest.mark.parametrize("raw, expected", [
        ("1,234.56", Decimal("1234.56")),
        ("1.234,56", Decimal("1234.56")),
        ("12,34", Decimal("12.34")),
        ("1,234", Decimal("1234")),
        ("$45.67", Decimal("45.67")),
        ("€ 1.234,56", Decimal("1234.56")),
        ("USD 1,000,000.00", Decimal("1000000.00")),
        ("42", Decimal("42")),
    ])
    def test_normalizes(self, raw, expected):
        assert normalize_amount(raw) == expected

    def test_zero_is_not_unparseable(self):
        assert normalize_amount("0.00") == Decimal("0")
        assert normalize_amount("0.00") is not None

    @pytest.mark.parametrize("raw", ["", "abc", "12..3", "$", "1,2,3x"])
    def test_unparseable_returns_none(self, raw):
        assert normalize_amount(raw) is None


class TestParseDate:
    """Day/month ordering and month-name dates"""

    def test_first_component_over_twelve_is_day(self):
        assert parse_date("13/05/2024") == "2024-05-13"

    def test_second_component_over_twelve_is_day(self):
        assert parse_date("05/13/2024") == "2024-05-13"

    def test_month_name_first(self):
        assert parse_date("Jan 5, 2024") == "2024-01-05"

    def test_day_before_month_name(self):
        assert parse_date("Visited 5 January 2024") == "2024-01-05"

    def test_two_digit_year(self):
        assert parse_date("13-05-24") == "2024-05-13"

    def test_year_first(self):
        assert parse_date("Printed 2024-05-13 10:44") == "2024-05-13"

    def test_ambiguous_defaults_to_month_first(self):
        """Neither part exceeds 12: the true order is unknowable, month-first is the accepted default"""
        assert parse_date("03/04/2024") == "2024-03-04"

    def test_invalid_calendar_date_falls_through(self):
        assert parse_date("31/02/2024 then Mar 3, 2024") == "2024-03-03"

    @pytest.mark.parametrize("text", [
        "Farmers Market 5 2024 stalls",
        "Marina 12, 2023",
        "Decaf 3 2024",
        "Junction 7 24",
    ])
    def test_words_starting_like_months_are_not_months(self, text):
        assert parse_date(text) is None

    def test_full_and_dotted_month_names(self):
        assert parse_date("Sept. 9, 2024") == "2024-09-09"
        assert parse_date("3 June 2024") == "2024-06-03"

    def test_phone_number_is_not_a_date(self):
        assert parse_date("Call 555-123-4567") is None

    def test_no_date(self):
        assert parse_date("STARBUCKS\nTOTAL 4.75") is None


class TestParseMerchant:
    """Merchant line selection"""

    def test_first_line(self):
        assert parse_merchant("STARBUCKS\n123 Main St\nTOTAL $4.75") == "STARBUCKS"

    def test_skips_boilerplate_and_strips_decoration(self):
        text = "RECEIPT\n*** Joe's   Diner ***\n42 Elm Street"
        assert parse_merchant(text) == "Joe's Diner"

    def test_skips_url_phone_and_address(self):
        text = "www.bestbuy.com\n(555) 123-4567\n100 Market St Suite 5\nBest Buy #412"
        assert parse_merchant(text) == "Best Buy 412"

    def test_skips_pure_numeric(self):
        assert parse_merchant("0042 1138\n12/05/2024\nCorner Shop") == "Corner Shop"

    def test_only_first_eight_lines(self):
        text = "\n".join(["12345"] * 8 + ["Late Merchant"])
        assert parse_merchant(text) is None

    def test_too_short_is_rejected(self):
        assert parse_merchant("Date: 05/12/2024\nTable 4\nA") is None


class TestParseAmount:
    """Total extraction"""

    def test_total_due_same_line(self):
        assert parse_amount("Thanks\nTOTAL DUE $45.67\nVisit again") == Decimal("45.67")

    def test_subtotal_is_not_total(self):
        text = "SUBTOTAL 10.00\nTAX 0.80\nTOTAL 10.80"
        assert parse_amount(text) == Decimal("10.80")

    @pytest.mark.parametrize("label", ["Sub Total", "Sub-Total", "SUB - TOTAL"])
    def test_spaced_subtotal_is_not_total(self, label):
        text = f"{label} 10.00\nTax 0.80\nTotal 10.80"
        assert parse_amount(text) == Decimal("10.80")

    def test_amount_on_following_line(self):
        assert parse_amount("Grand Total\n$23.50") == Decimal("23.50")

    def test_keyword_priority(self):
        """'amount' is checked before 'total' regardless of line order"""
        assert parse_amount("Total 12.00\nAmount 15.00") == Decimal("15.00")

    def test_rightmost_amount_on_line(self):
        assert parse_amount("TOTAL 2 x 3.00   6.00") == Decimal("6.00")

    def test_comma_decimal_total(self):
        assert parse_amount("TOTAL EUR 1.234,56") == Decimal("1234.56")

    def test_fallback_to_largest_plausible_amount(self):
        text = "Coffee 3.50\nMuffin 2.25\nRef 123456.78"
        assert parse_amount(text) == Decimal("3.50")

    def test_no_amount(self):
        assert parse_amount("hello world") is None
