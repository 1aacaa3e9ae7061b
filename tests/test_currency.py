"""Tests for currency normalization and conversion."""

import pytest
from decimal import Decimal

from freelance_ledger.currency import (
    BASE_CURRENCY,
    Currency,
    CurrencyConverter,
    RATES_TO_BASE,
    convert,
    format_amount,
    normalize_currency_code,
    parse_currency,
)
from freelance_ledger.errors import UnsupportedCurrencyError


class TestCurrencyNormalization:
    """Tests for alias handling."""

    @pytest.mark.parametrize("code", ["dollars", "DOLLARS", "dollar", "usd", " USD ", "$"])
    def test_dollar_aliases(self, code):
        """Test that every dollar spelling maps to one code."""
        assert normalize_currency_code(code) == Currency.DOLLARS

    def test_unknown_code_returns_none(self):
        assert normalize_currency_code("zorkmid") is None

    def test_non_string_returns_none(self):
        assert normalize_currency_code(42) is None

    def test_parse_currency_raises_on_unknown(self):
        """Test the strict variant used at record boundaries."""
        with pytest.raises(UnsupportedCurrencyError, match="zorkmid"):
            parse_currency("zorkmid")

    def test_every_currency_has_a_rate(self):
        """Test that the rate table covers the whole enum."""
        assert set(RATES_TO_BASE) == set(Currency)
        assert RATES_TO_BASE[BASE_CURRENCY] == Decimal("1")


class TestCurrencyConverter:
    """Tests for CurrencyConverter."""

    def test_identity_conversion(self):
        """Test that same-currency conversion returns the input unchanged."""
        amount = Decimal("123.456")
        for currency in Currency:
            assert convert(amount, currency, currency) == amount

    def test_identity_after_alias_normalization(self):
        assert convert(Decimal("10"), "usd", "dollars") == Decimal("10")

    def test_base_to_foreign(self):
        """Test INR to dollars: multiply by the rate."""
        assert convert(Decimal("1200"), "inr", "dollars") == Decimal("14.4")

    def test_foreign_to_base(self):
        """Test dollars to INR: divide by the rate."""
        assert convert(Decimal("12"), "dollars", "inr") == Decimal("1000")

    def test_cross_conversion_goes_through_base(self):
        """Test dollars to euro via INR."""
        assert convert(Decimal("12"), "dollars", "euro") == Decimal("11")

    def test_inr_to_pkr(self):
        assert convert(Decimal("100"), Currency.INR, Currency.PKR) == Decimal("333")

    @pytest.mark.parametrize("source,target", [
        (Currency.DOLLARS, Currency.PKR),
        (Currency.GBP, Currency.AUD),
        (Currency.CAD, Currency.EURO),
    ])
    def test_round_trip(self, source, target):
        """Test that converting there and back returns the original amount."""
        amount = Decimal("987.65")
        back = convert(convert(amount, source, target), target, source)
        assert abs(back - amount) < Decimal("1e-18")

    def test_unknown_currency_fails_open(self):
        """Test that an unknown code returns the amount unconverted."""
        assert convert(Decimal("50"), "zorkmid", "inr") == Decimal("50")
        assert convert(Decimal("50"), "inr", "zorkmid") == Decimal("50")

    def test_custom_rate_table(self):
        """Test that a converter can be given its own table."""
        converter = CurrencyConverter(rates={
            Currency.INR: Decimal("1"),
            Currency.DOLLARS: Decimal("0.01"),
        })
        assert converter.convert(Decimal("100"), "inr", "dollars") == Decimal("1")
        # Missing from the custom table: fail open
        assert converter.convert(Decimal("100"), "inr", "pkr") == Decimal("100")

    def test_converts_through_base(self):
        converter = CurrencyConverter()
        assert converter.base == Currency.INR
        assert converter.convert(Decimal("0.012"), "dollars", "inr") == Decimal("1")


class TestFormatAmount:
    """Tests for display formatting."""

    def test_format_with_symbol(self):
        assert format_amount(Decimal("1250"), "dollars") == "$1,250.00"

    def test_format_unknown_currency_has_no_symbol(self):
        assert format_amount(Decimal("5"), "zorkmid") == "5.00"
