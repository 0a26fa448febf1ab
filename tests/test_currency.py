"""
Test suite for currency module

Tests Money display rounding and safe Decimal conversion of user input.
Ledger values must never pass through float.
"""

import pytest
from decimal import Decimal

from tender_ledger.currency import (
    Money, Currency, to_decimal, decimal_from_string
)


class TestMoney:
    """Test Money class operations"""

    def test_money_creation(self):
        money = Money(Decimal('100.50'), Currency.INR)
        assert money.amount == Decimal('100.50')
        assert money.currency == Currency.INR

        # Rounded half up to currency precision
        assert Money(Decimal('100.555'), Currency.INR).amount == Decimal('100.56')
        assert Money(Decimal('100.7'), Currency.JPY).amount == Decimal('101')

    def test_display_of_unrounded_installment(self):
        """50000 over 3 months is stored exactly and rounded only for display"""
        installment = Decimal('50000') / Decimal('3')
        assert Money(installment, Currency.INR).to_string() == "INR 16,666.67"
        assert installment != Decimal('16666.67')

    def test_equality_and_hash(self):
        a = Money(Decimal('10.001'), Currency.INR)
        b = Money(Decimal('10.00'), Currency.INR)
        assert a == b
        assert hash(a) == hash(b)
        assert a != Money(Decimal('10.00'), Currency.USD)
        assert a != Decimal('10.00')

    def test_to_string(self):
        assert Money(Decimal('1234.5'), Currency.INR).to_string() == "INR 1,234.50"
        assert Money(Decimal('1000'), Currency.JPY).to_string() == "JPY 1,000"


class TestCurrency:
    """Test Currency lookups"""

    def test_from_code(self):
        assert Currency.from_code("inr") == Currency.INR
        assert Currency.from_code(" USD ") == Currency.USD

    def test_unknown_code(self):
        with pytest.raises(ValueError):
            Currency.from_code("XYZ")

    def test_minor_unit(self):
        assert Currency.INR.minor_unit == Decimal('0.01')
        assert Currency.JPY.minor_unit == Decimal('1')


class TestDecimalConversion:
    """Test conversion of user input to Decimal"""

    @pytest.mark.parametrize("text,expected", [
        ("1200", Decimal('1200')),
        ("₹1,200.50", Decimal('1200.50')),
        ("1,00,000", Decimal('100000')),
        ("1,200", Decimal('1200')),
        ("12,5", Decimal('12.5')),
        (" 5500 ", Decimal('5500')),
    ])
    def test_decimal_from_string(self, text, expected):
        assert decimal_from_string(text) == expected

    @pytest.mark.parametrize("text", ["", "abc", "1.2.3"])
    def test_invalid_strings(self, text):
        with pytest.raises(ValueError):
            decimal_from_string(text)

    def test_to_decimal(self):
        assert to_decimal(Decimal('1.5')) == Decimal('1.5')
        assert to_decimal(400) == Decimal('400')
        assert to_decimal("400.25") == Decimal('400.25')

    @pytest.mark.parametrize("value", [1.5, True, None, [1]])
    def test_to_decimal_rejects(self, value):
        with pytest.raises(ValueError):
            to_decimal(value)
