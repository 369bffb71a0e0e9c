"""
Test suite for currency module

Tests Money class, Decimal conversion and display formatting.
All monetary calculations must use Decimal precision.
"""

import pytest
from decimal import Decimal, ROUND_DOWN

from lendbook.currency import (
    Money, Currency, to_decimal, quantize_amount, sum_money,
    format_currency, format_percentage, decimal_from_string
)
from lendbook.exceptions import ValidationError, LendbookError


class TestMoney:
    """Test Money class operations"""

    def test_money_creation(self):
        """Test Money object creation and rounding to currency precision"""
        money = Money(Decimal('100.50'), Currency.PHP)
        assert money.amount == Decimal('100.50')
        assert money.currency == Currency.PHP

        # Half-up rounding to the centavo
        assert Money(Decimal('100.555'), Currency.PHP).amount == Decimal('100.56')
        assert Money(Decimal('100.554'), Currency.PHP).amount == Decimal('100.55')

        # JPY has no minor unit
        assert Money(Decimal('100.5'), Currency.JPY).amount == Decimal('101')

    def test_money_from_string_and_int(self):
        """Test non-Decimal amounts are converted without float math"""
        assert Money('12.30', Currency.PHP).amount == Decimal('12.30')
        assert Money(7, Currency.PHP).amount == Decimal('7.00')

    def test_money_arithmetic(self):
        """Test Money arithmetic operations"""
        a = Money(Decimal('100.50'), Currency.PHP)
        b = Money(Decimal('50.25'), Currency.PHP)

        assert (a + b).amount == Decimal('150.75')
        assert (a - b).amount == Decimal('50.25')
        assert (a * Decimal('2')).amount == Decimal('201.00')
        assert (a / Decimal('2')).amount == Decimal('50.25')
        assert (-a).amount == Decimal('-100.50')
        assert abs(Money(Decimal('-5'), Currency.PHP)).amount == Decimal('5.00')

    def test_currency_mismatch(self):
        """Test that mixing currencies is refused"""
        php = Money(Decimal('1'), Currency.PHP)
        usd = Money(Decimal('1'), Currency.USD)
        with pytest.raises(ValueError, match="Cannot add"):
            php + usd
        with pytest.raises(ValueError, match="Cannot compare"):
            php < usd

    def test_comparisons_and_predicates(self):
        """Test ordering and sign helpers"""
        small = Money(Decimal('1.00'), Currency.PHP)
        large = Money(Decimal('2.00'), Currency.PHP)
        assert small < large
        assert large >= small
        assert small == Money(Decimal('1'), Currency.PHP)
        assert small != Money(Decimal('1'), Currency.USD)
        assert Money.zero(Currency.PHP).is_zero()
        assert small.is_positive()
        assert (-small).is_negative()

    def test_formatting(self):
        """Test ISO and symbol formatting with thousands separators"""
        money = Money(Decimal('1250'), Currency.PHP)
        assert money.to_string() == "PHP 1,250.00"
        assert money.format() == "₱1,250.00"
        assert Money(Decimal('-5'), Currency.PHP).format() == "-₱5.00"
        assert Money(Decimal('1234567.891'), Currency.USD).format() == "$1,234,567.89"
        assert Money(Decimal('1500'), Currency.JPY).format() == "¥1,500"

    def test_sum_money(self):
        """Test summing starts from zero in the given currency"""
        values = [Money(Decimal('1.10'), Currency.PHP), Money(Decimal('2.20'), Currency.PHP)]
        assert sum_money(values, Currency.PHP).amount == Decimal('3.30')
        assert sum_money([], Currency.PHP).is_zero()


class TestDecimalConversion:
    """Test conversion of user input to Decimal"""

    def test_float_goes_through_str(self):
        """Test 0.1 becomes Decimal('0.1'), not its binary expansion"""
        assert to_decimal(0.1) == Decimal('0.1')
        assert to_decimal(2.5) == Decimal('2.5')

    def test_valid_inputs(self):
        """Test str, int and Decimal inputs"""
        assert to_decimal(" 50000 ") == Decimal('50000')
        assert to_decimal(12) == Decimal('12')
        assert to_decimal(Decimal('3.14')) == Decimal('3.14')

    @pytest.mark.parametrize("value", ["abc", "", "NaN", "Infinity", None, [1], True])
    def test_invalid_inputs(self, value):
        """Test garbage, non-finite and bool values are rejected"""
        with pytest.raises(ValidationError):
            to_decimal(value)

    def test_validation_error_is_value_error(self):
        """Test the domain error hierarchy stays catchable as ValueError"""
        with pytest.raises(ValueError):
            to_decimal("bad")
        assert issubclass(ValidationError, LendbookError)

    def test_quantize_amount_rounding_modes(self):
        """Test explicit rounding to the minor unit"""
        assert quantize_amount(Decimal('0.125'), Currency.PHP) == Decimal('0.13')
        assert quantize_amount(Decimal('0.129'), Currency.PHP, ROUND_DOWN) == Decimal('0.12')

    def test_decimal_from_string(self):
        """Test lenient parsing of formatted amounts"""
        assert decimal_from_string("₱1,250.50") == Decimal('1250.50')
        assert decimal_from_string("1,250") == Decimal('1250')
        assert decimal_from_string("12,5") == Decimal('12.5')
        with pytest.raises(ValidationError):
            decimal_from_string("")


class TestCurrency:
    """Test currency metadata"""

    def test_minor_unit(self):
        """Test minor unit follows precision"""
        assert Currency.PHP.minor_unit == Decimal('0.01')
        assert Currency.JPY.minor_unit == Decimal('1')

    def test_from_code(self):
        """Test lookup by ISO code"""
        assert Currency.from_code("php") == Currency.PHP
        with pytest.raises(ValidationError):
            Currency.from_code("XYZ")


class TestDisplayHelpers:
    """Test display helpers carried over for the UI layer"""

    def test_format_currency(self):
        """Test amount rendering with symbol"""
        assert format_currency("50000") == "₱50,000.00"
        assert format_currency(Decimal('12.5'), Currency.USD) == "$12.50"

    def test_format_percentage(self):
        """Test two-decimal percentages and the 0.00% fallback"""
        assert format_percentage(Decimal('2.5')) == "2.50%"
        assert format_percentage("3") == "3.00%"
        assert format_percentage(None) == "0.00%"
        assert format_percentage("not a number") == "0.00%"
        assert format_percentage("NaN") == "0.00%"
