"""
Currency and Decimal Arithmetic Module

Handles ISO 4217 currency codes, minor-unit precision and Decimal conversion
for every money and rate value in the system. NEVER uses float for monetary
values: intermediate math runs at full Decimal precision and only the final
figures are quantized to the currency's minor unit.
"""

from decimal import Decimal, ROUND_HALF_UP, InvalidOperation, getcontext
from dataclasses import dataclass
from typing import Iterable, Optional, Union
from enum import Enum
import re

from .exceptions import ValidationError

# Set global decimal context for financial precision
getcontext().prec = 28

DecimalLike = Union[Decimal, int, str, float]


class Currency(Enum):
    """ISO 4217 currency codes with minor-unit precision and display symbol"""
    PHP = ("PHP", 2, "₱")  # Philippine Peso
    USD = ("USD", 2, "$")       # US Dollar
    EUR = ("EUR", 2, "€")  # Euro
    GBP = ("GBP", 2, "£")  # British Pound
    JPY = ("JPY", 0, "¥")  # Japanese Yen, no minor unit

    def __init__(self, code: str, precision: int, symbol: str):
        self.code = code
        self.precision = precision
        self.symbol = symbol

    @property
    def minor_unit(self) -> Decimal:
        """Smallest representable amount, e.g. 0.01 for PHP"""
        return Decimal('0.1') ** self.precision

    @classmethod
    def from_code(cls, code: str) -> 'Currency':
        """Look up a currency by ISO code"""
        try:
            return cls[code.upper()]
        except (KeyError, AttributeError):
            raise ValidationError(f"Unsupported currency: {code!r}")


def to_decimal(value: DecimalLike, field_name: str = "value") -> Decimal:
    """
    Convert a user-supplied number to Decimal without binary float math.

    Floats are routed through ``str`` so 0.1 becomes Decimal('0.1') rather
    than its binary expansion.

    Raises:
        ValidationError: If the value is not a finite number
    """
    if isinstance(value, bool):
        raise ValidationError(f"{field_name} must be a number, got bool")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, float)):
        result = Decimal(str(value))
    elif isinstance(value, str):
        try:
            result = Decimal(value.strip())
        except InvalidOperation:
            raise ValidationError(f"{field_name} is not a valid number: {value!r}")
    else:
        raise ValidationError(f"{field_name} must be a number, got {type(value).__name__}")

    if not result.is_finite():
        raise ValidationError(f"{field_name} must be finite")
    return result


def quantize_amount(value: Decimal, currency: Currency, rounding: str = ROUND_HALF_UP) -> Decimal:
    """Round a Decimal to the currency's minor unit with an explicit rounding mode"""
    return value.quantize(currency.minor_unit, rounding=rounding)


@dataclass(frozen=True)
class Money:
    """
    Immutable money representation with currency and proper precision.
    All monetary values MUST use this class or raw Decimal.
    """
    amount: Decimal
    currency: Currency

    def __post_init__(self):
        if not isinstance(self.amount, Decimal):
            object.__setattr__(self, 'amount', to_decimal(self.amount, "amount"))

        # Round to currency precision
        object.__setattr__(self, 'amount', quantize_amount(self.amount, self.currency))

    @classmethod
    def zero(cls, currency: Currency) -> 'Money':
        return cls(Decimal('0'), currency)

    def _check_currency(self, other: 'Money', verb: str) -> None:
        if self.currency != other.currency:
            raise ValueError(f"Cannot {verb} {self.currency.code} and {other.currency.code}")

    def __add__(self, other: 'Money') -> 'Money':
        self._check_currency(other, "add")
        return Money(self.amount + other.amount, self.currency)

    def __sub__(self, other: 'Money') -> 'Money':
        self._check_currency(other, "subtract")
        return Money(self.amount - other.amount, self.currency)

    def __mul__(self, multiplier: DecimalLike) -> 'Money':
        return Money(self.amount * to_decimal(multiplier, "multiplier"), self.currency)

    def __truediv__(self, divisor: DecimalLike) -> 'Money':
        return Money(self.amount / to_decimal(divisor, "divisor"), self.currency)

    def __neg__(self) -> 'Money':
        return Money(-self.amount, self.currency)

    def __abs__(self) -> 'Money':
        return Money(abs(self.amount), self.currency)

    def __eq__(self, other) -> bool:
        if not isinstance(other, Money):
            return False
        return self.amount == other.amount and self.currency == other.currency

    def __lt__(self, other: 'Money') -> bool:
        self._check_currency(other, "compare")
        return self.amount < other.amount

    def __le__(self, other: 'Money') -> bool:
        self._check_currency(other, "compare")
        return self.amount <= other.amount

    def __gt__(self, other: 'Money') -> bool:
        self._check_currency(other, "compare")
        return self.amount > other.amount

    def __ge__(self, other: 'Money') -> bool:
        self._check_currency(other, "compare")
        return self.amount >= other.amount

    def is_zero(self) -> bool:
        """Check if amount is exactly zero"""
        return self.amount == Decimal('0')

    def is_positive(self) -> bool:
        """Check if amount is positive"""
        return self.amount > Decimal('0')

    def is_negative(self) -> bool:
        """Check if amount is negative"""
        return self.amount < Decimal('0')

    def to_string(self) -> str:
        """Format with ISO code, e.g. 'PHP 1,250.00'"""
        return f"{self.currency.code} {self.amount:,.{self.currency.precision}f}"

    def format(self) -> str:
        """Format for display with currency symbol, e.g. '₱1,250.00'"""
        sign = "-" if self.is_negative() else ""
        return f"{sign}{self.currency.symbol}{abs(self.amount):,.{self.currency.precision}f}"


def sum_money(values: Iterable[Money], currency: Currency) -> Money:
    """Sum Money values, starting from zero in the given currency"""
    total = Money.zero(currency)
    for value in values:
        total = total + value
    return total


def format_currency(amount: DecimalLike, currency: Currency = Currency.PHP) -> str:
    """Render an amount with symbol, thousands separators and minor-unit precision"""
    return Money(to_decimal(amount, "amount"), currency).format()


def format_percentage(value: Optional[DecimalLike]) -> str:
    """Render a percentage with two decimals; missing or invalid values render as 0.00%"""
    if value is None:
        return "0.00%"
    try:
        number = to_decimal(value)
    except ValidationError:
        return "0.00%"
    return f"{number.quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)}%"


def decimal_from_string(value: str) -> Decimal:
    """
    Safely convert string to Decimal, handling common formats

    Args:
        value: String representation of number, e.g. "₱1,250.50"

    Returns:
        Decimal value

    Raises:
        ValidationError: If string cannot be converted to valid Decimal
    """
    if not value or not isinstance(value, str):
        raise ValidationError("Value must be a non-empty string")

    # Remove currency symbols and whitespace
    clean_value = re.sub(r'[^\d.,\-+]', '', value.strip())

    if ',' in clean_value and '.' in clean_value:
        # Both comma and dot - assume comma is thousands separator
        clean_value = clean_value.replace(',', '')
    elif ',' in clean_value and clean_value.count(',') == 1:
        parts = clean_value.split(',')
        if len(parts[1]) <= 2:  # Likely decimal separator
            clean_value = clean_value.replace(',', '.')
        else:  # Likely thousands separator
            clean_value = clean_value.replace(',', '')
    else:
        clean_value = clean_value.replace(',', '')

    try:
        return Decimal(clean_value)
    except InvalidOperation:
        raise ValidationError(f"Cannot convert '{value}' to Decimal")
