"""
Amortization Engine Module

Generates simple-interest, level-payment repayment schedules.

Interest is charged flat on the original principal for the whole term
(principal x monthly rate x months) and spread evenly across the collection
periods; it is NOT recomputed on a declining balance. Creditor expected
returns are derived from the same totals, so the two must stay in step.
"""

from decimal import Decimal, ROUND_DOWN, ROUND_HALF_UP
from datetime import date
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union
from enum import Enum

from .currency import Money, Currency, DecimalLike, to_decimal, quantize_amount
from .dates import DateLike, parse_date, add_days, add_weeks, add_months
from .exceptions import ValidationError


class CollectionFrequency(Enum):
    """How often a repayment is collected"""
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"

    @classmethod
    def parse(cls, value: Union['CollectionFrequency', str]) -> 'CollectionFrequency':
        """Accept an enum member or its string value; anything else is rejected"""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        raise ValidationError(f"Unrecognized collection frequency: {value!r}")


# Collection periods in one month. Weekly is a flat 4 (not 4.33) so a
# 12-month weekly loan has exactly 48 lines.
DAYS_PER_MONTH = 30
WEEKS_PER_MONTH = 4

PERIODS_PER_MONTH = {
    CollectionFrequency.DAILY: DAYS_PER_MONTH,
    CollectionFrequency.WEEKLY: WEEKS_PER_MONTH,
    CollectionFrequency.MONTHLY: 1,
}


def periods_per_month(frequency: Union[CollectionFrequency, str]) -> int:
    """Number of collection periods in one month"""
    return PERIODS_PER_MONTH[CollectionFrequency.parse(frequency)]


def periods_for(term_months: int, frequency: Union[CollectionFrequency, str]) -> int:
    """Total number of collection periods over the loan term"""
    return term_months * periods_per_month(frequency)


def step_date(start: DateLike, periods: int, frequency: Union[CollectionFrequency, str]) -> date:
    """Move ``start`` forward (or back) by whole collection periods"""
    frequency = CollectionFrequency.parse(frequency)
    if frequency == CollectionFrequency.DAILY:
        return add_days(start, periods)
    elif frequency == CollectionFrequency.WEEKLY:
        return add_weeks(start, periods)
    return add_months(start, periods)


def equivalent_payment(monthly_payment: DecimalLike, frequency: Union[CollectionFrequency, str]) -> Decimal:
    """Convert a monthly-equivalent payment into the per-period amount"""
    return to_decimal(monthly_payment, "monthly_payment") / Decimal(periods_per_month(frequency))


@dataclass(frozen=True)
class ScheduleLine:
    """Single line of a repayment schedule"""
    payment_no: int
    due_date: date
    amortization: Money
    principal: Money
    interest: Money
    balance: Money

    def __post_init__(self):
        if self.payment_no < 1:
            raise ValidationError("payment_no is 1-based")
        # Payment must equal principal + interest within one minor unit
        calculated = self.principal + self.interest
        if abs(calculated.amount - self.amortization.amount) > self.amortization.currency.minor_unit:
            raise ValidationError(
                f"Amortization {self.amortization.to_string()} does not equal "
                f"principal {self.principal.to_string()} + interest {self.interest.to_string()}"
            )
        if self.balance.is_negative():
            raise ValidationError("Schedule balance can never be negative")

    def to_dict(self) -> Dict[str, Any]:
        return {
            'payment_no': self.payment_no,
            'due_date': self.due_date.isoformat(),
            'amortization': str(self.amortization.amount),
            'principal': str(self.principal.amount),
            'interest': str(self.interest.amount),
            'balance': str(self.balance.amount),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], currency: Currency) -> 'ScheduleLine':
        return cls(
            payment_no=int(data['payment_no']),
            due_date=date.fromisoformat(data['due_date']),
            amortization=Money(Decimal(data['amortization']), currency),
            principal=Money(Decimal(data['principal']), currency),
            interest=Money(Decimal(data['interest']), currency),
            balance=Money(Decimal(data['balance']), currency),
        )


@dataclass
class LoanCalculation:
    """Result of a schedule computation: summary totals plus the ordered lines"""
    principal: Money
    interest_rate_monthly: Decimal      # percent per month, e.g. 2.5
    term_months: int
    frequency: CollectionFrequency
    start_date: date
    total_interest: Money
    total_amount: Money
    period_payment: Money               # due each collection period
    monthly_payment: Money              # period payment in monthly-equivalent terms
    lines: List[ScheduleLine] = field(default_factory=list)

    @property
    def currency(self) -> Currency:
        return self.principal.currency

    @property
    def periods(self) -> int:
        """Planned number of collection periods"""
        return periods_for(self.term_months, self.frequency)

    @property
    def maturity_date(self) -> date:
        """Due date of the final line"""
        return self.lines[-1].due_date

    def to_dict(self) -> Dict[str, Any]:
        return {
            'principal': str(self.principal.amount),
            'currency': self.currency.code,
            'interest_rate_monthly': str(self.interest_rate_monthly),
            'term_months': self.term_months,
            'frequency': self.frequency.value,
            'start_date': self.start_date.isoformat(),
            'total_interest': str(self.total_interest.amount),
            'total_amount': str(self.total_amount.amount),
            'period_payment': str(self.period_payment.amount),
            'monthly_payment': str(self.monthly_payment.amount),
            'lines': [line.to_dict() for line in self.lines],
        }


def _validate_term(term_months: Any) -> int:
    if isinstance(term_months, bool):
        raise ValidationError("term_months must be an integer")
    try:
        term = int(term_months)
    except (TypeError, ValueError):
        raise ValidationError(f"term_months must be an integer, got {term_months!r}")
    if to_decimal(term_months, "term_months") != term:
        raise ValidationError(f"term_months must be a whole number, got {term_months!r}")
    if term < 1:
        raise ValidationError("term_months must be at least 1")
    return term


def _share_rounding(total: Decimal, periods: int, currency: Currency) -> str:
    """
    Rounding mode for one column's running totals

    Half up unless that would reach the whole total before the last period;
    then down, so every period keeps a line.
    """
    if quantize_amount(total * (periods - 1) / Decimal(periods), currency) >= total:
        return ROUND_DOWN
    return ROUND_HALF_UP


def _share_due(total: Decimal, periods: int, payment_no: int, currency: Currency, rounding: str) -> Decimal:
    """Part of ``total`` due by the end of period ``payment_no``, rounded to the minor unit"""
    if payment_no >= periods:
        return total
    return quantize_amount(total * payment_no / Decimal(periods), currency, rounding)


def generate_schedule(
    principal: DecimalLike,
    rate_monthly_pct: DecimalLike,
    term_months: int,
    frequency: Union[CollectionFrequency, str],
    start_date: DateLike,
    currency: Optional[Currency] = None
) -> LoanCalculation:
    """
    Compute the full repayment schedule for a simple-interest loan

    The first line is due on ``start_date``; each following line is one
    collection period later. The running balance starts at the total amount
    owed (principal + interest) and falls by each line's amortization. The
    per-line figures are differences of running totals rounded to the
    currency's minor unit, so no line strays a full minor unit from the exact
    share, the principal and interest columns sum exactly to the loan totals
    and the final balance is exactly zero.

    Args:
        principal: Amount lent, must be > 0
        rate_monthly_pct: Monthly interest rate as a percentage, must be >= 0
        term_months: Loan term in whole months, must be >= 1
        frequency: daily, weekly or monthly collection
        start_date: Due date of the first line (date or YYYY-MM-DD)
        currency: Currency of the amounts (defaults to PHP)

    Returns:
        LoanCalculation with lines and summary totals

    Raises:
        ValidationError: On any malformed input, before any line is built
    """
    currency = currency or Currency.PHP
    principal_amount = to_decimal(principal, "principal")
    rate = to_decimal(rate_monthly_pct, "rate_monthly_pct")
    term = _validate_term(term_months)
    frequency = CollectionFrequency.parse(frequency)
    start = parse_date(start_date)

    if principal_amount <= 0:
        raise ValidationError("principal must be greater than zero")
    if rate < 0:
        raise ValidationError("rate_monthly_pct cannot be negative")

    principal_amount = quantize_amount(principal_amount, currency)
    if principal_amount <= 0:
        raise ValidationError(f"principal rounds to zero in {currency.code}")

    # Totals (simple interest)
    total_interest = principal_amount * (rate / Decimal('100')) * Decimal(term)
    total_amount = principal_amount + total_interest

    # Per-period breakdown at full precision
    periods = periods_for(term, frequency)
    principal_per_period = principal_amount / Decimal(periods)
    interest_per_period = total_interest / Decimal(periods)
    payment_per_period = principal_per_period + interest_per_period

    interest_amount = quantize_amount(total_interest, currency)
    principal_rounding = _share_rounding(principal_amount, periods, currency)
    interest_rounding = _share_rounding(interest_amount, periods, currency)

    paid_principal = Decimal('0')
    paid_interest = Decimal('0')
    balance = principal_amount + interest_amount

    lines: List[ScheduleLine] = []
    for payment_no in range(1, periods + 1):
        # Each line is the step between rounded running totals: within one
        # minor unit of the exact share, and the final line closes the column
        line_principal = _share_due(principal_amount, periods, payment_no, currency,
                                    principal_rounding) - paid_principal
        line_interest = _share_due(interest_amount, periods, payment_no, currency,
                                   interest_rounding) - paid_interest

        amortization = line_principal + line_interest
        balance = max(balance - amortization, Decimal('0'))
        paid_principal += line_principal
        paid_interest += line_interest

        lines.append(ScheduleLine(
            payment_no=payment_no,
            due_date=step_date(start, payment_no - 1, frequency),
            amortization=Money(amortization, currency),
            principal=Money(line_principal, currency),
            interest=Money(line_interest, currency),
            balance=Money(balance, currency),
        ))

        if balance == 0:
            break

    return LoanCalculation(
        principal=Money(principal_amount, currency),
        interest_rate_monthly=rate,
        term_months=term,
        frequency=frequency,
        start_date=start,
        total_interest=Money(total_interest, currency),
        total_amount=Money(total_amount, currency),
        period_payment=Money(payment_per_period, currency),
        monthly_payment=Money(payment_per_period * Decimal(periods_per_month(frequency)), currency),
        lines=lines,
    )
