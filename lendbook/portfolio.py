"""
Portfolio Aggregators Module

Dashboard roll-ups over loans and payments: status counts, outstanding and
collected totals, the monthly collection trend and per-debtor summaries.
Pure reductions, safe to recompute on every request.
"""

from decimal import Decimal
from datetime import date
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional
import calendar

from .currency import Money, Currency
from .dates import add_months, month_key, month_start
from .exceptions import ValidationError
from .models import LoanSnapshot, LoanStatus


@dataclass
class MonthlyBucket:
    """Collections for one calendar month"""
    month: str          # YYYY-MM
    label: str          # short month name, e.g. "Sep"
    amount: Money


@dataclass
class DashboardStats:
    """Headline portfolio figures"""
    total_loans: int
    active_loans: int
    completed_loans: int
    defaulted_loans: int
    total_outstanding: Money
    total_collected: Money
    monthly_collection: Money


@dataclass
class DebtorStats:
    """Borrowing summary for one debtor"""
    debtor_id: str
    total_borrowed: Money
    active_loans: int
    total_loans: int


def _paid(payment: Any) -> Decimal:
    amount = payment.amount_paid
    return amount.amount if isinstance(amount, Money) else Decimal(str(amount))


def loan_status_counts(loans: Iterable[LoanSnapshot]) -> Dict[str, int]:
    """Partition loans by lifecycle status"""
    counts = {status: 0 for status in LoanStatus}
    for loan in loans:
        counts[loan.status] += 1
    return {
        "active": counts[LoanStatus.ONGOING],
        "completed": counts[LoanStatus.COMPLETED],
        "defaulted": counts[LoanStatus.DEFAULTED],
    }


def total_outstanding(loans: Iterable[LoanSnapshot], currency: Currency = Currency.PHP) -> Money:
    """Principal of every loan that is not Completed"""
    total = Decimal('0')
    for loan in loans:
        if loan.status != LoanStatus.COMPLETED:
            total += loan.principal.amount
    return Money(total, currency)


def total_collected(
    loans: Iterable[LoanSnapshot],
    payments: Optional[Iterable[Any]] = None,
    currency: Currency = Currency.PHP
) -> Money:
    """
    Money collected so far

    When a payments ledger is available it is the only source; otherwise
    the principal of Completed loans stands in for it. The two are never
    added together.
    """
    if payments is not None:
        return Money(sum((_paid(p) for p in payments), Decimal('0')), currency)
    total = Decimal('0')
    for loan in loans:
        if loan.status == LoanStatus.COMPLETED:
            total += loan.principal.amount
    return Money(total, currency)


def current_month_collection(
    payments: Iterable[Any],
    today: Optional[date] = None,
    currency: Currency = Currency.PHP
) -> Money:
    """Sum of payments dated in the calendar month containing ``today``"""
    key = month_key(today or date.today())
    total = sum((_paid(p) for p in payments if month_key(p.payment_date) == key), Decimal('0'))
    return Money(total, currency)


def monthly_collection_series(
    payments: Iterable[Any],
    months: int = 6,
    today: Optional[date] = None,
    currency: Currency = Currency.PHP
) -> List[MonthlyBucket]:
    """
    Payments grouped by calendar month for the trailing ``months`` months

    Buckets run oldest to newest, end with the current month, and months
    without any payment are present with a zero amount. Payments outside
    the window are ignored.
    """
    if months < 1:
        raise ValidationError("months must be at least 1")
    first = month_start(today or date.today())

    totals: Dict[str, Decimal] = {}
    order = []
    for offset in range(months - 1, -1, -1):
        bucket_date = add_months(first, -offset)
        key = month_key(bucket_date)
        totals[key] = Decimal('0')
        order.append((key, bucket_date.month))

    for payment in payments:
        key = month_key(payment.payment_date)
        if key in totals:
            totals[key] += _paid(payment)

    return [
        MonthlyBucket(month=key, label=calendar.month_abbr[month], amount=Money(totals[key], currency))
        for key, month in order
    ]


def dashboard_stats(
    loans: Iterable[LoanSnapshot],
    payments: Optional[Iterable[Any]] = None,
    today: Optional[date] = None,
    currency: Currency = Currency.PHP
) -> DashboardStats:
    """
    Headline figures for the dashboard

    Without a payments ledger the month's collection is approximated as
    one twelfth of the collected total.
    """
    loans = list(loans)
    payments = list(payments) if payments is not None else None
    counts = loan_status_counts(loans)
    collected = total_collected(loans, payments, currency)

    if payments is None:
        monthly = collected / Decimal('12')
    else:
        monthly = current_month_collection(payments, today, currency)

    return DashboardStats(
        total_loans=len(loans),
        active_loans=counts["active"],
        completed_loans=counts["completed"],
        defaulted_loans=counts["defaulted"],
        total_outstanding=total_outstanding(loans, currency),
        total_collected=collected,
        monthly_collection=monthly,
    )


def aggregate_debtor_stats(
    debtor_id: str,
    loans: Iterable[LoanSnapshot],
    currency: Currency = Currency.PHP
) -> DebtorStats:
    """Total borrowed and loan counts for one debtor"""
    debtor_id = str(debtor_id)
    borrowed = Decimal('0')
    active = 0
    total = 0
    for loan in loans:
        if loan.debtor_id != debtor_id:
            continue
        total += 1
        borrowed += loan.principal.amount
        if loan.status == LoanStatus.ONGOING:
            active += 1
    return DebtorStats(
        debtor_id=debtor_id,
        total_borrowed=Money(borrowed, currency),
        active_loans=active,
        total_loans=total,
    )


def recent_loans(loans: Iterable[LoanSnapshot], limit: int = 5) -> List[LoanSnapshot]:
    """Newest loans first; input is expected oldest to newest"""
    if limit < 1:
        return []
    return list(reversed(list(loans)))[:limit]
