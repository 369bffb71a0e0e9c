"""
Payment Status Classifier Module

Derives the collection status of each repayment schedule line from the
payments recorded against it. Statuses depend on "today" and on a payment
ledger that keeps growing, so they are recomputed on every read and never
stored.
"""

from decimal import Decimal
from datetime import date
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence
from enum import Enum

from .currency import Money, Currency
from .amortization import ScheduleLine


class LineStatus(Enum):
    """Collection status of one schedule line"""
    UNPAID = "unpaid"          # Nothing paid, not yet due
    DUE_TODAY = "due_today"    # Nothing paid, due today
    OVERDUE = "overdue"        # Nothing paid, past due
    PAID = "paid"              # Fully paid on or before the due date
    LATE = "late"              # Fully paid, last payment after the due date
    PARTIAL = "partial"        # Something paid, less than the amortization


class PaymentTiming(Enum):
    """How a single payment measured up against its line"""
    ON_TIME = "on_time"
    LATE = "late"
    PARTIAL = "partial"


SETTLED_STATUSES = (LineStatus.PAID, LineStatus.LATE)


@dataclass(frozen=True)
class PaymentEntry:
    """Minimal payment view: when, how much, and which line it was for"""
    payment_date: date
    amount_paid: Money
    payment_no: Optional[int] = None


@dataclass
class LineState:
    """A schedule line annotated with what has been paid against it"""
    line: ScheduleLine
    status: LineStatus
    total_paid: Money
    remaining: Money
    latest_payment_date: Optional[date] = None


@dataclass
class CollectionSummary:
    """Roll-up of line states for one loan (or many)"""
    counts: Dict[LineStatus, int] = field(default_factory=dict)
    amount_due: Decimal = Decimal('0')
    collected: Decimal = Decimal('0')
    outstanding: Decimal = Decimal('0')
    overdue_amount: Decimal = Decimal('0')


def _paid_amount(payment: Any) -> Decimal:
    amount = payment.amount_paid
    return amount.amount if isinstance(amount, Money) else Decimal(str(amount))


def classify_payment(
    line: ScheduleLine,
    payments: Iterable[Any],
    today: Optional[date] = None
) -> LineStatus:
    """
    Classify one schedule line from the payments made against it

    A fully covered line is ``paid`` unless the latest payment came after the
    due date (``late``). Any payment short of the amortization is ``partial``
    whatever the dates. With nothing paid the line is ``due_today``,
    ``overdue`` or ``unpaid`` depending on ``today``.

    Args:
        line: Schedule line (due_date, amortization)
        payments: Payments for this line only; may be empty
        today: Reference date, defaults to the current local date

    Returns:
        LineStatus
    """
    today = today or date.today()
    payments = list(payments)
    total_paid = sum((_paid_amount(p) for p in payments), Decimal('0'))

    if total_paid >= line.amortization.amount:
        # Only a zero-amount line can be covered without any payment
        if not payments:
            return LineStatus.PAID
        latest_payment_date = max(p.payment_date for p in payments)
        if latest_payment_date > line.due_date:
            return LineStatus.LATE
        return LineStatus.PAID

    if total_paid > 0:
        return LineStatus.PARTIAL

    if line.due_date == today:
        return LineStatus.DUE_TODAY
    if today > line.due_date:
        return LineStatus.OVERDUE
    return LineStatus.UNPAID


def classify_payment_timing(payment: Any, line: ScheduleLine) -> PaymentTiming:
    """Judge a single payment against its line, ignoring other payments"""
    if _paid_amount(payment) < line.amortization.amount:
        return PaymentTiming.PARTIAL
    if payment.payment_date > line.due_date:
        return PaymentTiming.LATE
    return PaymentTiming.ON_TIME


def group_by_line(payments: Iterable[Any]) -> Dict[int, List[Any]]:
    """Bucket payments by the schedule line (payment_no) they reference"""
    grouped: Dict[int, List[Any]] = {}
    for payment in payments:
        grouped.setdefault(payment.payment_no, []).append(payment)
    return grouped


def annotate_schedule(
    lines: Sequence[ScheduleLine],
    payments: Iterable[Any],
    today: Optional[date] = None
) -> List[LineState]:
    """Attach status and paid/remaining amounts to every line of a schedule"""
    today = today or date.today()
    grouped = group_by_line(payments)
    states = []
    for line in lines:
        line_payments = grouped.get(line.payment_no, [])
        currency = line.amortization.currency
        total_paid = Money(sum((_paid_amount(p) for p in line_payments), Decimal('0')), currency)
        remaining = line.amortization - total_paid
        if remaining.is_negative():
            remaining = Money.zero(currency)
        states.append(LineState(
            line=line,
            status=classify_payment(line, line_payments, today),
            total_paid=total_paid,
            remaining=remaining,
            latest_payment_date=max((p.payment_date for p in line_payments), default=None),
        ))
    return states


def summarize_collections(states: Iterable[LineState], today: Optional[date] = None) -> CollectionSummary:
    """
    Reduce line states into collection totals

    The overdue amount covers unpaid lines past due plus the unpaid
    remainder of partially paid lines past due.
    """
    today = today or date.today()
    summary = CollectionSummary(counts={status: 0 for status in LineStatus})
    for state in states:
        summary.counts[state.status] += 1
        summary.amount_due += state.line.amortization.amount
        summary.collected += state.total_paid.amount
        summary.outstanding += state.remaining.amount
        if state.status == LineStatus.OVERDUE or (
            state.status == LineStatus.PARTIAL and state.line.due_date < today
        ):
            summary.overdue_amount += state.remaining.amount
    return summary


def is_schedule_settled(states: Sequence[LineState]) -> bool:
    """True when every line of a non-empty schedule is paid (on time or late)"""
    return bool(states) and all(state.status in SETTLED_STATUSES for state in states)
