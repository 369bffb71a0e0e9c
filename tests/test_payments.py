"""
Test suite for payments module

Tests line classification, single-payment timing, schedule annotation and
collection summaries.
"""

import pytest
from decimal import Decimal
from datetime import date

from lendbook.currency import Money, Currency
from lendbook.amortization import ScheduleLine, generate_schedule
from lendbook.payments import (
    LineStatus, PaymentTiming, PaymentEntry, classify_payment,
    classify_payment_timing, group_by_line, annotate_schedule,
    summarize_collections, is_schedule_settled
)


def php(value) -> Money:
    return Money(Decimal(str(value)), Currency.PHP)


def line(due: date, amount="1000", payment_no=1) -> ScheduleLine:
    return ScheduleLine(payment_no, due, php(amount), php(amount), php('0'), php('0'))


def paid(on: date, amount, payment_no=1) -> PaymentEntry:
    return PaymentEntry(payment_date=on, amount_paid=php(amount), payment_no=payment_no)


class TestClassifyPayment:
    """Test status of a single schedule line"""

    def test_partial_even_when_early(self):
        """Test two early payments short of the amortization are partial"""
        due = date(2025, 9, 15)
        payments = [paid(date(2025, 9, 1), '300'), paid(date(2025, 9, 5), '300')]
        assert classify_payment(line(due), payments, today=date(2025, 9, 10)) == LineStatus.PARTIAL

    def test_overdue_and_due_today(self):
        """Test nothing paid: overdue in the past, due_today on the day"""
        today = date(2025, 9, 15)
        assert classify_payment(line(date(2025, 9, 1)), [], today=today) == LineStatus.OVERDUE
        assert classify_payment(line(today), [], today=today) == LineStatus.DUE_TODAY
        assert classify_payment(line(date(2025, 10, 1)), [], today=today) == LineStatus.UNPAID

    def test_paid_on_time(self):
        """Test full payment on the due date"""
        due = date(2025, 9, 15)
        assert classify_payment(line(due), [paid(due, '1000')], today=date(2025, 12, 1)) == LineStatus.PAID

    def test_late_uses_latest_payment(self):
        """Test a line completed after the due date is late"""
        due = date(2025, 9, 15)
        payments = [paid(date(2025, 9, 10), '600'), paid(date(2025, 9, 20), '400')]
        assert classify_payment(line(due), payments, today=date(2025, 9, 21)) == LineStatus.LATE

    def test_overpayment_counts_as_paid(self):
        """Test paying more than the amortization still settles the line"""
        due = date(2025, 9, 15)
        assert classify_payment(line(due), [paid(due, '1500')], today=due) == LineStatus.PAID

    def test_partial_past_due_stays_partial(self):
        """Test partial beats overdue regardless of dates"""
        payments = [paid(date(2025, 8, 1), '10')]
        assert classify_payment(line(date(2025, 8, 15)), payments, today=date(2025, 12, 1)) == LineStatus.PARTIAL

    def test_zero_amount_line(self):
        """Test a zero-amount line is settled without payments"""
        zero = ScheduleLine(1, date(2025, 9, 1), php('0'), php('0'), php('0'), php('0'))
        assert classify_payment(zero, [], today=date(2025, 12, 1)) == LineStatus.PAID


class TestPaymentTiming:
    """Test single-payment timing"""

    def test_timing(self):
        """Test on-time, late and partial payments"""
        due_line = line(date(2025, 9, 15))
        assert classify_payment_timing(paid(date(2025, 9, 15), '1000'), due_line) == PaymentTiming.ON_TIME
        assert classify_payment_timing(paid(date(2025, 9, 16), '1000'), due_line) == PaymentTiming.LATE
        assert classify_payment_timing(paid(date(2025, 9, 1), '999.99'), due_line) == PaymentTiming.PARTIAL


class TestAnnotateSchedule:
    """Test annotating a whole schedule"""

    @pytest.fixture
    def lines(self):
        return generate_schedule(Decimal('3000'), Decimal('0'), 3, "monthly", date(2025, 1, 1)).lines

    def test_group_by_line(self):
        """Test payments are bucketed by payment number"""
        payments = [paid(date(2025, 1, 1), '1', 1), paid(date(2025, 1, 2), '2', 2), paid(date(2025, 1, 3), '3', 1)]
        grouped = group_by_line(payments)
        assert [p.amount_paid for p in grouped[1]] == [php('1'), php('3')]
        assert len(grouped[2]) == 1

    def test_annotate_and_summarize(self, lines):
        """Test statuses, remaining amounts and roll-up"""
        payments = [
            paid(date(2025, 1, 1), '1000', 1),
            paid(date(2025, 2, 10), '400', 2),
        ]
        today = date(2025, 2, 20)
        states = annotate_schedule(lines, payments, today=today)

        assert [s.status for s in states] == [LineStatus.PAID, LineStatus.PARTIAL, LineStatus.UNPAID]
        assert states[1].total_paid == php('400')
        assert states[1].remaining == php('600')
        assert states[1].latest_payment_date == date(2025, 2, 10)
        assert states[2].latest_payment_date is None

        summary = summarize_collections(states, today=today)
        assert summary.amount_due == Decimal('3000')
        assert summary.collected == Decimal('1400')
        assert summary.outstanding == Decimal('1600')
        # line 2 was due 2025-02-01 and is only partly paid
        assert summary.overdue_amount == Decimal('600')
        assert summary.counts[LineStatus.PAID] == 1
        assert summary.counts[LineStatus.OVERDUE] == 0
        assert not is_schedule_settled(states)

    def test_overdue_amount(self, lines):
        """Test unpaid past-due lines count fully as overdue"""
        today = date(2025, 3, 1)
        states = annotate_schedule(lines, [], today=today)
        assert [s.status for s in states] == [LineStatus.OVERDUE, LineStatus.OVERDUE, LineStatus.DUE_TODAY]
        summary = summarize_collections(states, today=today)
        assert summary.overdue_amount == Decimal('2000')

    def test_remaining_never_negative(self, lines):
        """Test overpayment leaves zero remaining"""
        states = annotate_schedule(lines, [paid(date(2025, 1, 1), '1200', 1)], today=date(2025, 1, 1))
        assert states[0].remaining.is_zero()

    def test_settled(self, lines):
        """Test a fully paid schedule, some of it late"""
        payments = [
            paid(date(2025, 1, 1), '1000', 1),
            paid(date(2025, 2, 1), '1000', 2),
            paid(date(2025, 3, 5), '1000', 3),
        ]
        states = annotate_schedule(lines, payments, today=date(2025, 3, 5))
        assert states[2].status == LineStatus.LATE
        assert is_schedule_settled(states)
        assert not is_schedule_settled([])
