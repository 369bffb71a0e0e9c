"""
Loan Module

Handles loan origination (schedule plus creditor allocations written as one
unit), payment recording against schedule lines, completion and default,
and cascading deletion.
"""

from decimal import Decimal
from datetime import datetime, timezone, date
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union
import logging
import uuid

from .currency import Money, Currency, DecimalLike, to_decimal, format_currency
from .dates import DateLike, parse_date
from .amortization import CollectionFrequency, ScheduleLine, LoanCalculation, generate_schedule
from .allocations import normalize_allocations, validate_allocations, merge_by_creditor, \
    check_capital, aggregate_creditor_stats
from .payments import LineState, annotate_schedule, is_schedule_settled
from .models import Allocation, LoanSnapshot, LoanStatus
from .storage import StorageInterface, StorageRecord
from .audit import AuditTrail, AuditEventType
from .parties import PartyManager
from .config import LendbookConfig, get_config
from .exceptions import ValidationError, ConsistencyError, NotFoundError
from .logging_config import log_action

logger = logging.getLogger(__name__)


@dataclass
class Loan(StorageRecord):
    """Loan with its terms, lifecycle status and creditor allocations"""
    debtor_id: str
    principal_amount: Money
    interest_rate_monthly: Decimal      # percent per month, e.g. 2.5
    loan_term_months: int
    frequency: CollectionFrequency
    start_date: date                    # due date of the first schedule line
    status: LoanStatus = LoanStatus.ONGOING
    date_released: Optional[date] = None
    creditor_id: Optional[str] = None   # legacy single-creditor reference
    allocations: List[Allocation] = field(default_factory=list)
    request_token: Optional[str] = None

    @property
    def currency(self) -> Currency:
        return self.principal_amount.currency

    @property
    def total_interest(self) -> Money:
        return self.snapshot().total_interest

    @property
    def total_amount(self) -> Money:
        return self.snapshot().total_amount

    def snapshot(self) -> LoanSnapshot:
        """Read-side view for the aggregators"""
        return LoanSnapshot(
            loan_id=self.id,
            debtor_id=self.debtor_id,
            principal=self.principal_amount,
            interest_rate_monthly=self.interest_rate_monthly,
            term_months=self.loan_term_months,
            status=self.status,
            date_released=self.date_released,
            creditor_id=self.creditor_id,
            allocations=list(self.allocations),
        )

    def to_dict(self) -> Dict[str, Any]:
        # Allocations live in their own table
        result = super().to_dict()
        result.pop('allocations', None)
        result['principal_amount'] = str(self.principal_amount.amount)
        result['currency'] = self.currency.code
        result['interest_rate_monthly'] = str(self.interest_rate_monthly)
        result['frequency'] = self.frequency.value
        result['status'] = self.status.value
        result['start_date'] = self.start_date.isoformat()
        result['date_released'] = self.date_released.isoformat() if self.date_released else None
        return result


@dataclass
class Payment(StorageRecord):
    """Money received against one schedule line"""
    loan_id: str
    schedule_id: str                    # "{loan_id}_{payment_no}"
    payment_no: int
    payment_date: date
    amount_paid: Money
    payment_method: str = "cash"
    remarks: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result['payment_date'] = self.payment_date.isoformat()
        result['amount_paid'] = str(self.amount_paid.amount)
        result['currency'] = self.amount_paid.currency.code
        return result


def schedule_id_for(loan_id: str, payment_no: int) -> str:
    """Stable identifier of one schedule line"""
    return f"{loan_id}_{payment_no}"


class LoanManager:
    """
    Manages loans from origination through completion, default or deletion
    """

    def __init__(
        self,
        storage: StorageInterface,
        audit_trail: AuditTrail,
        config: Optional[LendbookConfig] = None,
        party_manager: Optional[PartyManager] = None
    ):
        self.storage = storage
        self.audit_trail = audit_trail
        self.config = config or get_config()
        self.parties = party_manager or PartyManager(storage, audit_trail, self.config)
        self.currency = Currency.from_code(self.config.default_currency)

        self.loans_table = "loans"
        self.schedule_table = "schedule_lines"
        self.allocations_table = "loan_allocations"
        self.payments_table = "payments"

    def _audit(self, event_type: AuditEventType, entity_type: str, entity_id: str,
               metadata: Dict[str, Any], user_id: Optional[str]) -> None:
        if self.config.enable_audit_logging:
            self.audit_trail.log_event(
                event_type=event_type,
                entity_type=entity_type,
                entity_id=entity_id,
                metadata=metadata,
                user_id=user_id
            )

    def _check_policy(self, principal: DecimalLike, term_months: Any) -> None:
        """Configured lending limits; malformed values are left to the engine"""
        amount = to_decimal(principal, "principal")
        minimum = to_decimal(self.config.min_loan_amount, "min_loan_amount")
        maximum = to_decimal(self.config.max_loan_amount, "max_loan_amount")
        if amount > 0 and not minimum <= amount <= maximum:
            raise ValidationError(
                f"Loan amount must be between {format_currency(minimum, self.currency)} "
                f"and {format_currency(maximum, self.currency)}"
            )

        if isinstance(term_months, int) and not isinstance(term_months, bool) and term_months >= 1:
            low = self.config.min_loan_term_months
            high = self.config.max_loan_term_months
            if not low <= term_months <= high:
                raise ValidationError(f"Loan term must be between {low} and {high} months")

    def calculate(
        self,
        principal: DecimalLike,
        interest_rate_monthly: DecimalLike,
        term_months: int,
        frequency: Union[CollectionFrequency, str],
        start_date: DateLike
    ) -> LoanCalculation:
        """
        Preview a loan's repayment schedule within the configured limits

        Args:
            principal: Amount to lend
            interest_rate_monthly: Monthly rate as a percentage
            term_months: Term in whole months
            frequency: daily, weekly or monthly
            start_date: Due date of the first line

        Returns:
            LoanCalculation

        Raises:
            ValidationError: On malformed input or values outside the limits
        """
        self._check_policy(principal, term_months)
        return generate_schedule(
            principal, interest_rate_monthly, term_months, frequency, start_date, self.currency
        )

    def create_loan(
        self,
        debtor_id: str,
        principal: DecimalLike,
        interest_rate_monthly: DecimalLike,
        term_months: int,
        frequency: Union[CollectionFrequency, str],
        start_date: DateLike,
        date_released: Optional[DateLike] = None,
        allocations: Optional[List[Any]] = None,
        creditor_id: Optional[str] = None,
        request_token: Optional[str] = None,
        user_id: Optional[str] = None
    ) -> Loan:
        """
        Create a loan with its schedule and creditor allocations

        Everything is validated before the first write, then the loan, every
        schedule line and every allocation are saved in one transaction. A
        repeated ``request_token`` returns the loan created by the first
        submission instead of creating another.

        Args:
            debtor_id: Borrower
            principal: Amount lent
            interest_rate_monthly: Monthly rate as a percentage
            term_months: Term in whole months
            frequency: daily, weekly or monthly
            start_date: Due date of the first line
            date_released: When the money was handed over (defaults to start_date)
            allocations: Creditor allocations summing to the principal
            creditor_id: Legacy single creditor funding the full principal
            request_token: Idempotency key for duplicate submissions
            user_id: Operator performing the action

        Returns:
            Created (or previously created) Loan

        Raises:
            ValidationError: Malformed terms or allocations
            NotFoundError: Unknown debtor or creditor
            ConsistencyError: A creditor lacks the capital for its allocation
        """
        with self.storage.atomic():
            if request_token:
                existing = self.storage.find(self.loans_table, {"request_token": request_token})
                if existing:
                    logger.info("Duplicate loan submission absorbed for token %s", request_token)
                    return self._loan_from_dict(existing[0])

            debtor = self.parties.require_debtor(debtor_id)
            calculation = self.calculate(principal, interest_rate_monthly, term_months, frequency, start_date)
            released = parse_date(date_released) if date_released is not None else calculation.start_date

            resolved = validate_allocations(
                calculation.principal,
                normalize_allocations(calculation.principal, allocations, creditor_id),
            )
            creditor_ids = list(merge_by_creditor(resolved))
            for cid in creditor_ids:
                self.parties.require_creditor(cid)
            check_capital(resolved, self.available_capital(creditor_ids))

            now = datetime.now(timezone.utc)
            loan = Loan(
                id=str(uuid.uuid4()),
                created_at=now,
                updated_at=now,
                debtor_id=debtor.id,
                principal_amount=calculation.principal,
                interest_rate_monthly=calculation.interest_rate_monthly,
                loan_term_months=calculation.term_months,
                frequency=calculation.frequency,
                start_date=calculation.start_date,
                date_released=released,
                # The allocation list wins; the legacy field is kept only when it was the sole input
                creditor_id=str(creditor_id) if creditor_id and not allocations else None,
                allocations=resolved,
                request_token=request_token,
            )

            self.storage.save(self.loans_table, loan.id, loan.to_dict())
            for line in calculation.lines:
                self._save_line(loan, line)
            for index, allocation in enumerate(resolved, start=1):
                self.storage.save(self.allocations_table, f"{loan.id}_{index}", {
                    'id': f"{loan.id}_{index}",
                    'loan_id': loan.id,
                    'creditor_id': allocation.creditor_id,
                    'amount_allocated': str(allocation.amount),
                })

            self._audit(AuditEventType.LOAN_CREATED, "loan", loan.id, {
                "debtor_id": loan.debtor_id,
                "principal_amount": loan.principal_amount.to_string(),
                "interest_rate_monthly": loan.interest_rate_monthly,
                "term_months": loan.loan_term_months,
                "frequency": loan.frequency,
                "start_date": loan.start_date,
                "lines": len(calculation.lines),
                "allocations": [a.to_dict() for a in resolved],
            }, user_id)

        log_action(logger, "info", "Loan created", user_id=user_id, action="loan.create",
                   resource=loan.id, extra={"principal": str(loan.principal_amount.amount),
                                            "creditors": creditor_ids})
        return loan

    def available_capital(self, creditor_ids: Optional[List[str]] = None) -> Dict[str, Money]:
        """Capital each creditor has not yet lent out"""
        snapshots = self.get_snapshots()
        creditors = self.parties.list_creditors()
        if creditor_ids is not None:
            wanted = set(creditor_ids)
            creditors = [c for c in creditors if c.id in wanted]
        return {
            creditor.id: aggregate_creditor_stats(creditor.id, creditor.capital, snapshots).available
            for creditor in creditors
        }

    def record_payment(
        self,
        loan_id: str,
        schedule_id: str,
        amount: DecimalLike,
        payment_date: Optional[DateLike] = None,
        payment_method: str = "cash",
        remarks: Optional[str] = None,
        user_id: Optional[str] = None
    ) -> Payment:
        """
        Record money received against one schedule line

        Several payments may accumulate on the same line; the line itself is
        never changed.

        Args:
            loan_id: Loan being paid
            schedule_id: Line being paid, "{loan_id}_{payment_no}"
            amount: Amount received, must be > 0
            payment_date: Date received (defaults to today)
            payment_method: e.g. cash, bank transfer
            remarks: Free text
            user_id: Operator performing the action

        Returns:
            Payment record
        """
        loan = self.require_loan(loan_id)
        if loan.status == LoanStatus.COMPLETED:
            raise ConsistencyError(f"Loan {loan.id} is already completed")

        amount_paid = to_decimal(amount, "amount")
        if amount_paid <= 0:
            raise ValidationError("Payment amount must be greater than zero")
        paid_on = parse_date(payment_date) if payment_date is not None else date.today()

        line_data = self.storage.load(self.schedule_table, str(schedule_id))
        if not line_data:
            raise NotFoundError(f"Schedule line {schedule_id} not found")
        if line_data['loan_id'] != loan.id:
            raise ConsistencyError(f"Schedule line {schedule_id} belongs to another loan")

        now = datetime.now(timezone.utc)
        payment = Payment(
            id=str(uuid.uuid4()),
            created_at=now,
            updated_at=now,
            loan_id=loan.id,
            schedule_id=line_data['schedule_id'],
            payment_no=int(line_data['payment_no']),
            payment_date=paid_on,
            amount_paid=Money(amount_paid, loan.currency),
            payment_method=payment_method,
            remarks=remarks,
        )

        with self.storage.atomic():
            self.storage.save(self.payments_table, payment.id, payment.to_dict())
            self._audit(AuditEventType.PAYMENT_RECORDED, "loan", loan.id, {
                "payment_id": payment.id,
                "schedule_id": payment.schedule_id,
                "amount_paid": payment.amount_paid.to_string(),
                "payment_date": payment.payment_date,
                "payment_method": payment.payment_method,
            }, user_id)

        log_action(logger, "info", "Payment recorded", user_id=user_id, action="payment.record",
                   resource=loan.id, extra={"schedule_id": payment.schedule_id,
                                            "amount": str(payment.amount_paid.amount)})
        return payment

    def delete_payment(self, payment_id: str, user_id: Optional[str] = None) -> bool:
        """Remove a payment recorded in error"""
        data = self.storage.load(self.payments_table, str(payment_id))
        if not data:
            raise NotFoundError(f"Payment {payment_id} not found")
        payment = self._payment_from_dict(data)

        with self.storage.atomic():
            self.storage.delete(self.payments_table, payment.id)
            self._audit(AuditEventType.PAYMENT_DELETED, "loan", payment.loan_id, {
                "payment_id": payment.id,
                "schedule_id": payment.schedule_id,
                "amount_paid": payment.amount_paid.to_string(),
            }, user_id)
        return True

    def _transition(self, loan: Loan, status: LoanStatus, event_type: AuditEventType,
                    user_id: Optional[str], reason: str) -> Loan:
        if loan.status != LoanStatus.ONGOING:
            raise ConsistencyError(
                f"Loan {loan.id} is {loan.status.value}; only Ongoing loans can become {status.value}"
            )
        previous = loan.status
        loan.status = status
        loan.updated_at = datetime.now(timezone.utc)

        with self.storage.atomic():
            self.storage.save(self.loans_table, loan.id, loan.to_dict())
            self._audit(event_type, "loan", loan.id, {
                "old_status": previous,
                "new_status": status,
                "reason": reason,
            }, user_id)

        log_action(logger, "info", f"Loan {status.value.lower()}", user_id=user_id,
                   action=f"loan.{status.value.lower()}", resource=loan.id)
        return loan

    def complete_loan(self, loan_id: str, user_id: Optional[str] = None) -> Loan:
        """Close an Ongoing loan by operator decision, whatever its schedule says"""
        return self._transition(self.require_loan(loan_id), LoanStatus.COMPLETED,
                                 AuditEventType.LOAN_COMPLETED, user_id, "manual")

    def complete_if_settled(
        self,
        loan_id: str,
        today: Optional[date] = None,
        user_id: Optional[str] = None
    ) -> bool:
        """
        Complete an Ongoing loan whose every schedule line is paid or late

        Returns:
            True if the loan was completed by this call
        """
        loan = self.require_loan(loan_id)
        if loan.status != LoanStatus.ONGOING:
            return False
        if not is_schedule_settled(self.get_schedule_status(loan.id, today)):
            return False
        self._transition(loan, LoanStatus.COMPLETED, AuditEventType.LOAN_COMPLETED, user_id, "settled")
        return True

    def mark_defaulted(self, loan_id: str, user_id: Optional[str] = None) -> Loan:
        """Write an Ongoing loan down as Defaulted"""
        return self._transition(self.require_loan(loan_id), LoanStatus.DEFAULTED,
                                AuditEventType.LOAN_DEFAULTED, user_id, "manual")

    def delete_loan(self, loan_id: str, user_id: Optional[str] = None) -> bool:
        """Delete a loan together with its schedule, allocations and payments"""
        loan = self.require_loan(loan_id)

        with self.storage.atomic():
            lines = self.storage.find(self.schedule_table, {"loan_id": loan.id})
            allocations = self.storage.find(self.allocations_table, {"loan_id": loan.id})
            payments = self.storage.find(self.payments_table, {"loan_id": loan.id})
            for data in lines:
                self.storage.delete(self.schedule_table, data['schedule_id'])
            for data in allocations:
                self.storage.delete(self.allocations_table, data['id'])
            for data in payments:
                self.storage.delete(self.payments_table, data['id'])
            self.storage.delete(self.loans_table, loan.id)

            self._audit(AuditEventType.LOAN_DELETED, "loan", loan.id, {
                "principal_amount": loan.principal_amount.to_string(),
                "lines_deleted": len(lines),
                "allocations_deleted": len(allocations),
                "payments_deleted": len(payments),
            }, user_id)

        log_action(logger, "info", "Loan deleted", user_id=user_id, action="loan.delete", resource=loan.id)
        return True

    def get_loan(self, loan_id: str) -> Optional[Loan]:
        """Get loan by ID"""
        data = self.storage.load(self.loans_table, str(loan_id))
        if data:
            return self._loan_from_dict(data)
        return None

    def require_loan(self, loan_id: str) -> Loan:
        loan = self.get_loan(loan_id)
        if not loan:
            raise NotFoundError(f"Loan {loan_id} not found")
        return loan

    def list_loans(self, status: Optional[Union[LoanStatus, str]] = None) -> List[Loan]:
        """All loans, oldest first, optionally filtered by status"""
        grouped: Dict[str, List[Allocation]] = {}
        for data in self.storage.load_all(self.allocations_table):
            grouped.setdefault(data['loan_id'], []).append(self._allocation_from_dict(data))

        loans = [
            self._loan_from_dict(data, grouped.get(data['id'], []))
            for data in self.storage.load_all(self.loans_table)
        ]
        if status is not None:
            wanted = LoanStatus.parse(status)
            loans = [loan for loan in loans if loan.status == wanted]
        return loans

    def get_snapshots(self) -> List[LoanSnapshot]:
        return [loan.snapshot() for loan in self.list_loans()]

    def get_loans_for_debtor(self, debtor_id: str) -> List[Loan]:
        """Loans borrowed by one debtor"""
        return [loan for loan in self.list_loans() if loan.debtor_id == str(debtor_id)]

    def get_loans_for_creditor(self, creditor_id: str) -> List[Loan]:
        """Loans funded by one creditor, through either the legacy reference or an allocation"""
        creditor_id = str(creditor_id)
        return [
            loan for loan in self.list_loans()
            if loan.creditor_id == creditor_id
            or any(a.creditor_id == creditor_id for a in loan.allocations)
        ]

    def get_schedule(self, loan_id: str) -> List[ScheduleLine]:
        """Schedule lines of a loan ordered by payment number"""
        loan = self.require_loan(loan_id)
        lines = [
            ScheduleLine.from_dict(data, loan.currency)
            for data in self.storage.find(self.schedule_table, {"loan_id": loan.id})
        ]
        lines.sort(key=lambda line: line.payment_no)
        return lines

    def get_schedule_status(self, loan_id: str, today: Optional[date] = None) -> List[LineState]:
        """Every schedule line with its current collection status"""
        return annotate_schedule(self.get_schedule(loan_id), self.get_payments(loan_id), today)

    def get_payments(self, loan_id: Optional[str] = None) -> List[Payment]:
        """Payments for one loan (or all loans), ordered by payment date"""
        if loan_id is None:
            data = self.storage.load_all(self.payments_table)
        else:
            data = self.storage.find(self.payments_table, {"loan_id": str(loan_id)})
        payments = [self._payment_from_dict(item) for item in data]
        payments.sort(key=lambda p: p.payment_date)
        return payments

    def get_allocations(self, loan_id: str) -> List[Allocation]:
        """Creditor allocations of one loan"""
        return self.require_loan(loan_id).allocations

    def _save_line(self, loan: Loan, line: ScheduleLine) -> None:
        schedule_id = schedule_id_for(loan.id, line.payment_no)
        data = line.to_dict()
        data.update({
            'id': schedule_id,
            'schedule_id': schedule_id,
            'loan_id': loan.id,
            'currency': loan.currency.code,
        })
        self.storage.save(self.schedule_table, schedule_id, data)

    def _allocation_from_dict(self, data: Dict) -> Allocation:
        return Allocation(creditor_id=data['creditor_id'], amount=Decimal(data['amount_allocated']))

    def _loan_from_dict(self, data: Dict, allocations: Optional[List[Allocation]] = None) -> Loan:
        """Convert dictionary to loan"""
        if allocations is None:
            allocations = [
                self._allocation_from_dict(item)
                for item in self.storage.find(self.allocations_table, {"loan_id": data['id']})
            ]
        currency = Currency.from_code(data['currency'])
        return Loan(
            id=data['id'],
            created_at=datetime.fromisoformat(data['created_at']),
            updated_at=datetime.fromisoformat(data['updated_at']),
            debtor_id=data['debtor_id'],
            principal_amount=Money(Decimal(data['principal_amount']), currency),
            interest_rate_monthly=Decimal(data['interest_rate_monthly']),
            loan_term_months=int(data['loan_term_months']),
            frequency=CollectionFrequency(data['frequency']),
            start_date=date.fromisoformat(data['start_date']),
            status=LoanStatus(data['status']),
            date_released=date.fromisoformat(data['date_released']) if data.get('date_released') else None,
            creditor_id=data.get('creditor_id'),
            allocations=allocations,
            request_token=data.get('request_token'),
        )

    def _payment_from_dict(self, data: Dict) -> Payment:
        """Convert dictionary to payment"""
        return Payment(
            id=data['id'],
            created_at=datetime.fromisoformat(data['created_at']),
            updated_at=datetime.fromisoformat(data['updated_at']),
            loan_id=data['loan_id'],
            schedule_id=data['schedule_id'],
            payment_no=int(data['payment_no']),
            payment_date=date.fromisoformat(data['payment_date']),
            amount_paid=Money(Decimal(data['amount_paid']), Currency.from_code(data['currency'])),
            payment_method=data.get('payment_method', 'cash'),
            remarks=data.get('remarks'),
        )
