"""
Pydantic schemas for API requests and responses
"""

from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field

from ..currency import Money
from ..amortization import ScheduleLine
from ..allocations import CreditorStats, CreditorLoanPosition
from ..payments import LineState
from ..portfolio import DebtorStats
from ..loans import Loan, Payment
from ..parties import Creditor, Debtor


class MoneyModel(BaseModel):
    amount: str = Field(..., description="Decimal amount as string")
    currency: str = Field(..., description="Currency code (PHP, USD, etc.)")

    @classmethod
    def from_money(cls, money: Money) -> 'MoneyModel':
        return cls(amount=str(money.amount), currency=money.currency.code)


def money(value: Money) -> Dict[str, str]:
    return MoneyModel.from_money(value).model_dump()


# Calculator / loan schemas
class CalculatorRequest(BaseModel):
    principal: str = Field(..., description="Decimal amount as string")
    interest_rate_monthly: str = Field(..., description="Percent per month, e.g. 2.5")
    term_months: int
    frequency: str = Field(..., description="daily, weekly or monthly")
    start_date: str = Field(..., description="ISO date of the first due line")


class AllocationModel(BaseModel):
    creditor_id: str
    amount: str = Field(..., description="Decimal amount as string")


class CreateLoanRequest(CalculatorRequest):
    debtor_id: str
    date_released: Optional[str] = None
    allocations: Optional[List[AllocationModel]] = None
    creditor_id: Optional[str] = Field(None, description="Single creditor funding the full principal")
    request_token: Optional[str] = Field(None, description="Idempotency key for repeated submits")


# Payment schemas
class RecordPaymentRequest(BaseModel):
    loan_id: str
    schedule_id: str = Field(..., description="Schedule line id, {loan_id}_{payment_no}")
    amount: str = Field(..., description="Decimal amount as string")
    payment_date: Optional[str] = None
    payment_method: str = "cash"
    remarks: Optional[str] = None


# Party schemas
class CreateCreditorRequest(BaseModel):
    first_name: str
    last_name: str
    capital: str = Field(..., description="Lending ceiling as decimal string")
    gender: Optional[str] = Field(None, description="M, F or Other")
    phone: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None


class UpdateCreditorRequest(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    capital: Optional[str] = None
    gender: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    address: Optional[str] = None


class CreateDebtorRequest(BaseModel):
    name: str
    contact_info: Optional[str] = None
    address: Optional[str] = None


class UpdateDebtorRequest(BaseModel):
    name: Optional[str] = None
    contact_info: Optional[str] = None
    address: Optional[str] = None


# Response serializers
def serialize_line(line: ScheduleLine) -> Dict[str, Any]:
    return {
        "payment_no": line.payment_no,
        "due_date": line.due_date.isoformat(),
        "amortization": money(line.amortization),
        "principal": money(line.principal),
        "interest": money(line.interest),
        "balance": money(line.balance),
    }


def serialize_line_state(loan_id: str, state: LineState) -> Dict[str, Any]:
    result = serialize_line(state.line)
    result.update({
        "schedule_id": f"{loan_id}_{state.line.payment_no}",
        "status": state.status.value,
        "total_paid": money(state.total_paid),
        "remaining": money(state.remaining),
        "latest_payment_date": state.latest_payment_date.isoformat() if state.latest_payment_date else None,
    })
    return result


def serialize_loan(loan: Loan) -> Dict[str, Any]:
    return {
        "id": loan.id,
        "debtor_id": loan.debtor_id,
        "status": loan.status.value,
        "principal_amount": money(loan.principal_amount),
        "interest_rate_monthly": str(loan.interest_rate_monthly),
        "loan_term_months": loan.loan_term_months,
        "frequency": loan.frequency.value,
        "start_date": loan.start_date.isoformat(),
        "date_released": loan.date_released.isoformat() if loan.date_released else None,
        "total_interest": money(loan.total_interest),
        "total_amount": money(loan.total_amount),
        "creditor_id": loan.creditor_id,
        "allocations": [
            {"creditor_id": a.creditor_id, "amount": money(Money(a.amount, loan.currency))}
            for a in loan.allocations
        ],
    }


def serialize_payment(payment: Payment) -> Dict[str, Any]:
    return {
        "id": payment.id,
        "loan_id": payment.loan_id,
        "schedule_id": payment.schedule_id,
        "payment_no": payment.payment_no,
        "payment_date": payment.payment_date.isoformat(),
        "amount_paid": money(payment.amount_paid),
        "payment_method": payment.payment_method,
        "remarks": payment.remarks,
    }


def serialize_creditor(creditor: Creditor, stats: Optional[CreditorStats] = None) -> Dict[str, Any]:
    result = {
        "id": creditor.id,
        "first_name": creditor.first_name,
        "last_name": creditor.last_name,
        "full_name": creditor.full_name,
        "gender": creditor.gender,
        "phone": creditor.phone,
        "email": creditor.email,
        "address": creditor.address,
        "capital": money(creditor.capital),
    }
    if stats is not None:
        result.update({
            "total_lent": money(stats.total_lent),
            "available": money(stats.available),
            "active_loans": stats.active_loans,
            "completed_loans": stats.completed_loans,
            "total_loans": stats.total_loans,
            "expected_returns": money(stats.expected_returns),
            "expected_interest": money(stats.expected_interest),
        })
    return result


def serialize_position(position: CreditorLoanPosition) -> Dict[str, Any]:
    return {
        "loan_id": position.loan_id,
        "amount_allocated": money(position.amount_allocated),
        "share_ratio": str(position.share_ratio),
        "amount_to_be_returned": money(position.amount_to_be_returned),
        "is_shared_loan": position.is_shared_loan,
    }


def serialize_debtor(debtor: Debtor, stats: Optional[DebtorStats] = None) -> Dict[str, Any]:
    result = {
        "id": debtor.id,
        "name": debtor.name,
        "contact_info": debtor.contact_info,
        "address": debtor.address,
    }
    if stats is not None:
        result.update({
            "total_borrowed": money(stats.total_borrowed),
            "active_loans": stats.active_loans,
            "total_loans": stats.total_loans,
        })
    return result
