"""
Loan endpoints
"""

from typing import Optional
from fastapi import APIRouter, HTTPException, Depends, Query, status

from .dependencies import LendingSystem, get_lending_system, http_error, parse_today
from .schemas import CreateLoanRequest, money, serialize_loan, serialize_line_state
from ..currency import Money
from ..exceptions import LendbookError


router = APIRouter()


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_loan(
    request: CreateLoanRequest,
    system: LendingSystem = Depends(get_lending_system)
):
    """Create a loan with its schedule and creditor allocations"""
    allocations = None
    if request.allocations:
        allocations = [{"creditor_id": a.creditor_id, "amount": a.amount} for a in request.allocations]

    try:
        loan = system.loan_manager.create_loan(
            debtor_id=request.debtor_id,
            principal=request.principal,
            interest_rate_monthly=request.interest_rate_monthly,
            term_months=request.term_months,
            frequency=request.frequency,
            start_date=request.start_date,
            date_released=request.date_released,
            allocations=allocations,
            creditor_id=request.creditor_id,
            request_token=request.request_token
        )
    except LendbookError as e:
        raise http_error(e)

    result = serialize_loan(loan)
    result["message"] = "Loan created successfully"
    return result


@router.get("")
async def list_loans(
    status_filter: Optional[str] = Query(None, alias="status"),
    system: LendingSystem = Depends(get_lending_system)
):
    """List loans, oldest first, optionally filtered by status"""
    try:
        loans = system.loan_manager.list_loans(status_filter)
    except LendbookError as e:
        raise http_error(e)
    return {"loans": [serialize_loan(loan) for loan in loans]}


@router.get("/{loan_id}")
async def get_loan(
    loan_id: str,
    today: Optional[str] = None,
    system: LendingSystem = Depends(get_lending_system)
):
    """Get loan details with its collection summary"""
    loan = system.loan_manager.get_loan(loan_id)
    if not loan:
        raise HTTPException(status_code=404, detail="Loan not found")

    summary = system.reporter.loan_collections(loan.id, parse_today(today))
    result = serialize_loan(loan)
    result["collections"] = {
        "amount_due": money(Money(summary.amount_due, loan.currency)),
        "collected": money(Money(summary.collected, loan.currency)),
        "outstanding": money(Money(summary.outstanding, loan.currency)),
        "overdue_amount": money(Money(summary.overdue_amount, loan.currency)),
        "line_counts": {line_status.value: count for line_status, count in summary.counts.items()},
    }
    return result


@router.get("/{loan_id}/schedule")
async def get_loan_schedule(
    loan_id: str,
    today: Optional[str] = None,
    system: LendingSystem = Depends(get_lending_system)
):
    """Get the repayment schedule with each line's current status"""
    try:
        states = system.loan_manager.get_schedule_status(loan_id, parse_today(today))
    except LendbookError as e:
        raise http_error(e)
    return {"schedule": [serialize_line_state(loan_id, state) for state in states]}


@router.post("/{loan_id}/complete")
async def complete_loan(
    loan_id: str,
    system: LendingSystem = Depends(get_lending_system)
):
    """Mark a loan Completed by operator decision"""
    try:
        loan = system.loan_manager.complete_loan(loan_id)
    except LendbookError as e:
        raise http_error(e)
    return {"loan_id": loan.id, "status": loan.status.value, "message": "Loan completed"}


@router.post("/{loan_id}/settle")
async def settle_loan(
    loan_id: str,
    today: Optional[str] = None,
    system: LendingSystem = Depends(get_lending_system)
):
    """Complete the loan only if every schedule line has been paid"""
    try:
        completed = system.loan_manager.complete_if_settled(loan_id, parse_today(today))
        loan = system.loan_manager.require_loan(loan_id)
    except LendbookError as e:
        raise http_error(e)
    return {"loan_id": loan.id, "completed": completed, "status": loan.status.value}


@router.post("/{loan_id}/default")
async def default_loan(
    loan_id: str,
    system: LendingSystem = Depends(get_lending_system)
):
    """Mark a loan Defaulted"""
    try:
        loan = system.loan_manager.mark_defaulted(loan_id)
    except LendbookError as e:
        raise http_error(e)
    return {"loan_id": loan.id, "status": loan.status.value, "message": "Loan marked as defaulted"}


@router.delete("/{loan_id}")
async def delete_loan(
    loan_id: str,
    system: LendingSystem = Depends(get_lending_system)
):
    """Delete a loan with its schedule, allocations and payments"""
    try:
        system.loan_manager.delete_loan(loan_id)
    except LendbookError as e:
        raise http_error(e)
    return {"loan_id": loan_id, "message": "Loan deleted successfully"}
