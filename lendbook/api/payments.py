"""
Payment endpoints
"""

from typing import Dict, List, Optional
from fastapi import APIRouter, Depends, status

from .dependencies import LendingSystem, get_lending_system, http_error
from .schemas import RecordPaymentRequest, money, serialize_payment
from ..allocations import split_payment
from ..amortization import ScheduleLine
from ..payments import classify_payment_timing
from ..exceptions import LendbookError


router = APIRouter()


@router.post("", status_code=status.HTTP_201_CREATED)
async def record_payment(
    request: RecordPaymentRequest,
    system: LendingSystem = Depends(get_lending_system)
):
    """Record a payment against one schedule line"""
    try:
        payment = system.loan_manager.record_payment(
            loan_id=request.loan_id,
            schedule_id=request.schedule_id,
            amount=request.amount,
            payment_date=request.payment_date,
            payment_method=request.payment_method,
            remarks=request.remarks
        )
    except LendbookError as e:
        raise http_error(e)

    result = serialize_payment(payment)
    result["message"] = "Payment recorded successfully"
    return result


@router.get("")
async def list_payments(
    loan_id: Optional[str] = None,
    system: LendingSystem = Depends(get_lending_system)
):
    """
    List payments, each judged against its line (on_time, late or partial)
    and split across the loan's creditors
    """
    manager = system.loan_manager
    try:
        payments = manager.get_payments(loan_id)
    except LendbookError as e:
        raise http_error(e)

    schedules: Dict[str, Dict[int, ScheduleLine]] = {}
    loans = {}
    result: List[Dict] = []
    for payment in payments:
        if payment.loan_id not in loans:
            loans[payment.loan_id] = manager.require_loan(payment.loan_id)
            schedules[payment.loan_id] = {line.payment_no: line for line in manager.get_schedule(payment.loan_id)}
        loan = loans[payment.loan_id]
        line = schedules[payment.loan_id].get(payment.payment_no)

        item = serialize_payment(payment)
        item["status"] = classify_payment_timing(payment, line).value if line else None
        item["creditor_shares"] = [
            {"creditor_id": split.creditor_id, "amount": money(split.amount)}
            for split in split_payment(payment.amount_paid, loan.principal_amount, loan.allocations)
        ]
        result.append(item)

    return {"payments": result}


@router.delete("/{payment_id}")
async def delete_payment(
    payment_id: str,
    system: LendingSystem = Depends(get_lending_system)
):
    """Delete a payment recorded in error"""
    try:
        system.loan_manager.delete_payment(payment_id)
    except LendbookError as e:
        raise http_error(e)
    return {"payment_id": payment_id, "message": "Payment deleted successfully"}
