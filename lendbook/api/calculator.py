"""
Loan calculator endpoint
"""

from fastapi import APIRouter, Depends

from .dependencies import LendingSystem, get_lending_system, http_error
from .schemas import CalculatorRequest, money, serialize_line
from ..exceptions import LendbookError


router = APIRouter()


@router.post("")
async def calculate_loan(
    request: CalculatorRequest,
    system: LendingSystem = Depends(get_lending_system)
):
    """Preview the repayment schedule of a loan without saving anything"""
    try:
        calculation = system.loan_manager.calculate(
            principal=request.principal,
            interest_rate_monthly=request.interest_rate_monthly,
            term_months=request.term_months,
            frequency=request.frequency,
            start_date=request.start_date
        )
    except LendbookError as e:
        raise http_error(e)

    return {
        "principal": money(calculation.principal),
        "interest_rate_monthly": str(calculation.interest_rate_monthly),
        "term_months": calculation.term_months,
        "frequency": calculation.frequency.value,
        "start_date": calculation.start_date.isoformat(),
        "periods": calculation.periods,
        "maturity_date": calculation.maturity_date.isoformat(),
        "total_interest": money(calculation.total_interest),
        "total_amount": money(calculation.total_amount),
        "period_payment": money(calculation.period_payment),
        "monthly_payment": money(calculation.monthly_payment),
        "schedule": [serialize_line(line) for line in calculation.lines],
    }
