"""
Debtor endpoints
"""

from fastapi import APIRouter, Depends, status

from .dependencies import LendingSystem, get_lending_system, http_error
from .schemas import CreateDebtorRequest, UpdateDebtorRequest, serialize_debtor, serialize_loan
from ..exceptions import LendbookError


router = APIRouter()


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_debtor(
    request: CreateDebtorRequest,
    system: LendingSystem = Depends(get_lending_system)
):
    """Register a debtor"""
    try:
        debtor = system.party_manager.create_debtor(
            name=request.name,
            contact_info=request.contact_info,
            address=request.address
        )
    except LendbookError as e:
        raise http_error(e)

    result = serialize_debtor(debtor, system.reporter.debtor_summary(debtor.id))
    result["message"] = "Debtor created successfully"
    return result


@router.get("")
async def list_debtors(system: LendingSystem = Depends(get_lending_system)):
    """List debtors with their borrowing figures"""
    stats = {s.debtor_id: s for s in system.reporter.debtor_stats()}
    return {
        "debtors": [
            serialize_debtor(debtor, stats.get(debtor.id))
            for debtor in system.party_manager.list_debtors()
        ]
    }


@router.get("/{debtor_id}")
async def get_debtor(
    debtor_id: str,
    system: LendingSystem = Depends(get_lending_system)
):
    """Get one debtor with total borrowed and loan counts"""
    try:
        debtor = system.party_manager.require_debtor(debtor_id)
        stats = system.reporter.debtor_summary(debtor.id)
    except LendbookError as e:
        raise http_error(e)
    return serialize_debtor(debtor, stats)


@router.put("/{debtor_id}")
async def update_debtor(
    debtor_id: str,
    request: UpdateDebtorRequest,
    system: LendingSystem = Depends(get_lending_system)
):
    """Update debtor details"""
    try:
        debtor = system.party_manager.update_debtor(
            debtor_id,
            name=request.name,
            contact_info=request.contact_info,
            address=request.address
        )
    except LendbookError as e:
        raise http_error(e)
    return serialize_debtor(debtor, system.reporter.debtor_summary(debtor.id))


@router.delete("/{debtor_id}")
async def delete_debtor(
    debtor_id: str,
    system: LendingSystem = Depends(get_lending_system)
):
    """Delete a debtor with no loans"""
    try:
        system.party_manager.delete_debtor(debtor_id)
    except LendbookError as e:
        raise http_error(e)
    return {"debtor_id": debtor_id, "message": "Debtor deleted successfully"}


@router.get("/{debtor_id}/loans")
async def get_debtor_loans(
    debtor_id: str,
    system: LendingSystem = Depends(get_lending_system)
):
    """Loans borrowed by one debtor"""
    try:
        debtor = system.party_manager.require_debtor(debtor_id)
    except LendbookError as e:
        raise http_error(e)
    return {"loans": [serialize_loan(loan) for loan in system.loan_manager.get_loans_for_debtor(debtor.id)]}
