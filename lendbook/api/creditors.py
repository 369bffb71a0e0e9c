"""
Creditor endpoints
"""

from fastapi import APIRouter, Depends, status

from .dependencies import LendingSystem, get_lending_system, http_error
from .schemas import CreateCreditorRequest, UpdateCreditorRequest, serialize_creditor, serialize_position
from ..exceptions import LendbookError


router = APIRouter()


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_creditor(
    request: CreateCreditorRequest,
    system: LendingSystem = Depends(get_lending_system)
):
    """Register a creditor"""
    try:
        creditor = system.party_manager.create_creditor(
            first_name=request.first_name,
            last_name=request.last_name,
            capital=request.capital,
            gender=request.gender,
            phone=request.phone,
            email=request.email,
            address=request.address
        )
        stats = system.reporter.creditor_summary(creditor.id)
    except LendbookError as e:
        raise http_error(e)

    result = serialize_creditor(creditor, stats)
    result["message"] = "Creditor created successfully"
    return result


@router.get("")
async def list_creditors(system: LendingSystem = Depends(get_lending_system)):
    """List creditors with their derived lending figures"""
    stats = {s.creditor_id: s for s in system.reporter.creditor_stats()}
    return {
        "creditors": [
            serialize_creditor(creditor, stats.get(creditor.id))
            for creditor in system.party_manager.list_creditors()
        ]
    }


@router.get("/{creditor_id}")
async def get_creditor(
    creditor_id: str,
    system: LendingSystem = Depends(get_lending_system)
):
    """Get one creditor with capital, exposure and expected returns"""
    try:
        creditor = system.party_manager.require_creditor(creditor_id)
        stats = system.reporter.creditor_summary(creditor.id)
    except LendbookError as e:
        raise http_error(e)
    return serialize_creditor(creditor, stats)


@router.put("/{creditor_id}")
async def update_creditor(
    creditor_id: str,
    request: UpdateCreditorRequest,
    system: LendingSystem = Depends(get_lending_system)
):
    """Update creditor details"""
    try:
        creditor = system.party_manager.update_creditor(
            creditor_id,
            first_name=request.first_name,
            last_name=request.last_name,
            capital=request.capital,
            gender=request.gender,
            phone=request.phone,
            email=request.email,
            address=request.address
        )
        stats = system.reporter.creditor_summary(creditor.id)
    except LendbookError as e:
        raise http_error(e)
    return serialize_creditor(creditor, stats)


@router.delete("/{creditor_id}")
async def delete_creditor(
    creditor_id: str,
    system: LendingSystem = Depends(get_lending_system)
):
    """Delete a creditor that funds no loans"""
    try:
        system.party_manager.delete_creditor(creditor_id)
    except LendbookError as e:
        raise http_error(e)
    return {"creditor_id": creditor_id, "message": "Creditor deleted successfully"}


@router.get("/{creditor_id}/loans")
async def get_creditor_loans(
    creditor_id: str,
    system: LendingSystem = Depends(get_lending_system)
):
    """The creditor's stake in every loan they fund"""
    try:
        positions = system.reporter.creditor_loans(creditor_id)
    except LendbookError as e:
        raise http_error(e)
    return {"loans": [serialize_position(position) for position in positions]}
