"""
Dashboard endpoints
"""

from typing import Optional
from fastapi import APIRouter, Depends

from .dependencies import LendingSystem, get_lending_system, http_error, parse_today
from .schemas import money, serialize_loan
from ..exceptions import LendbookError


router = APIRouter()


@router.get("")
async def get_dashboard(
    today: Optional[str] = None,
    system: LendingSystem = Depends(get_lending_system)
):
    """Headline portfolio figures"""
    stats = system.reporter.dashboard(parse_today(today))
    return {
        "total_loans": stats.total_loans,
        "active_loans": stats.active_loans,
        "completed_loans": stats.completed_loans,
        "defaulted_loans": stats.defaulted_loans,
        "total_outstanding": money(stats.total_outstanding),
        "total_collected": money(stats.total_collected),
        "monthly_collection": money(stats.monthly_collection),
    }


@router.get("/collections")
async def get_monthly_collections(
    months: Optional[int] = None,
    today: Optional[str] = None,
    system: LendingSystem = Depends(get_lending_system)
):
    """Collections per calendar month, oldest first, empty months included"""
    try:
        buckets = system.reporter.monthly_collections(months, parse_today(today))
    except LendbookError as e:
        raise http_error(e)
    return {
        "collections": [
            {"month": bucket.month, "label": bucket.label, "amount": money(bucket.amount)}
            for bucket in buckets
        ]
    }


@router.get("/status-counts")
async def get_status_counts(system: LendingSystem = Depends(get_lending_system)):
    """Loans per lifecycle status"""
    return system.reporter.status_counts()


@router.get("/recent-loans")
async def get_recent_loans(
    limit: Optional[int] = None,
    system: LendingSystem = Depends(get_lending_system)
):
    """Newest loans first"""
    return {"loans": [serialize_loan(loan) for loan in system.reporter.recent_loans(limit)]}
