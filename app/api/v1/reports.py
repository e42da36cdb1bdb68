from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List

from app.core.database import get_db
from app.core.policy import Caller
from app.api.v1.auth import get_caller
from app.schemas.report import (
    MonthlyRevenue,
    ReportSummaryResponse,
    UserDrilldownResponse,
    UserPerformance,
)
from app.services.report_service import ReportService

router = APIRouter()


@router.get("/summary", response_model=ReportSummaryResponse)
async def get_report_summary(
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db)
):
    """Totals for the company (admins) or for the caller's own contacts."""
    return await ReportService(db).summary(caller)


@router.get("/revenue", response_model=List[MonthlyRevenue])
async def get_revenue_by_month(
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db)
):
    """Monthly revenue over purchases visible to the caller."""
    return await ReportService(db).revenue_by_month(caller)


@router.get("/users", response_model=List[UserPerformance])
async def get_per_user_breakdown(
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db)
):
    """
    Per-user performance (admin only).

    Admin accounts are not salesworkers and are excluded.
    """
    return await ReportService(db).per_user_breakdown(caller)


@router.get("/users/{user_id}", response_model=UserDrilldownResponse)
async def get_user_drilldown(
    user_id: str,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db)
):
    """Contacts and purchases attributed to one user (admin only)."""
    return await ReportService(db).user_drilldown(caller, user_id)
