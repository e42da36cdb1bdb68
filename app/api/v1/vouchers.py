from fastapi import APIRouter, Depends, status, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional

from app.core.config import settings
from app.core.database import get_db
from app.core.policy import Caller
from app.api.v1.auth import get_caller
from app.models.voucher import VoucherStatus
from app.schemas.voucher import VoucherIssue, VoucherResponse
from app.services.voucher_service import VoucherService

router = APIRouter()


@router.get("", response_model=List[VoucherResponse])
async def list_vouchers(
    voucher_status: Optional[VoucherStatus] = Query(None, alias="status"),
    contact_id: Optional[str] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db)
):
    """List vouchers of contacts visible to the caller."""
    return await VoucherService(db).list_vouchers(
        caller,
        status=voucher_status,
        contact_id=contact_id,
        skip=skip,
        limit=limit,
    )


@router.post("", response_model=VoucherResponse, status_code=status.HTTP_201_CREATED)
async def issue_voucher(
    voucher_data: VoucherIssue,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db)
):
    """Issue a voucher from a rule to a contact (admin only)."""
    return await VoucherService(db).issue_voucher(caller, voucher_data)


@router.get("/{voucher_id}", response_model=VoucherResponse)
async def get_voucher(
    voucher_id: str,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db)
):
    return await VoucherService(db).get_voucher(caller, voucher_id)


@router.post("/{voucher_id}/redeem", response_model=VoucherResponse)
async def redeem_voucher(
    voucher_id: str,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db)
):
    """Redeem an issued voucher."""
    return await VoucherService(db).redeem_voucher(caller, voucher_id)


@router.post("/{voucher_id}/expire", response_model=VoucherResponse)
async def expire_voucher(
    voucher_id: str,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db)
):
    """Mark an issued voucher as expired."""
    return await VoucherService(db).expire_voucher(caller, voucher_id)
