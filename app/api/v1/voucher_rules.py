from fastapi import APIRouter, Depends, status, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List
from decimal import Decimal

from app.core.database import get_db
from app.core.policy import Caller
from app.api.v1.auth import get_caller
from app.schemas.voucher import (
    DiscountQuoteResponse,
    VoucherRuleCreate,
    VoucherRuleUpdate,
    VoucherRuleResponse,
)
from app.services.voucher_service import VoucherService

router = APIRouter()


@router.get("", response_model=List[VoucherRuleResponse])
async def list_voucher_rules(
    active_only: bool = Query(False),
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db)
):
    """List the company's voucher rules."""
    return await VoucherService(db).list_rules(caller, active_only=active_only)


@router.post("", response_model=VoucherRuleResponse, status_code=status.HTTP_201_CREATED)
async def create_voucher_rule(
    rule_data: VoucherRuleCreate,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db)
):
    """Create a voucher rule (admin only)."""
    return await VoucherService(db).create_rule(caller, rule_data)


@router.get("/{rule_id}", response_model=VoucherRuleResponse)
async def get_voucher_rule(
    rule_id: str,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db)
):
    return await VoucherService(db).get_rule(caller, rule_id)


@router.patch("/{rule_id}", response_model=VoucherRuleResponse)
async def update_voucher_rule(
    rule_id: str,
    rule_update: VoucherRuleUpdate,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db)
):
    """Update a voucher rule (admin only)."""
    return await VoucherService(db).update_rule(caller, rule_id, rule_update)


@router.delete("/{rule_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_voucher_rule(
    rule_id: str,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db)
):
    """Delete a voucher rule and the vouchers issued from it (admin only)."""
    await VoucherService(db).delete_rule(caller, rule_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{rule_id}/quote", response_model=DiscountQuoteResponse)
async def quote_discount(
    rule_id: str,
    amount: Decimal = Query(..., gt=0),
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db)
):
    """Compute the discount this rule grants on a purchase amount."""
    return await VoucherService(db).quote(caller, rule_id, amount)
