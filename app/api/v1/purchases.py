from fastapi import APIRouter, Depends, status, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional
from datetime import date

from app.core.config import settings
from app.core.database import get_db
from app.core.policy import Caller
from app.api.v1.auth import get_caller
from app.schemas.purchase import PurchaseCreate, PurchaseUpdate, PurchaseResponse
from app.services.purchase_service import PurchaseService

router = APIRouter()


@router.get("", response_model=List[PurchaseResponse])
async def list_purchases(
    contact_id: Optional[str] = Query(None),
    from_date: Optional[date] = Query(None),
    to_date: Optional[date] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db)
):
    """List purchases on contacts visible to the caller."""
    return await PurchaseService(db).list_purchases(
        caller,
        contact_id=contact_id,
        from_date=from_date,
        to_date=to_date,
        skip=skip,
        limit=limit,
    )


@router.post("", response_model=PurchaseResponse, status_code=status.HTTP_201_CREATED)
async def record_purchase(
    purchase_data: PurchaseCreate,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db)
):
    """Record a purchase for a contact the caller can see."""
    return await PurchaseService(db).record_purchase(caller, purchase_data)


@router.get("/{purchase_id}", response_model=PurchaseResponse)
async def get_purchase(
    purchase_id: str,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db)
):
    """Get purchase by ID."""
    return await PurchaseService(db).get_purchase(caller, purchase_id)


@router.patch("/{purchase_id}", response_model=PurchaseResponse)
async def update_purchase(
    purchase_id: str,
    purchase_update: PurchaseUpdate,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db)
):
    """Edit a purchase (admin only); the total is recomputed."""
    return await PurchaseService(db).update_purchase(caller, purchase_id, purchase_update)


@router.delete("/{purchase_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_purchase(
    purchase_id: str,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db)
):
    """Delete a purchase (admin only)."""
    await PurchaseService(db).delete_purchase(caller, purchase_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
