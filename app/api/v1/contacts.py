from fastapi import APIRouter, Depends, status, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional

from app.core.config import settings
from app.core.database import get_db
from app.core.policy import Caller
from app.api.v1.auth import get_caller
from app.schemas.contact import ContactCreate, ContactUpdate, ContactResponse
from app.schemas.purchase import PurchaseResponse
from app.schemas.voucher import VoucherResponse
from app.services.contact_service import ContactService
from app.services.purchase_service import PurchaseService
from app.services.report_service import ReportService
from app.services.voucher_service import VoucherService

router = APIRouter()


async def _respond(db: AsyncSession, caller: Caller, contact) -> dict:
    total_spend = await ReportService(db).contact_total_spend(caller, contact)
    return ContactService.to_response(contact, caller, total_spend)


@router.get("", response_model=List[ContactResponse])
async def list_contacts(
    search: Optional[str] = Query(None, max_length=200),
    assigned_user_id: Optional[str] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db)
):
    """List contacts visible to the caller, newest first."""
    contacts = await ContactService(db).list_contacts(
        caller,
        search=search,
        assigned_user_id=assigned_user_id,
        skip=skip,
        limit=limit,
    )
    totals = await ReportService(db).spend_by_contact(caller, contacts)

    return [ContactService.to_response(c, caller, totals[c.id]) for c in contacts]


@router.post("", response_model=ContactResponse, status_code=status.HTTP_201_CREATED)
async def create_contact(
    contact_data: ContactCreate,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db)
):
    """Create a contact owned by the caller."""
    contact = await ContactService(db).create_contact(caller, contact_data)
    return await _respond(db, caller, contact)


@router.get("/{contact_id}", response_model=ContactResponse)
async def get_contact(
    contact_id: str,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db)
):
    """Get contact by ID, with total spend where the caller may see it."""
    contact = await ContactService(db).get_visible_contact(caller, contact_id)
    return await _respond(db, caller, contact)


@router.patch("/{contact_id}", response_model=ContactResponse)
async def update_contact(
    contact_id: str,
    contact_update: ContactUpdate,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db)
):
    """Update contact details; reassignment is admin only."""
    contact = await ContactService(db).update_contact(caller, contact_id, contact_update)
    return await _respond(db, caller, contact)


@router.delete("/{contact_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_contact(
    contact_id: str,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db)
):
    """Delete a contact together with its purchases and vouchers."""
    await ContactService(db).delete_contact(caller, contact_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{contact_id}/purchases", response_model=List[PurchaseResponse])
async def list_contact_purchases(
    contact_id: str,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db)
):
    """List purchases recorded for a contact."""
    contact = await ContactService(db).get_visible_contact(caller, contact_id)
    return await PurchaseService(db).list_purchases(caller, contact_id=contact.id, limit=settings.MAX_PAGE_SIZE)


@router.get("/{contact_id}/vouchers", response_model=List[VoucherResponse])
async def list_contact_vouchers(
    contact_id: str,
    caller: Caller = Depends(get_caller),
    db: AsyncSession = Depends(get_db)
):
    """List vouchers issued to a contact."""
    contact = await ContactService(db).get_visible_contact(caller, contact_id)
    return await VoucherService(db).list_vouchers(caller, contact_id=contact.id, limit=settings.MAX_PAGE_SIZE)
