"""
Purchase Service

Purchases are read through their parent contact: a purchase is visible
exactly when its contact is. Recording requires a visible contact; editing
and deleting a recorded purchase is reserved for admins.
"""
import logging
from datetime import date, datetime
from typing import List, Optional

from sqlalchemy import select, and_
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import NotFound
from app.core.policy import (
    Caller,
    Entity,
    Operation,
    can_read_purchase,
    can_write,
    ensure,
    visible_contacts_clause,
)
from app.models.contact import Contact
from app.models.purchase import Purchase, compute_total
from app.schemas.purchase import PurchaseCreate, PurchaseUpdate
from app.services.contact_service import ContactService

logger = logging.getLogger(__name__)


class PurchaseService:
    """Service for recording and managing purchases."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_purchases(
        self,
        caller: Caller,
        contact_id: Optional[str] = None,
        from_date: Optional[date] = None,
        to_date: Optional[date] = None,
        skip: int = 0,
        limit: int = settings.DEFAULT_PAGE_SIZE
    ) -> List[Purchase]:
        query = (
            select(Purchase)
            .join(Contact, Purchase.contact_id == Contact.id)
            .where(Purchase.company_id == caller.company_id)
            .where(visible_contacts_clause(caller))
        )

        if contact_id:
            query = query.where(Purchase.contact_id == contact_id)
        if from_date:
            query = query.where(Purchase.purchase_date >= datetime.combine(from_date, datetime.min.time()))
        if to_date:
            query = query.where(Purchase.purchase_date <= datetime.combine(to_date, datetime.max.time()))

        query = query.order_by(Purchase.purchase_date.desc()).offset(skip).limit(limit)

        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def get_purchase(self, caller: Caller, purchase_id: str) -> Purchase:
        result = await self.db.execute(
            select(Purchase, Contact)
            .join(Contact, Purchase.contact_id == Contact.id)
            .where(
                and_(
                    Purchase.id == purchase_id,
                    Purchase.company_id == caller.company_id
                )
            )
        )
        row = result.first()

        if row is None or not can_read_purchase(row[0], row[1], caller):
            raise NotFound("Purchase")
        return row[0]

    async def record_purchase(self, caller: Caller, data: PurchaseCreate) -> Purchase:
        """Record a purchase; the stored amount is unit_amount * quantity."""
        contact = await ContactService(self.db).get_visible_contact(caller, data.contact_id)
        ensure(
            can_write(
                Entity.PURCHASE,
                caller,
                Operation.INSERT,
                contact=contact,
                new={"company_id": caller.company_id},
            ),
            "You cannot record purchases for this contact"
        )

        purchase = Purchase(
            company_id=caller.company_id,
            contact_id=contact.id,
            created_by=caller.user_id,
            item=data.item,
            unit_amount=data.unit_amount,
            quantity=data.quantity,
            amount=compute_total(data.unit_amount, data.quantity),
            purchase_date=data.purchase_date or datetime.utcnow(),
        )
        self.db.add(purchase)
        await self.db.commit()
        await self.db.refresh(purchase)

        logger.info(
            f"Purchase {purchase.id} recorded by {caller.user_id} for contact {contact.id}: "
            f"{purchase.quantity} x {purchase.unit_amount} = {purchase.amount}"
        )
        return purchase

    async def update_purchase(self, caller: Caller, purchase_id: str, data: PurchaseUpdate) -> Purchase:
        purchase = await self.get_purchase(caller, purchase_id)
        ensure(
            can_write(Entity.PURCHASE, caller, Operation.UPDATE, purchase),
            "Only admins can edit purchases"
        )

        changes = data.model_dump(exclude_unset=True)
        for field, value in changes.items():
            setattr(purchase, field, value)
        purchase.amount = compute_total(purchase.unit_amount, purchase.quantity)

        await self.db.commit()
        await self.db.refresh(purchase)

        logger.info(f"Purchase {purchase.id} updated by {caller.user_id}: {sorted(changes)}")
        return purchase

    async def delete_purchase(self, caller: Caller, purchase_id: str) -> None:
        purchase = await self.get_purchase(caller, purchase_id)
        ensure(
            can_write(Entity.PURCHASE, caller, Operation.DELETE, purchase),
            "Only admins can delete purchases"
        )

        await self.db.delete(purchase)
        await self.db.commit()

        logger.info(f"Purchase {purchase_id} deleted by {caller.user_id}")
