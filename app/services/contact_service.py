"""
Contact Service

Company-scoped contacts with creator/assignee visibility. Records the caller
may not read are reported as not found, never as forbidden, so existence does
not leak across tenants or owners.
"""
import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import select, and_, or_
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import NotFound, ValidationFailed
from app.core.policy import (
    Caller,
    Entity,
    Operation,
    can_read_contact,
    can_see_pii,
    can_write,
    contact_capabilities,
    ensure,
    pii_visible_clause,
    visible_contacts_clause,
)
from app.models.contact import Contact
from app.models.user import User
from app.schemas.contact import ContactCreate, ContactUpdate

logger = logging.getLogger(__name__)


class ContactService:
    """Service for contact CRUD under the access policy."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_contacts(
        self,
        caller: Caller,
        search: Optional[str] = None,
        assigned_user_id: Optional[str] = None,
        skip: int = 0,
        limit: int = settings.DEFAULT_PAGE_SIZE
    ) -> List[Contact]:
        """
        List contacts visible to the caller, newest first.

        ``search`` matches the name for every visible contact, and email or
        phone only where the caller may see personal data.
        """
        query = select(Contact).where(visible_contacts_clause(caller))

        if search and search.strip():
            pattern = f"%{search.strip()}%"
            query = query.where(
                or_(
                    Contact.name.ilike(pattern),
                    and_(
                        pii_visible_clause(caller),
                        or_(Contact.email.ilike(pattern), Contact.phone.ilike(pattern)),
                    ),
                )
            )
        if assigned_user_id:
            query = query.where(Contact.assigned_user_id == assigned_user_id)

        query = query.order_by(Contact.created_at.desc()).offset(skip).limit(limit)

        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def get_visible_contact(self, caller: Caller, contact_id: str) -> Contact:
        result = await self.db.execute(
            select(Contact).where(
                and_(
                    Contact.id == contact_id,
                    Contact.company_id == caller.company_id
                )
            )
        )
        contact = result.scalar_one_or_none()

        if contact is None or not can_read_contact(contact, caller):
            raise NotFound("Contact")
        return contact

    async def _ensure_member(self, company_id: str, user_id: Optional[str]) -> None:
        if user_id is None:
            return
        user = await self.db.get(User, user_id)
        if user is None or user.company_id != company_id:
            raise ValidationFailed({"assigned_user_id": "User is not a member of this company"})

    async def create_contact(self, caller: Caller, data: ContactCreate) -> Contact:
        # Unspecified assignment defaults to the creator
        if "assigned_user_id" in data.model_fields_set:
            assigned_user_id = data.assigned_user_id
        else:
            assigned_user_id = caller.user_id

        ensure(
            can_write(
                Entity.CONTACT,
                caller,
                Operation.INSERT,
                new={"company_id": caller.company_id, "assigned_user_id": assigned_user_id},
            ),
            "You can only assign contacts to yourself"
        )
        await self._ensure_member(caller.company_id, assigned_user_id)

        contact = Contact(
            company_id=caller.company_id,
            created_by=caller.user_id,
            assigned_user_id=assigned_user_id,
            name=data.name,
            email=str(data.email) if data.email else None,
            phone=data.phone,
            address=data.address,
        )
        self.db.add(contact)
        await self.db.commit()
        await self.db.refresh(contact)

        logger.info(
            f"Contact {contact.id} created by {caller.user_id} "
            f"in company {caller.company_id}, assigned to {assigned_user_id}"
        )
        return contact

    async def update_contact(self, caller: Caller, contact_id: str, data: ContactUpdate) -> Contact:
        contact = await self.get_visible_contact(caller, contact_id)
        changes = data.model_dump(exclude_unset=True)
        if changes.get("email") is not None:
            changes["email"] = str(changes["email"])

        ensure(
            can_write(Entity.CONTACT, caller, Operation.UPDATE, contact, new=changes),
            "You cannot make these changes to this contact"
        )
        if "assigned_user_id" in changes:
            await self._ensure_member(caller.company_id, changes["assigned_user_id"])

        for field, value in changes.items():
            setattr(contact, field, value)
        contact.updated_at = datetime.utcnow()

        await self.db.commit()
        await self.db.refresh(contact)

        logger.info(f"Contact {contact.id} updated by {caller.user_id}: {sorted(changes)}")
        return contact

    async def delete_contact(self, caller: Caller, contact_id: str) -> None:
        """Hard delete; purchases and vouchers of the contact go with it."""
        contact = await self.get_visible_contact(caller, contact_id)
        ensure(can_write(Entity.CONTACT, caller, Operation.DELETE, contact))

        await self.db.delete(contact)
        await self.db.commit()

        logger.info(f"Contact {contact_id} deleted by {caller.user_id}")

    @staticmethod
    def to_response(contact: Contact, caller: Caller, total_spend: Optional[Decimal]) -> Dict[str, Any]:
        """Serialize a contact, masking personal data the caller may not see."""
        pii_visible = can_see_pii(contact, caller)
        return {
            "id": contact.id,
            "company_id": contact.company_id,
            "created_by": contact.created_by,
            "assigned_user_id": contact.assigned_user_id,
            "name": contact.name,
            "email": contact.email if pii_visible else None,
            "phone": contact.phone if pii_visible else None,
            "address": contact.address if pii_visible else None,
            "pii_visible": pii_visible,
            "total_spend": total_spend,
            "capabilities": contact_capabilities(contact, caller),
            "created_at": contact.created_at,
            "updated_at": contact.updated_at,
        }
