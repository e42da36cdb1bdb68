"""
Report Service

Spend totals and performance breakdowns, always computed over what the
caller may see. Spend the caller is not entitled to is reported as ``None``
(unavailable) rather than zero.
"""
from collections import OrderedDict
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional
import logging

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFound
from app.core.policy import Caller, can_see_spend, ensure, is_admin, visible_contacts_clause
from app.models.contact import Contact
from app.models.purchase import Purchase
from app.models.user import User
from app.services.company_service import CompanyService

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")


def _money(value: Any) -> Decimal:
    return Decimal(str(value)) if value is not None else ZERO


class ReportService:
    """Service for spend totals and admin reporting."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # -------------------------------------------------------------------------
    # Contact spend
    # -------------------------------------------------------------------------

    async def spend_by_contact(
        self,
        caller: Caller,
        contacts: Iterable[Contact]
    ) -> Dict[str, Optional[Decimal]]:
        """
        Total purchase amount per contact.

        Contacts whose spend the caller may not see map to None; contacts
        without purchases map to zero.
        """
        contacts = list(contacts)
        allowed_ids = [c.id for c in contacts if can_see_spend(c, caller)]
        totals: Dict[str, Optional[Decimal]] = {c.id: None for c in contacts}

        if allowed_ids:
            result = await self.db.execute(
                select(Purchase.contact_id, func.sum(Purchase.amount))
                .where(
                    Purchase.company_id == caller.company_id,
                    Purchase.contact_id.in_(allowed_ids),
                )
                .group_by(Purchase.contact_id)
            )
            sums = {contact_id: _money(total) for contact_id, total in result.all()}
            for contact_id in allowed_ids:
                totals[contact_id] = sums.get(contact_id, ZERO)

        return totals

    async def contact_total_spend(self, caller: Caller, contact: Contact) -> Optional[Decimal]:
        totals = await self.spend_by_contact(caller, [contact])
        return totals[contact.id]

    # -------------------------------------------------------------------------
    # Summaries
    # -------------------------------------------------------------------------

    async def summary(self, caller: Caller) -> Dict[str, Any]:
        """Contacts, purchases and revenue: company-wide for admins, own scope otherwise."""
        contacts_result = await self.db.execute(
            select(func.count(Contact.id)).where(visible_contacts_clause(caller))
        )
        purchases_result = await self.db.execute(
            select(func.count(Purchase.id), func.sum(Purchase.amount))
            .join(Contact, Purchase.contact_id == Contact.id)
            .where(Purchase.company_id == caller.company_id)
            .where(visible_contacts_clause(caller))
        )
        purchase_count, revenue = purchases_result.one()

        return {
            "total_contacts": contacts_result.scalar_one(),
            "total_purchases": purchase_count or 0,
            "total_revenue": _money(revenue),
            "scope": "company" if is_admin(caller) else "user",
        }

    async def revenue_by_month(self, caller: Caller) -> List[Dict[str, Any]]:
        result = await self.db.execute(
            select(Purchase.purchase_date, Purchase.amount)
            .join(Contact, Purchase.contact_id == Contact.id)
            .where(Purchase.company_id == caller.company_id)
            .where(visible_contacts_clause(caller))
            .order_by(Purchase.purchase_date.asc())
        )

        months: "OrderedDict[str, Dict[str, Any]]" = OrderedDict()
        for purchase_date, amount in result.all():
            key = purchase_date.strftime("%Y-%m")
            bucket = months.setdefault(key, {"month": key, "purchases": 0, "revenue": ZERO})
            bucket["purchases"] += 1
            bucket["revenue"] += _money(amount)

        return list(months.values())

    # -------------------------------------------------------------------------
    # Per-user performance (admin only)
    # -------------------------------------------------------------------------

    async def _load_company_activity(self, company_id: str):
        contacts_result = await self.db.execute(
            select(Contact).where(Contact.company_id == company_id).order_by(Contact.name.asc())
        )
        purchases_result = await self.db.execute(
            select(Purchase, Contact.created_by, Contact.assigned_user_id)
            .join(Contact, Purchase.contact_id == Contact.id)
            .where(Purchase.company_id == company_id)
            .order_by(Purchase.purchase_date.desc())
        )
        return list(contacts_result.scalars().all()), list(purchases_result.all())

    @staticmethod
    def _attributed(user_id: str, created_by: str, assigned_user_id: Optional[str]) -> bool:
        return created_by == user_id or assigned_user_id == user_id

    def _performance_row(self, user: User, contacts, purchases) -> Dict[str, Any]:
        user_contacts = [c for c in contacts if self._attributed(user.id, c.created_by, c.assigned_user_id)]
        user_purchases = [p for p, created_by, assigned in purchases if self._attributed(user.id, created_by, assigned)]
        return {
            "user_id": user.id,
            "name": user.full_name or "(no name)",
            "contacts": len(user_contacts),
            "purchases": len(user_purchases),
            "revenue": sum((_money(p.amount) for p in user_purchases), ZERO),
        }

    async def _salesworkers(self, company_id: str) -> List[User]:
        """Company members without the admin role."""
        admin_ids = await CompanyService(self.db).admin_ids(company_id)
        result = await self.db.execute(select(User).where(User.company_id == company_id))
        return [u for u in result.scalars().all() if u.id not in admin_ids]

    async def per_user_breakdown(self, caller: Caller) -> List[Dict[str, Any]]:
        """Performance per non-admin user, highest revenue first."""
        ensure(is_admin(caller), "Only admins can view per-user reports")

        users = await self._salesworkers(caller.company_id)
        contacts, purchases = await self._load_company_activity(caller.company_id)

        rows = [self._performance_row(user, contacts, purchases) for user in users]
        rows.sort(key=lambda row: row["revenue"], reverse=True)
        return rows

    async def user_drilldown(self, caller: Caller, user_id: str) -> Dict[str, Any]:
        ensure(is_admin(caller), "Only admins can view per-user reports")

        users = {u.id: u for u in await self._salesworkers(caller.company_id)}
        user = users.get(user_id)
        if user is None:
            raise NotFound("User")

        contacts, purchases = await self._load_company_activity(caller.company_id)
        return {
            "user": self._performance_row(user, contacts, purchases),
            "contacts": [
                {
                    "id": c.id,
                    "name": c.name,
                    "created_by": c.created_by,
                    "assigned_user_id": c.assigned_user_id,
                }
                for c in contacts
                if self._attributed(user.id, c.created_by, c.assigned_user_id)
            ],
            "purchases": [
                p for p, created_by, assigned in purchases
                if self._attributed(user.id, created_by, assigned)
            ],
        }
