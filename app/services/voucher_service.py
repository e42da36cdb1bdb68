"""
Voucher Service

Voucher rules (company discount definitions, admin managed) and vouchers
(codes issued from a rule to a contact).

Issuance generates ``<prefix><random suffix>`` codes and relies on the unique
index on ``vouchers.code``; a collision is retried with a fresh code and only
reported as ``DuplicateCode`` once every attempt has collided.

Status lifecycle: issued -> redeemed, issued -> expired. Redeemed and
expired are terminal.
"""
import logging
import secrets
import string
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import select, and_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import DuplicateCode, InvalidTransition, NotFound, ValidationFailed
from app.core.policy import (
    Caller,
    Entity,
    Operation,
    can_read_company_scoped,
    can_read_voucher,
    can_write,
    ensure,
    visible_contacts_clause,
)
from app.models.contact import Contact
from app.models.voucher import (
    DiscountType,
    Voucher,
    VoucherRule,
    VoucherStatus,
    VOUCHER_TRANSITIONS,
)
from app.schemas.voucher import VoucherIssue, VoucherRuleCreate, VoucherRuleUpdate
from app.services.contact_service import ContactService

logger = logging.getLogger(__name__)

CODE_ALPHABET = string.ascii_uppercase + string.digits


def generate_voucher_code() -> str:
    suffix = "".join(secrets.choice(CODE_ALPHABET) for _ in range(settings.VOUCHER_CODE_LENGTH))
    return f"{settings.VOUCHER_CODE_PREFIX}{suffix}"


def validate_rule_values(values: Dict[str, Any]) -> None:
    """Cross-field checks on a rule's effective values."""
    errors = {}

    discount_type = values.get("discount_type")
    discount_value = values.get("discount_value")
    if discount_value is not None and Decimal(str(discount_value)) < 0:
        errors["discount_value"] = "Discount value cannot be negative"
    elif (
        discount_type == DiscountType.PERCENTAGE
        and discount_value is not None
        and Decimal(str(discount_value)) > Decimal(str(settings.MAX_PERCENTAGE_DISCOUNT))
    ):
        errors["discount_value"] = (
            f"Percentage discount cannot exceed {settings.MAX_PERCENTAGE_DISCOUNT:g}%"
        )

    valid_from = values.get("valid_from")
    valid_until = values.get("valid_until")
    if valid_from and valid_until and valid_until < valid_from:
        errors["valid_until"] = "End of validity must not precede its start"

    if errors:
        raise ValidationFailed(errors)


class VoucherService:
    """Service for voucher rules and voucher issuance/redemption."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # -------------------------------------------------------------------------
    # Voucher rules
    # -------------------------------------------------------------------------

    async def list_rules(self, caller: Caller, active_only: bool = False) -> List[VoucherRule]:
        query = select(VoucherRule).where(VoucherRule.company_id == caller.company_id)
        if active_only:
            query = query.where(VoucherRule.is_active.is_(True))
        query = query.order_by(VoucherRule.created_at.desc())

        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def get_rule(self, caller: Caller, rule_id: str) -> VoucherRule:
        rule = await self.db.get(VoucherRule, rule_id)
        if rule is None or not can_read_company_scoped(rule, caller):
            raise NotFound("Voucher rule")
        return rule

    async def create_rule(self, caller: Caller, data: VoucherRuleCreate) -> VoucherRule:
        ensure(
            can_write(Entity.VOUCHER_RULE, caller, Operation.INSERT, new={"company_id": caller.company_id}),
            "Only admins can manage voucher rules"
        )
        values = data.model_dump()
        validate_rule_values(values)

        rule = VoucherRule(company_id=caller.company_id, **values)
        self.db.add(rule)
        await self.db.commit()
        await self.db.refresh(rule)

        logger.info(f"Voucher rule {rule.id} ('{rule.name}') created by {caller.user_id}")
        return rule

    async def update_rule(self, caller: Caller, rule_id: str, data: VoucherRuleUpdate) -> VoucherRule:
        rule = await self.get_rule(caller, rule_id)
        ensure(
            can_write(Entity.VOUCHER_RULE, caller, Operation.UPDATE, rule),
            "Only admins can manage voucher rules"
        )

        changes = data.model_dump(exclude_unset=True)
        effective = {
            "discount_type": changes.get("discount_type", rule.discount_type),
            "discount_value": changes.get("discount_value", rule.discount_value),
            "valid_from": changes.get("valid_from", rule.valid_from),
            "valid_until": changes.get("valid_until", rule.valid_until),
        }
        validate_rule_values(effective)

        for field, value in changes.items():
            setattr(rule, field, value)
        rule.updated_at = datetime.utcnow()

        await self.db.commit()
        await self.db.refresh(rule)

        logger.info(f"Voucher rule {rule.id} updated by {caller.user_id}: {sorted(changes)}")
        return rule

    async def delete_rule(self, caller: Caller, rule_id: str) -> None:
        """Delete a rule along with every voucher issued from it."""
        rule = await self.get_rule(caller, rule_id)
        ensure(
            can_write(Entity.VOUCHER_RULE, caller, Operation.DELETE, rule),
            "Only admins can manage voucher rules"
        )

        await self.db.delete(rule)
        await self.db.commit()

        logger.info(f"Voucher rule {rule_id} deleted by {caller.user_id}")

    async def quote(self, caller: Caller, rule_id: str, purchase_amount: Decimal) -> Dict[str, Any]:
        rule = await self.get_rule(caller, rule_id)
        discount = rule.discount_for(purchase_amount)
        return {
            "voucher_rule_id": rule.id,
            "purchase_amount": purchase_amount,
            "discount": discount,
            "total_after_discount": Decimal(str(purchase_amount)) - discount,
        }

    # -------------------------------------------------------------------------
    # Vouchers
    # -------------------------------------------------------------------------

    async def list_vouchers(
        self,
        caller: Caller,
        status: Optional[VoucherStatus] = None,
        contact_id: Optional[str] = None,
        skip: int = 0,
        limit: int = settings.DEFAULT_PAGE_SIZE
    ) -> List[Voucher]:
        query = (
            select(Voucher)
            .join(Contact, Voucher.contact_id == Contact.id)
            .where(Voucher.company_id == caller.company_id)
            .where(visible_contacts_clause(caller))
        )
        if status:
            query = query.where(Voucher.status == status)
        if contact_id:
            query = query.where(Voucher.contact_id == contact_id)
        query = query.order_by(Voucher.issued_at.desc()).offset(skip).limit(limit)

        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def _get_voucher_with_contact(self, caller: Caller, voucher_id: str) -> Tuple[Voucher, Contact]:
        result = await self.db.execute(
            select(Voucher, Contact)
            .join(Contact, Voucher.contact_id == Contact.id)
            .where(
                and_(
                    Voucher.id == voucher_id,
                    Voucher.company_id == caller.company_id
                )
            )
        )
        row = result.first()

        if row is None or not can_read_voucher(row[0], row[1], caller):
            raise NotFound("Voucher")
        return row[0], row[1]

    async def get_voucher(self, caller: Caller, voucher_id: str) -> Voucher:
        voucher, _ = await self._get_voucher_with_contact(caller, voucher_id)
        return voucher

    async def _code_exists(self, code: str) -> bool:
        result = await self.db.execute(select(Voucher.id).where(Voucher.code == code))
        return result.first() is not None

    async def issue_voucher(self, caller: Caller, data: VoucherIssue) -> Voucher:
        """Issue a voucher from an active rule to a contact."""
        ensure(
            can_write(
                Entity.VOUCHER,
                caller,
                Operation.INSERT,
                new={"company_id": caller.company_id, "issued_by": caller.user_id},
            ),
            "Only admins can issue vouchers"
        )

        contact = await ContactService(self.db).get_visible_contact(caller, data.contact_id)
        rule = await self.get_rule(caller, data.voucher_rule_id)
        if not rule.is_valid_at():
            raise ValidationFailed({"voucher_rule_id": "Voucher rule is not active"})

        contact_id, rule_id = contact.id, rule.id
        max_attempts = settings.VOUCHER_CODE_MAX_ATTEMPTS

        for attempt in range(1, max_attempts + 1):
            code = generate_voucher_code()
            voucher = Voucher(
                company_id=caller.company_id,
                contact_id=contact_id,
                voucher_rule_id=rule_id,
                code=code,
                status=VoucherStatus.ISSUED,
                issued_by=caller.user_id,
                issued_at=datetime.utcnow(),
            )
            self.db.add(voucher)
            try:
                await self.db.commit()
            except IntegrityError:
                await self.db.rollback()
                if not await self._code_exists(code):
                    raise
                logger.warning(
                    f"Voucher code collision on attempt {attempt}/{max_attempts}, retrying"
                )
                continue

            await self.db.refresh(voucher)
            logger.info(
                f"Issued voucher {voucher.id} ({voucher.code}) from rule {rule_id} "
                f"to contact {contact_id} by {caller.user_id}"
            )
            return voucher

        raise DuplicateCode(max_attempts)

    async def change_status(self, caller: Caller, voucher_id: str, to_status: VoucherStatus) -> Voucher:
        voucher, contact = await self._get_voucher_with_contact(caller, voucher_id)
        ensure(
            can_write(Entity.VOUCHER, caller, Operation.UPDATE, voucher, contact=contact),
            "You cannot update this voucher"
        )

        from_status = voucher.status
        if to_status not in VOUCHER_TRANSITIONS[from_status]:
            raise InvalidTransition(from_status.value, to_status.value)

        voucher.status = to_status
        if to_status == VoucherStatus.REDEEMED:
            voucher.redeemed_at = datetime.utcnow()
            voucher.redeemed_by = caller.user_id

        await self.db.commit()
        await self.db.refresh(voucher)

        logger.info(
            f"Voucher {voucher.id} {from_status.value} -> {to_status.value} by {caller.user_id}"
        )
        return voucher

    async def redeem_voucher(self, caller: Caller, voucher_id: str) -> Voucher:
        return await self.change_status(caller, voucher_id, VoucherStatus.REDEEMED)

    async def expire_voucher(self, caller: Caller, voucher_id: str) -> Voucher:
        return await self.change_status(caller, voucher_id, VoucherStatus.EXPIRED)
