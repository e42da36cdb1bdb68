"""
Access Policy

The single home of the tenant and ownership rules. Every predicate here is
pure: it takes the explicit ``Caller`` and the records involved and returns a
bool, so the service layer (authoritative enforcement) and the capability
flags sent to clients (advisory mirroring) evaluate exactly the same logic.

Rules:
- Tenant boundary: a record is never readable or writable across companies.
- Ownership: contacts, purchases (through their contact) and vouchers (through
  their contact) are visible to admins, the contact creator and the assignee.
- PII: email/phone/address of a contact are visible to admins and the creator
  only; an assignee can manage the record without seeing personal data.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from sqlalchemy import or_, true

from app.core.exceptions import PermissionDenied
from app.models.contact import Contact
from app.models.user import AppRole


PII_FIELDS = ("email", "phone", "address")


class Operation(str, Enum):
    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"


class Entity(str, Enum):
    CONTACT = "contact"
    PURCHASE = "purchase"
    VOUCHER_RULE = "voucher_rule"
    VOUCHER = "voucher"
    PROFILE_ROLE = "profile_role"


@dataclass(frozen=True)
class Caller:
    """Resolved identity of the principal making a request."""
    user_id: str
    company_id: str
    role: AppRole
    email: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == AppRole.ADMIN


# -----------------------------------------------------------------------------
# Building blocks
# -----------------------------------------------------------------------------

def is_admin(caller: Caller) -> bool:
    return caller.is_admin


def same_tenant(record: Any, caller: Caller) -> bool:
    return getattr(record, "company_id", None) == caller.company_id


def is_creator(contact: Any, caller: Caller) -> bool:
    return contact.created_by == caller.user_id


def is_assignee(contact: Any, caller: Caller) -> bool:
    return contact.assigned_user_id is not None and contact.assigned_user_id == caller.user_id


def is_owner_or_assignee(contact: Any, caller: Caller) -> bool:
    return is_creator(contact, caller) or is_assignee(contact, caller)


def ensure(condition: bool, message: Optional[str] = None) -> None:
    """Raise PermissionDenied unless ``condition`` holds."""
    if not condition:
        raise PermissionDenied(message)


# -----------------------------------------------------------------------------
# Read rules
# -----------------------------------------------------------------------------

def can_read_contact(contact: Any, caller: Caller) -> bool:
    return same_tenant(contact, caller) and (is_admin(caller) or is_owner_or_assignee(contact, caller))


def can_read_purchase(purchase: Any, contact: Any, caller: Caller) -> bool:
    return (
        same_tenant(purchase, caller)
        and purchase.contact_id == contact.id
        and can_read_contact(contact, caller)
    )


def can_read_voucher(voucher: Any, contact: Any, caller: Caller) -> bool:
    return (
        same_tenant(voucher, caller)
        and voucher.contact_id == contact.id
        and can_read_contact(contact, caller)
    )


def can_read_company_scoped(record: Any, caller: Caller) -> bool:
    """Voucher rules and profiles: any member of the company."""
    return same_tenant(record, caller)


def can_see_pii(contact: Any, caller: Caller) -> bool:
    """Stricter than can_read_contact: assignees alone do not qualify."""
    return same_tenant(contact, caller) and (is_admin(caller) or is_creator(contact, caller))


def can_see_spend(contact: Any, caller: Caller) -> bool:
    return can_see_pii(contact, caller)


# -----------------------------------------------------------------------------
# Write rules
# -----------------------------------------------------------------------------

def can_insert_contact(company_id: str, assigned_user_id: Optional[str], caller: Caller) -> bool:
    if company_id != caller.company_id:
        return False
    if is_admin(caller):
        return True
    return assigned_user_id in (None, caller.user_id)


def can_modify_contact(contact: Any, caller: Caller) -> bool:
    """Update or delete a contact."""
    return same_tenant(contact, caller) and (is_admin(caller) or is_owner_or_assignee(contact, caller))


def can_reassign_contact(contact: Any, caller: Caller) -> bool:
    return same_tenant(contact, caller) and is_admin(caller)


def can_insert_purchase(company_id: str, contact: Any, caller: Caller) -> bool:
    return (
        company_id == caller.company_id
        and contact.company_id == company_id
        and can_read_contact(contact, caller)
    )


def can_modify_purchase(purchase: Any, caller: Caller) -> bool:
    """Purchases are immutable for non-admins once recorded."""
    return same_tenant(purchase, caller) and is_admin(caller)


def can_manage_voucher_rules(record_or_company_id: Any, caller: Caller) -> bool:
    company_id = getattr(record_or_company_id, "company_id", record_or_company_id)
    return company_id == caller.company_id and is_admin(caller)


def can_issue_voucher(company_id: str, issued_by: str, caller: Caller) -> bool:
    return company_id == caller.company_id and is_admin(caller) and issued_by == caller.user_id


def can_update_voucher(voucher: Any, contact: Any, caller: Caller) -> bool:
    return (
        same_tenant(voucher, caller)
        and voucher.contact_id == contact.id
        and (is_admin(caller) or is_owner_or_assignee(contact, caller))
    )


def can_change_role(target_user: Any, caller: Caller) -> bool:
    return same_tenant(target_user, caller) and is_admin(caller)


def can_write(
    entity: Entity,
    caller: Caller,
    op: Operation,
    record: Any = None,
    *,
    contact: Any = None,
    new: Optional[Dict[str, Any]] = None,
) -> bool:
    """
    Dispatch a write decision for ``entity``/``op``.

    ``record`` is the existing row for update/delete; ``new`` holds the
    proposed column values for inserts; ``contact`` is the parent contact
    for purchases and vouchers.
    """
    new = new or {}

    if entity == Entity.CONTACT:
        if op == Operation.INSERT:
            return can_insert_contact(new.get("company_id"), new.get("assigned_user_id"), caller)
        if not can_modify_contact(record, caller):
            return False
        if op == Operation.UPDATE:
            if "assigned_user_id" in new and new["assigned_user_id"] != record.assigned_user_id:
                if not can_reassign_contact(record, caller):
                    return False
            # Personal data is only writable by those who may read it
            if any(field in new for field in PII_FIELDS) and not can_see_pii(record, caller):
                return False
        return True

    if entity == Entity.PURCHASE:
        if op == Operation.INSERT:
            return contact is not None and can_insert_purchase(new.get("company_id"), contact, caller)
        return can_modify_purchase(record, caller)

    if entity == Entity.VOUCHER_RULE:
        target = new.get("company_id") if op == Operation.INSERT else record
        return can_manage_voucher_rules(target, caller)

    if entity == Entity.VOUCHER:
        if op == Operation.INSERT:
            return can_issue_voucher(new.get("company_id"), new.get("issued_by"), caller)
        if op == Operation.UPDATE:
            return contact is not None and can_update_voucher(record, contact, caller)
        # Vouchers disappear only through their contact or rule
        return False

    if entity == Entity.PROFILE_ROLE:
        return can_change_role(record, caller)

    return False


def contact_capabilities(contact: Any, caller: Caller) -> Dict[str, bool]:
    """Flags clients use to gate UI for a contact; advisory only."""
    return {
        "can_edit": can_modify_contact(contact, caller),
        "can_delete": can_modify_contact(contact, caller),
        "can_reassign": can_reassign_contact(contact, caller),
        "can_record_purchase": can_read_contact(contact, caller),
        "can_see_pii": can_see_pii(contact, caller),
    }


# -----------------------------------------------------------------------------
# Query mirrors
# -----------------------------------------------------------------------------

def visible_contacts_clause(caller: Caller):
    """SQL form of can_read_contact for list queries over Contact."""
    ownership = true() if is_admin(caller) else or_(
        Contact.created_by == caller.user_id,
        Contact.assigned_user_id == caller.user_id,
    )
    return (Contact.company_id == caller.company_id) & ownership


def pii_visible_clause(caller: Caller):
    """SQL form of can_see_pii."""
    if is_admin(caller):
        return Contact.company_id == caller.company_id
    return (Contact.company_id == caller.company_id) & (Contact.created_by == caller.user_id)
