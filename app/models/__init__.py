from app.core.database import Base
from app.models.company import Company
from app.models.user import User, UserRoleAssignment, AppRole
from app.models.contact import Contact
from app.models.purchase import Purchase
from app.models.voucher import VoucherRule, Voucher, DiscountType, VoucherStatus

__all__ = [
    "Base",
    "Company",
    "User",
    "UserRoleAssignment",
    "AppRole",
    "Contact",
    "Purchase",
    "VoucherRule",
    "Voucher",
    "DiscountType",
    "VoucherStatus",
]
