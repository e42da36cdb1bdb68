from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, Numeric, Text, Enum as SQLEnum
from sqlalchemy.orm import relationship
from datetime import datetime
from decimal import Decimal
from typing import Optional
import uuid
import enum
from app.core.database import Base
from app.models.purchase import CENTS


class DiscountType(str, enum.Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


class VoucherStatus(str, enum.Enum):
    ISSUED = "issued"
    REDEEMED = "redeemed"  # Terminal
    EXPIRED = "expired"  # Terminal


# Allowed status transitions; terminal states map to nothing
VOUCHER_TRANSITIONS = {
    VoucherStatus.ISSUED: {VoucherStatus.REDEEMED, VoucherStatus.EXPIRED},
    VoucherStatus.REDEEMED: set(),
    VoucherStatus.EXPIRED: set(),
}


class VoucherRule(Base):
    __tablename__ = "voucher_rules"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    company_id = Column(String, ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True)

    name = Column(String, nullable=False)
    description = Column(Text)

    # Discount
    discount_type = Column(SQLEnum(DiscountType), nullable=False, default=DiscountType.PERCENTAGE)
    discount_value = Column(Numeric(10, 2), nullable=False)
    min_purchase_amount = Column(Numeric(10, 2))
    max_discount_amount = Column(Numeric(10, 2))

    # Validity window
    valid_from = Column(DateTime)
    valid_until = Column(DateTime)
    is_active = Column(Boolean, default=True, nullable=False)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    company = relationship("Company", back_populates="voucher_rules")
    vouchers = relationship("Voucher", back_populates="voucher_rule", cascade="all, delete-orphan")

    def discount_for(self, purchase_amount: Decimal) -> Decimal:
        """Discount this rule grants on a purchase of the given amount."""
        amount = Decimal(str(purchase_amount))
        if self.min_purchase_amount is not None and amount < Decimal(str(self.min_purchase_amount)):
            return Decimal("0.00")

        value = Decimal(str(self.discount_value))
        if self.discount_type == DiscountType.PERCENTAGE:
            discount = amount * value / Decimal(100)
        else:
            discount = value

        if self.max_discount_amount is not None:
            discount = min(discount, Decimal(str(self.max_discount_amount)))
        return min(discount, amount).quantize(CENTS)

    def is_valid_at(self, moment: Optional[datetime] = None) -> bool:
        moment = moment or datetime.utcnow()
        if not self.is_active:
            return False
        if self.valid_from and moment < self.valid_from:
            return False
        if self.valid_until and moment > self.valid_until:
            return False
        return True


class Voucher(Base):
    __tablename__ = "vouchers"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    company_id = Column(String, ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True)
    contact_id = Column(String, ForeignKey("contacts.id", ondelete="CASCADE"), nullable=False, index=True)
    voucher_rule_id = Column(String, ForeignKey("voucher_rules.id", ondelete="CASCADE"), nullable=False, index=True)

    code = Column(String, unique=True, nullable=False, index=True)  # Human-readable, globally unique
    status = Column(SQLEnum(VoucherStatus), nullable=False, default=VoucherStatus.ISSUED, index=True)

    # Issuance
    issued_by = Column(String, ForeignKey("profiles.id"), nullable=False)
    issued_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Redemption
    redeemed_at = Column(DateTime)
    redeemed_by = Column(String, ForeignKey("profiles.id", ondelete="SET NULL"))

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Relationships
    contact = relationship("Contact", back_populates="vouchers")
    voucher_rule = relationship("VoucherRule", back_populates="vouchers")
    issuer = relationship("User", foreign_keys=[issued_by])
