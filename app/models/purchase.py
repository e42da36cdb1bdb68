from sqlalchemy import Column, String, DateTime, ForeignKey, Integer, Numeric
from sqlalchemy.orm import relationship
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
import uuid
from app.core.database import Base

CENTS = Decimal("0.01")


def compute_total(unit_amount, quantity: int) -> Decimal:
    """Stored purchase amount: unit price times quantity, rounded to cents."""
    return (Decimal(str(unit_amount)) * quantity).quantize(CENTS, rounding=ROUND_HALF_UP)


class Purchase(Base):
    __tablename__ = "purchases"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    company_id = Column(String, ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True)
    contact_id = Column(String, ForeignKey("contacts.id", ondelete="CASCADE"), nullable=False, index=True)
    created_by = Column(String, ForeignKey("profiles.id"), nullable=False)

    item = Column(String, nullable=False)
    unit_amount = Column(Numeric(10, 2), nullable=False)
    quantity = Column(Integer, nullable=False, default=1)
    amount = Column(Numeric(10, 2), nullable=False)  # unit_amount * quantity

    purchase_date = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Relationships
    contact = relationship("Contact", back_populates="purchases")
    creator = relationship("User", foreign_keys=[created_by])
