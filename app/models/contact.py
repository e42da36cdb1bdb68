from sqlalchemy import Column, String, DateTime, ForeignKey, Text
from sqlalchemy.orm import relationship
from datetime import datetime
import uuid
from app.core.database import Base


class Contact(Base):
    __tablename__ = "contacts"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    company_id = Column(String, ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True)

    # Ownership
    created_by = Column(String, ForeignKey("profiles.id"), nullable=False, index=True)  # Immutable
    assigned_user_id = Column(String, ForeignKey("profiles.id", ondelete="SET NULL"), index=True)

    name = Column(String, nullable=False, index=True)

    # Personal data, gated separately from record visibility
    email = Column(String)
    phone = Column(String)
    address = Column(Text)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    company = relationship("Company", back_populates="contacts")
    creator = relationship("User", foreign_keys=[created_by])
    assignee = relationship("User", foreign_keys=[assigned_user_id])
    purchases = relationship("Purchase", back_populates="contact", cascade="all, delete-orphan")
    vouchers = relationship("Voucher", back_populates="contact", cascade="all, delete-orphan")
